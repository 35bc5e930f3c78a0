import threading

from contentbot.db import models
from contentbot.services.claim_gate import ClaimResult, claim_article
from contentbot.services.statuses import ArticleStatus


def test_claim_moves_to_generating(db, make_article):
    article_id = make_article(status=ArticleStatus.TO_GENERATE)
    assert claim_article(db, article_id) == ClaimResult.CLAIMED
    db.expire_all()
    assert db.get(models.Article, article_id).status == ArticleStatus.GENERATING


def test_second_claim_reports_already_generating(db, make_article):
    article_id = make_article(status=ArticleStatus.TO_GENERATE)
    assert claim_article(db, article_id) == ClaimResult.CLAIMED
    assert claim_article(db, article_id) == ClaimResult.ALREADY_GENERATING


def test_published_article_is_not_claimable(db, make_article):
    article_id = make_article(status=ArticleStatus.PUBLISHED)
    assert claim_article(db, article_id) == ClaimResult.INVALID_STATE
    db.expire_all()
    assert db.get(models.Article, article_id).status == ArticleStatus.PUBLISHED


def test_missing_article_is_invalid(db):
    assert claim_article(db, 12345) == ClaimResult.INVALID_STATE


def test_wait_for_publish_needs_force(db, make_article):
    article_id = make_article(status=ArticleStatus.WAIT_FOR_PUBLISH)
    assert claim_article(db, article_id) == ClaimResult.INVALID_STATE
    assert claim_article(db, article_id, force=True) == ClaimResult.CLAIMED


def test_failed_article_can_be_claimed_for_retry(db, make_article):
    article_id = make_article(status=ArticleStatus.FAILED)
    assert claim_article(db, article_id) == ClaimResult.CLAIMED


def test_concurrent_claims_have_one_winner(session_factory, make_article):
    article_id = make_article(status=ArticleStatus.QUEUED)
    results = []
    lock = threading.Lock()
    barrier = threading.Barrier(6)

    def attempt():
        s = session_factory()
        try:
            barrier.wait()
            outcome = claim_article(s, article_id)
        finally:
            s.close()
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=attempt) for _ in range(6)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(ClaimResult.CLAIMED) == 1
    assert results.count(ClaimResult.ALREADY_GENERATING) == 5
