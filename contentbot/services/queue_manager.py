# contentbot/services/queue_manager.py
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from contentbot.db.base import SessionLocal
from contentbot.db.models import Article, GenerationQueueItem, Project
from contentbot.services.claim_gate import ClaimResult, claim_article
from contentbot.services.errors import DuplicateQueueEntry, QueueItemBusy, QueueItemNotFound
from contentbot.services.generation_service import create_or_reset_generation, get_article
from contentbot.services.statuses import ArticleStatus, check_article_transition

log = logging.getLogger(__name__)

QUEUED = "queued"
PROCESSING = "processing"
FAILED = "failed"
ACTIVE = (QUEUED, PROCESSING)


def next_position(db: Session, user_id: int) -> int:
    current = (
        db.query(func.max(GenerationQueueItem.queue_position))
        .filter(GenerationQueueItem.user_id == user_id, GenerationQueueItem.status == QUEUED)
        .scalar()
    )
    return 0 if current is None else current + 1


def renumber(db: Session, user_id: int) -> None:
    """Close gaps so the user's queued items sit at 0..N-1 in their existing order."""
    items = (
        db.query(GenerationQueueItem)
        .filter(GenerationQueueItem.user_id == user_id, GenerationQueueItem.status == QUEUED)
        .order_by(GenerationQueueItem.queue_position, GenerationQueueItem.id)
        .all()
    )
    for position, item in enumerate(items):
        if item.queue_position != position:
            item.queue_position = position


def enqueue(
    db: Session,
    article_id: int,
    scheduled_for: Optional[datetime] = None,
    scheduling_type: str = "manual",
) -> GenerationQueueItem:
    article = get_article(db, article_id)
    existing = (
        db.query(GenerationQueueItem)
        .filter(GenerationQueueItem.article_id == article_id, GenerationQueueItem.status.in_(ACTIVE))
        .first()
    )
    if existing:
        raise DuplicateQueueEntry(f"Article {article_id} is already in the generation queue")
    article.status = check_article_transition(article.status, ArticleStatus.QUEUED)

    project = db.get(Project, article.project_id)
    item = GenerationQueueItem(
        article_id=article.id,
        user_id=project.user_id,
        project_id=project.id,
        scheduled_for_date=scheduled_for or datetime.now(timezone.utc),
        queue_position=next_position(db, project.user_id),
        scheduling_type=scheduling_type,
        status=QUEUED,
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    log.info("[queue] article %s queued at position %s", article_id, item.queue_position)
    return item


def remove(db: Session, item_id: int) -> None:
    item = db.get(GenerationQueueItem, item_id)
    if item is None:
        raise QueueItemNotFound(f"Queue item {item_id} not found")
    if item.status == PROCESSING:
        raise QueueItemBusy(f"Queue item {item_id} is being processed")
    user_id = item.user_id
    article = db.get(Article, item.article_id)
    db.delete(item)
    if article is not None and article.status == ArticleStatus.QUEUED:
        article.status = ArticleStatus.IDEA
    db.flush()
    renumber(db, user_id)
    db.commit()
    log.info("[queue] item %s removed", item_id)


def list_queue(db: Session, user_id: int, project_id: Optional[int] = None) -> List[GenerationQueueItem]:
    q = db.query(GenerationQueueItem).filter(
        GenerationQueueItem.user_id == user_id, GenerationQueueItem.status == QUEUED,
    )
    if project_id is not None:
        q = q.filter(GenerationQueueItem.project_id == project_id)
    return q.order_by(GenerationQueueItem.queue_position).all()


def _drop(db: Session, item: GenerationQueueItem) -> None:
    user_id = item.user_id
    db.delete(item)
    db.flush()
    renumber(db, user_id)
    db.commit()


def _record_failure(db: Session, item_id: int, article_id: int, exc: Exception) -> None:
    """Put the item back in line until it runs out of attempts, then hand the article back as an idea."""
    db.rollback()
    row = db.get(GenerationQueueItem, item_id)
    attempts = (row.attempts or 0) + 1 if row is not None else None
    requeue = row is not None and attempts < row.max_attempts
    (
        db.query(Article)
        .filter(
            Article.id == article_id,
            Article.status.in_([ArticleStatus.GENERATING, ArticleStatus.QUEUED]),
        )
        .update(
            {Article.status: ArticleStatus.QUEUED if requeue else ArticleStatus.IDEA},
            synchronize_session=False,
        )
    )
    if row is not None:
        row.attempts = attempts
        row.error_message = str(exc)
        row.status = QUEUED if requeue else FAILED
        if not requeue:
            db.flush()
            renumber(db, row.user_id)
    db.commit()
    if not requeue:
        log.warning("[queue] article %s gave up after %s attempts", article_id, attempts)


def process_due(
    dispatch: Callable[[int], Any],
    now: Optional[datetime] = None,
    session_factory=SessionLocal,
) -> Dict[str, Any]:
    """Start generation for every queued item that is due.

    `dispatch` receives the generation id of each started record.
    """
    now = now or datetime.now(timezone.utc)
    db = session_factory()
    started, skipped, failed = [], [], []
    try:
        due = (
            db.query(GenerationQueueItem)
            .filter(GenerationQueueItem.status == QUEUED, GenerationQueueItem.scheduled_for_date <= now)
            .order_by(GenerationQueueItem.queue_position)
            .all()
        )
        for item in due:
            item_id, article_id = item.id, item.article_id
            try:
                item.status = PROCESSING
                item.processed_at = now
                db.commit()

                result = claim_article(db, article_id)
                if result != ClaimResult.CLAIMED:
                    log.info("[queue] article %s skipped: %s", article_id, result.value)
                    _drop(db, item)
                    skipped.append(article_id)
                    continue
                record = create_or_reset_generation(db, get_article(db, article_id))
                dispatch(record.id)
                _drop(db, item)
                started.append({"article_id": article_id, "generation_id": record.id})
            except Exception as e:
                log.exception("[queue] item %s for article %s failed", item_id, article_id)
                _record_failure(db, item_id, article_id, e)
                failed.append(article_id)
        return {"status": "ok", "started": started, "skipped": skipped, "failed": failed}
    finally:
        db.close()
