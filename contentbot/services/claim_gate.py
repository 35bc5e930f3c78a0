# contentbot/services/claim_gate.py
import logging
from enum import Enum

from sqlalchemy import func
from sqlalchemy.orm import Session

from contentbot.db.models import Article
from contentbot.services.statuses import ArticleStatus, CLAIMABLE, CLAIMABLE_FORCED

log = logging.getLogger(__name__)


class ClaimResult(str, Enum):
    CLAIMED = "claimed"
    ALREADY_GENERATING = "already_generating"
    INVALID_STATE = "invalid_state"


def claim_article(db: Session, article_id: int, force: bool = False) -> ClaimResult:
    """Move an article to GENERATING in one conditional UPDATE.

    Only one caller can win: the UPDATE matches only while the row is still in an
    eligible status, so a concurrent claimer sees zero affected rows. Refusals
    never modify the row. Commits on success.
    """
    eligible = CLAIMABLE_FORCED if force else CLAIMABLE
    updated = (
        db.query(Article)
        .filter(Article.id == article_id, Article.status.in_(list(eligible)))
        .update(
            {Article.status: ArticleStatus.GENERATING, Article.updated_at: func.now()},
            synchronize_session=False,
        )
    )
    if updated == 1:
        db.commit()
        log.info("[claim] article %s claimed for generation", article_id)
        return ClaimResult.CLAIMED

    db.rollback()
    current = db.query(Article.status).filter(Article.id == article_id).scalar()
    if current == ArticleStatus.GENERATING:
        log.info("[claim] article %s is already generating", article_id)
        return ClaimResult.ALREADY_GENERATING
    log.info("[claim] article %s not claimable (status=%s)", article_id, getattr(current, "value", current))
    return ClaimResult.INVALID_STATE
