# contentbot/services/generation_service.py
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from contentbot.db.models import Article, ArticleGeneration, Project
from contentbot.services.artifacts import ArtifactStore, GenerationInputs
from contentbot.services.claim_gate import ClaimResult, claim_article
from contentbot.services.errors import ArticleNotFound, ClaimConflict, GenerationNotFound, NotRetryable
from contentbot.services.restart_resolver import RestartPoint, resolve_restart_point
from contentbot.services.statuses import (
    ArticleStatus,
    GenerationPhase,
    RESTARTABLE,
    check_generation_transition,
)

log = logging.getLogger(__name__)

RELATED_ARTICLES_LIMIT = 5


@dataclass
class RetryPlan:
    generation: ArticleGeneration
    failed_phase: Optional[GenerationPhase]
    restart: RestartPoint


def get_article(db: Session, article_id: int) -> Article:
    article = db.get(Article, article_id)
    if article is None:
        raise ArticleNotFound(article_id)
    return article


def latest_generation(db: Session, article_id: int) -> Optional[ArticleGeneration]:
    return (
        db.query(ArticleGeneration)
        .filter(ArticleGeneration.article_id == article_id)
        .order_by(ArticleGeneration.id.desc())
        .populate_existing()
        .first()
    )


def build_generation_inputs(db: Session, article: Article) -> GenerationInputs:
    project = db.get(Project, article.project_id)
    related = (
        db.query(Article.title)
        .filter(
            Article.project_id == article.project_id,
            Article.id != article.id,
            Article.status == ArticleStatus.PUBLISHED,
        )
        .order_by(Article.published_at.desc())
        .limit(RELATED_ARTICLES_LIMIT)
        .all()
    )
    return GenerationInputs(
        article_id=article.id,
        title=article.title,
        keywords=list(article.keywords or []) or [article.title],
        notes=article.notes,
        tone_of_voice=project.tone_of_voice,
        article_structure=project.article_structure,
        max_words=project.max_words,
        excluded_domains=list(project.excluded_domains or []),
        related_articles=[r[0] for r in related],
    )


def release_claim(db: Session, article_id: int, status: ArticleStatus) -> None:
    """Undo a claim that never reached the orchestrator."""
    db.rollback()
    (
        db.query(Article)
        .filter(Article.id == article_id, Article.status == ArticleStatus.GENERATING)
        .update({Article.status: status}, synchronize_session=False)
    )
    db.commit()


def create_or_reset_generation(db: Session, article: Article) -> ArticleGeneration:
    """Reuse the article's latest record as a fresh PENDING run, or create one. Commits."""
    inputs = build_generation_inputs(db, article).model_dump()
    project = db.get(Project, article.project_id)
    record = latest_generation(db, article.id)
    if record is None:
        record = ArticleGeneration(
            article_id=article.id,
            user_id=project.user_id,
            project_id=project.id,
            status=GenerationPhase.PENDING,
        )
        db.add(record)
    else:
        if record.status != GenerationPhase.PENDING:
            record.status = check_generation_transition(record.status, GenerationPhase.PENDING)
        ArtifactStore(db).clear(record.id)
    record.inputs = inputs
    record.progress = 0
    record.error = None
    record.error_details = None
    record.failed_phase = None
    record.started_at = datetime.now(timezone.utc)
    record.completed_at = None
    db.commit()
    db.refresh(record)
    return record


def start_generation(db: Session, article_id: int, force: bool = False) -> ArticleGeneration:
    article = get_article(db, article_id)
    previous = article.status
    result = claim_article(db, article_id, force=force)
    if result != ClaimResult.CLAIMED:
        raise ClaimConflict(article_id, result)
    try:
        record = create_or_reset_generation(db, get_article(db, article_id))
    except Exception:
        log.exception("[generation] could not create record for article %s", article_id)
        release_claim(db, article_id, previous)
        raise
    log.info("[generation] article %s: record %s ready", article_id, record.id)
    return record


def retry_generation(db: Session, article_id: int) -> RetryPlan:
    article = get_article(db, article_id)
    if article.status != ArticleStatus.FAILED:
        raise NotRetryable(f"Article {article_id} is {article.status.value}, only failed articles can be retried")
    record = latest_generation(db, article_id)
    if record is None:
        raise GenerationNotFound(article_id)

    failed_phase = record.failed_phase or record.status
    restart = resolve_restart_point(failed_phase, ArtifactStore(db).load(record.id))

    result = claim_article(db, article_id)
    if result != ClaimResult.CLAIMED:
        raise ClaimConflict(article_id, result)
    try:
        reset_for_retry(db, record, restart.restart_phase)
    except Exception:
        log.exception("[generation] could not reset record %s", record.id)
        release_claim(db, article_id, ArticleStatus.FAILED)
        raise
    log.info(
        "[generation] article %s: retrying from %s (failed at %s)",
        article_id, restart.restart_phase.value, failed_phase.value,
    )
    return RetryPlan(generation=record, failed_phase=failed_phase, restart=restart)


def abandon_generation(db: Session, generation_id: int, exc: Exception) -> None:
    """Fail a claimed run that never reached the worker, leaving it retryable."""
    db.rollback()
    record = db.get(ArticleGeneration, generation_id)
    now = datetime.now(timezone.utc)
    original = record.status
    record.status = check_generation_transition(original, GenerationPhase.FAILED)
    record.failed_phase = original
    record.error = str(exc) or type(exc).__name__
    record.error_details = {
        "phase": original.value,
        "type": type(exc).__name__,
        "original_status": original.value,
        "article_id": record.article_id,
        "timestamp": now.isoformat(),
    }
    record.completed_at = now
    (
        db.query(Article)
        .filter(Article.id == record.article_id, Article.status == ArticleStatus.GENERATING)
        .update({Article.status: ArticleStatus.FAILED}, synchronize_session=False)
    )
    db.commit()
    log.warning("[generation] record %s could not be dispatched: %s", generation_id, record.error)


def reset_for_retry(db: Session, record: ArticleGeneration, restart_phase: GenerationPhase) -> None:
    if restart_phase not in RESTARTABLE:
        raise ValueError(f"cannot restart from {restart_phase.value}")
    record.status = restart_phase
    record.progress = 0
    record.error = None
    record.error_details = None
    record.failed_phase = None
    record.completed_at = None
    db.commit()
    db.refresh(record)


def generation_status(db: Session, article_id: int) -> Dict[str, Any]:
    article = get_article(db, article_id)
    record = latest_generation(db, article_id)
    if record is None:
        raise GenerationNotFound(article_id)
    return {
        "article_id": article.id,
        "article_status": article.status.value,
        "generation_id": record.id,
        "status": record.status.value,
        "progress": record.progress,
        "failed_phase": record.failed_phase.value if record.failed_phase else None,
        "error": record.error,
        "error_details": record.error_details,
        "artifacts": ArtifactStore(db).keys(record.id),
        "started_at": record.started_at.isoformat() if record.started_at else None,
        "completed_at": record.completed_at.isoformat() if record.completed_at else None,
    }
