import logging
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from typing import Any, Callable, Dict, Optional
from sqlalchemy.orm import Session

from contentbot.deps import get_db, get_dispatcher
from contentbot.services import generation_service
from contentbot.services.errors import ArticleNotFound, ClaimConflict, GenerationNotFound, NotRetryable

log = logging.getLogger(__name__)

router = APIRouter(prefix="/articles", tags=["generation"])


class GenerateIn(BaseModel):
    force_regenerate: bool = False


def _hand_off(db: Session, dispatch: Callable[[int], None], generation_id: int) -> None:
    try:
        dispatch(generation_id)
    except Exception as e:
        log.exception("[generation] dispatch of record %s failed", generation_id)
        generation_service.abandon_generation(db, generation_id, e)
        raise HTTPException(503, f"Generation could not be started: {e}")


@router.post("/{article_id}/generate", status_code=202)
def generate(
    article_id: int,
    body: Optional[GenerateIn] = None,
    db: Session = Depends(get_db),
    dispatch: Callable[[int], None] = Depends(get_dispatcher),
) -> Dict[str, Any]:
    try:
        record = generation_service.start_generation(db, article_id, force=bool(body and body.force_regenerate))
    except ArticleNotFound as e:
        raise HTTPException(404, str(e))
    except ClaimConflict as e:
        raise HTTPException(409, {"message": str(e), "reason": e.outcome.value})
    _hand_off(db, dispatch, record.id)
    return {"status": "accepted", "article_id": article_id, "generation_id": record.id}


@router.post("/{article_id}/retry", status_code=202)
def retry(
    article_id: int,
    db: Session = Depends(get_db),
    dispatch: Callable[[int], None] = Depends(get_dispatcher),
) -> Dict[str, Any]:
    try:
        plan = generation_service.retry_generation(db, article_id)
    except (ArticleNotFound, GenerationNotFound) as e:
        raise HTTPException(404, str(e))
    except NotRetryable as e:
        raise HTTPException(400, str(e))
    except ClaimConflict as e:
        raise HTTPException(409, {"message": str(e), "reason": e.outcome.value})
    _hand_off(db, dispatch, plan.generation.id)
    return {
        "status": "accepted",
        "article_id": article_id,
        "generation_id": plan.generation.id,
        "failed_phase": plan.failed_phase.value if plan.failed_phase else None,
        "restart_phase": plan.restart.restart_phase.value,
        "available_artifacts": plan.restart.available_artifacts,
        "reasoning": plan.restart.reasoning,
    }


@router.get("/{article_id}/generation-status")
def generation_status(article_id: int, db: Session = Depends(get_db)) -> Dict[str, Any]:
    try:
        return generation_service.generation_status(db, article_id)
    except (ArticleNotFound, GenerationNotFound) as e:
        raise HTTPException(404, str(e))
