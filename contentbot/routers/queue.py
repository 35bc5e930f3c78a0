from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from typing import Optional, List, Any, Dict
from sqlalchemy.orm import Session

from contentbot.deps import get_db
from contentbot.db.models import GenerationQueueItem
from contentbot.services import queue_manager
from contentbot.services.errors import (
    ArticleNotFound, DuplicateQueueEntry, InvalidTransition, QueueItemBusy, QueueItemNotFound,
)

router = APIRouter(prefix="/generation-queue", tags=["queue"])


class EnqueueIn(BaseModel):
    article_id: int
    scheduled_for: Optional[datetime] = None
    scheduling_type: str = "manual"


def item_out(item: GenerationQueueItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "article_id": item.article_id,
        "project_id": item.project_id,
        "queue_position": item.queue_position,
        "scheduled_for_date": item.scheduled_for_date.isoformat() if item.scheduled_for_date else None,
        "scheduling_type": item.scheduling_type,
        "status": item.status,
        "attempts": item.attempts,
    }


@router.get("")
def list_queue(user_id: int, project_id: Optional[int] = None, db: Session = Depends(get_db)) -> List[Dict[str, Any]]:
    return [item_out(i) for i in queue_manager.list_queue(db, user_id, project_id=project_id)]


@router.post("", status_code=201)
def enqueue(body: EnqueueIn, db: Session = Depends(get_db)) -> Dict[str, Any]:
    if body.scheduling_type not in ("manual", "automatic"):
        raise HTTPException(400, "scheduling_type must be 'manual' or 'automatic'")
    try:
        item = queue_manager.enqueue(db, body.article_id, scheduled_for=body.scheduled_for, scheduling_type=body.scheduling_type)
    except ArticleNotFound as e:
        raise HTTPException(404, str(e))
    except (DuplicateQueueEntry, InvalidTransition) as e:
        raise HTTPException(409, str(e))
    return item_out(item)


@router.delete("/{item_id}")
def remove(item_id: int, db: Session = Depends(get_db)) -> Dict[str, Any]:
    try:
        queue_manager.remove(db, item_id)
    except QueueItemNotFound as e:
        raise HTTPException(404, str(e))
    except QueueItemBusy as e:
        raise HTTPException(409, str(e))
    return {"status": "removed", "id": item_id}
