from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from typing import Any, Dict
from sqlalchemy.orm import Session

from contentbot.deps import get_db, get_publisher
from contentbot.services.errors import ArticleNotFound, InvalidTransition
from contentbot.services.generation_service import get_article
from contentbot.services.publisher import Publisher

router = APIRouter(prefix="/articles", tags=["publish"])


class ScheduleIn(BaseModel):
    publish_at: datetime


@router.post("/{article_id}/publish")
def publish_now(article_id: int, db: Session = Depends(get_db), publisher: Publisher = Depends(get_publisher)) -> Dict[str, Any]:
    try:
        article = get_article(db, article_id)
    except ArticleNotFound as e:
        raise HTTPException(404, str(e))
    if not publisher.publish(db, article_id):
        raise HTTPException(409, f"Article {article_id} is {article.status.value}, not waiting for publish")
    return {"status": "published", "id": article_id}


@router.post("/{article_id}/schedule-publish")
def schedule_publish(
    article_id: int,
    body: ScheduleIn,
    db: Session = Depends(get_db),
    publisher: Publisher = Depends(get_publisher),
) -> Dict[str, Any]:
    try:
        article = publisher.schedule(db, article_id, body.publish_at)
    except ArticleNotFound as e:
        raise HTTPException(404, str(e))
    except InvalidTransition as e:
        raise HTTPException(409, str(e))
    return {"status": "scheduled", "id": article.id, "publish_at": body.publish_at.isoformat()}
