from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, HttpUrl
from typing import Optional, List, Any, Dict
from sqlalchemy.orm import Session
from contentbot.deps import get_db
from contentbot.db import crud
from contentbot.db.models import Article
from contentbot.services.statuses import ArticleStatus

router = APIRouter(tags=["articles"])


class ProjectIn(BaseModel):
    name: str
    user_id: Optional[int] = None
    email: Optional[str] = None
    tone_of_voice: Optional[str] = None
    article_structure: Optional[str] = None
    max_words: Optional[int] = None
    excluded_domains: List[str] = []
    auto_publish: bool = False
    webhook_url: Optional[HttpUrl] = None
    webhook_secret: Optional[str] = None


class ArticleIn(BaseModel):
    project_id: int
    title: str
    keywords: List[str] = []
    notes: Optional[str] = None
    publish_scheduled_at: Optional[datetime] = None


def article_out(a: Article) -> Dict[str, Any]:
    return {
        "id": a.id,
        "project_id": a.project_id,
        "title": a.title,
        "keywords": a.keywords or [],
        "status": a.status.value,
        "kanban_position": a.kanban_position,
        "slug": a.slug,
        "meta_description": a.meta_description,
        "cover_image_url": a.cover_image_url,
        "publish_scheduled_at": a.publish_scheduled_at.isoformat() if a.publish_scheduled_at else None,
        "published_at": a.published_at.isoformat() if a.published_at else None,
        "updated_at": str(a.updated_at),
    }


@router.post("/projects")
def create_project(body: ProjectIn, db: Session = Depends(get_db)) -> Dict[str, Any]:
    user = crud.get_or_create_user(db, user_id=body.user_id, email=body.email)
    p = crud.create_project(db, {
        "user_id": user.id, "name": body.name, "tone_of_voice": body.tone_of_voice,
        "article_structure": body.article_structure, "max_words": body.max_words,
        "excluded_domains": body.excluded_domains, "auto_publish": body.auto_publish,
        "webhook_url": str(body.webhook_url) if body.webhook_url else None,
        "webhook_secret": body.webhook_secret,
    })
    return {"status": "saved", "id": p.id, "user_id": user.id}


@router.get("/projects/{project_id}")
def get_project(project_id: int, db: Session = Depends(get_db)) -> Dict[str, Any]:
    p = crud.get_project(db, project_id)
    if not p:
        raise HTTPException(404, f"Project {project_id} not found")
    return {
        "id": p.id, "user_id": p.user_id, "name": p.name, "tone_of_voice": p.tone_of_voice,
        "article_structure": p.article_structure, "max_words": p.max_words,
        "excluded_domains": p.excluded_domains or [], "auto_publish": p.auto_publish,
        "webhook_url": p.webhook_url, "has_webhook_secret": bool(p.webhook_secret_encrypted),
    }


@router.post("/articles")
def create_article(body: ArticleIn, db: Session = Depends(get_db)) -> Dict[str, Any]:
    if not crud.get_project(db, body.project_id):
        raise HTTPException(404, f"Project {body.project_id} not found")
    a = crud.create_article(db, {
        "project_id": body.project_id, "title": body.title, "keywords": body.keywords,
        "notes": body.notes, "publish_scheduled_at": body.publish_scheduled_at,
    })
    return {"status": "saved", "id": a.id}


@router.get("/articles")
def list_articles(
    project_id: Optional[int] = None,
    status: Optional[ArticleStatus] = None,
    limit: int = 50,
    db: Session = Depends(get_db),
) -> List[Dict[str, Any]]:
    return [article_out(a) for a in crud.list_articles(db, project_id=project_id, status=status, limit=limit)]


@router.get("/articles/{article_id}")
def get_article(article_id: int, db: Session = Depends(get_db)) -> Dict[str, Any]:
    a = crud.get_article(db, article_id)
    if not a or a.status == ArticleStatus.DELETED:
        raise HTTPException(404, f"Article {article_id} not found")
    out = article_out(a)
    out.update({"notes": a.notes, "content": a.content, "intro_paragraph": a.intro_paragraph,
                "meta_keywords": a.meta_keywords or [], "cover_image_alt": a.cover_image_alt})
    return out
