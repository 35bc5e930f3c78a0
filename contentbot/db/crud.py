from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import Optional, List, Dict, Any
from contentbot.db import models
from contentbot.db import secret_crypto
from contentbot.services.statuses import ArticleStatus


def get_or_create_user(db: Session, user_id: Optional[int] = None, email: Optional[str] = None) -> models.User:
    if user_id is not None:
        u = db.get(models.User, user_id)
        if u:
            return u
    if email:
        u = db.query(models.User).filter(models.User.email == email).first()
        if u:
            return u
    u = models.User(email=email)
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


def create_project(db: Session, data: Dict[str, Any]) -> models.Project:
    data = dict(data)
    secret = data.pop("webhook_secret", None)
    obj = models.Project(**data)
    if secret:
        obj.webhook_secret_encrypted = secret_crypto.encrypt_secret(secret)
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


def get_project(db: Session, project_id: int) -> Optional[models.Project]:
    return db.get(models.Project, project_id)


def create_article(db: Session, data: Dict[str, Any]) -> models.Article:
    last = (
        db.query(func.max(models.Article.kanban_position))
        .filter(models.Article.project_id == data["project_id"])
        .scalar()
    )
    obj = models.Article(kanban_position=0 if last is None else last + 1, **data)
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


def get_article(db: Session, article_id: int) -> Optional[models.Article]:
    return db.get(models.Article, article_id)


def list_articles(
    db: Session,
    project_id: Optional[int] = None,
    status: Optional[ArticleStatus] = None,
    limit: int = 50,
) -> List[models.Article]:
    q = db.query(models.Article).filter(models.Article.status != ArticleStatus.DELETED)
    if project_id is not None:
        q = q.filter(models.Article.project_id == project_id)
    if status is not None:
        q = q.filter(models.Article.status == status)
    return q.order_by(models.Article.kanban_position, models.Article.id).limit(limit).all()
