# contentbot/services/publisher.py
import hashlib
import hmac
import json
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

import anyio
import httpx
from sqlalchemy.orm import Session

from contentbot.config import settings
from contentbot.db import secret_crypto
from contentbot.db.base import SessionLocal
from contentbot.db.models import Article, Project, WebhookDelivery
from contentbot.services.artifacts import ArtifactStore
from contentbot.services.errors import InvalidTransition
from contentbot.services.generation_service import get_article, latest_generation
from contentbot.services.statuses import ArticleStatus

log = logging.getLogger(__name__)

EVENT_PUBLISHED = "article.published"
RETRYING = "retrying"
FAILED = "failed"


def sign_payload(secret: str, body: bytes) -> str:
    return "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def retry_delay(attempt: int) -> int:
    """Seconds to wait before `attempt`, doubling from the base delay."""
    return settings.webhook_retry_base_seconds * 2 ** (attempt - 1)


def should_retry(status_code: Optional[int]) -> bool:
    # network errors and timeouts have no status
    if status_code is None:
        return True
    return status_code == 429 or status_code >= 500


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def build_payload(db: Session, article: Article) -> Dict[str, Any]:
    sources: List[Dict[str, str]] = []
    record = latest_generation(db, article.id)
    if record is not None:
        research = ArtifactStore(db).load(record.id).research
        if research:
            sources = [{"url": s.url, "title": s.title} for s in research.sources]
    return {
        "id": article.id,
        "title": article.title,
        "slug": article.slug,
        "description": article.meta_description,
        "content": article.content,
        "keywords": article.meta_keywords or article.keywords or [],
        "metaDescription": article.meta_description,
        "coverImageUrl": article.cover_image_url,
        "coverImageAlt": article.cover_image_alt,
        "publishedAt": _iso(article.published_at),
        "sources": sources,
        "createdAt": _iso(article.created_at),
        "updatedAt": _iso(article.updated_at),
    }


class Publisher:
    """Moves finished articles to PUBLISHED and notifies the project's webhook.

    `dispatch` hands the webhook coroutine to a background runner; without one
    the delivery runs inline.
    """

    def __init__(
        self,
        session_factory=SessionLocal,
        dispatch: Optional[Callable[..., None]] = None,
        timeout: float = settings.webhook_timeout,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.session_factory = session_factory
        self.dispatch = dispatch
        self.timeout = timeout
        self.transport = transport

    def publish(self, db: Session, article_id: int, now: Optional[datetime] = None) -> bool:
        """Publish once. Returns False when the article is not waiting to be published."""
        now = now or datetime.now(timezone.utc)
        updated = (
            db.query(Article)
            .filter(Article.id == article_id, Article.status == ArticleStatus.WAIT_FOR_PUBLISH)
            .update(
                {Article.status: ArticleStatus.PUBLISHED, Article.published_at: now},
                synchronize_session=False,
            )
        )
        if updated != 1:
            db.rollback()
            log.info("[publish] article %s not ready for publishing", article_id)
            return False
        db.commit()
        log.info("[publish] article %s published", article_id)
        self._notify(article_id)
        return True

    def _notify(self, article_id: int) -> None:
        # the publish is already committed; delivery problems only get logged
        try:
            if self.dispatch is not None:
                self.dispatch(lambda: self.deliver_webhook(article_id), f"webhook:{article_id}")
            else:
                anyio.run(self.deliver_webhook, article_id)
        except Exception:
            log.exception("[webhook] article %s: delivery could not be run", article_id)

    def schedule(self, db: Session, article_id: int, publish_at: datetime) -> Article:
        article = get_article(db, article_id)
        if article.status in (ArticleStatus.PUBLISHED, ArticleStatus.DELETED):
            raise InvalidTransition("article", article.status, "scheduled publish")
        article.publish_scheduled_at = publish_at
        db.commit()
        db.refresh(article)
        log.info("[publish] article %s scheduled for %s", article_id, publish_at.isoformat())
        return article

    def publish_due(self, now: Optional[datetime] = None) -> List[int]:
        now = now or datetime.now(timezone.utc)
        db = self.session_factory()
        try:
            due = [
                r[0]
                for r in db.query(Article.id)
                .filter(
                    Article.status == ArticleStatus.WAIT_FOR_PUBLISH,
                    Article.publish_scheduled_at.isnot(None),
                    Article.publish_scheduled_at <= now,
                )
                .order_by(Article.publish_scheduled_at)
                .all()
            ]
            return [article_id for article_id in due if self.publish(db, article_id, now=now)]
        finally:
            db.close()

    def retry_due_webhooks(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """Redeliver every `retrying` delivery whose backoff has elapsed."""
        return anyio.run(self._retry_due, now or datetime.now(timezone.utc))

    async def _retry_due(self, now: datetime) -> Dict[str, int]:
        counts = {"processed": 0, "success": 0, "failed": 0}
        db = self.session_factory()
        try:
            due = (
                db.query(WebhookDelivery)
                .filter(WebhookDelivery.status == RETRYING, WebhookDelivery.next_retry_at <= now)
                .order_by(WebhookDelivery.next_retry_at)
                .all()
            )
            for delivery in due:
                counts["processed"] += 1
                if delivery.attempts >= delivery.max_attempts:
                    delivery.status = FAILED
                    delivery.error_message = "Maximum retry attempts exceeded"
                    delivery.failed_at = now
                    db.commit()
                    counts["failed"] += 1
                    continue
                project = db.get(Project, delivery.project_id)
                status = await self._attempt(db, delivery, project)
                if status in counts:
                    counts[status] += 1
            if due:
                log.info("[webhook] retry sweep: %s", counts)
            return counts
        finally:
            db.close()

    async def deliver_webhook(self, article_id: int) -> Optional[str]:
        """POST the published article to the project's webhook. Never raises for HTTP failures."""
        db = self.session_factory()
        try:
            article = db.get(Article, article_id)
            project = db.get(Project, article.project_id)
            if not project.webhook_url:
                return None
            delivery = WebhookDelivery(
                project_id=project.id,
                article_id=article.id,
                webhook_url=project.webhook_url,
                event_type=EVENT_PUBLISHED,
                status="pending",
                attempts=0,
                max_attempts=settings.webhook_max_attempts,
                request_payload=build_payload(db, article),
            )
            db.add(delivery)
            db.commit()
            return await self._attempt(db, delivery, project)
        finally:
            db.close()

    async def _attempt(self, db: Session, delivery: WebhookDelivery, project: Project) -> str:
        body = json.dumps(delivery.request_payload).encode()
        headers = {
            "Content-Type": "application/json",
            "X-Webhook-Event": delivery.event_type,
            "X-Webhook-Timestamp": str(int(time.time())),
        }
        if project.webhook_secret_encrypted:
            secret = secret_crypto.decrypt_secret(project.webhook_secret_encrypted)
            headers["X-Webhook-Signature"] = sign_payload(secret, body)

        started = time.monotonic()
        status_code: Optional[int] = None
        error: Optional[str] = None
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                r = await client.post(delivery.webhook_url, content=body, headers=headers)
        except httpx.HTTPError as e:
            error = str(e) or type(e).__name__
        else:
            status_code = r.status_code
            delivery.response_status = r.status_code
            delivery.response_body = r.text[:2000]
            if not r.is_success:
                error = f"HTTP {r.status_code}"

        now = datetime.now(timezone.utc)
        delivery.attempts = (delivery.attempts or 0) + 1
        delivery.delivery_time_ms = int((time.monotonic() - started) * 1000)
        if error is None:
            delivery.status = "success"
            delivery.error_message = None
            delivery.next_retry_at = None
            delivery.delivered_at = now
            log.info("[webhook] article %s delivered (%s)", delivery.article_id, status_code)
        elif delivery.attempts < delivery.max_attempts and should_retry(status_code):
            delay = retry_delay(delivery.attempts + 1)
            delivery.status = RETRYING
            delivery.error_message = error
            delivery.next_retry_at = now + timedelta(seconds=delay)
            delivery.retry_backoff_seconds = delay
            log.warning("[webhook] article %s: %s, retrying in %ss", delivery.article_id, error, delay)
        else:
            delivery.status = FAILED
            delivery.error_message = error
            delivery.next_retry_at = None
            delivery.failed_at = now
            log.warning("[webhook] article %s: %s, giving up after %s attempts",
                        delivery.article_id, error, delivery.attempts)
        db.commit()
        return delivery.status
