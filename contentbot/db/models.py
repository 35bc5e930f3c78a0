from sqlalchemy import (
    Boolean, Column, DateTime, Enum, ForeignKey, Integer, JSON, String, Text, UniqueConstraint, func,
)
from sqlalchemy.orm import relationship

from contentbot.db.base import Base
from contentbot.services.statuses import ArticleStatus, GenerationPhase


def _enum(enum_cls, name: str) -> Enum:
    # store the enum values ("quality-control"), not member names
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=32,
        values_callable=lambda e: [m.value for m in e],
    )


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(320), unique=True, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Project(Base):
    __tablename__ = "projects"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(256), nullable=False)
    tone_of_voice = Column(Text, nullable=True)
    article_structure = Column(Text, nullable=True)  # outline template, markdown
    max_words = Column(Integer, nullable=True)
    excluded_domains = Column(JSON, nullable=False, default=list)
    auto_publish = Column(Boolean, nullable=False, default=False)
    webhook_url = Column(String(1024), nullable=True)
    webhook_secret_encrypted = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    articles = relationship("Article", back_populates="project")


class Article(Base):
    __tablename__ = "articles"
    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    title = Column(String(512), nullable=False)
    keywords = Column(JSON, nullable=False, default=list)
    notes = Column(Text, nullable=True)
    status = Column(_enum(ArticleStatus, "article_status"), nullable=False, default=ArticleStatus.IDEA, index=True)
    kanban_position = Column(Integer, nullable=False, default=0)
    publish_scheduled_at = Column(DateTime(timezone=True), nullable=True)
    published_at = Column(DateTime(timezone=True), nullable=True)
    # filled in when a generation completes
    content = Column(Text, nullable=True)
    slug = Column(String(512), nullable=True)
    meta_description = Column(Text, nullable=True)
    meta_keywords = Column(JSON, nullable=True)
    cover_image_url = Column(String(1024), nullable=True)
    cover_image_alt = Column(String(512), nullable=True)
    intro_paragraph = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    project = relationship("Project", back_populates="articles")


class ArticleGeneration(Base):
    __tablename__ = "article_generations"
    id = Column(Integer, primary_key=True, index=True)
    article_id = Column(Integer, ForeignKey("articles.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False)
    status = Column(_enum(GenerationPhase, "generation_phase"), nullable=False, default=GenerationPhase.PENDING)
    failed_phase = Column(_enum(GenerationPhase, "generation_failed_phase"), nullable=True)
    progress = Column(Integer, nullable=False, default=0)
    error = Column(Text, nullable=True)
    error_details = Column(JSON, nullable=True)
    inputs = Column(JSON, nullable=True)  # GenerationInputs snapshot
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    artifacts = relationship("GenerationArtifact", cascade="all, delete-orphan", back_populates="generation")


class GenerationArtifact(Base):
    __tablename__ = "generation_artifacts"
    __table_args__ = (UniqueConstraint("generation_id", "phase", name="uq_generation_artifact_phase"),)
    id = Column(Integer, primary_key=True, index=True)
    generation_id = Column(Integer, ForeignKey("article_generations.id"), nullable=False, index=True)
    phase = Column(String(32), nullable=False)  # artifact key, e.g. "coverImage"
    payload = Column(Text, nullable=False)  # JSON document
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    generation = relationship("ArticleGeneration", back_populates="artifacts")


class GenerationQueueItem(Base):
    __tablename__ = "generation_queue"
    id = Column(Integer, primary_key=True, index=True)
    article_id = Column(Integer, ForeignKey("articles.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False)
    added_to_queue_at = Column(DateTime(timezone=True), server_default=func.now())
    scheduled_for_date = Column(DateTime(timezone=True), nullable=True)
    queue_position = Column(Integer, nullable=False, default=0)
    scheduling_type = Column(String(16), nullable=False, default="manual")  # manual | automatic
    status = Column(String(16), nullable=False, default="queued")  # queued | processing | completed | failed
    attempts = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False, default=3)
    error_message = Column(Text, nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class WebhookDelivery(Base):
    __tablename__ = "webhook_deliveries"
    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    article_id = Column(Integer, ForeignKey("articles.id"), nullable=False)
    webhook_url = Column(String(1024), nullable=False)
    event_type = Column(String(64), nullable=False, default="article.published")
    status = Column(String(16), nullable=False, default="pending")  # pending | success | retrying | failed
    attempts = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False, default=3)
    next_retry_at = Column(DateTime(timezone=True), nullable=True)
    retry_backoff_seconds = Column(Integer, nullable=True)
    request_payload = Column(JSON, nullable=True)
    response_status = Column(Integer, nullable=True)
    response_body = Column(Text, nullable=True)
    error_message = Column(Text, nullable=True)
    delivery_time_ms = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    failed_at = Column(DateTime(timezone=True), nullable=True)
