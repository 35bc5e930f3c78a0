# contentbot/services/orchestrator.py
import logging
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

import anyio.to_thread

from contentbot.db.base import SessionLocal
from contentbot.db.models import Article, ArticleGeneration, Project
from contentbot.services.artifacts import ArtifactStore, GenerationArtifacts, GenerationInputs
from contentbot.services.markdown import ensure_single_intro
from contentbot.services.phases.executors import PhaseExecutors
from contentbot.services.statuses import (
    ArticleStatus,
    GenerationPhase,
    PIPELINE,
    check_article_transition,
    check_generation_transition,
    progress_for,
)

log = logging.getLogger(__name__)

# (executor attribute, artifact key) pairs run inside each phase
STEPS: Dict[GenerationPhase, Tuple[Tuple[str, str], ...]] = {
    GenerationPhase.RESEARCH: (("research", "research"),),
    GenerationPhase.IMAGE: (("image", "coverImage"),),
    GenerationPhase.WRITING: (("outline", "outline"), ("write", "write")),
    GenerationPhase.QUALITY_CONTROL: (("quality_control", "qualityControl"),),
    GenerationPhase.VALIDATING: (("validation", "validation"),),
    GenerationPhase.UPDATING: (("correction", "update"),),
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # sqlite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class GenerationOrchestrator:
    """Runs one generation record through the phase pipeline.

    The record's current status is the phase to start from: PENDING for a fresh
    generation, or the restart phase a retry reset it to. Every phase transition
    writes the record and the article in the same commit; any exception ends the
    run with both marked failed.
    """

    def __init__(self, executors: PhaseExecutors, session_factory=SessionLocal, publisher=None):
        self.executors = executors
        self.session_factory = session_factory
        self.publisher = publisher

    async def run(self, generation_id: int) -> GenerationPhase:
        inputs, start = await anyio.to_thread.run_sync(self._load, generation_id)
        if start not in PIPELINE:
            raise ValueError(f"generation {generation_id} is not runnable from {start.value}")

        log.info("[generation] %s: article %s starting at %s", generation_id, inputs.article_id, start.value)
        phase = start
        try:
            for phase in PIPELINE[PIPELINE.index(start):]:
                await self._run_phase(generation_id, phase, inputs)
            publish_ready = await anyio.to_thread.run_sync(self._complete, generation_id)
        except Exception as e:
            await anyio.to_thread.run_sync(self._fail, generation_id, phase, e)
            return GenerationPhase.FAILED
        if publish_ready:
            await anyio.to_thread.run_sync(self._maybe_auto_publish, inputs.article_id)
        return GenerationPhase.COMPLETED

    async def _run_phase(self, generation_id: int, phase: GenerationPhase, inputs: GenerationInputs) -> None:
        artifacts = await anyio.to_thread.run_sync(self._enter_phase, generation_id, phase)
        for attr, key in STEPS[phase]:
            if key == "outline" and artifacts.outline is not None:
                continue
            log.info("[generation] %s: running %s", generation_id, attr)
            result = await getattr(self.executors, attr)(inputs, artifacts)
            artifacts = await anyio.to_thread.run_sync(self._store, generation_id, key, result)

    def _load(self, generation_id: int) -> Tuple[GenerationInputs, GenerationPhase]:
        db = self.session_factory()
        try:
            record = db.get(ArticleGeneration, generation_id)
            if record is None:
                raise LookupError(f"generation {generation_id} not found")
            inputs = GenerationInputs(**(record.inputs or {}))
            return inputs, GenerationPhase.RESEARCH if record.status == GenerationPhase.PENDING else record.status
        finally:
            db.close()

    def _enter_phase(self, generation_id: int, phase: GenerationPhase) -> GenerationArtifacts:
        db = self.session_factory()
        try:
            record = db.get(ArticleGeneration, generation_id)
            if record.status != phase:
                record.status = check_generation_transition(record.status, phase)
            record.progress = progress_for(phase)
            if record.started_at is None:
                record.started_at = _now()
            article = db.get(Article, record.article_id)
            if article.status != ArticleStatus.GENERATING:
                article.status = check_article_transition(article.status, ArticleStatus.GENERATING)
            article.updated_at = _now()
            db.commit()
            return ArtifactStore(db).load(generation_id)
        finally:
            db.close()

    def _store(self, generation_id: int, key: str, artifact) -> GenerationArtifacts:
        db = self.session_factory()
        try:
            store = ArtifactStore(db)
            store.put(generation_id, key, artifact)
            db.commit()
            return store.load(generation_id)
        finally:
            db.close()

    def _complete(self, generation_id: int) -> bool:
        db = self.session_factory()
        try:
            record = db.get(ArticleGeneration, generation_id)
            article = db.get(Article, record.article_id)
            artifacts = ArtifactStore(db).load(generation_id)

            write = artifacts.write
            final = artifacts.update.content if artifacts.update else write.content
            article.content = ensure_single_intro(final, write.intro_paragraph)
            article.slug = write.slug
            article.meta_description = write.meta_description
            article.meta_keywords = list(write.tags)
            article.intro_paragraph = write.intro_paragraph
            if artifacts.cover_image is not None:
                article.cover_image_url = artifacts.cover_image.image_url
                article.cover_image_alt = artifacts.cover_image.image_alt
            article.status = check_article_transition(article.status, ArticleStatus.WAIT_FOR_PUBLISH)

            record.status = check_generation_transition(record.status, GenerationPhase.COMPLETED)
            record.progress = 100
            record.completed_at = _now()
            db.commit()
            log.info("[generation] %s: article %s completed", generation_id, article.id)

            return bool(artifacts.update and artifacts.update.publish_ready)
        finally:
            db.close()

    def _maybe_auto_publish(self, article_id: int) -> None:
        if self.publisher is None:
            return
        db = self.session_factory()
        try:
            article = db.get(Article, article_id)
            project = db.get(Project, article.project_id)
            if not project.auto_publish:
                return
            scheduled = _aware(article.publish_scheduled_at)
            if scheduled is not None and scheduled > _now():
                log.info("[generation] article %s scheduled for %s, not publishing now", article_id, scheduled.isoformat())
                return
            self.publisher.publish(db, article_id)
        finally:
            db.close()

    def _fail(self, generation_id: int, phase: GenerationPhase, exc: Exception) -> None:
        log.error("[generation] %s failed during %s: %s: %s", generation_id, phase.value, type(exc).__name__, exc)
        db = self.session_factory()
        try:
            record = db.get(ArticleGeneration, generation_id)
            now = _now()
            original = record.status
            record.status = check_generation_transition(record.status, GenerationPhase.FAILED)
            record.failed_phase = phase
            record.error = str(exc) or type(exc).__name__
            record.error_details = {
                "phase": phase.value,
                "type": type(exc).__name__,
                "original_status": original.value,
                "article_id": record.article_id,
                "timestamp": now.isoformat(),
            }
            record.completed_at = now
            article = db.get(Article, record.article_id)
            if article.status == ArticleStatus.GENERATING:
                article.status = ArticleStatus.FAILED
            db.commit()
        finally:
            db.close()
