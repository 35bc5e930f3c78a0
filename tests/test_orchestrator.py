import threading
from functools import partial
from datetime import datetime, timedelta, timezone

import anyio
import pytest

from contentbot.db import models
from contentbot.services import generation_service
from contentbot.services.artifacts import (
    ArtifactStore,
    CoverImageArtifact,
    OutlineArtifact,
    QualityControlArtifact,
    ResearchArtifact,
    Source,
    UpdateArtifact,
    ValidationArtifact,
    WriteArtifact,
)
from contentbot.services.errors import EmptyOutputError, NotRetryable
from contentbot.services.orchestrator import GenerationOrchestrator
from contentbot.services.phases.executors import PhaseExecutors
from contentbot.services.phases.research import run_research
from contentbot.services.search_client import SearchResults
from contentbot.services.statuses import ArticleStatus, GenerationPhase

DRAFT = WriteArtifact(
    content="# Coffee\n\n## Beans\nArabica grows at altitude.",
    slug="coffee",
    tags=["coffee", "beans"],
    meta_description="All about coffee",
    intro_paragraph="Coffee is the world's favourite drink.",
)


class FakeExecutors:
    """Builds PhaseExecutors that record calls and can be told to fail once."""

    def __init__(self, fail=None, update_ready=True):
        self.calls = []
        self.fail = fail
        self.update_ready = update_ready

    def _step(self, name, value):
        async def run(inputs, artifacts):
            self.calls.append(name)
            if self.fail == name:
                self.fail = None
                raise EmptyOutputError(name, f"{name} exploded")
            return value
        return run

    def build(self):
        return PhaseExecutors(
            research=self._step("research", ResearchArtifact(
                research_data="brief", sources=[Source(url="https://example.com/a", title="A")],
            )),
            image=self._step("image", CoverImageArtifact(image_url="https://img.example.com/c.jpg", image_alt="cup")),
            outline=self._step("outline", OutlineArtifact(markdown="# Coffee\n## Beans")),
            write=self._step("write", DRAFT),
            quality_control=self._step("quality_control", QualityControlArtifact(report="null", is_valid=True)),
            validation=self._step("validation", ValidationArtifact(raw_validation_text="ok", is_valid=True)),
            correction=self._step("correction", UpdateArtifact(
                content=DRAFT.content.replace("altitude", "high altitude"), publish_ready=self.update_ready,
            )),
        )


class FakePublisher:
    def __init__(self):
        self.published = []

    def publish(self, db, article_id):
        self.published.append(article_id)
        return True


def start(db, article_id):
    return generation_service.start_generation(db, article_id).id


def test_happy_path_completes_and_fills_article(db, session_factory, make_article):
    article_id = make_article()
    generation_id = start(db, article_id)
    fakes = FakeExecutors()
    orchestrator = GenerationOrchestrator(fakes.build(), session_factory=session_factory)

    assert anyio.run(orchestrator.run, generation_id) == GenerationPhase.COMPLETED
    assert fakes.calls == ["research", "image", "outline", "write", "quality_control", "validation", "correction"]

    db.expire_all()
    record = db.get(models.ArticleGeneration, generation_id)
    article = db.get(models.Article, article_id)
    assert record.status == GenerationPhase.COMPLETED
    assert record.progress == 100
    assert record.completed_at is not None
    assert article.status == ArticleStatus.WAIT_FOR_PUBLISH
    assert article.content.startswith("# Coffee\n\nCoffee is the world's favourite drink.\n\n## Beans")
    assert "high altitude" in article.content
    assert article.slug == "coffee"
    assert article.meta_keywords == ["coffee", "beans"]
    assert article.cover_image_url == "https://img.example.com/c.jpg"
    assert ArtifactStore(db).keys(generation_id) == [
        "research", "coverImage", "outline", "write", "qualityControl", "validation", "update",
    ]


def test_progress_is_persisted_per_phase(db, session_factory, make_article):
    article_id = make_article()
    generation_id = start(db, article_id)
    seen = {}
    executors = FakeExecutors().build()

    async def peek(inputs, artifacts):
        s = session_factory()
        try:
            record = s.get(models.ArticleGeneration, generation_id)
            seen["status"], seen["progress"] = record.status, record.progress
            seen["article"] = s.get(models.Article, article_id).status
        finally:
            s.close()
        return ValidationArtifact(raw_validation_text="ok")

    executors.validation = peek
    anyio.run(GenerationOrchestrator(executors, session_factory=session_factory).run, generation_id)
    assert seen == {"status": GenerationPhase.VALIDATING, "progress": 67, "article": ArticleStatus.GENERATING}


def test_phase_failure_marks_record_and_article_failed(db, session_factory, make_article):
    article_id = make_article()
    generation_id = start(db, article_id)
    orchestrator = GenerationOrchestrator(FakeExecutors(fail="validation").build(), session_factory=session_factory)

    assert anyio.run(orchestrator.run, generation_id) == GenerationPhase.FAILED

    db.expire_all()
    record = db.get(models.ArticleGeneration, generation_id)
    assert record.status == GenerationPhase.FAILED
    assert record.failed_phase == GenerationPhase.VALIDATING
    assert record.error == "validation exploded"
    assert record.error_details["type"] == "EmptyOutputError"
    assert record.error_details["phase"] == "validating"
    assert db.get(models.Article, article_id).status == ArticleStatus.FAILED
    # failed phase wrote nothing
    assert "validation" not in ArtifactStore(db).keys(generation_id)


def test_retry_resumes_from_failed_phase(db, session_factory, make_article):
    article_id = make_article()
    generation_id = start(db, article_id)
    fakes = FakeExecutors(fail="validation")
    orchestrator = GenerationOrchestrator(fakes.build(), session_factory=session_factory)
    anyio.run(orchestrator.run, generation_id)

    plan = generation_service.retry_generation(db, article_id)
    assert plan.generation.id == generation_id
    assert plan.failed_phase == GenerationPhase.VALIDATING
    assert plan.restart.restart_phase == GenerationPhase.VALIDATING
    assert plan.generation.progress == 0
    assert plan.generation.error is None

    fakes.calls.clear()
    assert anyio.run(orchestrator.run, generation_id) == GenerationPhase.COMPLETED
    assert fakes.calls == ["validation", "correction"]


def test_retry_from_writing_reuses_outline(db, session_factory, make_article):
    article_id = make_article()
    generation_id = start(db, article_id)
    fakes = FakeExecutors(fail="write")
    orchestrator = GenerationOrchestrator(fakes.build(), session_factory=session_factory)
    anyio.run(orchestrator.run, generation_id)

    plan = generation_service.retry_generation(db, article_id)
    assert plan.restart.restart_phase == GenerationPhase.WRITING
    fakes.calls.clear()
    anyio.run(orchestrator.run, generation_id)
    assert fakes.calls[:2] == ["write", "quality_control"]


def test_retry_requires_failed_article(db, make_article):
    article_id = make_article(status=ArticleStatus.WAIT_FOR_PUBLISH)
    with pytest.raises(NotRetryable):
        generation_service.retry_generation(db, article_id)


def test_research_without_sources_fails_generation(db, session_factory, make_article):
    class EmptySearch:
        calls = 0

        async def search(self, query, **kwargs):
            EmptySearch.calls += 1
            return SearchResults(results=[])

    article_id = make_article()
    generation_id = start(db, article_id)
    executors = FakeExecutors().build()
    executors.research = partial(run_research, search=EmptySearch(), llm=None, max_attempts=3)

    result = anyio.run(GenerationOrchestrator(executors, session_factory=session_factory).run, generation_id)

    assert result == GenerationPhase.FAILED
    assert EmptySearch.calls == 3
    db.expire_all()
    record = db.get(models.ArticleGeneration, generation_id)
    assert record.status == GenerationPhase.FAILED
    assert record.failed_phase == GenerationPhase.RESEARCH
    assert "Failed to find any sources" in record.error
    assert record.error_details["type"] == "NoSourcesError"
    assert db.get(models.Article, article_id).status == ArticleStatus.FAILED


def test_auto_publish_after_completion(db, session_factory, make_article):
    article_id = make_article(auto_publish=True)
    generation_id = start(db, article_id)
    publisher = FakePublisher()
    orchestrator = GenerationOrchestrator(FakeExecutors().build(), session_factory=session_factory, publisher=publisher)
    anyio.run(orchestrator.run, generation_id)
    assert publisher.published == [article_id]


def test_auto_publish_waits_for_schedule(db, session_factory, make_article):
    article_id = make_article(auto_publish=True)
    article = db.get(models.Article, article_id)
    article.publish_scheduled_at = datetime.now(timezone.utc) + timedelta(days=2)
    db.commit()
    generation_id = start(db, article_id)
    publisher = FakePublisher()
    orchestrator = GenerationOrchestrator(FakeExecutors().build(), session_factory=session_factory, publisher=publisher)
    anyio.run(orchestrator.run, generation_id)
    assert publisher.published == []


def test_degraded_update_is_not_auto_published(db, session_factory, make_article):
    article_id = make_article(auto_publish=True)
    generation_id = start(db, article_id)
    publisher = FakePublisher()
    fakes = FakeExecutors(update_ready=False)
    anyio.run(GenerationOrchestrator(fakes.build(), session_factory=session_factory, publisher=publisher).run, generation_id)
    assert publisher.published == []
    db.expire_all()
    assert db.get(models.Article, article_id).status == ArticleStatus.WAIT_FOR_PUBLISH


def test_fresh_generation_resets_latest_record(db, session_factory, make_article):
    article_id = make_article()
    generation_id = start(db, article_id)
    anyio.run(GenerationOrchestrator(FakeExecutors().build(), session_factory=session_factory).run, generation_id)

    again = generation_service.start_generation(db, article_id, force=True)
    assert again.id == generation_id
    assert again.status == GenerationPhase.PENDING
    assert again.progress == 0
    assert ArtifactStore(db).keys(generation_id) == []


def test_database_work_runs_off_the_event_loop(db, session_factory, make_article):
    generation_id = start(db, make_article())
    threads = set()

    def tracking_factory():
        threads.add(threading.get_ident())
        return session_factory()

    orchestrator = GenerationOrchestrator(FakeExecutors().build(), session_factory=tracking_factory)

    async def main():
        status = await orchestrator.run(generation_id)
        return status, threading.get_ident()

    status, loop_thread = anyio.run(main)

    assert status == GenerationPhase.COMPLETED
    assert threads
    assert loop_thread not in threads
