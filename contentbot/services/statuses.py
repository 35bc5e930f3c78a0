# contentbot/services/statuses.py
from enum import Enum
from typing import Dict, FrozenSet

from contentbot.services.errors import InvalidTransition


class ArticleStatus(str, Enum):
    IDEA = "idea"
    SCHEDULED = "scheduled"
    QUEUED = "queued"
    TO_GENERATE = "to_generate"
    GENERATING = "generating"
    WAIT_FOR_PUBLISH = "wait_for_publish"
    PUBLISHED = "published"
    FAILED = "failed"
    DELETED = "deleted"


class GenerationPhase(str, Enum):
    PENDING = "pending"
    RESEARCH = "research"
    IMAGE = "image"
    WRITING = "writing"
    QUALITY_CONTROL = "quality-control"
    VALIDATING = "validating"
    UPDATING = "updating"
    COMPLETED = "completed"
    FAILED = "failed"


# Phases that do work, in execution order
PIPELINE = (
    GenerationPhase.RESEARCH,
    GenerationPhase.IMAGE,
    GenerationPhase.WRITING,
    GenerationPhase.QUALITY_CONTROL,
    GenerationPhase.VALIDATING,
    GenerationPhase.UPDATING,
)

RESTARTABLE: FrozenSet[GenerationPhase] = frozenset(PIPELINE[:-1])

IN_FLIGHT: FrozenSet[GenerationPhase] = frozenset((GenerationPhase.PENDING,) + PIPELINE)


def _pipeline_table() -> Dict[GenerationPhase, FrozenSet[GenerationPhase]]:
    table = {GenerationPhase.PENDING: frozenset({PIPELINE[0], GenerationPhase.FAILED})}
    for current, following in zip(PIPELINE, PIPELINE[1:] + (GenerationPhase.COMPLETED,)):
        table[current] = frozenset({following, GenerationPhase.FAILED})
    table[GenerationPhase.COMPLETED] = frozenset({GenerationPhase.PENDING})
    table[GenerationPhase.FAILED] = frozenset({GenerationPhase.PENDING}) | RESTARTABLE
    return table


GENERATION_TRANSITIONS = _pipeline_table()

_DRAFTING = frozenset({
    ArticleStatus.IDEA,
    ArticleStatus.SCHEDULED,
    ArticleStatus.QUEUED,
    ArticleStatus.TO_GENERATE,
})

ARTICLE_TRANSITIONS: Dict[ArticleStatus, FrozenSet[ArticleStatus]] = {
    **{s: (_DRAFTING - {s}) | {ArticleStatus.GENERATING, ArticleStatus.DELETED} for s in _DRAFTING},
    ArticleStatus.GENERATING: frozenset({
        ArticleStatus.WAIT_FOR_PUBLISH, ArticleStatus.PUBLISHED, ArticleStatus.FAILED,
    }),
    ArticleStatus.WAIT_FOR_PUBLISH: frozenset({
        ArticleStatus.PUBLISHED, ArticleStatus.GENERATING, ArticleStatus.IDEA, ArticleStatus.DELETED,
    }),
    ArticleStatus.FAILED: frozenset({
        ArticleStatus.GENERATING, ArticleStatus.IDEA, ArticleStatus.QUEUED, ArticleStatus.DELETED,
    }),
    ArticleStatus.PUBLISHED: frozenset(),
    ArticleStatus.DELETED: frozenset(),
}

# Statuses the claim gate may move to GENERATING
CLAIMABLE: FrozenSet[ArticleStatus] = _DRAFTING | {ArticleStatus.FAILED}
CLAIMABLE_FORCED: FrozenSet[ArticleStatus] = CLAIMABLE | {ArticleStatus.WAIT_FOR_PUBLISH}


def check_generation_transition(source: GenerationPhase, target: GenerationPhase) -> GenerationPhase:
    if target not in GENERATION_TRANSITIONS.get(source, frozenset()):
        raise InvalidTransition("generation", source, target)
    return target


def check_article_transition(source: ArticleStatus, target: ArticleStatus) -> ArticleStatus:
    if target not in ARTICLE_TRANSITIONS.get(source, frozenset()):
        raise InvalidTransition("article", source, target)
    return target


def progress_for(phase: GenerationPhase) -> int:
    """Percentage shown while `phase` runs; 100 once completed."""
    if phase == GenerationPhase.COMPLETED:
        return 100
    if phase in PIPELINE:
        return round(PIPELINE.index(phase) * 100 / len(PIPELINE))
    return 0


def next_phase(phase: GenerationPhase) -> GenerationPhase:
    idx = PIPELINE.index(phase)
    return PIPELINE[idx + 1] if idx + 1 < len(PIPELINE) else GenerationPhase.COMPLETED
