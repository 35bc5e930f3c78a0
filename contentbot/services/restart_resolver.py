# contentbot/services/restart_resolver.py
from dataclasses import dataclass, field
from typing import List, Optional, Union

from contentbot.services.artifacts import GenerationArtifacts
from contentbot.services.statuses import GenerationPhase


@dataclass(frozen=True)
class RestartPoint:
    restart_phase: GenerationPhase
    reasoning: str
    available_artifacts: List[str] = field(default_factory=list)


def _as_phase(value: Union[GenerationPhase, str, None]) -> Optional[GenerationPhase]:
    if value is None or isinstance(value, GenerationPhase):
        return value
    try:
        return GenerationPhase(value)
    except ValueError:
        return None


def resolve_restart_point(failed_phase, artifacts: GenerationArtifacts) -> RestartPoint:
    """Pick the phase a retry resumes from. Pure; first matching rule wins."""
    phase = _as_phase(failed_phase)
    available = artifacts.available()
    # failed/completed/unknown: the record does not say where it stopped
    terminal = phase in (None, GenerationPhase.FAILED, GenerationPhase.COMPLETED)

    def point(target: GenerationPhase, reason: str) -> RestartPoint:
        return RestartPoint(target, reason, available)

    if phase == GenerationPhase.RESEARCH or not artifacts.has_research():
        return point(GenerationPhase.RESEARCH, "Research failed or no research data available")
    if terminal:
        return _infer(artifacts, point)
    if phase == GenerationPhase.IMAGE or not artifacts.has_cover_image():
        return point(GenerationPhase.IMAGE, "Image generation failed or no cover image available")
    if phase == GenerationPhase.WRITING or not artifacts.has_write():
        return point(GenerationPhase.WRITING, "Writing failed or no written content available")
    if phase == GenerationPhase.QUALITY_CONTROL:
        return point(GenerationPhase.QUALITY_CONTROL, "Quality control failed, rerunning it on the existing draft")
    if phase == GenerationPhase.VALIDATING:
        return point(GenerationPhase.VALIDATING, "Validation failed, rerunning it on the existing draft")
    if phase == GenerationPhase.UPDATING:
        return point(GenerationPhase.QUALITY_CONTROL, "Update failed, restarting from quality control for fresh feedback")

    return _infer(artifacts, point)


def _infer(artifacts: GenerationArtifacts, point) -> RestartPoint:
    # most advanced phase whose prerequisites are present
    if artifacts.has_quality_control() and not artifacts.has_validation():
        return point(GenerationPhase.VALIDATING, "Quality control finished but validation is missing")
    if artifacts.has_write() and artifacts.has_research():
        return point(GenerationPhase.QUALITY_CONTROL, "Content and research exist, restarting from quality control")
    if artifacts.has_research():
        return point(GenerationPhase.WRITING, "Research exists, restarting from writing")
    return point(GenerationPhase.RESEARCH, "No usable artifacts, restarting from research")
