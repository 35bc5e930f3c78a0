from contentbot.services.artifacts import (
    CoverImageArtifact,
    GenerationArtifacts,
    QualityControlArtifact,
    ResearchArtifact,
    Source,
    ValidationArtifact,
    WriteArtifact,
)
from contentbot.services.restart_resolver import resolve_restart_point
from contentbot.services.statuses import GenerationPhase

RESEARCH = ResearchArtifact(research_data="brief", sources=[Source(url="https://example.com/a", title="A")])
IMAGE = CoverImageArtifact(image_url="https://images.example.com/1.jpg", image_alt="cup")
WRITE = WriteArtifact(content="# Coffee\n\nBody")
QC = QualityControlArtifact(report="null", issues=None, is_valid=True)
VALIDATION = ValidationArtifact(raw_validation_text="all good", is_valid=True)


def full(**overrides):
    data = dict(research=RESEARCH, cover_image=IMAGE, write=WRITE, quality_control=QC, validation=VALIDATION)
    data.update(overrides)
    return GenerationArtifacts(**data)


def test_empty_bag_with_failed_research_restarts_research():
    point = resolve_restart_point(GenerationPhase.RESEARCH, GenerationArtifacts())
    assert point.restart_phase == GenerationPhase.RESEARCH
    assert point.available_artifacts == []


def test_only_research_after_completed_restarts_writing():
    point = resolve_restart_point(GenerationPhase.COMPLETED, GenerationArtifacts(research=RESEARCH))
    assert point.restart_phase == GenerationPhase.WRITING


def test_research_and_write_after_failed_restarts_quality_control():
    artifacts = GenerationArtifacts(research=RESEARCH, write=WRITE)
    point = resolve_restart_point("failed", artifacts)
    assert point.restart_phase == GenerationPhase.QUALITY_CONTROL
    assert point.available_artifacts == ["research", "writing"]


def test_missing_research_always_wins():
    point = resolve_restart_point(GenerationPhase.VALIDATING, full(research=None))
    assert point.restart_phase == GenerationPhase.RESEARCH


def test_failed_image_keeps_research():
    assert resolve_restart_point("image", full()).restart_phase == GenerationPhase.IMAGE


def test_missing_cover_image_restarts_image():
    point = resolve_restart_point(GenerationPhase.QUALITY_CONTROL, full(cover_image=None))
    assert point.restart_phase == GenerationPhase.IMAGE


def test_cover_image_without_url_counts_as_done():
    artifacts = full(cover_image=CoverImageArtifact(image_url=None))
    assert resolve_restart_point(GenerationPhase.VALIDATING, artifacts).restart_phase == GenerationPhase.VALIDATING


def test_blank_draft_restarts_writing():
    point = resolve_restart_point(GenerationPhase.VALIDATING, full(write=WriteArtifact(content="   ")))
    assert point.restart_phase == GenerationPhase.WRITING


def test_failed_quality_control_and_validation_rerun_themselves():
    assert resolve_restart_point("quality-control", full()).restart_phase == GenerationPhase.QUALITY_CONTROL
    assert resolve_restart_point("validating", full()).restart_phase == GenerationPhase.VALIDATING


def test_failed_update_goes_back_to_quality_control():
    assert resolve_restart_point(GenerationPhase.UPDATING, full()).restart_phase == GenerationPhase.QUALITY_CONTROL


def test_terminal_with_qc_but_no_validation_resumes_validating():
    point = resolve_restart_point(GenerationPhase.FAILED, full(validation=None))
    assert point.restart_phase == GenerationPhase.VALIDATING


def test_unknown_status_is_inferred():
    point = resolve_restart_point("bogus", GenerationArtifacts(research=RESEARCH))
    assert point.restart_phase == GenerationPhase.WRITING


def test_resolve_is_deterministic():
    artifacts = full(validation=None)
    first = resolve_restart_point(GenerationPhase.FAILED, artifacts)
    for _ in range(5):
        assert resolve_restart_point(GenerationPhase.FAILED, artifacts) == first
    # inputs untouched
    assert artifacts.validation is None
