# contentbot/services/phases/quality_control.py
import logging
from datetime import datetime, timezone
from typing import Optional

from contentbot.config import settings
from contentbot.services import prompts
from contentbot.services.artifacts import GenerationArtifacts, GenerationInputs, QualityControlArtifact
from contentbot.services.errors import EmptyOutputError
from contentbot.services.llm_client import LLMClient

log = logging.getLogger(__name__)


def normalize_issues(raw: Optional[str]) -> Optional[str]:
    """None, blank and the literal "null" all mean the review found nothing."""
    if raw is None:
        return None
    text = raw.strip()
    if not text or text.lower() == "null":
        return None
    return text


async def run_quality_control(
    inputs: GenerationInputs,
    artifacts: GenerationArtifacts,
    *,
    llm: LLMClient,
    max_runs: int = settings.qc_max_runs,
) -> QualityControlArtifact:
    previous = artifacts.quality_control
    if previous is not None and previous.run_count >= max_runs:
        log.warning("[qc] article %s reached %s runs, keeping the last report", inputs.article_id, max_runs)
        return previous
    if not artifacts.has_write():
        raise EmptyOutputError("quality-control", "No draft to review")

    report = await llm.generate_text(
        prompts.quality_control(inputs, artifacts.write.content),
        models=settings.analyst_models,
        params={"temperature": 0.2},
    )
    issues = normalize_issues(report)
    return QualityControlArtifact(
        report=report,
        issues=issues,
        is_valid=issues is None,
        run_count=(previous.run_count if previous else 0) + 1,
        completed_at=datetime.now(timezone.utc),
    )
