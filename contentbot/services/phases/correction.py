# contentbot/services/phases/correction.py
import logging

from contentbot.config import settings
from contentbot.services import prompts
from contentbot.services.artifacts import GenerationArtifacts, GenerationInputs, UpdateArtifact
from contentbot.services.errors import EmptyOutputError
from contentbot.services.llm_client import LLMClient

log = logging.getLogger(__name__)


async def run_correction(
    inputs: GenerationInputs,
    artifacts: GenerationArtifacts,
    *,
    llm: LLMClient,
    threshold: float = settings.correction_confidence_threshold,
) -> UpdateArtifact:
    if not artifacts.has_write():
        raise EmptyOutputError("updating", "No draft to correct")
    draft = artifacts.write.content
    validation = artifacts.validation
    # unchecked facts never auto-publish
    publish_ready = not (validation and validation.degraded)

    corrections = [i for i in (validation.issues if validation else []) if i.confidence > threshold]
    qc_issues = artifacts.quality_control.issues if artifacts.quality_control else None
    if not corrections and not qc_issues:
        log.info("[update] article %s: nothing to apply", inputs.article_id)
        return UpdateArtifact(content=draft, skipped=True, publish_ready=publish_ready)

    revised = await llm.generate_text(
        prompts.apply_corrections(draft, corrections, qc_issues),
        params={"max_new_tokens": 4096, "temperature": 0.3},
    )
    applied = [f"{i.fact} -> {i.correction}" for i in corrections]
    if qc_issues:
        applied.append("quality-control")
    log.info("[update] article %s: applied %s corrections", inputs.article_id, len(applied))
    return UpdateArtifact(content=revised, applied_corrections=applied, publish_ready=publish_ready)
