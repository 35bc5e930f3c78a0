# contentbot/services/phases/validation.py
import asyncio
import logging
from typing import List

from pydantic import BaseModel

from contentbot.config import settings
from contentbot.services import prompts
from contentbot.services.artifacts import GenerationArtifacts, GenerationInputs, ValidationArtifact, ValidationIssue
from contentbot.services.errors import EmptyOutputError, PhaseError, SearchError, StructuredOutputError
from contentbot.services.llm_client import LLMClient
from contentbot.services.search_client import SearchClient

log = logging.getLogger(__name__)


class ClaimList(BaseModel):
    claims: List[str] = []


class ValidationReport(BaseModel):
    is_valid: bool = True
    issues: List[ValidationIssue] = []


def batched(items: List[str], size: int) -> List[List[str]]:
    size = max(1, size)
    return [items[i:i + size] for i in range(0, len(items), size)]


async def _evidence(search: SearchClient, claim: str, inputs: GenerationInputs) -> str:
    try:
        found = await search.search(claim, max_results=3, exclude_domains=inputs.excluded_domains)
    except SearchError as e:
        log.warning("[validate] no evidence for claim (%s): %s", claim[:60], e)
        return ""
    lines = [f"- {r.title} ({r.url}): {(r.content or '')[:400]}" for r in found.results]
    if found.answer:
        lines.insert(0, f"Summary: {found.answer}")
    return "\n".join(lines)


async def check_batches(
    inputs: GenerationInputs,
    claims: List[str],
    *,
    llm: LLMClient,
    search: SearchClient,
    batch_size: int,
    max_concurrency: int,
) -> List[str]:
    """Verify claims batch by batch, at most `max_concurrency` batches in flight."""
    sem = asyncio.Semaphore(max(1, max_concurrency))

    async def check(batch: List[str]) -> str:
        async with sem:
            evidence = [await _evidence(search, claim, inputs) for claim in batch]
            return await llm.generate_text(
                prompts.verify_claims(batch, evidence),
                models=settings.analyst_models,
                params={"temperature": 0.1},
            )

    return list(await asyncio.gather(*(check(b) for b in batched(claims, batch_size))))


async def run_validation(
    inputs: GenerationInputs,
    artifacts: GenerationArtifacts,
    *,
    llm: LLMClient,
    search: SearchClient,
    batch_size: int = settings.validation_batch_size,
    max_concurrency: int = settings.validation_max_concurrency,
    fail_open: bool = settings.validation_fail_open,
) -> ValidationArtifact:
    if not artifacts.has_write():
        raise EmptyOutputError("validating", "No draft to validate")
    try:
        extracted = await llm.generate_object(
            prompts.extract_claims(artifacts.write.content), ClaimList, models=settings.analyst_models,
        )
        claims = [c.strip() for c in extracted.claims if c.strip()]
        if not claims:
            return ValidationArtifact(raw_validation_text="No verifiable claims found", is_valid=True)

        findings = await check_batches(
            inputs, claims, llm=llm, search=search, batch_size=batch_size, max_concurrency=max_concurrency,
        )
        raw = "\n\n".join(findings)
        report = await llm.generate_object(
            prompts.aggregate_validation(raw), ValidationReport, models=settings.analyst_models,
        )
    except StructuredOutputError as e:
        if not fail_open:
            raise PhaseError("validating", f"Validation report could not be parsed: {e}") from e
        log.warning("[validate] article %s: report unparseable, continuing unvalidated: %s", inputs.article_id, e)
        return ValidationArtifact(raw_validation_text=f"Validation skipped: {e}", is_valid=True, degraded=True)

    log.info("[validate] article %s: %s claims, %s issues", inputs.article_id, len(claims), len(report.issues))
    return ValidationArtifact(
        raw_validation_text=raw,
        is_valid=report.is_valid and not report.issues,
        issues=report.issues,
        claims_checked=len(claims),
    )
