# contentbot/services/phases/research.py
import logging
from typing import Dict, List

from contentbot.config import settings
from contentbot.services import prompts
from contentbot.services.artifacts import GenerationArtifacts, GenerationInputs, ResearchArtifact, Source, Video
from contentbot.services.errors import NoSourcesError, SearchError
from contentbot.services.llm_client import LLMClient
from contentbot.services.search_client import SearchClient

log = logging.getLogger(__name__)


async def find_videos(search: SearchClient, inputs: GenerationInputs) -> List[Video]:
    try:
        found = await search.search(
            f"{inputs.title} video", max_results=3, include_domains=["youtube.com"], include_answer=False,
        )
    except SearchError as e:
        log.warning("[research] video lookup failed for article %s: %s", inputs.article_id, e)
        return []
    return [Video(url=r.url, title=r.title) for r in found.results]


async def run_research(
    inputs: GenerationInputs,
    artifacts: GenerationArtifacts,
    *,
    search: SearchClient,
    llm: LLMClient,
    max_attempts: int = settings.research_max_attempts,
    include_videos: bool = True,
) -> ResearchArtifact:
    sources: Dict[str, Source] = {}
    answer = None
    for attempt in range(1, max_attempts + 1):
        found = await search.search(prompts.research_query(inputs, attempt), exclude_domains=inputs.excluded_domains)
        for s in found.results:
            sources.setdefault(s.url, s)
        if sources:
            answer = found.answer
            break
        log.warning("[research] attempt %s/%s for article %s returned no sources", attempt, max_attempts, inputs.article_id)
    if not sources:
        raise NoSourcesError(max_attempts)

    brief = await llm.generate_text(
        prompts.research_brief(inputs, list(sources.values()), answer),
        models=settings.analyst_models,
    )
    videos = await find_videos(search, inputs) if include_videos else []
    log.info("[research] article %s: %s sources, %s videos", inputs.article_id, len(sources), len(videos))
    return ResearchArtifact(research_data=brief, sources=list(sources.values()), videos=videos)
