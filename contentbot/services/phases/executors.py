# contentbot/services/phases/executors.py
from dataclasses import dataclass
from functools import partial
from typing import Awaitable, Callable

from pydantic import BaseModel

from contentbot.services.artifacts import GenerationArtifacts, GenerationInputs
from contentbot.services.image_client import ImageClient
from contentbot.services.llm_client import LLMClient
from contentbot.services.phases.correction import run_correction
from contentbot.services.phases.image import run_image
from contentbot.services.phases.quality_control import run_quality_control
from contentbot.services.phases.research import run_research
from contentbot.services.phases.validation import run_validation
from contentbot.services.phases.writing import run_outline, run_write
from contentbot.services.search_client import SearchClient

Executor = Callable[[GenerationInputs, GenerationArtifacts], Awaitable[BaseModel]]


@dataclass
class PhaseExecutors:
    research: Executor
    image: Executor
    outline: Executor
    write: Executor
    quality_control: Executor
    validation: Executor
    correction: Executor


def build_executors(llm: LLMClient, search: SearchClient, images: ImageClient) -> PhaseExecutors:
    return PhaseExecutors(
        research=partial(run_research, search=search, llm=llm),
        image=partial(run_image, images=images),
        outline=partial(run_outline, llm=llm),
        write=partial(run_write, llm=llm),
        quality_control=partial(run_quality_control, llm=llm),
        validation=partial(run_validation, llm=llm, search=search),
        correction=partial(run_correction, llm=llm),
    )
