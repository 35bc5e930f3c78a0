# contentbot/services/phases/writing.py
from typing import List, Optional

from pydantic import BaseModel

from contentbot.services import prompts
from contentbot.services.artifacts import GenerationArtifacts, GenerationInputs, OutlineArtifact, WriteArtifact
from contentbot.services.errors import EmptyOutputError
from contentbot.services.llm_client import LLMClient
from contentbot.services.markdown import slugify


class DraftOut(BaseModel):
    content: str
    meta_description: Optional[str] = None
    slug: Optional[str] = None
    tags: List[str] = []
    intro_paragraph: Optional[str] = None


async def run_outline(inputs: GenerationInputs, artifacts: GenerationArtifacts, *, llm: LLMClient) -> OutlineArtifact:
    if inputs.article_structure and inputs.article_structure.strip():
        return OutlineArtifact(markdown=inputs.article_structure.strip(), source="template")
    text = await llm.generate_text(prompts.outline(inputs, artifacts.research))
    return OutlineArtifact(markdown=text, source="generated")


async def run_write(inputs: GenerationInputs, artifacts: GenerationArtifacts, *, llm: LLMClient) -> WriteArtifact:
    outline_md = artifacts.outline.markdown if artifacts.outline else inputs.title
    prompt = prompts.write_article(inputs, outline_md, artifacts.research)
    draft = await llm.generate_object(prompt, DraftOut, params={"max_new_tokens": 4096, "temperature": 0.7})
    if not draft.content.strip():
        raise EmptyOutputError("writing", "Writer returned an empty article")
    return WriteArtifact(
        content=draft.content,
        prompt=prompt,
        meta_description=draft.meta_description,
        slug=slugify(draft.slug or inputs.title),
        tags=draft.tags[:8],
        intro_paragraph=draft.intro_paragraph,
    )
