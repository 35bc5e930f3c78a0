# contentbot/services/prompts.py
from typing import List, Optional, Sequence

from contentbot.services.artifacts import GenerationInputs, ResearchArtifact, Source, ValidationIssue


def _keywords(inputs: GenerationInputs) -> str:
    return ", ".join(inputs.keywords) if inputs.keywords else inputs.title


def research_query(inputs: GenerationInputs, attempt: int = 1) -> str:
    # later attempts drop the keywords to widen the search
    if attempt == 1 and inputs.keywords:
        return f"{inputs.title} {' '.join(inputs.keywords)}"
    return inputs.title


def research_brief(inputs: GenerationInputs, sources: Sequence[Source], answer: Optional[str]) -> str:
    listing = "\n".join(f"- {s.title or s.url} ({s.url}): {(s.content or '')[:600]}" for s in sources)
    return (
        f"You are a research assistant preparing a brief for an article titled \"{inputs.title}\".\n"
        f"Target keywords: {_keywords(inputs)}.\n"
        + (f"Editor notes: {inputs.notes}\n" if inputs.notes else "")
        + (f"Search summary: {answer}\n" if answer else "")
        + f"Sources:\n{listing}\n\n"
        "Write a factual research brief with key facts, statistics and quotes. Cite the source URL after each fact."
    )


def outline(inputs: GenerationInputs, research: Optional[ResearchArtifact]) -> str:
    return (
        f"Create a markdown outline (H1 title, H2/H3 sections) for an article titled \"{inputs.title}\".\n"
        f"Keywords: {_keywords(inputs)}.\n"
        + (f"Length: about {inputs.max_words} words.\n" if inputs.max_words else "")
        + (f"Research:\n{research.research_data}\n" if research else "")
        + "Return only the outline."
    )


def write_article(inputs: GenerationInputs, outline_md: str, research: Optional[ResearchArtifact]) -> str:
    sources = "\n".join(f"- {s.title}: {s.url}" for s in research.sources) if research else ""
    videos = "\n".join(f"- {v.title}: {v.url}" for v in research.videos) if research and research.videos else ""
    related = "\n".join(f"- {t}" for t in inputs.related_articles)
    return (
        f"Write a complete blog article in markdown titled \"{inputs.title}\".\n"
        f"Keywords: {_keywords(inputs)}.\n"
        + (f"Tone of voice: {inputs.tone_of_voice}\n" if inputs.tone_of_voice else "")
        + (f"Length: about {inputs.max_words} words.\n" if inputs.max_words else "")
        + (f"Editor notes: {inputs.notes}\n" if inputs.notes else "")
        + f"Follow this outline:\n{outline_md}\n"
        + (f"Research brief:\n{research.research_data}\n" if research else "")
        + (f"Cite these sources inline:\n{sources}\n" if sources else "")
        + (f"Embed at most one of these videos where relevant:\n{videos}\n" if videos else "")
        + (f"Link to these related articles where natural:\n{related}\n" if related else "")
        + "Also provide a meta description under 160 characters, a URL slug, up to 8 tags and a short intro paragraph."
    )


def quality_control(inputs: GenerationInputs, content: str) -> str:
    return (
        f"Review this article titled \"{inputs.title}\" for structure, tone, grammar, keyword use and formatting.\n"
        + (f"Expected tone of voice: {inputs.tone_of_voice}\n" if inputs.tone_of_voice else "")
        + f"Article:\n{content}\n\n"
        "List each concrete problem as a markdown bullet. If there are no problems, answer with the single word null."
    )


def extract_claims(content: str) -> str:
    return (
        "Extract every verifiable factual claim (numbers, dates, names, statistics, quotes) from the article below. "
        "Copy each claim as a short standalone sentence.\n\n"
        f"Article:\n{content}"
    )


def verify_claims(claims: Sequence[str], evidence: Sequence[str]) -> str:
    parts = []
    for claim, found in zip(claims, evidence):
        parts.append(f"Claim: {claim}\nEvidence:\n{found or '(no search results)'}")
    return (
        "Check each claim against the evidence. For every claim say whether it is supported, "
        "contradicted or unverifiable, and give the correct fact when it is wrong.\n\n" + "\n\n".join(parts)
    )


def aggregate_validation(findings: str) -> str:
    return (
        "Summarize these fact-check findings. Report only claims that are wrong, with the corrected fact "
        "and your confidence between 0 and 1. Set is_valid to false when any claim is wrong.\n\n"
        f"{findings}"
    )


def apply_corrections(content: str, corrections: List[ValidationIssue], qc_issues: Optional[str]) -> str:
    sections = []
    if corrections:
        lines = "\n".join(f"- \"{i.fact}\": {i.issue} Correct to: {i.correction}" for i in corrections)
        sections.append(f"## Validation Issues\n{lines}")
    if qc_issues:
        sections.append(f"## Quality Control Issues\n{qc_issues}")
    return (
        "Revise the markdown article below to fix the listed issues. Keep everything else unchanged, "
        "including headings, links and length. Return only the revised article.\n\n"
        + "\n\n".join(sections)
        + f"\n\nArticle:\n{content}"
    )
