# contentbot/services/artifacts.py
from datetime import datetime
from typing import Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from contentbot.db.models import GenerationArtifact


class GenerationInputs(BaseModel):
    """Immutable snapshot handed to every phase executor."""
    model_config = ConfigDict(frozen=True)

    article_id: int
    title: str
    keywords: List[str] = []
    notes: Optional[str] = None
    tone_of_voice: Optional[str] = None
    article_structure: Optional[str] = None
    max_words: Optional[int] = None
    excluded_domains: List[str] = []
    related_articles: List[str] = []


class Source(BaseModel):
    url: str
    title: str = ""
    content: Optional[str] = None


class Video(BaseModel):
    url: str
    title: str = ""


class ResearchArtifact(BaseModel):
    research_data: str = ""
    sources: List[Source] = []
    videos: List[Video] = []


class CoverImageArtifact(BaseModel):
    image_url: Optional[str] = None
    image_alt: Optional[str] = None
    provider: Optional[str] = None
    attribution: Optional[str] = None


class OutlineArtifact(BaseModel):
    markdown: str
    source: str = "generated"  # generated | template


class WriteArtifact(BaseModel):
    content: str
    prompt: Optional[str] = None
    meta_description: Optional[str] = None
    slug: Optional[str] = None
    tags: List[str] = []
    intro_paragraph: Optional[str] = None


class QualityControlArtifact(BaseModel):
    report: Optional[str] = None
    issues: Optional[str] = None
    is_valid: bool = True
    run_count: int = 1
    completed_at: Optional[datetime] = None


class ValidationIssue(BaseModel):
    fact: str
    issue: str
    correction: str
    confidence: float = Field(ge=0.0, le=1.0)


class ValidationArtifact(BaseModel):
    raw_validation_text: str = ""
    is_valid: bool = True
    issues: List[ValidationIssue] = []
    claims_checked: int = 0
    degraded: bool = False


class UpdateArtifact(BaseModel):
    content: str
    applied_corrections: List[str] = []
    skipped: bool = False
    publish_ready: bool = True


class GenerationArtifacts(BaseModel):
    """All artifacts a generation has produced so far; a missing key means the phase never completed."""
    model_config = ConfigDict(populate_by_name=True)

    research: Optional[ResearchArtifact] = None
    cover_image: Optional[CoverImageArtifact] = Field(default=None, alias="coverImage")
    outline: Optional[OutlineArtifact] = None
    write: Optional[WriteArtifact] = None
    quality_control: Optional[QualityControlArtifact] = Field(default=None, alias="qualityControl")
    validation: Optional[ValidationArtifact] = None
    update: Optional[UpdateArtifact] = None

    def has_research(self) -> bool:
        return bool(self.research and (self.research.research_data or self.research.sources))

    def has_cover_image(self) -> bool:
        # present once the image phase completed, even if no image was found
        return self.cover_image is not None

    def has_write(self) -> bool:
        return bool(self.write and self.write.content.strip())

    def has_quality_control(self) -> bool:
        return bool(self.quality_control and self.quality_control.report is not None)

    def has_validation(self) -> bool:
        return bool(self.validation and self.validation.raw_validation_text)

    def available(self) -> List[str]:
        keys = []
        if self.has_research():
            keys.append("research")
        if self.has_cover_image():
            keys.append("image")
        if self.has_write():
            keys.append("writing")
        if self.has_quality_control():
            keys.append("quality-control")
        if self.has_validation():
            keys.append("validation")
        return keys


ARTIFACT_TYPES: Dict[str, Type[BaseModel]] = {
    "research": ResearchArtifact,
    "coverImage": CoverImageArtifact,
    "outline": OutlineArtifact,
    "write": WriteArtifact,
    "qualityControl": QualityControlArtifact,
    "validation": ValidationArtifact,
    "update": UpdateArtifact,
}


class ArtifactStore:
    """Per-phase artifact rows. A write replaces only its own key; callers commit."""

    def __init__(self, db: Session):
        self.db = db

    def _row(self, generation_id: int, key: str) -> Optional[GenerationArtifact]:
        return (
            self.db.query(GenerationArtifact)
            .filter(GenerationArtifact.generation_id == generation_id, GenerationArtifact.phase == key)
            .first()
        )

    def put(self, generation_id: int, key: str, artifact: BaseModel) -> None:
        expected = ARTIFACT_TYPES.get(key)
        if expected is None or not isinstance(artifact, expected):
            raise ValueError(f"artifact for '{key}' must be {expected.__name__ if expected else 'a known key'}")
        payload = artifact.model_dump_json()
        row = self._row(generation_id, key)
        if row is None:
            row = GenerationArtifact(generation_id=generation_id, phase=key, payload=payload)
        else:
            row.payload = payload
        self.db.add(row)
        self.db.flush()

    def load(self, generation_id: int) -> GenerationArtifacts:
        rows = self.db.query(GenerationArtifact).filter(GenerationArtifact.generation_id == generation_id).all()
        data = {}
        for row in rows:
            cls = ARTIFACT_TYPES.get(row.phase)
            if cls is not None:
                data[row.phase] = cls.model_validate_json(row.payload)
        return GenerationArtifacts(**data)

    def keys(self, generation_id: int) -> List[str]:
        rows = (
            self.db.query(GenerationArtifact.phase)
            .filter(GenerationArtifact.generation_id == generation_id)
            .order_by(GenerationArtifact.id)
            .all()
        )
        return [r[0] for r in rows]

    def clear(self, generation_id: int) -> int:
        return (
            self.db.query(GenerationArtifact)
            .filter(GenerationArtifact.generation_id == generation_id)
            .delete(synchronize_session=False)
        )
