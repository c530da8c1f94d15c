from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class DimensionScore(BaseModel):
    model_config = ConfigDict(frozen=True)

    dimension: int = Field(ge=1, le=6)
    key: str
    raw: int = Field(ge=-12, le=12)
    intensity: str
    # Only D1..D4 carry a letter; D6 carries the introspection level.
    polarity: Optional[str] = None
    tie_broken_by: Optional[int] = None
    level: Optional[str] = None


class QualityAssessment(BaseModel):
    model_config = ConfigDict(frozen=True)

    mirror_consistency: float
    response_variability: float
    flags: tuple[str, ...]


class ClassificationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    variant: str
    dimensions: tuple[DimensionScore, ...]
    letters: tuple[str, str, str, str]
    code: str = Field(min_length=4, max_length=4)
    family: str
    unresolved_dimensions: tuple[int, ...] = ()
    introspection_level: str
    quality: QualityAssessment

    def dimension(self, number: int) -> DimensionScore:
        """Return the score for dimension ``number`` (1-based)."""
        return self.dimensions[number - 1]


class ScoreRequest(BaseModel):
    answers: dict[str, Any]
    variant: Optional[str] = None


class PolesSummary(BaseModel):
    dimension: int
    key: str
    positive: str
    negative: str


class VariantSummary(BaseModel):
    name: str
    description: str
    poles: list[PolesSummary]
    families: dict[str, str]
    fallback_family: str
    tie_break_order: list[int]
    unresolved_marker: str


class WebhookResponse(BaseModel):
    ok: bool = True
    email: str
    respondent_id: str
    family: str
    code: str
    quality: QualityAssessment
