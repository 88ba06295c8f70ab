"""Quality pipeline domain models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @classmethod
    def parse(cls, value: Any) -> "Priority | None":
        """Case-insensitive lookup. None for anything outside the enum."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None

    @classmethod
    def coerce(cls, value: Any) -> "Priority":
        return cls.parse(value) or cls.LOW


class UpdateType(str, Enum):
    REGULATION = "regulation"
    GUIDANCE = "guidance"
    STANDARD = "standard"
    APPROVAL = "approval"
    ALERT = "alert"

    @classmethod
    def parse(cls, value: Any) -> "UpdateType | None":
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class MatchType(str, Enum):
    EXACT = "exact"
    FUZZY = "fuzzy"
    SEMANTIC = "semantic"


class CandidateRecord(BaseModel):
    """A regulatory update as delivered by a collector. Fields are raw and may be dirty."""

    id: str
    title: str | None = None
    content: str | None = None
    source: str | None = None
    authority: str | None = None
    region: str | None = None
    update_type: str | None = None
    priority: str | None = None
    published_at: datetime | str | None = None
    category: str | None = None
    raw_metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}


class ValidationResult(BaseModel):
    """Outcome of validating a single record. Errors block, warnings don't."""

    record_id: str
    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    score: int = Field(ge=0, le=100)


class DuplicateMatch(BaseModel):
    """A matched record relative to the lead (anchor) record of its cluster."""

    record_id: str
    matched_id: str
    title: str | None = None
    similarity: float = Field(ge=0.0, le=1.0)
    match_type: MatchType

    model_config = {"frozen": True}


class DuplicateGroup(BaseModel):
    key: str
    anchor_id: str
    record_ids: list[str]
    matches: list[DuplicateMatch] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)


class DuplicateReport(BaseModel):
    total_records: int
    removal_candidate_count: int
    duplicate_groups: list[DuplicateGroup] = Field(default_factory=list)
    removal_candidates: list[str] = Field(default_factory=list)


class StandardizationPatch(BaseModel):
    """Fields the standardizer would change. None means leave as is."""

    country_code: str | None = None
    normalized_date: datetime | None = None
    standardized_category: str | None = None
    cleaned_title: str | None = None


class StandardizationReport(BaseModel):
    total_records: int = 0
    countries_standardized: int = 0
    dates_normalized: int = 0
    categories_normalized: int = 0
    titles_cleaned: int = 0


class QualityReport(BaseModel):
    """Batch-level quality summary. Computed per run, never persisted incrementally."""

    total_updates: int = 0
    valid_updates: int = 0
    average_quality_score: float = 0.0
    total_errors: int = 0
    total_warnings: int = 0
    duplicate_count: int = 0
    duplicate_groups: list[DuplicateGroup] = Field(default_factory=list)
    validation_results: list[ValidationResult] = Field(default_factory=list)
    duplicates: list[DuplicateMatch] = Field(default_factory=list)
    removal_candidates: list[str] = Field(default_factory=list)
    invalid_ids: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
