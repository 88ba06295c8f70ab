"""
Record validator.

Score starts at 100 and loses a fixed (configurable) penalty per defect,
floored at 0. Errors make a record invalid; warnings only cost score.
Malformed input is reported, never raised.
"""

from datetime import datetime, timezone

from pydantic import AnyUrl, TypeAdapter, ValidationError

from regqual.config.settings import QualityPenalties, settings
from regqual.quality.models import CandidateRecord, Priority, UpdateType, ValidationResult
from regqual.logger import get_logger

logger = get_logger(__name__)

PLACEHOLDER_MARKERS = ("lorem ipsum", "placeholder", "todo", "coming soon", "mock data")
EARLIEST_PLAUSIBLE_DATE = datetime(2000, 1, 1, tzinfo=timezone.utc)
REPETITION_MIN_WORDS = 20
REPETITION_MIN_UNIQUE_RATIO = 0.3
URL_METADATA_KEYS = ("originalLink", "original_link", "url", "source_url")

_url_adapter = TypeAdapter(AnyUrl)


def parse_date(value) -> datetime | None:
    """Best-effort ISO-8601 parse. Naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_valid_url(value) -> bool:
    if not isinstance(value, str):
        return False
    try:
        _url_adapter.validate_python(value)
        return True
    except ValidationError:
        return False


class RecordValidator:
    def __init__(
        self,
        penalties: QualityPenalties | None = None,
        min_title_length: int | None = None,
        min_content_length: int | None = None,
    ):
        self.penalties = penalties or settings.quality_penalties
        self.min_title_length = (
            settings.min_title_length if min_title_length is None else min_title_length
        )
        self.min_content_length = (
            settings.min_content_length if min_content_length is None else min_content_length
        )

    def validate(
        self, record: CandidateRecord, now: datetime | None = None
    ) -> ValidationResult:
        now = now or datetime.now(timezone.utc)
        p = self.penalties
        errors: list[str] = []
        warnings: list[str] = []
        score = 100

        title = (record.title or "").strip()
        if not title:
            errors.append("Title is required")
            score -= p.missing_title
        elif len(title) < self.min_title_length:
            errors.append(f"Title is too short (minimum {self.min_title_length} characters)")
            score -= p.short_title

        content = (record.content or "").strip()
        if not content:
            errors.append("Content is required")
            score -= p.missing_content
        elif len(content) < self.min_content_length:
            errors.append(f"Content is too short (minimum {self.min_content_length} characters)")
            score -= p.short_content

        if not (record.source or "").strip():
            errors.append("Source is required")
            score -= p.missing_source

        if not (record.region or "").strip():
            errors.append("Region is required")
            score -= p.missing_region

        if not (record.authority or "").strip():
            warnings.append("Authority is missing")
            score -= p.missing_authority

        if record.update_type and UpdateType.parse(record.update_type) is None:
            errors.append(f"Invalid update type: {record.update_type!r}")
            score -= p.invalid_update_type

        if record.priority and Priority.parse(record.priority) is None:
            errors.append(f"Invalid priority value: {record.priority!r}")
            score -= p.invalid_priority

        if record.published_at not in (None, ""):
            published = parse_date(record.published_at)
            if published is None:
                warnings.append("Invalid publication date format")
                score -= p.invalid_date
            elif published > now:
                warnings.append("Publication date is in the future")
                score -= p.future_date
            elif published < EARLIEST_PLAUSIBLE_DATE:
                warnings.append("Publication date seems very old")
                score -= p.old_date

        link = next(
            (record.raw_metadata[k] for k in URL_METADATA_KEYS if record.raw_metadata.get(k)),
            None,
        )
        if link is not None and not is_valid_url(link):
            warnings.append("Invalid URL in metadata")
            score -= p.invalid_url

        if content:
            lowered = content.lower()
            if any(marker in lowered for marker in PLACEHOLDER_MARKERS):
                warnings.append("Content contains placeholder or mock text")
                score -= p.placeholder_text

            words = lowered.split()
            if (
                len(words) >= REPETITION_MIN_WORDS
                and len(set(words)) / len(words) < REPETITION_MIN_UNIQUE_RATIO
            ):
                warnings.append("Content appears very repetitive")
                score -= p.repetitive_content

        result = ValidationResult(
            record_id=record.id,
            is_valid=not errors,
            errors=errors,
            warnings=warnings,
            score=max(0, min(100, score)),
        )
        if errors:
            logger.debug("record_invalid", record_id=record.id, errors=len(errors))
        return result
