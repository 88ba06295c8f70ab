"""Database domain models."""

from datetime import datetime

from regqual.quality.models import CandidateRecord


class StoredRecord(CandidateRecord):
    """A regulatory update row returned from the store."""

    source_id: str | None = None
    quality_score: int | None = None
    created_at: datetime | None = None
