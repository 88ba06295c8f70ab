"""
Store-wide duplicate audit.

Measures how many stored updates share a normalized title. Report only:
nothing is deleted, cleanup stays a human decision.
"""

from collections import Counter
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from regqual.db.repository import RecordStore
from regqual.quality.similarity import normalize_text
from regqual.logger import get_logger

logger = get_logger(__name__)

CLEANUP_THRESHOLD_PERCENT = 10.0


class StoreAuditReport(BaseModel):
    total_records: int
    unique_titles: int
    uniqueness_ratio: float
    duplicate_percentage: float
    recommended_action: str
    top_repeated_titles: list[tuple[str, int]] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


async def audit_store(store: RecordStore, top: int = 10) -> StoreAuditReport:
    records = await store.get_all_records()
    titles = [normalize_text(r.title) for r in records]
    titles = [t for t in titles if t]

    counts = Counter(titles)
    total = len(titles)
    unique = len(counts)
    ratio = unique / total if total else 0.0
    duplicate_pct = (total - unique) / total * 100 if total else 0.0

    report = StoreAuditReport(
        total_records=total,
        unique_titles=unique,
        uniqueness_ratio=round(ratio, 4),
        duplicate_percentage=round(duplicate_pct, 2),
        recommended_action=(
            "IMMEDIATE_CLEANUP_REQUIRED"
            if duplicate_pct > CLEANUP_THRESHOLD_PERCENT
            else "MONITORING"
        ),
        top_repeated_titles=[(t, n) for t, n in counts.most_common(top) if n > 1],
    )
    logger.info(
        "store_audited",
        total=total,
        unique=unique,
        duplicate_percentage=report.duplicate_percentage,
        action=report.recommended_action,
    )
    return report
