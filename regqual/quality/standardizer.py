"""
Lookup-table standardization of regions, categories, dates and titles.

Every canonical value maps to itself, so standardizing already
standardized data changes nothing. Unknown values pass through.
"""

import re
from collections.abc import Sequence

from regqual.quality.models import CandidateRecord, StandardizationPatch, StandardizationReport
from regqual.quality.validator import parse_date
from regqual.logger import get_logger

logger = get_logger(__name__)

COUNTRY_CODES: dict[str, str] = {
    "usa": "US",
    "us": "US",
    "united states": "US",
    "united states of america": "US",
    "america": "US",
    "uk": "GB",
    "gb": "GB",
    "united kingdom": "GB",
    "britain": "GB",
    "great britain": "GB",
    "de": "DE",
    "deutschland": "DE",
    "germany": "DE",
    "ch": "CH",
    "schweiz": "CH",
    "switzerland": "CH",
    "suisse": "CH",
    "svizzera": "CH",
    "eu": "EU",
    "european union": "EU",
    "europe": "EU",
}

# Ordered: first substring hit wins. More specific keys come first so that
# e.g. "ISO Standard" is not swallowed by "standard".
CATEGORY_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("510k", "FDA 510(k) Clearance"),
    ("510(k)", "FDA 510(k) Clearance"),
    ("pma", "FDA PMA Approval"),
    ("recall", "Safety Recall"),
    ("guidance", "Regulatory Guidance"),
    ("guideline", "Regulatory Guidance"),
    ("iso", "ISO Standard"),
    ("iec", "IEC Standard"),
    ("standard", "Technical Standard"),
    ("alert", "Safety Alert"),
    ("warning", "Safety Warning"),
    ("safety", "Safety Notice"),
)

_TITLE_DISALLOWED = re.compile(r"[^\w\s\-():.,]")
_WHITESPACE = re.compile(r"\s+")


def standardize_country(region: str | None) -> str | None:
    if not isinstance(region, str):
        return None
    return COUNTRY_CODES.get(region.strip().lower())


def standardize_category(update_type: str | None) -> str | None:
    if not isinstance(update_type, str):
        return None
    lowered = update_type.lower()
    for keyword, label in CATEGORY_KEYWORDS:
        if keyword in lowered:
            return label
    return None


def clean_title(title: str | None) -> str | None:
    if not isinstance(title, str):
        return None
    cleaned = _TITLE_DISALLOWED.sub("", title)
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()
    return cleaned or None


class Standardizer:
    def standardize(self, record: CandidateRecord) -> StandardizationPatch:
        return StandardizationPatch(
            country_code=standardize_country(record.region),
            normalized_date=parse_date(record.published_at),
            standardized_category=standardize_category(record.update_type),
            cleaned_title=clean_title(record.title),
        )

    def apply(self, record: CandidateRecord) -> CandidateRecord:
        """Return a copy of the record with the patch applied. The input is untouched."""
        patch = self.standardize(record)
        updates = {}
        if patch.country_code:
            updates["region"] = patch.country_code
        if patch.normalized_date:
            updates["published_at"] = patch.normalized_date
        if patch.standardized_category:
            updates["category"] = patch.standardized_category
        if patch.cleaned_title:
            updates["title"] = patch.cleaned_title
        return record.model_copy(update=updates) if updates else record

    def clean_batch(
        self, records: Sequence[CandidateRecord]
    ) -> tuple[list[CandidateRecord], StandardizationReport]:
        report = StandardizationReport(total_records=len(records))
        cleaned: list[CandidateRecord] = []

        for record in records:
            result = self.apply(record)
            if result.region != record.region:
                report.countries_standardized += 1
            if result.published_at != record.published_at:
                report.dates_normalized += 1
            if result.category != record.category:
                report.categories_normalized += 1
            if result.title != record.title:
                report.titles_cleaned += 1
            cleaned.append(result)

        logger.info("batch_standardized", **report.model_dump())
        return cleaned, report
