"""Batch loader: CSV / JSON file -> CandidateRecords."""

import json
import re
from pathlib import Path

import pandas as pd

from regqual.quality.models import CandidateRecord
from regqual.logger import get_logger

logger = get_logger(__name__)

REQUIRED_COLUMNS = ("id", "title")

# Collectors export camelCase; the pipeline speaks snake_case.
COLUMN_ALIASES = {
    "updateType": "update_type",
    "type": "update_type",
    "publishedAt": "published_at",
    "rawMetadata": "raw_metadata",
    "metadata": "raw_metadata",
}

_RECORD_FIELDS = set(CandidateRecord.model_fields)


def read_frame(path: str | Path) -> pd.DataFrame:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Batch file not found: {path}")

    if path.suffix.lower() == ".json":
        df = pd.read_json(path, orient="records", dtype=False, convert_dates=False)
    else:
        df = pd.read_csv(path, dtype=str, keep_default_na=False, na_values=[""])

    df = df.rename(columns=COLUMN_ALIASES)
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Batch must contain columns: {', '.join(missing)}")
    return df


def load_records(path: str | Path) -> list[CandidateRecord]:
    """Load a batch, keeping file order. Unknown columns end up in raw_metadata."""
    df = read_frame(path)
    df = df.astype(object).where(df.notna(), None)

    records = [_to_record(row) for row in df.to_dict(orient="records")]
    logger.info("batch_loaded", path=str(path), count=len(records))
    return records


def _to_record(row: dict) -> CandidateRecord:
    metadata = row.pop("raw_metadata", None)
    if isinstance(metadata, str):
        try:
            metadata = json.loads(metadata)
        except json.JSONDecodeError:
            metadata = {"raw": metadata}
    metadata = dict(metadata or {})

    fields = {}
    for key, value in row.items():
        if key in _RECORD_FIELDS:
            fields[key] = value
        elif value is not None:
            metadata[key] = value

    fields["id"] = str(fields["id"])
    for key in ("title", "content", "source", "authority", "region", "update_type", "priority"):
        if fields.get(key) is not None:
            fields[key] = str(fields[key])
    if fields.get("content"):
        fields["content"] = _clean_text(fields["content"])

    return CandidateRecord(**fields, raw_metadata=metadata)


def _clean_text(text: str) -> str:
    text = text.strip().strip('"').strip()
    text = re.sub(r"\[\d+\]", "", text)  # [1], [2], etc.
    text = " ".join(text.split())
    return text
