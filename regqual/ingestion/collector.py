"""
Collector interface.

Per-authority scrapers and API clients live outside this package; they only
need to hand over CandidateRecords. FileCollector replays an exported batch.
"""

import abc
import asyncio
from pathlib import Path

from regqual.ingestion.loader import load_records
from regqual.quality.models import CandidateRecord


class BaseCollector(abc.ABC):
    """Interface that any collector implements."""

    @abc.abstractmethod
    async def collect(self, source_id: str) -> list[CandidateRecord]: ...


class FileCollector(BaseCollector):
    """Reads one CSV/JSON batch per call, in file order."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    async def collect(self, source_id: str) -> list[CandidateRecord]:
        return await asyncio.to_thread(load_records, self.path)


class StaticCollector(BaseCollector):
    """Returns a fixed batch per source id."""

    def __init__(self, batches: dict[str, list[CandidateRecord]]):
        self.batches = batches

    async def collect(self, source_id: str) -> list[CandidateRecord]:
        return list(self.batches.get(source_id, []))
