"""
Ingestion pipeline: collector -> standardize -> validate -> dedupe -> store.

One sync per source at a time (SyncCoordinator). Accepted records are
written in fixed-size chunks with bounded parallelism and a short pause
between chunks. Invalid records and removal candidates are never written
and never deleted; they stay in the per-source QualityReport for review.
"""

import asyncio
from collections.abc import Sequence
from datetime import datetime, timezone

from regqual.cache.ttl_cache import TTLCache
from regqual.config.settings import settings
from regqual.db.repository import RecordStore
from regqual.ingestion.collector import BaseCollector
from regqual.quality.models import CandidateRecord, Priority, QualityReport
from regqual.quality.report import QualityReportBuilder
from regqual.quality.standardizer import Standardizer
from regqual.quality.validator import RecordValidator
from regqual.sync.coordinator import SyncCoordinator
from regqual.sync.models import SyncOutcome, SyncRun
from regqual.logger import get_logger

logger = get_logger(__name__)


class IngestionPipeline:
    def __init__(
        self,
        store: RecordStore,
        coordinator: SyncCoordinator | None = None,
        cache: TTLCache | None = None,
        standardizer: Standardizer | None = None,
        validator: RecordValidator | None = None,
        report_builder: QualityReportBuilder | None = None,
        chunk_size: int | None = None,
        max_concurrency: int | None = None,
        chunk_pause: float | None = None,
    ):
        self.store = store
        self.coordinator = coordinator or SyncCoordinator()
        self.cache = cache or TTLCache()
        self.standardizer = standardizer or Standardizer()
        self.validator = validator or RecordValidator()
        self.report_builder = report_builder or QualityReportBuilder(validator=self.validator)
        self.chunk_size = chunk_size or settings.sync_chunk_size
        self.max_concurrency = max_concurrency or settings.sync_max_concurrency
        self.chunk_pause = settings.sync_chunk_pause if chunk_pause is None else chunk_pause
        self._reports: dict[str, QualityReport] = {}

    async def sync_source(self, source_id: str, collector: BaseCollector) -> SyncRun:
        """Ingest one source. Concurrent calls for the same source share one run."""
        self.cache.start_sweeper()
        return await self.coordinator.run_sync(
            source_id, lambda: self._ingest(source_id, collector)
        )

    async def close(self) -> None:
        """Stop the cache sweep. Call before the event loop ends."""
        await self.cache.close()

    def latest_report(self, source_id: str) -> QualityReport | None:
        """Report of the latest run for a source; None if that run failed before assessment."""
        return self._reports.get(source_id)

    def assess(
        self, records: Sequence[CandidateRecord]
    ) -> tuple[list[CandidateRecord], QualityReport]:
        """Standardize and score a batch without touching the store."""
        cleaned, _ = self.standardizer.clean_batch(records)
        report = self.report_builder.build(cleaned)
        return cleaned, report

    async def _ingest(self, source_id: str, collector: BaseCollector) -> SyncOutcome:
        self._reports.pop(source_id, None)
        existing = await self.cache.cached(
            self._count_key(source_id),
            lambda: self.store.count_records_by_source(source_id),
            ttl=settings.source_count_ttl,
        )

        raw = await collector.collect(source_id)
        cleaned, report = self.assess(raw)
        self._reports[source_id] = report

        rejected = set(report.invalid_ids) | set(report.removal_candidates)
        accepted = [r for r in cleaned if r.id not in rejected]

        logger.info(
            "batch_assessed",
            source_id=source_id,
            collected=len(raw),
            accepted=len(accepted),
            invalid=len(report.invalid_ids),
            removal_candidates=len(report.removal_candidates),
        )

        stored, errors = await self._store_in_chunks(source_id, accepted)

        await self.store.update_last_sync(source_id, datetime.now(timezone.utc))
        self.cache.delete(self._count_key(source_id))

        return SyncOutcome(
            new_items=stored,
            processed_items=len(raw),
            existing_items=existing,
            errors=errors,
        )

    async def _store_in_chunks(
        self, source_id: str, records: list[CandidateRecord]
    ) -> tuple[int, list[str]]:
        semaphore = asyncio.Semaphore(self.max_concurrency)
        stored = 0
        errors: list[str] = []

        async def write(record: CandidateRecord) -> None:
            async with semaphore:
                score = self.validator.validate(record).score
                # Stored priority is always a valid enum value; missing means low.
                record = record.model_copy(
                    update={"priority": Priority.coerce(record.priority).value}
                )
                await self.store.create_record(record, source_id, quality_score=score)

        for start in range(0, len(records), self.chunk_size):
            chunk = records[start : start + self.chunk_size]
            results = await asyncio.gather(*(write(r) for r in chunk), return_exceptions=True)

            for record, result in zip(chunk, results):
                if isinstance(result, Exception):
                    logger.warning("record_store_failed", record_id=record.id, error=str(result))
                    errors.append(f"{record.id}: {result}")
                else:
                    stored += 1

            if start + self.chunk_size < len(records) and self.chunk_pause > 0:
                await asyncio.sleep(self.chunk_pause)

        logger.info("batch_stored", source_id=source_id, stored=stored, failed=len(errors))
        return stored, errors

    @staticmethod
    def _count_key(source_id: str) -> str:
        return f"source_count:{source_id}"
