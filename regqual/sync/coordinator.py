"""
Per-source sync coordinator.

Wraps an ingestion call so that:
- at most one run per source is in flight (extra callers join it)
- different sources run in parallel
- every run, successful or not, leaves a SyncRun behind (latest per source)
- exceptions from the wrapped call become SyncRun.errors instead of
  propagating into unrelated syncs
"""

import time
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

import psutil

from regqual.sync.models import SourceHealth, SyncOutcome, SyncRun, SyncStatus
from regqual.sync.single_flight import SingleFlight
from regqual.logger import get_logger

logger = get_logger(__name__)

SyncFn = Callable[[], Awaitable[SyncOutcome]]

_MB = 1024 * 1024


def _rss_bytes() -> int:
    return psutil.Process().memory_info().rss


class SyncCoordinator:
    def __init__(self, memory_probe: Callable[[], int] | None = None):
        self._flight: SingleFlight[SyncRun] = SingleFlight()
        self._runs: dict[str, SyncRun] = {}
        self._memory_probe = memory_probe or _rss_bytes

    def is_running(self, source_id: str) -> bool:
        return self._flight.in_flight(source_id)

    async def run_sync(self, source_id: str, fn: SyncFn) -> SyncRun:
        """Run `fn` for `source_id`, or join the run already in flight for it."""
        if self.is_running(source_id):
            logger.info("sync_already_running", source_id=source_id)
        return await self._flight.do(source_id, lambda: self._execute(source_id, fn))

    async def _execute(self, source_id: str, fn: SyncFn) -> SyncRun:
        start_time = datetime.now(timezone.utc)
        started = time.perf_counter()
        memory_start = self._memory_probe()
        outcome = SyncOutcome()
        errors: list[str] = []

        logger.info("sync_started", source_id=source_id)

        try:
            outcome = await fn()
            errors.extend(outcome.errors)
        except Exception as e:
            logger.error("sync_failed", source_id=source_id, error=str(e))
            errors.append(str(e) or type(e).__name__)

        duration = time.perf_counter() - started
        memory_delta = self._memory_probe() - memory_start
        throughput = outcome.processed_items / duration if duration > 0 else 0.0

        run = SyncRun(
            source_id=source_id,
            status=SyncStatus.FAILED if errors else SyncStatus.SUCCESS,
            start_time=start_time,
            end_time=datetime.now(timezone.utc),
            duration_seconds=round(duration, 4),
            new_items=outcome.new_items,
            processed_items=outcome.processed_items,
            existing_items=outcome.existing_items,
            error_count=len(errors),
            errors=errors,
            throughput_per_sec=round(throughput, 2),
            memory_delta_mb=round(memory_delta / _MB, 2),
        )
        self._runs[source_id] = run

        logger.info(
            "sync_completed",
            source_id=source_id,
            status=run.status.value,
            duration_seconds=run.duration_seconds,
            new_items=run.new_items,
            processed_items=run.processed_items,
            errors=run.error_count,
            throughput_per_sec=run.throughput_per_sec,
            memory_delta_mb=run.memory_delta_mb,
        )
        return run

    def get_run(self, source_id: str) -> SyncRun | None:
        return self._runs.get(source_id)

    def all_runs(self) -> dict[str, SyncRun]:
        return dict(self._runs)

    def clear_metrics(self) -> None:
        self._runs.clear()
        logger.info("sync_metrics_cleared")

    def health(self, source_id: str) -> SourceHealth:
        run = self._runs.get(source_id)
        if run is None:
            return SourceHealth.UNKNOWN
        if run.status is SyncStatus.SUCCESS:
            return SourceHealth.HEALTHY
        return SourceHealth.UNHEALTHY

    def status(self) -> dict:
        """JSON-ready snapshot for a status/health endpoint."""
        return {
            "running": self._flight.keys(),
            "sources": {
                source_id: {
                    "health": self.health(source_id).value,
                    "last_run": run.model_dump(mode="json"),
                }
                for source_id, run in self._runs.items()
            },
        }
