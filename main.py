"""
Regulatory Update Quality Pipeline.

Usage:
    python main.py --task report --input data/batch.csv                         # Quality report for a batch
    python main.py --task sync --source fda_510k --input data/batch.csv         # Ingest a batch into the store
    python main.py --task sync --source fda_510k --input data/batch.csv --dry-run
    python main.py --task audit                                                 # Duplicate audit of the store
"""

import argparse
import asyncio
import json
import sys
from dataclasses import dataclass
from pathlib import Path

from regqual.cache.ttl_cache import TTLCache
from regqual.config.settings import settings
from regqual.db.connection import check_connection, init_schema
from regqual.db.repository import InMemoryRecordStore, RecordStore, SqlRecordStore
from regqual.ingestion.audit import audit_store
from regqual.ingestion.collector import FileCollector
from regqual.ingestion.loader import load_records
from regqual.ingestion.pipeline import IngestionPipeline
from regqual.logger import setup_logging, get_logger
from regqual.quality.models import QualityReport
from regqual.sync.coordinator import SyncCoordinator

setup_logging()
logger = get_logger("main")


@dataclass
class Dependencies:
    """Process-wide services, built once here and passed down."""
    store: RecordStore
    cache: TTLCache
    coordinator: SyncCoordinator
    pipeline: IngestionPipeline


def build_dependencies(dry_run: bool = False) -> Dependencies:
    if dry_run:
        store: RecordStore = InMemoryRecordStore()
    else:
        if not check_connection():
            logger.error("Database unavailable")
            sys.exit(1)
        init_schema()
        store = SqlRecordStore()

    cache = TTLCache()
    coordinator = SyncCoordinator()
    pipeline = IngestionPipeline(store=store, coordinator=coordinator, cache=cache)
    return Dependencies(store=store, cache=cache, coordinator=coordinator, pipeline=pipeline)


def _save(name: str, payload: dict) -> Path:
    output_path = Path(settings.output_dir) / name
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(payload, f, indent=2, default=str)
    logger.info("output_saved", path=str(output_path))
    return output_path


def print_report(report: QualityReport):
    print(f"\n{'='*70}")
    print(f" Quality Report ({report.total_updates} updates)")
    print(f"{'='*70}\n")
    print(f"  Valid:       {report.valid_updates}/{report.total_updates}")
    print(f"  Avg score:   {report.average_quality_score:.2f}")
    print(f"  Errors:      {report.total_errors}, warnings: {report.total_warnings}")
    print(f"  Duplicates:  {report.duplicate_count} records in {len(report.duplicate_groups)} groups")
    if report.removal_candidates:
        print(f"  Removal candidates (review only): {', '.join(report.removal_candidates)}")
    print()
    for rec in report.recommendations:
        print(f"  - {rec}")
    print()


# REPORT
def run_report(input_path: Path, deps: Dependencies) -> QualityReport:
    records = load_records(input_path)
    _, report = deps.pipeline.assess(records)
    print_report(report)
    _save("quality_report.json", report.model_dump(mode="json"))
    return report


# SYNC
async def run_sync(source_id: str, input_path: Path, deps: Dependencies):
    try:
        run = await deps.pipeline.sync_source(source_id, FileCollector(input_path))
    finally:
        await deps.pipeline.close()

    print(f"\n{'='*70}")
    print(f" Sync: {source_id} [{run.status.value}]")
    print(f"{'='*70}\n")
    print(f"  Processed: {run.processed_items}, new: {run.new_items}, existing: {run.existing_items}")
    print(f"  Duration:  {run.duration_seconds:.2f}s ({run.throughput_per_sec} items/sec)")
    print(f"  Memory:    {run.memory_delta_mb} MB")
    for error in run.errors:
        print(f"  ! {error}")

    report = deps.pipeline.latest_report(source_id)
    if report is not None:
        print_report(report)
        _save(f"{source_id}_quality_report.json", report.model_dump(mode="json"))
    _save(f"{source_id}_sync_status.json", deps.coordinator.status())
    return run


# AUDIT
async def run_audit(deps: Dependencies):
    report = await audit_store(deps.store)

    print(f"\n{'='*70}")
    print(f" Store Audit ({report.total_records} records)")
    print(f"{'='*70}\n")
    print(f"  Unique titles: {report.unique_titles} ({report.uniqueness_ratio:.1%})")
    print(f"  Duplicates:    {report.duplicate_percentage}%")
    print(f"  Action:        {report.recommended_action}")
    for title, count in report.top_repeated_titles:
        print(f"    {count}x {title[:80]}")
    print()

    _save("store_audit.json", report.model_dump(mode="json"))
    return report


# CLI
def main():
    parser = argparse.ArgumentParser(description="Regulatory Update Quality Pipeline")
    parser.add_argument("--task", choices=["report", "sync", "audit"], default="report")
    parser.add_argument("--input", type=str, default=str(Path(settings.data_dir) / "batch.csv"))
    parser.add_argument("--source", type=str, default="manual")
    parser.add_argument("--dry-run", action="store_true", help="Use an in-memory store")
    args = parser.parse_args()

    deps = build_dependencies(dry_run=args.dry_run or args.task == "report")

    if args.task == "report":
        run_report(Path(args.input), deps)
    elif args.task == "sync":
        run = asyncio.run(run_sync(args.source, Path(args.input), deps))
        if run.error_count:
            sys.exit(2)
    elif args.task == "audit":
        asyncio.run(run_audit(deps))


if __name__ == "__main__":
    main()
