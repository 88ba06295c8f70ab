"""Tests for the SQL-backed record store and the store-wide audit."""

import asyncio
from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from regqual.db.connection import check_connection, init_schema
from regqual.db.repository import InMemoryRecordStore, SqlRecordStore
from regqual.ingestion.audit import audit_store


@pytest.fixture
def sql_store(tmp_path):
    url = f"sqlite:///{tmp_path / 'regqual.db'}"
    init_schema(url)
    return SqlRecordStore(url)


class TestSqlRecordStore:
    def test_connection_check(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'ping.db'}"

        assert check_connection(url) is True

    def test_create_and_read_back(self, sql_store, make_record):
        record = make_record("rec-1", category="Regulatory Guidance")

        async def scenario():
            await sql_store.create_record(record, "fda", quality_score=100)
            return await sql_store.get_all_records()

        [stored] = asyncio.run(scenario())

        assert stored.id == "rec-1"
        assert stored.source_id == "fda"
        assert stored.title == record.title
        assert stored.category == "Regulatory Guidance"
        assert stored.quality_score == 100
        assert stored.raw_metadata == record.raw_metadata
        assert stored.created_at is not None

    def test_count_by_source(self, sql_store, make_record):
        async def scenario():
            await sql_store.create_record(make_record("a"), "fda")
            await sql_store.create_record(make_record("b"), "fda")
            await sql_store.create_record(make_record("c"), "ema")
            return (
                await sql_store.count_records_by_source("fda"),
                await sql_store.count_records_by_source("ema"),
                await sql_store.count_records_by_source("mhra"),
            )

        assert asyncio.run(scenario()) == (2, 1, 0)

    def test_duplicate_id_is_rejected(self, sql_store, make_record):
        async def scenario():
            await sql_store.create_record(make_record("a"), "fda")
            await sql_store.create_record(make_record("a"), "fda")

        with pytest.raises(IntegrityError):
            asyncio.run(scenario())

    def test_last_sync_upsert(self, sql_store):
        first = datetime(2026, 1, 1, tzinfo=timezone.utc)
        second = datetime(2026, 2, 1, tzinfo=timezone.utc)

        async def scenario():
            before = await sql_store.get_last_sync("fda")
            await sql_store.update_last_sync("fda", first)
            await sql_store.update_last_sync("fda", second)
            return before, await sql_store.get_last_sync("fda")

        assert asyncio.run(scenario()) == (None, second)


class TestInMemoryRecordStore:
    def test_duplicate_id_is_rejected(self, make_record):
        store = InMemoryRecordStore()

        async def scenario():
            await store.create_record(make_record("a"), "fda")
            await store.create_record(make_record("a"), "fda")

        with pytest.raises(ValueError, match="already exists"):
            asyncio.run(scenario())


class TestAudit:
    def test_repeated_titles_trigger_cleanup(self, make_record):
        store = InMemoryRecordStore()

        async def scenario():
            for i in range(3):
                await store.create_record(make_record(f"dup-{i}", title="Device Recall X"), "fda")
            await store.create_record(make_record("solo", title="Something else"), "fda")
            await store.create_record(make_record("blank", title=""), "fda")
            return await audit_store(store)

        report = asyncio.run(scenario())

        assert report.total_records == 4
        assert report.unique_titles == 2
        assert report.duplicate_percentage == 50.0
        assert report.recommended_action == "IMMEDIATE_CLEANUP_REQUIRED"
        assert report.top_repeated_titles == [("device recall x", 3)]

    def test_clean_store_is_monitored(self, distinct_batch):
        store = InMemoryRecordStore()

        async def scenario():
            for record in distinct_batch:
                await store.create_record(record, "fda")
            return await audit_store(store)

        report = asyncio.run(scenario())

        assert report.uniqueness_ratio == 1.0
        assert report.recommended_action == "MONITORING"
        assert report.top_repeated_titles == []

    def test_empty_store(self):
        report = asyncio.run(audit_store(InMemoryRecordStore()))

        assert report.total_records == 0
        assert report.recommended_action == "MONITORING"
