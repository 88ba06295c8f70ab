"""Tests for CLI dependency wiring."""

import pytest

import main
from regqual.db.repository import InMemoryRecordStore


class TestBuildDependencies:
    def test_unreachable_database_exits_before_schema_setup(self, monkeypatch):
        schema_calls = []
        monkeypatch.setattr(main, "check_connection", lambda: False)
        monkeypatch.setattr(main, "init_schema", lambda: schema_calls.append(True))

        with pytest.raises(SystemExit) as exc:
            main.build_dependencies(dry_run=False)

        assert exc.value.code == 1
        assert schema_calls == []

    def test_dry_run_uses_in_memory_store(self):
        deps = main.build_dependencies(dry_run=True)

        assert isinstance(deps.store, InMemoryRecordStore)
        assert deps.pipeline.store is deps.store
        assert deps.pipeline.cache is deps.cache
