"""Repository layer: all SQL operations isolated here, plus the async store interface."""

import abc
import asyncio
import json
from datetime import datetime, timezone

from sqlalchemy import text
from sqlalchemy.orm import Session

from regqual.db.connection import get_session
from regqual.db.models import StoredRecord
from regqual.quality.models import CandidateRecord
from regqual.logger import get_logger

logger = get_logger(__name__)

_COLUMNS = (
    "id, source_id, title, content, source, authority, region, update_type, category, "
    "priority, published_at, raw_metadata, quality_score, created_at"
)


def _iso(value) -> str | None:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class RegulatoryUpdateRepository:
    """
    Repository for regulatory update and data source rows.
    """

    def __init__(self, session: Session):
        self.session = session

    def insert(
        self,
        record: CandidateRecord,
        source_id: str,
        quality_score: int | None = None,
    ) -> str:
        self.session.execute(
            text(
                f"INSERT INTO regulatory_updates ({_COLUMNS}) VALUES "
                "(:id, :source_id, :title, :content, :source, :authority, :region, "
                ":update_type, :category, :priority, :published_at, :raw_metadata, "
                ":quality_score, :created_at)"
            ),
            {
                "id": record.id,
                "source_id": source_id,
                "title": record.title,
                "content": record.content,
                "source": record.source,
                "authority": record.authority,
                "region": record.region,
                "update_type": record.update_type,
                "category": record.category,
                "priority": record.priority,
                "published_at": _iso(record.published_at),
                "raw_metadata": json.dumps(record.raw_metadata, default=str),
                "quality_score": quality_score,
                "created_at": datetime.now(timezone.utc).isoformat(),
            },
        )
        return record.id

    def fetch_all(self) -> list[StoredRecord]:
        """All stored updates, oldest first."""
        result = self.session.execute(
            text(f"SELECT {_COLUMNS} FROM regulatory_updates ORDER BY created_at")
        )
        return [
            StoredRecord(
                id=r.id,
                source_id=r.source_id,
                title=r.title,
                content=r.content,
                source=r.source,
                authority=r.authority,
                region=r.region,
                update_type=r.update_type,
                category=r.category,
                priority=r.priority,
                published_at=r.published_at,
                raw_metadata=json.loads(r.raw_metadata) if r.raw_metadata else {},
                quality_score=r.quality_score,
                created_at=r.created_at,
            )
            for r in result.fetchall()
        ]

    def count_by_source(self, source_id: str) -> int:
        return self.session.execute(
            text("SELECT COUNT(*) FROM regulatory_updates WHERE source_id = :source_id"),
            {"source_id": source_id},
        ).scalar_one()

    def update_last_sync(self, source_id: str, synced_at: datetime) -> None:
        self.session.execute(
            text(
                "INSERT INTO data_sources (id, last_sync) VALUES (:id, :last_sync) "
                "ON CONFLICT (id) DO UPDATE SET last_sync = excluded.last_sync"
            ),
            {"id": source_id, "last_sync": synced_at.isoformat()},
        )

    def last_sync(self, source_id: str) -> datetime | None:
        value = self.session.execute(
            text("SELECT last_sync FROM data_sources WHERE id = :id"),
            {"id": source_id},
        ).scalar_one_or_none()
        return datetime.fromisoformat(value) if value else None


class RecordStore(abc.ABC):
    """Async interface the pipeline persists through."""

    @abc.abstractmethod
    async def create_record(
        self,
        record: CandidateRecord,
        source_id: str,
        quality_score: int | None = None,
    ) -> str: ...

    @abc.abstractmethod
    async def get_all_records(self) -> list[StoredRecord]: ...

    @abc.abstractmethod
    async def count_records_by_source(self, source_id: str) -> int: ...

    @abc.abstractmethod
    async def update_last_sync(self, source_id: str, synced_at: datetime) -> None: ...

    @abc.abstractmethod
    async def get_last_sync(self, source_id: str) -> datetime | None: ...


class SqlRecordStore(RecordStore):
    """Record store on SQLAlchemy. Blocking calls run in worker threads."""

    def __init__(self, database_url: str | None = None):
        self.database_url = database_url

    def _create(
        self, record: CandidateRecord, source_id: str, quality_score: int | None
    ) -> str:
        with get_session(self.database_url) as session:
            return RegulatoryUpdateRepository(session).insert(record, source_id, quality_score)

    def _fetch_all(self) -> list[StoredRecord]:
        with get_session(self.database_url) as session:
            return RegulatoryUpdateRepository(session).fetch_all()

    def _count(self, source_id: str) -> int:
        with get_session(self.database_url) as session:
            return RegulatoryUpdateRepository(session).count_by_source(source_id)

    def _update_last_sync(self, source_id: str, synced_at: datetime) -> None:
        with get_session(self.database_url) as session:
            RegulatoryUpdateRepository(session).update_last_sync(source_id, synced_at)

    def _last_sync(self, source_id: str) -> datetime | None:
        with get_session(self.database_url) as session:
            return RegulatoryUpdateRepository(session).last_sync(source_id)

    async def create_record(
        self,
        record: CandidateRecord,
        source_id: str,
        quality_score: int | None = None,
    ) -> str:
        return await asyncio.to_thread(self._create, record, source_id, quality_score)

    async def get_all_records(self) -> list[StoredRecord]:
        return await asyncio.to_thread(self._fetch_all)

    async def count_records_by_source(self, source_id: str) -> int:
        return await asyncio.to_thread(self._count, source_id)

    async def update_last_sync(self, source_id: str, synced_at: datetime) -> None:
        await asyncio.to_thread(self._update_last_sync, source_id, synced_at)

    async def get_last_sync(self, source_id: str) -> datetime | None:
        return await asyncio.to_thread(self._last_sync, source_id)


class InMemoryRecordStore(RecordStore):
    """Dict-backed store for tests and dry runs."""

    def __init__(self):
        self.records: dict[str, StoredRecord] = {}
        self.last_syncs: dict[str, datetime] = {}

    async def create_record(
        self,
        record: CandidateRecord,
        source_id: str,
        quality_score: int | None = None,
    ) -> str:
        if record.id in self.records:
            raise ValueError(f"Record already exists: {record.id}")
        self.records[record.id] = StoredRecord(
            **record.model_dump(),
            source_id=source_id,
            quality_score=quality_score,
            created_at=datetime.now(timezone.utc),
        )
        return record.id

    async def get_all_records(self) -> list[StoredRecord]:
        return list(self.records.values())

    async def count_records_by_source(self, source_id: str) -> int:
        return sum(1 for r in self.records.values() if r.source_id == source_id)

    async def update_last_sync(self, source_id: str, synced_at: datetime) -> None:
        self.last_syncs[source_id] = synced_at

    async def get_last_sync(self, source_id: str) -> datetime | None:
        return self.last_syncs.get(source_id)
