"""Database session management and schema initialization."""

from contextlib import contextmanager
from functools import lru_cache
from typing import Generator

from sqlalchemy import Engine, create_engine, text
from sqlalchemy.orm import Session, sessionmaker

from regqual.config.settings import settings
from regqual.logger import get_logger


logger = get_logger(__name__)


@lru_cache(maxsize=None)
def get_engine(database_url: str | None = None) -> Engine:
    """
    Engine per database URL, created on first use.

    Postgres gets a bounded pool; SQLite (tests, local runs) uses the dialect defaults.
    """
    url = database_url or settings.database_url
    if url.startswith("sqlite"):
        return create_engine(url)
    return create_engine(url, pool_pre_ping=True, pool_size=5)


@lru_cache(maxsize=None)
def _session_factory(database_url: str | None = None) -> sessionmaker:
    return sessionmaker(bind=get_engine(database_url), autocommit=False, autoflush=False)


@contextmanager
def get_session(database_url: str | None = None) -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    :return: Database session generator
    """
    session = _session_factory(database_url)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_schema(database_url: str | None = None) -> None:
    """
    Create tables. Timestamps are stored as ISO-8601 text so the same DDL runs
    on Postgres and SQLite.
    """
    with get_session(database_url) as session:
        session.execute(
            text(
                """
            CREATE TABLE IF NOT EXISTS regulatory_updates (
                id TEXT PRIMARY KEY,
                source_id TEXT,
                title TEXT,
                content TEXT,
                source TEXT,
                authority TEXT,
                region TEXT,
                update_type TEXT,
                category TEXT,
                priority TEXT,
                published_at TEXT,
                raw_metadata TEXT,
                quality_score INTEGER,
                created_at TEXT NOT NULL
            )
        """
            )
        )
        session.execute(
            text(
                "CREATE INDEX IF NOT EXISTS idx_regulatory_updates_source_id "
                "ON regulatory_updates (source_id)"
            )
        )
        session.execute(
            text(
                """
            CREATE TABLE IF NOT EXISTS data_sources (
                id TEXT PRIMARY KEY,
                last_sync TEXT
            )
        """
            )
        )

    logger.info("schema_initialized")


def check_connection(database_url: str | None = None) -> bool:
    try:
        with get_session(database_url) as session:
            session.execute(text("SELECT 1"))
        logger.info("database_ok")
        return True
    except Exception as e:
        logger.error("database_failed", error=str(e))
        return False
