"""Sync domain models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class SyncStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


class SourceHealth(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


class SyncOutcome(BaseModel):
    """What an ingestion function reports back to the coordinator."""

    new_items: int = Field(default=0, ge=0)
    processed_items: int = Field(default=0, ge=0)
    existing_items: int = Field(default=0, ge=0)
    errors: list[str] = Field(default_factory=list)


class SyncRun(BaseModel):
    """Metrics for the latest run of one source."""

    source_id: str
    status: SyncStatus
    start_time: datetime
    end_time: datetime
    duration_seconds: float = Field(ge=0.0)
    new_items: int = 0
    processed_items: int = 0
    existing_items: int = 0
    error_count: int = 0
    errors: list[str] = Field(default_factory=list)
    throughput_per_sec: float = 0.0
    memory_delta_mb: float = 0.0

    model_config = {"frozen": True}
