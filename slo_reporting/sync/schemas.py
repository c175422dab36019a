"""
Schemas for the sync engine: run configuration, output rows and run results.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, Field, ValidationError

from slo_reporting.core.config import settings
from slo_reporting.sync.exceptions import ConfigError

# Cloud Monitoring keeps 42 days of data; the oldest backfilled day must
# start inside that window.
MAX_BACKFILL_DAYS = 41


class SLORow(BaseModel):
    """One daily aggregate for an SLO, keyed by (service, slo, date)."""

    service: str
    slo: str
    date: str  # YYYY-MM-DD, local calendar day
    good: int = 0
    total: int = 0
    target: float = 0.0

    @property
    def insert_id(self) -> str:
        """Best-effort deduplication id for streaming inserts."""
        return f"{self.service}/{self.slo}/{self.date}"

    def to_record(self) -> Dict[str, Any]:
        """Row in the warehouse table's column naming."""
        return {
            "Service": self.service,
            "SLO": self.slo,
            "Date": self.date,
            "Total": self.total,
            "Good": self.good,
            "Target": self.target,
        }


class SyncConfig(BaseModel):
    """Everything a single sync run needs to know."""

    project: str = Field(min_length=1)
    dataset: str = Field(min_length=1)
    table: str = Field(default="data", min_length=1)
    time_zone: str = Field(default="Europe/London", min_length=1)
    backfill_days: int = Field(default=40, ge=1, le=MAX_BACKFILL_DAYS)
    batch_size: int = Field(default=100, ge=1)
    lease_duration_seconds: int = Field(default=600, ge=1)
    lease_label: str = Field(default="slo_reporting_lease_expiration", min_length=1)


class SyncRequest(BaseModel):
    """
    Trigger payload received over HTTP or from the queue.

    Accepts both snake_case keys and the CamelCase keys used by existing
    scheduler jobs ({"Project": ..., "Dataset": ..., "TimeZone": ...}).
    Unset fields fall back to settings.
    """

    project: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("project", "Project")
    )
    dataset: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("dataset", "Dataset")
    )
    time_zone: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("time_zone", "TimeZone")
    )
    backfill_days: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("backfill_days", "BackfillDays")
    )
    batch_size: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("batch_size", "BatchSize")
    )

    def to_config(self) -> SyncConfig:
        """Merge over settings defaults; invalid combinations raise ConfigError."""
        def pick(value, default):
            return default if value is None else value

        try:
            return SyncConfig(
                project=pick(self.project, settings.GCP_PROJECT or ""),
                dataset=pick(self.dataset, settings.SLO_DATASET),
                table=settings.SLO_TABLE,
                time_zone=pick(self.time_zone, settings.SLO_TIMEZONE),
                backfill_days=pick(self.backfill_days, settings.BACKFILL_DAYS),
                batch_size=pick(self.batch_size, settings.BATCH_WRITE_SIZE),
                lease_duration_seconds=settings.LEASE_DURATION_SECONDS,
                lease_label=settings.LEASE_LABEL_NAME,
            )
        except ValidationError as e:
            raise ConfigError(f"Invalid sync configuration: {e}") from e


class SyncState(str, Enum):
    IDLE = "idle"
    LEASE_ACQUIRING = "lease_acquiring"
    INDEX_BUILDING = "index_building"
    ENUMERATING_SERVICES = "enumerating_services"
    ENUMERATING_SLOS = "enumerating_slos"
    BACKFILLING = "backfilling"
    FLUSHING = "flushing"
    LEASE_RELEASING = "lease_releasing"
    DONE = "done"
    ABORTED = "aborted"


class SyncResult(BaseModel):
    """Statistics of one completed sync run."""

    run_id: Optional[str] = None
    project: str
    dataset: str
    services: int = 0
    slos_synced: int = 0
    slos_skipped: int = 0
    rows_written: int = 0
    days_already_present: int = 0
    metric_queries: int = 0
    batches_flushed: int = 0
    started_at: datetime
    finished_at: Optional[datetime] = None
