"""
Pytest configuration and shared fixtures for the sync engine tests.
"""

import os

# Set required environment variables BEFORE importing slo_reporting modules
os.environ.setdefault("LOG_LEVEL", "INFO")
os.environ.setdefault("GCP_PROJECT", "test-project")
os.environ.setdefault("GCP_ACCESS_TOKEN", "test-access-token")
os.environ.setdefault("SCHEDULER_SECRET_TOKEN", "test-scheduler-token")
os.environ.setdefault("SLO_DATASET", "datasetname")

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from slo_reporting.clients.base import CatalogClient, MetricsClient, WarehouseClient
from slo_reporting.clients.schemas import (
    SLO,
    Indicator,
    Point,
    Service,
    TimeSeries,
    ValueType,
)
from slo_reporting.sync.exceptions import PreconditionFailedError
from slo_reporting.sync.schemas import SLORow, SyncConfig


class FakeCatalog(CatalogClient):
    """In-memory catalog keyed by service resource name."""

    def __init__(
        self,
        services: List[Service],
        slos: Dict[str, List[SLO]],
        error: Optional[Exception] = None,
        slo_error: Optional[Exception] = None,
    ):
        self.services = services
        self.slos = slos
        self.error = error
        self.slo_error = slo_error

    async def list_services(self) -> List[Service]:
        if self.error:
            raise self.error
        return list(self.services)

    async def list_slos(self, service: Service) -> List[SLO]:
        if self.slo_error:
            raise self.slo_error
        return list(self.slos.get(service.name, []))


class FakeMetrics(MetricsClient):
    """
    Returns canned series.

    `responses` maps a filter expression to the series it returns; `default`
    is used for unknown filters. Every call is recorded.
    """

    def __init__(
        self,
        responses: Optional[Dict[str, List[TimeSeries]]] = None,
        default: Optional[List[TimeSeries]] = None,
        error: Optional[BaseException] = None,
    ):
        self.responses = responses or {}
        self.default = default or []
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    async def query(self, filter_expression, interval, alignment_period, aligner, reducer=None):
        self.calls.append(
            {
                "filter": filter_expression,
                "interval": interval,
                "alignment_period": alignment_period,
                "aligner": aligner,
                "reducer": reducer,
            }
        )
        if self.error:
            raise self.error
        return list(self.responses.get(filter_expression, self.default))


class FakeWarehouse(WarehouseClient):
    """
    In-memory warehouse with etag-guarded dataset labels.

    Stored rows are returned by query() (as service/slo/date dicts), so
    written rows become visible to the next run.
    """

    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None):
        self.rows: List[Dict[str, Any]] = list(rows or [])
        self.labels: Dict[str, str] = {}
        self.etag_version = 1
        self.queries: List[str] = []
        self.writes: List[List[SLORow]] = []
        self.label_writes: List[Tuple[str, Optional[str], Optional[str]]] = []

        self.query_error: Optional[Exception] = None
        self.write_error: Optional[Exception] = None
        self.release_error: Optional[Exception] = None
        self.after_read: Optional[Callable[[], None]] = None

    @property
    def etag(self) -> str:
        return f"etag-{self.etag_version}"

    async def query(self, sql: str) -> List[Dict[str, Any]]:
        self.queries.append(sql)
        if self.query_error:
            raise self.query_error
        return [dict(row) for row in self.rows]

    async def write(self, dataset: str, table: str, rows: List[SLORow]) -> None:
        if self.write_error:
            raise self.write_error
        self.writes.append(list(rows))
        for row in rows:
            self.rows.append({"service": row.service, "slo": row.slo, "date": row.date})

    async def read_label(self, dataset: str, label: str):
        value, etag = self.labels.get(label), self.etag
        if self.after_read:
            self.after_read()
        return value, etag

    async def write_label(self, dataset: str, label: str, value, etag) -> None:
        if not value and self.release_error:
            raise self.release_error
        if etag is not None and etag != self.etag:
            raise PreconditionFailedError(f"etag {etag} is stale")
        self.label_writes.append((label, value, etag))
        if value:
            self.labels[label] = value
        else:
            self.labels.pop(label, None)
        self.etag_version += 1


def double_series(value: float, **labels) -> TimeSeries:
    return TimeSeries(labels=labels, value_type=ValueType.DOUBLE, points=[Point(value=value)])


def int_series(value: int, **labels) -> TimeSeries:
    return TimeSeries(labels=labels, value_type=ValueType.INT64, points=[Point(value=value)])


@pytest.fixture
def now():
    """2015-05-10 15:00 UTC (16:00 BST)."""
    return datetime(2015, 5, 10, 15, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def sync_config():
    return SyncConfig(
        project="project",
        dataset="datasetname",
        time_zone="Europe/London",
        backfill_days=2,
        batch_size=1,
    )


@pytest.fixture
def service():
    return Service(name="projects/project/services/s1", display_name="svc1")


@pytest.fixture
def combined_slos():
    """Two SLOs measured with the combined good/bad query."""
    indicator = Indicator(combined_filter='metric.type="custom.googleapis.com/requests"')
    return [
        SLO(
            name="projects/project/services/s1/serviceLevelObjectives/o1",
            display_name="slo1",
            goal=0.99,
            indicator=indicator,
        ),
        SLO(
            name="projects/project/services/s1/serviceLevelObjectives/o2",
            display_name="slo2",
            goal=0.5,
            indicator=indicator,
        ),
    ]


@pytest.fixture
def good_bad_series():
    return [double_series(100, event_type="good"), double_series(11, event_type="bad")]


@pytest.fixture
def fake_catalog(service, combined_slos):
    return FakeCatalog([service], {service.name: combined_slos})


@pytest.fixture
def fake_metrics(good_bad_series):
    return FakeMetrics(default=good_bad_series)


@pytest.fixture
def fake_warehouse():
    return FakeWarehouse(
        rows=[
            {"service": "svc1", "slo": "slo1", "date": "2015-05-08"},
            {"service": "svc1", "slo": "slo2", "date": "2015-05-09"},
        ]
    )
