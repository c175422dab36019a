"""
Abstract base classes for the collaborators a sync run talks to.

Production implementations live in clients.monitoring and clients.bigquery;
tests provide in-memory fakes.
"""
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple

from slo_reporting.clients.schemas import (
    SLO,
    Aligner,
    Reducer,
    Service,
    TimeInterval,
    TimeSeries,
)
from slo_reporting.sync.schemas import SLORow


class CatalogClient(ABC):
    """Lists services and their SLOs"""

    @abstractmethod
    async def list_services(self) -> List[Service]:
        """Return every service in the project (all pages)."""
        pass

    @abstractmethod
    async def list_slos(self, service: Service) -> List[SLO]:
        """Return every SLO of a service (all pages)."""
        pass


class MetricsClient(ABC):
    """Runs aggregation queries against the time series backend"""

    @abstractmethod
    async def query(
        self,
        filter_expression: str,
        interval: TimeInterval,
        alignment_period: timedelta,
        aligner: Aligner,
        reducer: Optional[Reducer] = None,
    ) -> List[TimeSeries]:
        """
        Query time series matching a filter

        Args:
            filter_expression: Monitoring filter selecting the series
            interval: Query interval
            alignment_period: Width of each aligned point
            aligner: Per-series aligner
            reducer: Optional cross-series reducer

        Returns:
            List of matching (aligned, reduced) time series
        """
        pass


class WarehouseClient(ABC):
    """Reads and writes SLO rows and dataset metadata"""

    @abstractmethod
    async def query(self, sql: str) -> List[Dict[str, Any]]:
        """Run a SQL query and return rows as dicts keyed by column name."""
        pass

    @abstractmethod
    async def write(self, dataset: str, table: str, rows: List[SLORow]) -> None:
        """Insert rows. An empty list is accepted and writes nothing."""
        pass

    @abstractmethod
    async def read_label(self, dataset: str, label: str) -> Tuple[Optional[str], str]:
        """
        Read a dataset label

        Returns:
            (label value or None, current metadata etag)
        """
        pass

    @abstractmethod
    async def write_label(
        self, dataset: str, label: str, value: Optional[str], etag: Optional[str]
    ) -> None:
        """
        Set a dataset label; an empty value deletes it

        Raises:
            PreconditionFailedError: etag given and no longer current
        """
        pass
