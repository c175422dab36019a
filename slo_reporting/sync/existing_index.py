"""
Index of (service, SLO, date) keys already present in the warehouse.

Built once per run from a single query over the backfill window and used to
skip days that have already been synced.
"""

import logging
from typing import Iterator, NamedTuple, Set

from slo_reporting.clients.base import WarehouseClient
from slo_reporting.sync.exceptions import DataValidationError

logger = logging.getLogger(__name__)


class IndexKey(NamedTuple):
    service: str
    slo: str
    date: str


class ExistingDataIndex:
    """Set of IndexKey triples; membership is exact string equality."""

    def __init__(self):
        self._keys: Set[IndexKey] = set()

    @classmethod
    async def build(
        cls,
        warehouse: WarehouseClient,
        dataset: str,
        table: str,
        window_start: str,
    ) -> "ExistingDataIndex":
        """
        Load keys of all rows dated on or after window_start.

        Args:
            warehouse: Warehouse client
            dataset: Destination dataset
            table: Destination table
            window_start: Oldest local date of the backfill window (YYYY-MM-DD)

        Raises:
            DataValidationError: A stored row has an empty service, slo or date
        """
        sql = (
            "SELECT service, slo, FORMAT_DATE('%F', `date`) AS date "
            f"FROM `{dataset}.{table}` WHERE date >= '{window_start}';"
        )
        rows = await warehouse.query(sql)

        index = cls()
        for row in rows:
            service, slo, date = row.get("service"), row.get("slo"), row.get("date")
            if not service or not slo or not date:
                raise DataValidationError(
                    f"Expected service, slo and date to be set in warehouse row; got {row}"
                )
            index.add(service, slo, date)

        logger.info(
            f"Loaded {len(index)} existing rows from {dataset}.{table} since {window_start}"
        )
        return index

    def add(self, service: str, slo: str, date: str) -> None:
        self._keys.add(IndexKey(service, slo, date))

    def contains(self, service: str, slo: str, date: str) -> bool:
        return IndexKey(service, slo, date) in self._keys

    def __contains__(self, key: IndexKey) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[IndexKey]:
        return iter(self._keys)
