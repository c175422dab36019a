"""
Dataset-level mutual exclusion between sync runs.

The lease is a dataset label holding the Unix timestamp at which it expires.
Taking it is a compare-and-swap on the dataset metadata etag, so two runs
racing for an expired lease cannot both win. A run that crashes without
releasing simply lets the lease expire.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from slo_reporting.clients.base import WarehouseClient
from slo_reporting.core.config import settings
from slo_reporting.sync.exceptions import (
    LeaseConflictError,
    LeaseHeldError,
    MalformedLeaseError,
    PreconditionFailedError,
)

logger = logging.getLogger(__name__)


class DatasetLease:
    """A lease held on a dataset until release() is called or it expires."""

    def __init__(
        self,
        warehouse: WarehouseClient,
        dataset: str,
        label: str,
        expiration: datetime,
    ):
        self.warehouse = warehouse
        self.dataset = dataset
        self.label = label
        self.expiration = expiration
        self.released = False

    async def release(self) -> None:
        """Delete the lease label. Unconditional; the last writer wins."""
        await self.warehouse.write_label(self.dataset, self.label, "", None)
        self.released = True
        logger.info(f"Released lease on dataset {self.dataset}")


def _parse_expiration(value: Optional[str], dataset: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        seconds = int(value)
    except ValueError as e:
        raise MalformedLeaseError(
            f"Lease on dataset {dataset} has non-integer value '{value}'"
        ) from e
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


async def acquire_lease(
    warehouse: WarehouseClient,
    dataset: str,
    expiration: datetime,
    now: datetime,
    label: str = settings.LEASE_LABEL_NAME,
) -> DatasetLease:
    """
    Take the lease on a dataset until `expiration`.

    Args:
        warehouse: Warehouse client holding the dataset
        dataset: Dataset to lock
        expiration: When the new lease lapses on its own
        now: Current time, compared against any existing lease
        label: Dataset label storing the lease

    Returns:
        DatasetLease to release at the end of the run

    Raises:
        MalformedLeaseError: Existing label is not a Unix timestamp
        LeaseHeldError: Existing lease has not expired yet
        LeaseConflictError: Dataset metadata changed since it was read
    """
    value, etag = await warehouse.read_label(dataset, label)

    held_until = _parse_expiration(value, dataset)
    if held_until is not None and held_until > now:
        raise LeaseHeldError(
            f"Dataset {dataset} is leased until {held_until.isoformat()}"
        )
    if held_until is not None:
        logger.info(
            f"Taking over expired lease on dataset {dataset} "
            f"(expired {held_until.isoformat()})"
        )

    try:
        await warehouse.write_label(
            dataset, label, str(int(expiration.timestamp())), etag
        )
    except PreconditionFailedError as e:
        raise LeaseConflictError(
            f"Dataset {dataset} metadata changed while acquiring the lease"
        ) from e

    logger.info(f"Acquired lease on dataset {dataset} until {expiration.isoformat()}")
    return DatasetLease(warehouse, dataset, label, expiration)
