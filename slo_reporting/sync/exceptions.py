"""
Errors raised by the sync engine and its collaborators.

Every error aborts the run it occurs in, except UnsupportedIndicatorError,
which the orchestrator avoids by skipping such SLOs up front.
"""


class SyncError(Exception):
    """Base class for all sync failures."""


class ConfigError(SyncError):
    """Run configuration is invalid (e.g. unknown time zone)."""


class AuthError(SyncError):
    """An access token for the Google APIs could not be obtained."""


class LeaseError(SyncError):
    """The dataset lease could not be obtained."""


class LeaseHeldError(LeaseError):
    """Another run holds a lease that has not expired yet."""


class LeaseConflictError(LeaseError):
    """Dataset metadata changed between reading and writing the lease."""


class MalformedLeaseError(LeaseError):
    """The stored lease value is not a Unix timestamp."""


class CatalogQueryError(SyncError):
    """Listing services or SLOs failed."""


class MetricsQueryError(SyncError):
    """A time series query failed."""


class UnexpectedShapeError(SyncError):
    """A time series response had the wrong number of series/points or value type."""


class IncompleteIndicatorError(SyncError):
    """Fewer than two of the good/bad/total filters are configured."""


class UnsupportedIndicatorError(SyncError):
    """The SLO's indicator is neither the ratio nor the combined form."""


class DataValidationError(SyncError):
    """A row already stored in the warehouse is missing part of its key."""


class StoreError(SyncError):
    """A warehouse call failed."""


class StoreQueryError(StoreError):
    """A warehouse SQL query failed."""


class StoreWriteError(StoreError):
    """Inserting rows into the warehouse failed."""


class PreconditionFailedError(StoreError):
    """A metadata update was rejected because the etag no longer matches."""
