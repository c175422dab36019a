"""
Prometheus metrics for sync runs.

A sync is a short-lived batch job, so metrics are pushed to a Pushgateway at
the end of each run rather than scraped.
"""
import logging

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, push_to_gateway

from slo_reporting.core.config import settings

logger = logging.getLogger(__name__)

# Use custom registry to avoid conflicts
REGISTRY = CollectorRegistry()

sync_runs_total = Counter(
    'slo_reporting_sync_runs_total',
    'Total sync runs',
    ['status'],  # succeeded, failed, lease_held
    registry=REGISTRY
)

sync_run_duration_seconds = Histogram(
    'slo_reporting_sync_run_duration_seconds',
    'Sync run duration in seconds',
    ['status'],
    buckets=(1, 5, 15, 30, 60, 120, 300, 540, 900),
    registry=REGISTRY
)

sync_rows_written_total = Counter(
    'slo_reporting_sync_rows_written_total',
    'Total SLO rows written to the warehouse',
    registry=REGISTRY
)

sync_metric_queries_total = Counter(
    'slo_reporting_sync_metric_queries_total',
    'Total time series queries issued while evaluating SLIs',
    registry=REGISTRY
)

sync_slos_skipped_total = Counter(
    'slo_reporting_sync_slos_skipped_total',
    'SLOs skipped because their indicator shape is unsupported',
    registry=REGISTRY
)

sync_last_success_timestamp = Gauge(
    'slo_reporting_sync_last_success_timestamp_seconds',
    'Unix time of the last successful sync run',
    registry=REGISTRY
)


def push_metrics(dataset: str) -> None:
    """
    Push the registry to the Pushgateway, grouped by destination dataset.

    No-op when PUSHGATEWAY_URL is not configured. Failures are logged; a run's
    outcome never depends on the Pushgateway being reachable.
    """
    if not settings.PUSHGATEWAY_URL:
        return

    grouping_key = {
        "instance": settings.HOSTNAME or "localhost",
        "dataset": dataset,
    }
    try:
        push_to_gateway(
            settings.PUSHGATEWAY_URL,
            job="slo-reporting-sync",
            registry=REGISTRY,
            grouping_key=grouping_key,
        )
        logger.debug(f"Pushed metrics to Pushgateway at {settings.PUSHGATEWAY_URL}")
    except Exception as e:
        logger.error(f"Failed to push metrics to Pushgateway: {e}")
