"""
Runs a sync with production collaborators.

Shared by the HTTP endpoint, the queue worker and the CLI: assigns a run id,
tags logs and Sentry with it, records metrics and pushes them at the end.
"""

import asyncio
import logging
import time
import uuid
from datetime import datetime
from typing import Callable, Optional

from slo_reporting.clients.auth import GoogleTokenProvider
from slo_reporting.clients.bigquery.client import BigQueryClient
from slo_reporting.clients.monitoring.catalog import ServiceMonitoringClient
from slo_reporting.clients.monitoring.metrics import TimeSeriesClient
from slo_reporting.core.logging_config import clear_run_id, set_run_id
from slo_reporting.core.metrics import (
    push_metrics,
    sync_last_success_timestamp,
    sync_run_duration_seconds,
    sync_runs_total,
)
from slo_reporting.core.sentry import clear_sentry_context, set_sentry_context
from slo_reporting.sync.exceptions import LeaseHeldError
from slo_reporting.sync.orchestrator import SyncOrchestrator, utc_now
from slo_reporting.sync.schemas import SyncConfig, SyncResult

logger = logging.getLogger(__name__)


async def run_sync(
    config: SyncConfig,
    clock: Callable[[], datetime] = utc_now,
    run_id: Optional[str] = None,
) -> SyncResult:
    """
    Run one sync against Cloud Monitoring and BigQuery.

    Args:
        config: Run configuration
        clock: Source of the current time
        run_id: Identifier for logs; generated when omitted

    Returns:
        SyncResult of the run

    Raises:
        SyncError: The run failed; already-written batches are kept
    """
    run_id = run_id or str(uuid.uuid4())
    set_run_id(run_id)
    set_sentry_context(run_id=run_id, project=config.project, dataset=config.dataset)
    logger.info(
        f"Starting sync of project {config.project} into {config.dataset}.{config.table} "
        f"({config.time_zone}, {config.backfill_days} days)"
    )

    status = "failed"
    started = time.perf_counter()
    token_provider = GoogleTokenProvider()
    try:
        async with ServiceMonitoringClient(
            config.project, token_provider=token_provider
        ) as catalog, TimeSeriesClient(
            config.project, token_provider=token_provider
        ) as metrics, BigQueryClient(
            config.project, token_provider=token_provider
        ) as warehouse:
            orchestrator = SyncOrchestrator(
                config, catalog, metrics, warehouse, clock=clock, run_id=run_id
            )
            result = await orchestrator.run()
        status = "succeeded"
        sync_last_success_timestamp.set_to_current_time()
        return result
    except LeaseHeldError:
        status = "lease_held"
        raise
    finally:
        sync_runs_total.labels(status=status).inc()
        sync_run_duration_seconds.labels(status=status).observe(
            time.perf_counter() - started
        )
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, push_metrics, config.dataset)
        logger.info(f"Sync run {run_id} finished with status {status}")
        clear_sentry_context()
        clear_run_id()
