"""
SyncOrchestrator - Drives one SLO sync run end to end.

Pipeline:
1. Acquire the dataset lease
2. Build the index of rows already in the warehouse
3. For every service and SLO, evaluate each missing day of the backfill window
4. Write rows in batches, then a final (possibly empty) flush
5. Release the lease, on success and on failure
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from slo_reporting.clients.base import CatalogClient, MetricsClient, WarehouseClient
from slo_reporting.clients.schemas import SLO, IndicatorShape, Service
from slo_reporting.core.metrics import sync_rows_written_total, sync_slos_skipped_total
from slo_reporting.sync.evaluator import SLIEvaluator
from slo_reporting.sync.existing_index import ExistingDataIndex
from slo_reporting.sync.lease import DatasetLease, acquire_lease
from slo_reporting.sync.schemas import SLORow, SyncConfig, SyncResult, SyncState
from slo_reporting.sync.window import backfill_day, load_zone, window_start_date

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SyncOrchestrator:
    """
    Copies daily SLO aggregates from the metrics backend into the warehouse.

    One instance runs once. Every collaborator call is awaited in sequence;
    any collaborator error aborts the run and propagates to the caller after
    the lease release has been attempted.
    """

    def __init__(
        self,
        config: SyncConfig,
        catalog: CatalogClient,
        metrics: MetricsClient,
        warehouse: WarehouseClient,
        clock: Callable[[], datetime] = utc_now,
        run_id: Optional[str] = None,
    ):
        self.config = config
        self.catalog = catalog
        self.warehouse = warehouse
        self.clock = clock
        self.run_id = run_id
        self.evaluator = SLIEvaluator(metrics)
        self.state = SyncState.IDLE

        self._buffer: List[SLORow] = []
        self._result: Optional[SyncResult] = None

    def _transition(self, state: SyncState) -> None:
        logger.debug(f"Sync state {self.state.value} -> {state.value}")
        self.state = state

    async def run(self) -> SyncResult:
        """
        Execute the sync.

        Returns:
            SyncResult with run statistics

        Raises:
            ConfigError: Time zone is unknown
            LeaseError: Lease is held, malformed, or was taken concurrently
            SyncError: Any collaborator failure
        """
        if self.state != SyncState.IDLE:
            raise RuntimeError("SyncOrchestrator instances run only once")

        # Fail on configuration before touching the lease
        zone = load_zone(self.config.time_zone)
        now = self.clock()

        self._result = SyncResult(
            run_id=self.run_id,
            project=self.config.project,
            dataset=self.config.dataset,
            started_at=now,
        )

        lease: Optional[DatasetLease] = None
        try:
            self._transition(SyncState.LEASE_ACQUIRING)
            lease = await acquire_lease(
                self.warehouse,
                self.config.dataset,
                expiration=now + timedelta(seconds=self.config.lease_duration_seconds),
                now=now,
                label=self.config.lease_label,
            )

            self._transition(SyncState.INDEX_BUILDING)
            index = await ExistingDataIndex.build(
                self.warehouse,
                self.config.dataset,
                self.config.table,
                window_start_date(now, zone, self.config.backfill_days),
            )

            self._transition(SyncState.ENUMERATING_SERVICES)
            services = await self.catalog.list_services()
            self._result.services = len(services)

            for service in services:
                self._transition(SyncState.ENUMERATING_SLOS)
                slos = await self.catalog.list_slos(service)
                for slo in slos:
                    await self._sync_slo(service, slo, index, now, zone)

            self._transition(SyncState.FLUSHING)
            await self._flush()

            self._transition(SyncState.LEASE_RELEASING)
            released, lease = lease, None
            await self._release(released)

            self._transition(SyncState.DONE)
        except BaseException as e:
            logger.error(
                f"Sync of {self.config.dataset} aborted in state {self.state.value}: {e}"
            )
            self._transition(SyncState.ABORTED)
            if lease is not None:
                await self._release(lease)
            raise

        self._result.metric_queries = self.evaluator.queries
        self._result.finished_at = self.clock()
        logger.info(
            f"Sync of {self.config.dataset} complete: {self._result.rows_written} rows written, "
            f"{self._result.days_already_present} days already present, "
            f"{self._result.slos_skipped} SLOs skipped"
        )
        return self._result

    async def _sync_slo(
        self,
        service: Service,
        slo: SLO,
        index: ExistingDataIndex,
        now: datetime,
        zone,
    ) -> None:
        if slo.indicator.shape == IndicatorShape.UNSUPPORTED:
            logger.warning(
                f"Skipping SLO {slo.name}: indicator is neither request-based ratio nor combined filter"
            )
            self._result.slos_skipped += 1
            sync_slos_skipped_total.inc()
            return

        self._transition(SyncState.BACKFILLING)
        service_name = service.human_name
        slo_name = slo.human_name
        produced = 0

        for days_ago in range(1, self.config.backfill_days + 1):
            window = backfill_day(now, zone, days_ago)
            if index.contains(service_name, slo_name, window.date):
                self._result.days_already_present += 1
                continue

            good, total = await self.evaluator.evaluate(slo.indicator, window)
            logger.info(
                f"SLO data for {slo_name} on {window.date}: {good} good, {total} total"
            )

            index.add(service_name, slo_name, window.date)
            self._buffer.append(
                SLORow(
                    service=service_name,
                    slo=slo_name,
                    date=window.date,
                    good=good,
                    total=total,
                    target=slo.goal,
                )
            )
            produced += 1

            if len(self._buffer) >= self.config.batch_size:
                await self._flush()
                self._transition(SyncState.BACKFILLING)

        self._result.slos_synced += 1
        logger.info(f"Got {produced} rows for {service_name}/{slo_name}")

    async def _flush(self) -> None:
        rows, self._buffer = self._buffer, []
        logger.info(
            f"Writing {len(rows)} rows to {self.config.dataset}.{self.config.table}"
        )
        await self.warehouse.write(self.config.dataset, self.config.table, rows)
        self._result.rows_written += len(rows)
        self._result.batches_flushed += 1
        sync_rows_written_total.inc(len(rows))

    async def _release(self, lease: DatasetLease) -> None:
        try:
            await lease.release()
        except Exception as e:
            logger.error(f"Failed to release lease on {lease.dataset}: {e}")
