"""
Unit tests for SyncOrchestrator, run against in-memory collaborators.
"""

import asyncio

import pytest

from conftest import FakeCatalog, FakeMetrics, FakeWarehouse
from slo_reporting.clients.schemas import SLO, Indicator
from slo_reporting.sync.exceptions import (
    CatalogQueryError,
    ConfigError,
    LeaseHeldError,
    MetricsQueryError,
    StoreError,
    StoreQueryError,
    StoreWriteError,
)
from slo_reporting.sync.orchestrator import SyncOrchestrator
from slo_reporting.sync.schemas import SLORow, SyncConfig, SyncState

LABEL = "slo_reporting_lease_expiration"


def make_orchestrator(config, catalog, metrics, warehouse, now):
    return SyncOrchestrator(config, catalog, metrics, warehouse, clock=lambda: now)


class TestRun:
    @pytest.mark.asyncio
    async def test_syncs_missing_days_only(
        self, sync_config, fake_catalog, fake_metrics, fake_warehouse, now
    ):
        """
        With backfill 2 and rows for (slo1, 05-08) and (slo2, 05-09) already
        stored, only (slo1, 05-09) and (slo2, 05-08) are evaluated. Batch size
        1 gives one write per row plus an empty final write.
        """
        orchestrator = make_orchestrator(
            sync_config, fake_catalog, fake_metrics, fake_warehouse, now
        )

        result = await orchestrator.run()

        assert fake_warehouse.writes == [
            [SLORow(service="svc1", slo="slo1", date="2015-05-09", good=100, total=111, target=0.99)],
            [SLORow(service="svc1", slo="slo2", date="2015-05-08", good=100, total=111, target=0.5)],
            [],
        ]
        assert len(fake_metrics.calls) == 2
        assert "date >= '2015-05-08'" in fake_warehouse.queries[0]

        assert orchestrator.state == SyncState.DONE
        assert result.services == 1
        assert result.slos_synced == 2
        assert result.rows_written == 2
        assert result.days_already_present == 2
        assert result.metric_queries == 2
        assert result.batches_flushed == 3

    @pytest.mark.asyncio
    async def test_lease_taken_and_released(
        self, sync_config, fake_catalog, fake_metrics, fake_warehouse, now
    ):
        await make_orchestrator(sync_config, fake_catalog, fake_metrics, fake_warehouse, now).run()

        acquired, released = fake_warehouse.label_writes
        assert acquired == (LABEL, str(int(now.timestamp()) + 600), "etag-1")
        assert released == (LABEL, "", None)
        assert LABEL not in fake_warehouse.labels

    @pytest.mark.asyncio
    async def test_rerun_is_idempotent(
        self, sync_config, fake_catalog, fake_metrics, fake_warehouse, now
    ):
        await make_orchestrator(sync_config, fake_catalog, fake_metrics, fake_warehouse, now).run()
        writes_after_first_run = len(fake_warehouse.writes)
        metrics = FakeMetrics(default=fake_metrics.default)

        result = await make_orchestrator(
            sync_config, fake_catalog, metrics, fake_warehouse, now
        ).run()

        assert metrics.calls == []
        assert result.rows_written == 0
        assert fake_warehouse.writes[writes_after_first_run:] == [[]]

    @pytest.mark.asyncio
    async def test_large_batch_writes_once(self, fake_catalog, fake_metrics, fake_warehouse, now):
        config = SyncConfig(project="project", dataset="datasetname", backfill_days=2, batch_size=100)

        await make_orchestrator(config, fake_catalog, fake_metrics, fake_warehouse, now).run()

        assert [len(batch) for batch in fake_warehouse.writes] == [2]

    @pytest.mark.asyncio
    async def test_empty_catalog_still_flushes(self, sync_config, fake_metrics, now):
        warehouse = FakeWarehouse()

        result = await make_orchestrator(
            sync_config, FakeCatalog([], {}), fake_metrics, warehouse, now
        ).run()

        assert warehouse.writes == [[]]
        assert result.services == 0

    @pytest.mark.asyncio
    async def test_duplicate_key_within_run_written_once(
        self, sync_config, service, combined_slos, fake_metrics, now
    ):
        """Two SLOs sharing a display name map to the same rows."""
        twin = combined_slos[0].model_copy(update={"name": combined_slos[0].name + "-copy"})
        catalog = FakeCatalog([service], {service.name: [combined_slos[0], twin]})
        warehouse = FakeWarehouse()

        result = await make_orchestrator(sync_config, catalog, fake_metrics, warehouse, now).run()

        written = [(r.slo, r.date) for batch in warehouse.writes for r in batch]
        assert written == [("slo1", "2015-05-09"), ("slo1", "2015-05-08")]
        assert result.days_already_present == 2

    @pytest.mark.asyncio
    async def test_unsupported_indicator_is_skipped(
        self, sync_config, service, combined_slos, fake_metrics, now
    ):
        unsupported = SLO(
            name="projects/project/services/s1/serviceLevelObjectives/windowed",
            display_name="windowed",
            goal=0.9,
            indicator=Indicator(),
        )
        catalog = FakeCatalog([service], {service.name: [unsupported, combined_slos[0]]})
        warehouse = FakeWarehouse()

        result = await make_orchestrator(sync_config, catalog, fake_metrics, warehouse, now).run()

        assert result.slos_skipped == 1
        assert result.slos_synced == 1
        assert all(row.slo == "slo1" for batch in warehouse.writes for row in batch)

    @pytest.mark.asyncio
    async def test_runs_only_once(self, sync_config, fake_catalog, fake_metrics, fake_warehouse, now):
        orchestrator = make_orchestrator(
            sync_config, fake_catalog, fake_metrics, fake_warehouse, now
        )
        await orchestrator.run()

        with pytest.raises(RuntimeError):
            await orchestrator.run()


class TestFailures:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "failure",
        ["query", "services", "slos", "metrics", "write"],
    )
    async def test_errors_abort_and_release_lease(
        self, sync_config, service, combined_slos, good_bad_series, now, failure
    ):
        warehouse = FakeWarehouse()
        catalog = FakeCatalog([service], {service.name: combined_slos})
        metrics = FakeMetrics(default=good_bad_series)
        expected = {
            "query": StoreQueryError,
            "services": CatalogQueryError,
            "slos": CatalogQueryError,
            "metrics": MetricsQueryError,
            "write": StoreWriteError,
        }[failure]

        if failure == "query":
            warehouse.query_error = expected("myerror")
        elif failure == "services":
            catalog.error = expected("myerror")
        elif failure == "slos":
            catalog.slo_error = expected("myerror")
        elif failure == "metrics":
            metrics.error = expected("myerror")
        else:
            warehouse.write_error = expected("myerror")

        orchestrator = make_orchestrator(sync_config, catalog, metrics, warehouse, now)
        with pytest.raises(expected, match="myerror"):
            await orchestrator.run()

        assert orchestrator.state == SyncState.ABORTED
        assert LABEL not in warehouse.labels
        assert warehouse.label_writes[-1] == (LABEL, "", None)

    @pytest.mark.asyncio
    async def test_flushed_batches_survive_later_failure(
        self, sync_config, service, combined_slos, good_bad_series, now
    ):
        warehouse = FakeWarehouse()
        catalog = FakeCatalog([service], {service.name: combined_slos})
        metrics = FakeMetrics(default=good_bad_series)

        original_query = metrics.query

        async def fail_on_third(*args, **kwargs):
            if len(metrics.calls) == 2:
                raise MetricsQueryError("myerror")
            return await original_query(*args, **kwargs)

        metrics.query = fail_on_third

        with pytest.raises(MetricsQueryError):
            await make_orchestrator(sync_config, catalog, metrics, warehouse, now).run()

        assert len(warehouse.writes) == 2

    @pytest.mark.asyncio
    async def test_lease_held_aborts_without_touching_lease(
        self, sync_config, fake_catalog, fake_metrics, fake_warehouse, now
    ):
        held_until = str(int(now.timestamp()) + 60)
        fake_warehouse.labels[LABEL] = held_until
        orchestrator = make_orchestrator(
            sync_config, fake_catalog, fake_metrics, fake_warehouse, now
        )

        with pytest.raises(LeaseHeldError):
            await orchestrator.run()

        assert orchestrator.state == SyncState.ABORTED
        assert fake_warehouse.labels[LABEL] == held_until
        assert fake_warehouse.writes == []
        assert fake_warehouse.queries == []

    @pytest.mark.asyncio
    async def test_unknown_time_zone_fails_before_lease(
        self, fake_catalog, fake_metrics, fake_warehouse, now
    ):
        config = SyncConfig(project="project", dataset="datasetname", time_zone="Mars/Olympus")

        with pytest.raises(ConfigError):
            await make_orchestrator(config, fake_catalog, fake_metrics, fake_warehouse, now).run()

        assert fake_warehouse.label_writes == []

    @pytest.mark.asyncio
    async def test_failed_release_does_not_mask_success(
        self, sync_config, fake_catalog, fake_metrics, fake_warehouse, now
    ):
        fake_warehouse.release_error = StoreError("release failed")

        result = await make_orchestrator(
            sync_config, fake_catalog, fake_metrics, fake_warehouse, now
        ).run()

        assert result.rows_written == 2

    @pytest.mark.asyncio
    async def test_failed_release_does_not_mask_original_error(
        self, sync_config, fake_catalog, fake_metrics, fake_warehouse, now
    ):
        fake_warehouse.release_error = StoreError("release failed")
        fake_warehouse.write_error = StoreWriteError("myerror")

        with pytest.raises(StoreWriteError, match="myerror"):
            await make_orchestrator(
                sync_config, fake_catalog, fake_metrics, fake_warehouse, now
            ).run()

    @pytest.mark.asyncio
    async def test_cancellation_releases_lease(
        self, sync_config, fake_catalog, fake_warehouse, now
    ):
        metrics = FakeMetrics(error=asyncio.CancelledError())
        orchestrator = make_orchestrator(sync_config, fake_catalog, metrics, fake_warehouse, now)

        with pytest.raises(asyncio.CancelledError):
            await orchestrator.run()

        assert orchestrator.state == SyncState.ABORTED
        assert LABEL not in fake_warehouse.labels
