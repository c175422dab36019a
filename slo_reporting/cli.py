"""Command line entry point: run a single sync and exit."""

import argparse
import asyncio
import logging
import sys
from typing import Optional, Sequence

from dotenv import load_dotenv
from pydantic import ValidationError

from slo_reporting.core.config import settings
from slo_reporting.core.logging_config import configure_logging
from slo_reporting.core.sentry import init_sentry
from slo_reporting.sync import service as sync_service
from slo_reporting.sync.exceptions import ConfigError, SyncError
from slo_reporting.sync.schemas import MAX_BACKFILL_DAYS, SyncConfig
from slo_reporting.sync.window import load_zone

logger = logging.getLogger(__name__)

EXIT_FAILURE = 1
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="slo-reporting-sync",
        description="Copy daily SLO compliance from Cloud Monitoring into BigQuery",
    )
    parser.add_argument(
        "--project", default=settings.GCP_PROJECT, help="GCP project holding the SLOs"
    )
    parser.add_argument(
        "--dataset", default=settings.SLO_DATASET, help="BigQuery dataset to write to"
    )
    parser.add_argument(
        "--tz",
        default=settings.SLO_TIMEZONE,
        help="IANA time zone defining day boundaries (default: %(default)s)",
    )
    parser.add_argument(
        "--backfill-days",
        type=int,
        default=settings.BACKFILL_DAYS,
        help=f"Days to backfill, 1..{MAX_BACKFILL_DAYS} (default: %(default)s)",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=settings.BATCH_WRITE_SIZE,
        help="Rows per warehouse write (default: %(default)s)",
    )
    return parser


def parse_config(argv: Optional[Sequence[str]] = None) -> SyncConfig:
    """Parse arguments into a SyncConfig. Exits with status 2 on invalid input."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.project:
        parser.error("--project is required")
    if not args.dataset:
        parser.error("--dataset is required")

    try:
        load_zone(args.tz)
        return SyncConfig(
            project=args.project,
            dataset=args.dataset,
            table=settings.SLO_TABLE,
            time_zone=args.tz,
            backfill_days=args.backfill_days,
            batch_size=args.batch_size,
            lease_duration_seconds=settings.LEASE_DURATION_SECONDS,
            lease_label=settings.LEASE_LABEL_NAME,
        )
    except (ConfigError, ValidationError) as e:
        parser.error(str(e))


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_dotenv()
    configure_logging()
    init_sentry()

    config = parse_config(argv)

    try:
        result = asyncio.run(sync_service.run_sync(config))
    except SyncError as e:
        logger.error(f"Sync failed: {e}")
        return EXIT_FAILURE

    print(result.model_dump_json(indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
