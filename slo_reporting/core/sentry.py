"""
Sentry configuration and context helpers.

Every Sentry event raised during a sync run carries the run id and the
destination project/dataset as tags.
"""

import logging

import sentry_sdk

from slo_reporting.core.config import settings

logger = logging.getLogger(__name__)


def init_sentry() -> None:
    """Initialize Sentry SDK. No-op if SENTRY_DSN is not set."""
    if not settings.SENTRY_DSN:
        logger.info("Sentry DSN not configured, skipping initialization")
        return

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        traces_sample_rate=(
            1.0 if settings.is_local else settings.SENTRY_TRACES_SAMPLE_RATE
        ),
        environment=settings.ENVIRONMENT,
        send_default_pii=False,
    )
    logger.info("Sentry initialized (environment=%s)", settings.ENVIRONMENT)


def set_sentry_context(
    *,
    run_id: str | None = None,
    project: str | None = None,
    dataset: str | None = None,
) -> None:
    """Set Sentry scope tags for the current sync run."""
    if not settings.SENTRY_DSN:
        return

    if run_id:
        sentry_sdk.set_tag("run_id", run_id)
    if project:
        sentry_sdk.set_tag("gcp_project", project)
    if dataset:
        sentry_sdk.set_tag("dataset", dataset)


def clear_sentry_context() -> None:
    """Clear Sentry scope tags after a run completes."""
    if not settings.SENTRY_DSN:
        return

    sentry_sdk.set_tag("run_id", "")
    sentry_sdk.set_tag("gcp_project", "")
    sentry_sdk.set_tag("dataset", "")
