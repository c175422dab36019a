import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException

from slo_reporting.core.config import settings
from slo_reporting.core.logging_config import configure_logging
from slo_reporting.core.sentry import init_sentry
from slo_reporting.services.sqs.client import sync_queue
from slo_reporting.sync.router import router as sync_router
from slo_reporting.worker import SLOSyncWorker

configure_logging()
logger = logging.getLogger(__name__)

init_sentry()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Start the queue worker when SQS is configured and stop it on shutdown.
    """
    logger.info("Starting SLO Reporting API application...")

    worker = SLOSyncWorker(sync_queue)

    try:
        if sync_queue.configured:
            await worker.start()
            logger.info("SQS worker started")
        else:
            logger.warning("SQS not configured - queued sync triggers are disabled")

        yield

    except Exception:
        logger.exception("Failed to start services")
        raise
    finally:
        logger.info("Shutting down SLO Reporting API application...")

        try:
            await worker.stop()
            await sync_queue.close()
            logger.info("All services stopped successfully")
        except Exception:
            logger.exception("Error during shutdown")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    lifespan=lifespan,
    openapi_url="/openapi.json" if settings.is_local else None,
)

app.include_router(sync_router, prefix=settings.API_V1_PREFIX)


@app.get("/health")
async def health_check():
    try:
        return {
            "fastAPI server": {"status": "healthy"},
        }
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Health check failed: {str(e)}")
