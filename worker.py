import asyncio
import logging
import signal

from dotenv import load_dotenv

load_dotenv()

from slo_reporting.core.logging_config import configure_logging  # noqa: E402
from slo_reporting.core.sentry import init_sentry  # noqa: E402
from slo_reporting.services.sqs.client import sync_queue  # noqa: E402
from slo_reporting.worker import SLOSyncWorker  # noqa: E402

logger = logging.getLogger(__name__)


async def main():
    logger.info("Starting worker process...")

    worker = SLOSyncWorker(sync_queue)

    try:
        await worker.start()
        loop = asyncio.get_running_loop()
        shutdown = asyncio.Event()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, shutdown.set)
            except NotImplementedError:
                pass  # Windows
        await shutdown.wait()
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.stop()
        await sync_queue.close()
        logger.info("Worker process stopped")


if __name__ == "__main__":
    configure_logging()
    init_sentry()
    asyncio.run(main())
