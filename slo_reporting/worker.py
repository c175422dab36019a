import logging
from typing import Any, Dict

from pydantic import ValidationError

from slo_reporting.services.sqs.client import SyncQueueClient, sync_queue
from slo_reporting.sync import service as sync_service
from slo_reporting.sync.exceptions import ConfigError, LeaseHeldError
from slo_reporting.sync.schemas import SyncRequest
from slo_reporting.workers.base_worker import BaseWorker

logger = logging.getLogger(__name__)


class SLOSyncWorker(BaseWorker):
    """
    Runs a sync for every trigger message on the queue.

    Invalid triggers and runs refused because another run holds the lease
    are acknowledged. Any other failure leaves the message for redelivery.
    """

    def __init__(self, queue: SyncQueueClient = sync_queue):
        super().__init__("slo_sync", queue)

    async def process_message(self, message_body: Dict[str, Any]):
        try:
            config = SyncRequest.model_validate(message_body).to_config()
        except (ValidationError, ConfigError) as e:
            logger.error(f"Dropping invalid sync trigger {message_body}: {e}")
            return

        try:
            result = await sync_service.run_sync(config)
        except LeaseHeldError as e:
            logger.info(f"Skipping sync trigger for {config.dataset}: {e}")
            return

        logger.info(
            f"Sync of {config.dataset} finished: {result.rows_written} rows written"
        )
