import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict

from slo_reporting.services.sqs.client import SyncQueueClient

logger = logging.getLogger(__name__)


class BaseWorker(ABC):
    """
    Long-polls a queue and hands each parsed message to process_message.

    A message is deleted when process_message returns or when its body is not
    valid JSON. If process_message raises, the message is left on the queue
    and becomes visible again after its visibility timeout.
    """

    def __init__(self, worker_name: str, queue: SyncQueueClient):
        self.worker_name = worker_name
        self.queue = queue
        self.running = False
        self.worker_task = None

    async def start(self):
        if self.running:
            logger.warning(f"Worker {self.worker_name} is already running")
            return

        self.running = True
        self.worker_task = asyncio.create_task(self._run_worker())
        logger.info(f"Worker {self.worker_name} started")

    async def stop(self):
        if not self.running:
            return

        self.running = False
        if self.worker_task:
            self.worker_task.cancel()
            try:
                await self.worker_task
            except asyncio.CancelledError:
                pass

        logger.info(f"Worker {self.worker_name} stopped")

    async def handle_message(self, message: Dict[str, Any]) -> bool:
        """
        Process one received message.

        Returns:
            True if the message was acknowledged (deleted)
        """
        parsed_body = message.get("ParsedBody")
        if parsed_body is None:
            logger.error(f"Skipping message with unparseable body: {message.get('Body')}")
            await self.queue.delete_message(message["ReceiptHandle"])
            return True

        try:
            await self.process_message(parsed_body)
        except Exception:
            logger.exception(
                f"Worker {self.worker_name} failed to process message; leaving it for redelivery"
            )
            return False

        await self.queue.delete_message(message["ReceiptHandle"])
        logger.debug(f"Worker {self.worker_name} processed message successfully")
        return True

    async def _run_worker(self):
        while self.running:
            try:
                messages = await self.queue.receive_messages(max_messages=1)
                for message in messages:
                    if not self.running:
                        break
                    await self.handle_message(message)
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception(f"Worker {self.worker_name} encountered error")
                await asyncio.sleep(5)

    @abstractmethod
    async def process_message(self, message_body: Dict[str, Any]):
        """Handle a single parsed message. Raising leaves the message on the queue."""
        pass
