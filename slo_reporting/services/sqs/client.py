import json
import logging
from typing import Any, Dict, List, Optional

import aioboto3
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    EndpointConnectionError,
    NoCredentialsError,
)

from slo_reporting.core.config import settings
from slo_reporting.sync.schemas import SyncRequest

logger = logging.getLogger(__name__)

SQS_ERRORS = (ClientError, EndpointConnectionError, NoCredentialsError, BotoCoreError)


class SyncQueueClient:
    """
    SQS queue carrying sync trigger messages.

    Each message body is a JSON-encoded SyncRequest. Failures are logged and
    reported through return values so that callers (the worker loop, the
    trigger endpoint) decide how to react.
    """

    def __init__(self, queue_url: Optional[str] = None, region: Optional[str] = None):
        self.queue_url = queue_url or settings.SQS_QUEUE_URL
        self.region = region or settings.AWS_REGION
        self._session = None
        self._sqs = None

    @property
    def configured(self) -> bool:
        return bool(self.queue_url and self.region)

    async def _get_sqs_client(self):
        """Lazily create and cache the aioboto3 SQS client."""
        if self._sqs is None:
            if not self.region:
                logger.error("AWS_REGION not configured")
                raise ValueError("AWS_REGION not configured")
            self._session = aioboto3.Session()
            client_kwargs = {"region_name": self.region}

            # LocalStack support in development
            if settings.AWS_ENDPOINT_URL and settings.ENVIRONMENT in [
                "dev",
                "development",
                "local",
                "local_dev",
            ]:
                client_kwargs["endpoint_url"] = settings.AWS_ENDPOINT_URL

            self._sqs = await self._session.client("sqs", **client_kwargs).__aenter__()
        return self._sqs

    async def publish_trigger(self, request: SyncRequest) -> Optional[str]:
        """
        Enqueue a sync trigger.

        Returns:
            SQS message id, or None if the message could not be sent
        """
        if not self.queue_url:
            logger.error("SQS_QUEUE_URL not configured")
            return None

        try:
            sqs = await self._get_sqs_client()
            response = await sqs.send_message(
                QueueUrl=self.queue_url,
                MessageBody=json.dumps(request.model_dump(exclude_none=True)),
            )
        except SQS_ERRORS:
            logger.exception("Failed to send sync trigger to SQS")
            return None
        except ValueError:
            logger.exception("SQS client is not configured")
            return None

        message_id = response.get("MessageId")
        logger.info(f"Sync trigger queued for dataset {request.dataset}: {message_id}")
        return message_id

    async def receive_messages(
        self, max_messages: int = 1, wait_time: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """
        Long-poll the queue.

        Each returned message carries `ParsedBody`: the decoded JSON body, or
        None if the body is not valid JSON. Returns [] on SQS errors.
        """
        if not self.queue_url:
            logger.error("SQS_QUEUE_URL not configured")
            return []

        try:
            sqs = await self._get_sqs_client()
            response = await sqs.receive_message(
                QueueUrl=self.queue_url,
                MaxNumberOfMessages=max_messages,
                WaitTimeSeconds=(
                    settings.SQS_WAIT_TIME_SECONDS if wait_time is None else wait_time
                ),
                MessageAttributeNames=["All"],
            )
        except SQS_ERRORS:
            logger.exception("Failed to receive messages from SQS")
            return []

        messages = response.get("Messages", [])
        for message in messages:
            try:
                message["ParsedBody"] = json.loads(message["Body"])
            except json.JSONDecodeError:
                logger.error(f"Failed to parse message body: {message['Body']}")
                message["ParsedBody"] = None
        return messages

    async def delete_message(self, receipt_handle: str) -> bool:
        """Acknowledge a message. Returns False if SQS rejected the delete."""
        if not self.queue_url:
            logger.error("SQS_QUEUE_URL not configured")
            return False

        try:
            sqs = await self._get_sqs_client()
            await sqs.delete_message(QueueUrl=self.queue_url, ReceiptHandle=receipt_handle)
        except SQS_ERRORS:
            logger.exception("Failed to delete message from SQS")
            return False

        logger.debug("Message deleted from SQS")
        return True

    async def close(self):
        if self._sqs:
            await self._sqs.__aexit__(None, None, None)
            self._sqs = None
        # aioboto3 Session doesn't need explicit close
        self._session = None


sync_queue = SyncQueueClient()
