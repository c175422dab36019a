"""
Sync API routes.

Called by an external scheduler: either run a sync inline or queue one for
the worker.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status

from slo_reporting.core.security import verify_scheduler_token
from slo_reporting.services.sqs.client import sync_queue
from slo_reporting.sync import service as sync_service
from slo_reporting.sync.exceptions import ConfigError, LeaseHeldError, SyncError
from slo_reporting.sync.schemas import SyncRequest, SyncResult
from slo_reporting.sync.window import load_zone

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync", tags=["sync"])


@router.post("/run", response_model=SyncResult)
async def run_sync(
    request: Optional[SyncRequest] = None,
    _: bool = Depends(verify_scheduler_token),
):
    """
    Run a sync and wait for it to finish.

    Authentication: Requires X-Scheduler-Token header.

    Returns:
        SyncResult with run statistics
    """
    request = request or SyncRequest()
    try:
        config = request.to_config()
        return await sync_service.run_sync(config)
    except ConfigError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except LeaseHeldError as e:
        logger.info(f"Sync not started: {e}")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except SyncError as e:
        logger.error(f"Sync failed: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))


@router.post("/trigger", status_code=status.HTTP_202_ACCEPTED)
async def trigger_sync(
    request: Optional[SyncRequest] = None,
    _: bool = Depends(verify_scheduler_token),
):
    """
    Queue a sync for the worker.

    The request is validated before it is queued so that a bad trigger fails
    here rather than in the worker.

    Authentication: Requires X-Scheduler-Token header.
    """
    request = request or SyncRequest()
    try:
        config = request.to_config()
        load_zone(config.time_zone)
    except ConfigError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    message_id = await sync_queue.publish_trigger(request)
    if message_id is None:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to queue sync trigger",
        )

    return {
        "success": True,
        "message_id": message_id,
        "project": config.project,
        "dataset": config.dataset,
    }
