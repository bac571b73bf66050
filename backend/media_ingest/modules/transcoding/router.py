"""API Router for the transcode queue.

``/process`` lets an external scheduler (cron, ops tooling) run a sweep
when Celery beat is not in use.
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status

from media_ingest.modules.asset.service import AssetNotFoundError
from media_ingest.modules.auth.jwt import get_current_owner_id
from media_ingest.modules.transcoding.models import TranscodePriority
from media_ingest.modules.transcoding.schemas import (
    PriorityName,
    QueueRunResponse,
    QueueStatsResponse,
    RequeueResponse,
    TranscodeJobInfo,
)
from media_ingest.modules.transcoding.service import (
    TranscodeQueueService,
    get_transcode_queue_service,
)
from media_ingest.modules.transcoding.tasks import trigger_high_priority_run
from media_ingest.modules.transcoding.worker import TranscodeTerminalError

router = APIRouter(
    prefix="/transcode",
    tags=["transcode"],
    dependencies=[Depends(get_current_owner_id)],
)


@router.post("/process", response_model=QueueRunResponse)
async def process_queue(
    batch_size: int = Query(5, ge=1, le=100, description="Maximum jobs to claim"),
    service: TranscodeQueueService = Depends(get_transcode_queue_service),
) -> QueueRunResponse:
    """Run one sweep synchronously and report what happened."""
    summary = await service.process_queue(batch_size)
    return QueueRunResponse(**summary.to_dict())


@router.get("/stats", response_model=QueueStatsResponse)
async def get_queue_stats(
    service: TranscodeQueueService = Depends(get_transcode_queue_service),
) -> QueueStatsResponse:
    """Job counts by status."""
    return QueueStatsResponse(**await service.get_queue_stats())


@router.get("/jobs/{job_id}", response_model=TranscodeJobInfo)
async def get_job(
    job_id: uuid.UUID,
    owner_id: uuid.UUID = Depends(get_current_owner_id),
    service: TranscodeQueueService = Depends(get_transcode_queue_service),
) -> TranscodeJobInfo:
    """Job view for the owner of its asset; 404 otherwise."""
    job = await service.get_job(job_id, owner_id=owner_id)
    if not job:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    return TranscodeJobInfo.from_job(job)


@router.post("/assets/{asset_id}/requeue", response_model=RequeueResponse)
async def requeue_asset(
    asset_id: uuid.UUID,
    priority: PriorityName = Query("NORMAL"),
    owner_id: uuid.UUID = Depends(get_current_owner_id),
    service: TranscodeQueueService = Depends(get_transcode_queue_service),
) -> RequeueResponse:
    """Queue a failed video for another round of transcode attempts."""
    level = TranscodePriority[priority]
    try:
        job, created = await service.requeue_asset(asset_id, owner_id=owner_id, priority=level)
    except AssetNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except TranscodeTerminalError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    if created and level is TranscodePriority.HIGH:
        trigger_high_priority_run()
    return RequeueResponse(job=TranscodeJobInfo.from_job(job), created=created)
