"""Fire-and-forget notification of the downstream processing pipeline.

Once a video upload completes, the enrichment pipeline is told where to
fetch the file. The pipeline holds no bearer token, so it is handed a
short-lived presigned GET URL for the stored original. Delivery is best
effort: failures are logged and never retried or surfaced to the uploader.
"""

import asyncio
import logging
import uuid
from typing import Any, Optional

import httpx

from media_ingest.core.celery_app import celery_app, run_async
from media_ingest.core.config import settings
from media_ingest.core.logging import correlation_scope, log_error, log_info, log_warning
from media_ingest.core.storage import ObjectStorageGateway, StorageError, get_storage_gateway
from media_ingest.modules.asset.models import AssetType

logger = logging.getLogger(__name__)

# Defaults the processing pipeline expects for long-form video
PIPELINE_DEFAULTS: dict[str, Any] = {
    "scene_preset": "long_video",
    "max_scene_duration": 60.0,
    "device": "auto",
}


def build_pipeline_payload(asset_id: str, asset_type: str, download_url: str) -> dict[str, Any]:
    """Request body for ``POST {PROCESSING_API_BASE}/process-from-api``."""
    return {
        "api_url": download_url,
        "asset_id": asset_id,
        "asset_type": asset_type,
        **PIPELINE_DEFAULTS,
    }


async def notify_processing_pipeline(
    asset_id: str,
    asset_type: str,
    storage_key: str,
    storage_bucket: Optional[str] = None,
    storage: Optional[ObjectStorageGateway] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> bool:
    """Presign the original and POST it to the processing pipeline.

    Returns:
        True if the pipeline accepted the request; False if skipped or failed
    """
    if not settings.PROCESSING_API_BASE:
        logger.debug("PROCESSING_API_BASE not set, skipping pipeline notification")
        return False

    storage = storage or get_storage_gateway()
    try:
        download_url = await asyncio.to_thread(
            storage.presign_download,
            storage_key,
            settings.PROCESSING_API_DOWNLOAD_EXPIRES_SECONDS,
            storage_bucket,
        )
    except StorageError as e:
        log_error(
            logger,
            "Could not presign asset for the processing pipeline",
            exception=e,
            asset_id=asset_id,
            object_key=storage_key,
        )
        return False

    url = f"{settings.PROCESSING_API_BASE.rstrip('/')}/process-from-api"
    try:
        async with httpx.AsyncClient(
            timeout=settings.PROCESSING_API_TIMEOUT_SECONDS,
            transport=transport,
        ) as client:
            response = await client.post(
                url, json=build_pipeline_payload(asset_id, asset_type, download_url)
            )
    except httpx.HTTPError as e:
        log_warning(logger, "Processing pipeline unreachable", asset_id=asset_id, error=str(e))
        return False

    if response.status_code >= 400:
        log_warning(
            logger,
            "Processing pipeline rejected asset",
            asset_id=asset_id,
            status_code=response.status_code,
            body=response.text[:500],
        )
        return False

    log_info(logger, "Processing pipeline notified", asset_id=asset_id)
    return True


@celery_app.task(name="media_ingest.modules.upload.tasks.notify_processing_pipeline_task")
def notify_processing_pipeline_task(
    asset_id: str,
    asset_type: str,
    storage_key: str,
    storage_bucket: Optional[str] = None,
    correlation_id: Optional[str] = None,
) -> bool:
    with correlation_scope(correlation_id):
        return run_async(
            lambda: notify_processing_pipeline(asset_id, asset_type, storage_key, storage_bucket)
        )


def dispatch_pipeline_notification(
    asset_id: uuid.UUID,
    asset_type: AssetType,
    storage_key: str,
    storage_bucket: Optional[str] = None,
    correlation_id: Optional[str] = None,
) -> bool:
    """Queue the notification without blocking; dispatch errors are logged only."""
    try:
        notify_processing_pipeline_task.delay(
            str(asset_id), asset_type.value, storage_key, storage_bucket, correlation_id
        )
        return True
    except Exception as e:
        log_error(
            logger,
            "Failed to dispatch processing pipeline notification",
            exception=e,
            asset_id=str(asset_id),
        )
        return False
