"""API Router for the multipart upload handshake."""

import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from media_ingest.core.database import get_db
from media_ingest.core.storage import (
    ObjectStorageGateway,
    StorageError,
    UploadedPart,
    get_storage_gateway,
)
from media_ingest.modules.auth.jwt import get_current_owner_id
from media_ingest.modules.transcoding.models import TranscodePriority
from media_ingest.modules.transcoding.service import (
    TranscodeQueueService,
    get_transcode_queue_service,
)
from media_ingest.modules.upload.schemas import (
    CompleteUploadRequest,
    CompleteUploadResponse,
    StartUploadRequest,
    StartUploadResponse,
)
from media_ingest.modules.upload.service import (
    InvalidUploadRequestError,
    SessionExpiredError,
    SessionNotFoundError,
    SessionNotInProgressError,
    UploadIdMismatchError,
    UploadService,
)

router = APIRouter(prefix="/upload", tags=["uploads"])


def get_upload_service(
    session: AsyncSession = Depends(get_db),
    storage: ObjectStorageGateway = Depends(get_storage_gateway),
    queue: TranscodeQueueService = Depends(get_transcode_queue_service),
) -> UploadService:
    """Dependency to get UploadService instance."""
    return UploadService(session=session, storage=storage, queue=queue)


@router.post("/start", response_model=StartUploadResponse)
async def start_upload(
    request: StartUploadRequest,
    owner_id: uuid.UUID = Depends(get_current_owner_id),
    service: UploadService = Depends(get_upload_service),
) -> StartUploadResponse:
    """Open a multipart upload session.

    Returns one presigned PUT URL per part. The client uploads byte range
    ``[(n-1)*partSizeBytes, min(n*partSizeBytes, fileSizeBytes))`` to the
    URL for part ``n`` and keeps the returned ETag.
    """
    try:
        return await service.start_upload(
            file_name=request.file_name,
            file_size_bytes=request.file_size_bytes,
            mime_type=request.mime_type,
            asset_type=request.asset_type,
            owner_id=owner_id,
            campaign_id=request.campaign_id,
            metadata=request.metadata,
        )
    except InvalidUploadRequestError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StorageError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Object storage unavailable: {e}",
        )


@router.post("/complete", response_model=CompleteUploadResponse)
async def complete_upload(
    request: CompleteUploadRequest,
    owner_id: uuid.UUID = Depends(get_current_owner_id),
    service: UploadService = Depends(get_upload_service),
) -> CompleteUploadResponse:
    """Finalize a multipart upload and register the asset.

    Video assets are queued for transcoding at the requested priority.
    """
    try:
        return await service.complete_upload(
            session_id=request.session_id,
            external_upload_id=request.external_upload_id,
            parts=[
                UploadedPart(part_number=part.part_number, etag=part.e_tag)
                for part in request.parts
            ],
            asset_type=request.asset_type,
            owner_id=owner_id,
            priority=TranscodePriority[request.priority],
        )
    except (InvalidUploadRequestError, UploadIdMismatchError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except SessionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except (SessionNotInProgressError, SessionExpiredError) as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except StorageError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to finalize upload in object storage: {e}",
        )
