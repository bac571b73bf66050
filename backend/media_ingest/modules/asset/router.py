"""API Router for assets."""

import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from media_ingest.core.database import get_db
from media_ingest.core.storage import ObjectStorageGateway, StorageError, get_storage_gateway
from media_ingest.modules.asset.schemas import AssetInfo
from media_ingest.modules.asset.service import AssetNotFoundError, AssetService
from media_ingest.modules.auth.jwt import get_current_owner_id

router = APIRouter(prefix="/assets", tags=["assets"])


def get_asset_service(
    session: AsyncSession = Depends(get_db),
    storage: ObjectStorageGateway = Depends(get_storage_gateway),
) -> AssetService:
    """Dependency to get AssetService instance."""
    return AssetService(session, storage)


@router.get("/{asset_id}", response_model=AssetInfo)
async def get_asset(
    asset_id: uuid.UUID,
    owner_id: uuid.UUID = Depends(get_current_owner_id),
    service: AssetService = Depends(get_asset_service),
) -> AssetInfo:
    """Get an asset, including playback fields once transcoding finished."""
    try:
        asset = await service.get_asset(asset_id, owner_id)
    except AssetNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return AssetInfo.model_validate(asset)


@router.get("/{asset_id}/download", status_code=status.HTTP_307_TEMPORARY_REDIRECT)
async def download_asset(
    asset_id: uuid.UUID,
    owner_id: uuid.UUID = Depends(get_current_owner_id),
    service: AssetService = Depends(get_asset_service),
) -> RedirectResponse:
    """Redirect to a short-lived presigned URL for the original file."""
    try:
        url = await service.get_download_url(asset_id, owner_id)
    except AssetNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except StorageError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Object storage unavailable: {e}",
        )
    return RedirectResponse(url=url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)
