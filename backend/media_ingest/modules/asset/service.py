"""Service layer for reading assets and handing out download URLs."""

import asyncio
import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from media_ingest.core.storage import ObjectStorageGateway
from media_ingest.modules.asset.models import Asset
from media_ingest.modules.asset.repository import AssetRepository

DOWNLOAD_URL_EXPIRES_SECONDS = 3600


class AssetServiceError(Exception):
    """Base exception for asset service errors."""
    pass


class AssetNotFoundError(AssetServiceError):
    """Raised when an asset does not exist or belongs to someone else."""
    pass


class AssetService:
    """Owner-scoped asset reads."""

    def __init__(self, session: AsyncSession, storage: ObjectStorageGateway):
        self.session = session
        self.storage = storage
        self.assets = AssetRepository(session)

    async def get_asset(self, asset_id: uuid.UUID, owner_id: uuid.UUID) -> Asset:
        asset = await self.assets.get_for_owner(asset_id, owner_id)
        if asset is None:
            raise AssetNotFoundError(f"Asset {asset_id} not found")
        return asset

    async def get_download_url(
        self,
        asset_id: uuid.UUID,
        owner_id: uuid.UUID,
        expires_in: Optional[int] = None,
    ) -> str:
        """Short-lived presigned GET URL for the stored original."""
        asset = await self.get_asset(asset_id, owner_id)
        return await asyncio.to_thread(
            self.storage.presign_download,
            asset.storage_key,
            expires_in or DOWNLOAD_URL_EXPIRES_SECONDS,
            asset.storage_bucket,
        )
