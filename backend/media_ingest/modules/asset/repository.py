"""Repository for Asset database operations."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from media_ingest.modules.asset.models import Asset, AssetStatus, AssetType


class AssetRepository:
    """Repository for Asset database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ==================== CRUD ====================

    async def create(
        self,
        asset_type: AssetType,
        title: str,
        filename: str,
        original_size_bytes: int,
        mime_type: str,
        storage_key: str,
        storage_bucket: str,
        owner_id: uuid.UUID,
        campaign_id: Optional[str] = None,
        upload_session_id: Optional[uuid.UUID] = None,
        extra_metadata: Optional[dict] = None,
    ) -> Asset:
        """Create an asset; video starts PROCESSING, everything else READY."""
        status = (
            AssetStatus.PROCESSING if asset_type.requires_transcode else AssetStatus.READY
        )
        asset = Asset(
            asset_type=asset_type.value,
            title=title,
            filename=filename,
            original_size_bytes=original_size_bytes,
            mime_type=mime_type,
            status=status.value,
            storage_key=storage_key,
            storage_bucket=storage_bucket,
            owner_id=owner_id,
            campaign_id=campaign_id,
            upload_session_id=upload_session_id,
            extra_metadata=extra_metadata or {},
        )
        self.session.add(asset)
        await self.session.flush()
        return asset

    async def get_by_id(self, asset_id: uuid.UUID) -> Optional[Asset]:
        result = await self.session.execute(select(Asset).where(Asset.id == asset_id))
        return result.scalar_one_or_none()

    async def get_for_owner(self, asset_id: uuid.UUID, owner_id: uuid.UUID) -> Optional[Asset]:
        """Get an asset only if it belongs to the given owner."""
        result = await self.session.execute(
            select(Asset).where(Asset.id == asset_id, Asset.owner_id == owner_id)
        )
        return result.scalar_one_or_none()

    # ==================== Transcode results ====================

    async def mark_ready(
        self,
        asset_id: uuid.UUID,
        stream_id: str,
        playback_url: str,
        thumbnail_url: Optional[str],
        duration_seconds: Optional[float],
        resolution: Optional[str],
    ) -> bool:
        """Write every playback field and flip to READY in one statement.

        Returns:
            False if the asset no longer exists
        """
        result = await self.session.execute(
            update(Asset)
            .where(Asset.id == asset_id)
            .values(
                status=AssetStatus.READY.value,
                stream_id=stream_id,
                playback_url=playback_url,
                thumbnail_url=thumbnail_url,
                duration_seconds=duration_seconds,
                resolution=resolution,
                error_metadata=None,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def mark_error(
        self,
        asset_id: uuid.UUID,
        reason: str,
        failed_at: datetime,
        attempts: int,
    ) -> bool:
        result = await self.session.execute(
            update(Asset)
            .where(Asset.id == asset_id)
            .values(
                status=AssetStatus.ERROR.value,
                error_metadata={
                    "reason": reason,
                    "failed_at": failed_at.isoformat(),
                    "attempts": attempts,
                },
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def reset_for_requeue(self, asset: Asset) -> Asset:
        """Put an errored video back into PROCESSING for another run."""
        asset.status = AssetStatus.PROCESSING.value
        asset.error_metadata = None
        await self.session.flush()
        return asset
