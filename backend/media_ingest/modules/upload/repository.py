"""Repository for UploadSession database operations."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from media_ingest.modules.upload.models import UploadSession, UploadSessionStatus


class UploadSessionRepository:
    """Repository for UploadSession database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, upload_session: UploadSession) -> UploadSession:
        self.session.add(upload_session)
        await self.session.flush()
        return upload_session

    async def get_by_id(self, session_id: uuid.UUID) -> Optional[UploadSession]:
        result = await self.session.execute(
            select(UploadSession).where(UploadSession.id == session_id)
        )
        return result.scalar_one_or_none()

    async def get_for_update(self, session_id: uuid.UUID) -> Optional[UploadSession]:
        """Load a session holding its row lock until the transaction ends.

        Concurrent completes of the same session serialize here.
        """
        result = await self.session.execute(
            select(UploadSession)
            .where(UploadSession.id == session_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def mark_completed(
        self,
        upload_session: UploadSession,
        asset_id: uuid.UUID,
        part_numbers: list[int],
        completed_at: datetime,
    ) -> UploadSession:
        upload_session.status = UploadSessionStatus.COMPLETED.value
        upload_session.asset_id = asset_id
        upload_session.uploaded_part_numbers = sorted(part_numbers)
        upload_session.completed_at = completed_at
        await self.session.flush()
        return upload_session

    async def mark_expired(self, upload_session: UploadSession) -> UploadSession:
        upload_session.status = UploadSessionStatus.EXPIRED.value
        await self.session.flush()
        return upload_session
