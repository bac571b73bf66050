"""Repository for TranscodeJob database operations.

Every state change after the claim is a conditional UPDATE fenced on
``status = PROCESSING AND attempts = <claimed attempts>``. A worker whose
claim was reclaimed by someone else updates zero rows and must drop its
result.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import desc, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from media_ingest.core.clock import utcnow
from media_ingest.modules.transcoding.models import (
    ACTIVE_STATUSES,
    TranscodeJob,
    TranscodePriority,
    TranscodeStatus,
)


class TranscodeJobRepository:
    """Repository for TranscodeJob database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ==================== Reads ====================

    async def get_by_id(self, job_id: uuid.UUID) -> Optional[TranscodeJob]:
        result = await self.session.execute(
            select(TranscodeJob).where(TranscodeJob.id == job_id)
        )
        return result.scalar_one_or_none()

    async def get_active_for_asset(self, asset_id: uuid.UUID) -> Optional[TranscodeJob]:
        """The PENDING or PROCESSING job for an asset, if any."""
        result = await self.session.execute(
            select(TranscodeJob).where(
                TranscodeJob.asset_id == asset_id,
                TranscodeJob.status.in_(ACTIVE_STATUSES),
            )
        )
        return result.scalars().first()

    async def list_for_asset(self, asset_id: uuid.UUID) -> list[TranscodeJob]:
        result = await self.session.execute(
            select(TranscodeJob)
            .where(TranscodeJob.asset_id == asset_id)
            .order_by(TranscodeJob.created_at)
        )
        return list(result.scalars().all())

    async def count_by_status(self) -> dict[str, int]:
        result = await self.session.execute(
            select(TranscodeJob.status, func.count(TranscodeJob.id))
            .group_by(TranscodeJob.status)
        )
        return {status: count for status, count in result.all()}

    async def find_stale(self, cutoff: datetime, limit: int = 100) -> list[TranscodeJob]:
        """PROCESSING jobs claimed before ``cutoff``."""
        result = await self.session.execute(
            select(TranscodeJob)
            .where(
                TranscodeJob.status == TranscodeStatus.PROCESSING.value,
                TranscodeJob.started_at < cutoff,
            )
            .order_by(TranscodeJob.started_at)
            .limit(limit)
        )
        return list(result.scalars().all())

    # ==================== Enqueue ====================

    async def enqueue(
        self,
        asset_id: uuid.UUID,
        storage_key: str,
        storage_bucket: str,
        priority: TranscodePriority = TranscodePriority.NORMAL,
        max_attempts: int = 3,
    ) -> tuple[TranscodeJob, bool]:
        """Create a PENDING job unless the asset already has an active one.

        Returns:
            (job, created): the existing active job and False, or the new
            job and True
        """
        existing = await self.get_active_for_asset(asset_id)
        if existing is not None:
            return existing, False

        job = TranscodeJob(
            asset_id=asset_id,
            storage_key=storage_key,
            storage_bucket=storage_bucket,
            status=TranscodeStatus.PENDING.value,
            priority=int(priority),
            attempts=0,
            max_attempts=max_attempts,
            created_at=utcnow(),
        )
        self.session.add(job)
        await self.session.flush()
        return job, True

    # ==================== Claim ====================

    async def claim_next(self) -> Optional[TranscodeJob]:
        """Atomically move the most urgent eligible job to PROCESSING.

        Selection and transition happen in one UPDATE ... RETURNING whose
        target id comes from a SKIP LOCKED subselect, so concurrent callers
        never receive the same job.
        """
        # Aliased so the subselect is not correlated to the UPDATE target
        queued = aliased(TranscodeJob)
        candidate = (
            select(queued.id)
            .where(
                queued.status == TranscodeStatus.PENDING.value,
                queued.attempts < queued.max_attempts,
            )
            .order_by(desc(queued.priority), queued.created_at)
            .limit(1)
            .with_for_update(skip_locked=True)
            .scalar_subquery()
        )
        stmt = (
            update(TranscodeJob)
            .where(
                TranscodeJob.id == candidate,
                TranscodeJob.status == TranscodeStatus.PENDING.value,
            )
            .values(
                status=TranscodeStatus.PROCESSING.value,
                started_at=utcnow(),
                attempts=TranscodeJob.attempts + 1,
            )
            .returning(TranscodeJob)
            .execution_options(synchronize_session=False, populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    # ==================== Fenced transitions ====================

    async def _fenced_update(self, job_id: uuid.UUID, expected_attempts: int, **values) -> bool:
        result = await self.session.execute(
            update(TranscodeJob)
            .where(
                TranscodeJob.id == job_id,
                TranscodeJob.status == TranscodeStatus.PROCESSING.value,
                TranscodeJob.attempts == expected_attempts,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def set_provider_handle(
        self, job_id: uuid.UUID, expected_attempts: int, handle: str
    ) -> bool:
        return await self._fenced_update(job_id, expected_attempts, provider_handle=handle)

    async def mark_completed(
        self, job_id: uuid.UUID, expected_attempts: int, completed_at: datetime
    ) -> bool:
        return await self._fenced_update(
            job_id,
            expected_attempts,
            status=TranscodeStatus.COMPLETED.value,
            completed_at=completed_at,
        )

    async def release_for_retry(
        self, job_id: uuid.UUID, expected_attempts: int, error: str
    ) -> bool:
        """Return a claimed job to PENDING, keeping its attempt count."""
        return await self._fenced_update(
            job_id,
            expected_attempts,
            status=TranscodeStatus.PENDING.value,
            last_error=error,
            started_at=None,
        )

    async def mark_failed(
        self,
        job_id: uuid.UUID,
        expected_attempts: int,
        error: str,
        failed_at: datetime,
    ) -> bool:
        return await self._fenced_update(
            job_id,
            expected_attempts,
            status=TranscodeStatus.FAILED.value,
            last_error=error,
            completed_at=failed_at,
        )
