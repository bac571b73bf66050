"""Transcode queue scheduler.

Enqueue, atomic claim, bounded concurrent sweeps, stale-claim recovery,
manual requeue and queue stats. No in-process locking is involved in
queue correctness; that rests entirely on the claim and fenced updates
in the repository.
"""

import asyncio
import logging
import uuid
from dataclasses import asdict, dataclass
from datetime import timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from media_ingest.core.clock import utcnow
from media_ingest.core.config import settings
from media_ingest.core.database import async_session_maker
from media_ingest.core.logging import log_error, log_info
from media_ingest.core.metrics import QUEUE_DEPTH, TRANSCODE_STALE_RECLAIMED_TOTAL
from media_ingest.core.storage import ObjectStorageGateway, get_storage_gateway
from media_ingest.modules.asset.models import Asset
from media_ingest.modules.asset.repository import AssetRepository
from media_ingest.modules.asset.service import AssetNotFoundError
from media_ingest.modules.transcoding.models import (
    TranscodeJob,
    TranscodePriority,
    TranscodeStatus,
)
from media_ingest.modules.transcoding.provider import StreamProviderClient
from media_ingest.modules.transcoding.repository import TranscodeJobRepository
from media_ingest.modules.transcoding.worker import (
    ClaimedJob,
    TranscodeOutcome,
    TranscodeTerminalError,
    TranscodeWorker,
)

logger = logging.getLogger(__name__)


@dataclass
class QueueRunSummary:
    """Counts from one ``process_queue`` sweep."""
    claimed: int = 0
    completed: int = 0
    retrying: int = 0
    failed: int = 0
    lost: int = 0

    def record(self, outcome: TranscodeOutcome) -> None:
        if outcome is TranscodeOutcome.SUCCEEDED:
            self.completed += 1
        elif outcome is TranscodeOutcome.RETRYING:
            self.retrying += 1
        elif outcome is TranscodeOutcome.FAILED:
            self.failed += 1
        else:
            self.lost += 1

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


class TranscodeQueueService:
    """Scheduler over the durable transcode job table."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        worker: TranscodeWorker,
        max_attempts: Optional[int] = None,
        concurrency: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.worker = worker
        self.max_attempts = max_attempts or settings.TRANSCODE_MAX_ATTEMPTS
        self.concurrency = max(1, concurrency or settings.TRANSCODE_WORKER_CONCURRENCY)

    # ==================== Enqueue ====================

    async def enqueue(
        self,
        session: AsyncSession,
        asset_id: uuid.UUID,
        storage_key: str,
        storage_bucket: str,
        priority: TranscodePriority = TranscodePriority.NORMAL,
    ) -> tuple[TranscodeJob, bool]:
        """Enqueue inside the caller's transaction; the caller commits.

        Idempotent per asset: an existing PENDING/PROCESSING job is
        returned with ``created=False``.
        """
        job, created = await TranscodeJobRepository(session).enqueue(
            asset_id=asset_id,
            storage_key=storage_key,
            storage_bucket=storage_bucket,
            priority=priority,
            max_attempts=self.max_attempts,
        )
        if created:
            log_info(
                logger,
                "Transcode job enqueued",
                job_id=str(job.id),
                asset_id=str(asset_id),
                priority=priority.name,
            )
        return job, created

    # ==================== Claim / process ====================

    async def claim_next(self) -> Optional[TranscodeJob]:
        """Claim and commit the next eligible job, or None if none is eligible."""
        async with self.session_factory() as session:
            job = await TranscodeJobRepository(session).claim_next()
            await session.commit()
        return job

    async def process_queue(self, batch_size: Optional[int] = None) -> QueueRunSummary:
        """Claim and run up to ``batch_size`` jobs on a bounded worker pool.

        Stops early once the queue has nothing eligible. A failing job
        never stops the others.
        """
        batch_size = batch_size if batch_size is not None else settings.TRANSCODE_BATCH_SIZE
        summary = QueueRunSummary()
        if batch_size <= 0:
            return summary

        remaining = batch_size

        async def drain() -> None:
            nonlocal remaining
            while remaining > 0:
                remaining -= 1
                job = await self.claim_next()
                if job is None:
                    return
                summary.claimed += 1
                summary.record(await self.worker.run(job))

        pool_size = min(self.concurrency, batch_size)
        results = await asyncio.gather(
            *(drain() for _ in range(pool_size)), return_exceptions=True
        )
        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            log_error(logger, "Transcode sweep aborted", exception=errors[0], **summary.to_dict())
            raise errors[0]

        if summary.claimed:
            log_info(logger, "Transcode sweep finished", **summary.to_dict())
        return summary

    async def release_stale_claims(self, older_than: Optional[timedelta] = None) -> int:
        """Recover jobs whose worker died mid-claim.

        Each stale claim is treated as a failed attempt: back to PENDING,
        or FAILED (asset ERROR) if it was the final attempt.
        """
        older_than = older_than or timedelta(minutes=settings.TRANSCODE_STALE_AFTER_MINUTES)
        cutoff = utcnow() - older_than

        async with self.session_factory() as session:
            stale = await TranscodeJobRepository(session).find_stale(cutoff)

        released = 0
        for job in stale:
            outcome = await self.worker.record_failure(
                ClaimedJob.from_job(job),
                f"claim abandoned: no result within {older_than}",
            )
            if outcome is not TranscodeOutcome.LOST:
                released += 1

        if released:
            TRANSCODE_STALE_RECLAIMED_TOTAL.inc(released)
            log_info(logger, "Released stale transcode claims", released=released)
        return released

    # ==================== Manual requeue ====================

    async def requeue_asset(
        self,
        asset_id: uuid.UUID,
        owner_id: Optional[uuid.UUID] = None,
        priority: TranscodePriority = TranscodePriority.NORMAL,
    ) -> tuple[TranscodeJob, bool]:
        """Give a video asset a fresh job after its previous one failed.

        Raises:
            AssetNotFoundError: Unknown asset, or not owned by ``owner_id``
            TranscodeTerminalError: Asset is not a video or is already READY
        """
        async with self.session_factory() as session:
            assets = AssetRepository(session)
            asset: Optional[Asset]
            if owner_id is None:
                asset = await assets.get_by_id(asset_id)
            else:
                asset = await assets.get_for_owner(asset_id, owner_id)
            if asset is None:
                raise AssetNotFoundError(f"Asset {asset_id} not found")
            if not asset.kind.requires_transcode:
                raise TranscodeTerminalError(f"Asset {asset_id} is not a video")
            if asset.is_ready():
                raise TranscodeTerminalError(f"Asset {asset_id} is already ready")

            job, created = await self.enqueue(
                session, asset.id, asset.storage_key, asset.storage_bucket, priority
            )
            if created:
                await assets.reset_for_requeue(asset)
            await session.commit()

        return job, created

    # ==================== Stats ====================

    async def get_job(
        self,
        job_id: uuid.UUID,
        owner_id: Optional[uuid.UUID] = None,
    ) -> Optional[TranscodeJob]:
        """Look up a job; with ``owner_id``, only if that owner holds its asset."""
        async with self.session_factory() as session:
            job = await TranscodeJobRepository(session).get_by_id(job_id)
            if job is None or owner_id is None:
                return job
            asset = await AssetRepository(session).get_for_owner(job.asset_id, owner_id)
        return job if asset is not None else None

    async def get_queue_stats(self) -> dict[str, int]:
        """Job counts per status plus ``total``; refreshes the depth gauge."""
        async with self.session_factory() as session:
            counts = await TranscodeJobRepository(session).count_by_status()

        stats = {status.value: counts.get(status.value, 0) for status in TranscodeStatus}
        for status, count in stats.items():
            QUEUE_DEPTH.labels(status=status).set(count)
        stats["total"] = sum(counts.values())
        return stats


def build_transcode_queue_service(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    storage: Optional[ObjectStorageGateway] = None,
    provider: Optional[StreamProviderClient] = None,
) -> TranscodeQueueService:
    """Wire a queue service from settings, with optional overrides."""
    session_factory = session_factory or async_session_maker
    worker = TranscodeWorker(
        session_factory=session_factory,
        storage=storage or get_storage_gateway(),
        provider=provider or StreamProviderClient(),
    )
    return TranscodeQueueService(session_factory=session_factory, worker=worker)


def get_transcode_queue_service() -> TranscodeQueueService:
    """FastAPI dependency for the queue service."""
    return build_transcode_queue_service()
