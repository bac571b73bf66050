"""Transcode worker: drives the provider for one claimed job."""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from media_ingest.core.clock import utcnow
from media_ingest.core.config import settings
from media_ingest.core.logging import log_error, log_info, log_warning
from media_ingest.core.metrics import TRANSCODE_JOBS_TOTAL, TRANSCODE_JOB_DURATION_SECONDS
from media_ingest.core.storage import ObjectStorageGateway
from media_ingest.core.tracing import create_span, record_exception
from media_ingest.modules.asset.repository import AssetRepository
from media_ingest.modules.transcoding.models import TranscodeJob
from media_ingest.modules.transcoding.provider import (
    StreamNotReadyError,
    StreamProviderClient,
    TranscodeRetryableError,
)
from media_ingest.modules.transcoding.repository import TranscodeJobRepository

logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 2000


class TranscodeTerminalError(Exception):
    """A job or asset is not eligible for (further) transcoding."""
    pass


class TranscodeOutcome(str, Enum):
    """Result of one worker run."""
    SUCCEEDED = "succeeded"
    RETRYING = "retrying"
    FAILED = "failed"
    # Claim was taken over by another scheduler; our result was dropped
    LOST = "lost"


@dataclass(frozen=True)
class ClaimedJob:
    """Snapshot of a job as it was claimed.

    ``attempts`` is the fencing token for every later write.
    """
    id: uuid.UUID
    asset_id: uuid.UUID
    storage_key: str
    storage_bucket: str
    attempts: int
    max_attempts: int
    provider_handle: Optional[str] = None

    @classmethod
    def from_job(cls, job: TranscodeJob) -> "ClaimedJob":
        return cls(
            id=job.id,
            asset_id=job.asset_id,
            storage_key=job.storage_key,
            storage_bucket=job.storage_bucket,
            attempts=job.attempts,
            max_attempts=job.max_attempts,
            provider_handle=job.provider_handle,
        )

    @property
    def is_final_attempt(self) -> bool:
        return self.attempts >= self.max_attempts


def describe_error(exc: BaseException) -> str:
    message = str(exc) or exc.__class__.__name__
    return f"{exc.__class__.__name__}: {message}"[:MAX_ERROR_LENGTH]


class TranscodeWorker:
    """Runs one claimed job to success, retry or terminal failure.

    Every database write uses a fresh session from ``session_factory`` so
    several workers can run concurrently in one event loop.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        storage: ObjectStorageGateway,
        provider: StreamProviderClient,
        source_url_expires_seconds: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.storage = storage
        self.provider = provider
        self.source_url_expires_seconds = (
            source_url_expires_seconds or settings.TRANSCODE_SOURCE_URL_EXPIRES_SECONDS
        )

    async def run(self, job: TranscodeJob) -> TranscodeOutcome:
        """Process a job claimed by the scheduler. Never raises."""
        claim = ClaimedJob.from_job(job)
        started = time.perf_counter()

        with create_span(
            "transcode.run",
            attributes={
                "transcode.job_id": str(claim.id),
                "transcode.asset_id": str(claim.asset_id),
                "transcode.attempt": claim.attempts,
            },
        ):
            try:
                outcome = await self._attempt(claim)
            except Exception as exc:
                record_exception(exc)
                outcome = await self.record_failure(claim, describe_error(exc), exc)

        TRANSCODE_JOBS_TOTAL.labels(outcome=outcome.value).inc()
        TRANSCODE_JOB_DURATION_SECONDS.labels(outcome=outcome.value).observe(
            time.perf_counter() - started
        )
        return outcome

    async def _attempt(self, claim: ClaimedJob) -> TranscodeOutcome:
        async with self.session_factory() as session:
            assets = AssetRepository(session)
            jobs = TranscodeJobRepository(session)

            asset = await assets.get_by_id(claim.asset_id)
            if asset is None:
                raise TranscodeRetryableError(f"asset {claim.asset_id} not found")

            handle = claim.provider_handle
            if handle is None:
                source_url = await asyncio.to_thread(
                    self.storage.presign_download,
                    claim.storage_key,
                    self.source_url_expires_seconds,
                    claim.storage_bucket,
                )
                handle = await self.provider.ingest(
                    source_url,
                    {
                        "assetId": str(asset.id),
                        "name": asset.title,
                        "ownerId": str(asset.owner_id),
                    },
                )
                # Persist the handle so a retry polls instead of re-ingesting
                if not await jobs.set_provider_handle(claim.id, claim.attempts, handle):
                    await session.rollback()
                    return self._lost(claim)
                await session.commit()

            details = await self.provider.get_details(handle)
            if not details.ready:
                raise StreamNotReadyError(f"stream {handle} is not ready to play yet")

            if not await assets.mark_ready(
                claim.asset_id,
                stream_id=details.stream_id,
                playback_url=details.playback_url,
                thumbnail_url=details.thumbnail_url,
                duration_seconds=details.duration_seconds,
                resolution=details.resolution,
            ):
                raise TranscodeRetryableError(f"asset {claim.asset_id} disappeared")

            if not await jobs.mark_completed(claim.id, claim.attempts, utcnow()):
                await session.rollback()
                return self._lost(claim)

            await session.commit()

        log_info(
            logger,
            "Transcode job completed",
            job_id=str(claim.id),
            asset_id=str(claim.asset_id),
            attempts=claim.attempts,
            stream_id=details.stream_id,
        )
        return TranscodeOutcome.SUCCEEDED

    async def record_failure(
        self,
        claim: ClaimedJob,
        reason: str,
        exc: Optional[BaseException] = None,
    ) -> TranscodeOutcome:
        """Requeue the job, or fail it and its asset on the final attempt."""
        try:
            async with self.session_factory() as session:
                jobs = TranscodeJobRepository(session)
                if not claim.is_final_attempt:
                    if not await jobs.release_for_retry(claim.id, claim.attempts, reason):
                        await session.rollback()
                        return self._lost(claim)
                    await session.commit()
                    log_warning(
                        logger,
                        "Transcode attempt failed, job requeued",
                        job_id=str(claim.id),
                        asset_id=str(claim.asset_id),
                        attempts=claim.attempts,
                        max_attempts=claim.max_attempts,
                        error=reason,
                    )
                    return TranscodeOutcome.RETRYING

                failed_at = utcnow()
                if not await jobs.mark_failed(claim.id, claim.attempts, reason, failed_at):
                    await session.rollback()
                    return self._lost(claim)
                await AssetRepository(session).mark_error(
                    claim.asset_id, reason, failed_at, claim.attempts
                )
                await session.commit()
        except Exception as db_exc:
            # Claim stays PROCESSING; the stale-claim sweep will pick it up
            log_error(
                logger,
                "Could not record transcode failure",
                exception=db_exc,
                job_id=str(claim.id),
                original_error=reason,
            )
            return TranscodeOutcome.LOST

        log_error(
            logger,
            "Transcode job failed permanently",
            exception=exc,
            job_id=str(claim.id),
            asset_id=str(claim.asset_id),
            attempts=claim.attempts,
            error=reason,
        )
        return TranscodeOutcome.FAILED

    def _lost(self, claim: ClaimedJob) -> TranscodeOutcome:
        log_warning(
            logger,
            "Transcode claim no longer held, dropping result",
            job_id=str(claim.id),
            attempts=claim.attempts,
        )
        return TranscodeOutcome.LOST
