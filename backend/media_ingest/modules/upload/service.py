"""Upload coordinator: the start/complete multipart handshake.

``start`` opens a multipart upload in object storage and hands the client
one presigned PUT URL per part. ``complete`` finalizes the upload, then
creates the asset, closes the session and (for video) enqueues transcoding
in a single transaction.
"""

import asyncio
import logging
import os
import re
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from media_ingest.core.clock import utcnow
from media_ingest.core.config import settings
from media_ingest.core.logging import get_correlation_id, log_error, log_info
from media_ingest.core.metrics import UPLOAD_BYTES_TOTAL, UPLOAD_SESSIONS_TOTAL
from media_ingest.core.storage import ObjectStorageGateway, StorageError, UploadedPart
from media_ingest.modules.asset.models import AssetType
from media_ingest.modules.asset.repository import AssetRepository
from media_ingest.modules.transcoding.models import TranscodePriority
from media_ingest.modules.transcoding.service import TranscodeQueueService
from media_ingest.modules.transcoding.tasks import trigger_high_priority_run
from media_ingest.modules.upload.models import UploadSession, UploadSessionStatus
from media_ingest.modules.upload.repository import UploadSessionRepository
from media_ingest.modules.upload.schemas import (
    CompleteUploadResponse,
    PartUploadUrl,
    StartUploadResponse,
)
from media_ingest.modules.upload.tasks import dispatch_pipeline_notification

logger = logging.getLogger(__name__)

MAX_METADATA_VALUE_LENGTH = 500

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9.-]")
_NON_PRINTABLE = re.compile(r"[^\x20-\x7E]")


class UploadServiceError(Exception):
    """Base exception for upload service errors."""
    pass


class InvalidUploadRequestError(UploadServiceError):
    """Raised when a start or complete request fails validation."""
    pass


class SessionStateError(UploadServiceError):
    """Raised when the session cannot be completed in its current state."""
    pass


class SessionNotFoundError(SessionStateError):
    """Raised when the session does not exist or belongs to someone else."""
    pass


class SessionNotInProgressError(SessionStateError):
    """Raised when the session is already COMPLETED or EXPIRED."""
    pass


class SessionExpiredError(SessionStateError):
    """Raised when completion is attempted after the session's lifetime."""
    pass


class UploadIdMismatchError(SessionStateError):
    """Raised when the client's upload id differs from the stored handle."""
    pass


# ==================== Pure helpers ====================

def calculate_total_parts(file_size_bytes: int, part_size_bytes: int) -> int:
    """ceil(file_size / part_size) in integer arithmetic."""
    return -(-file_size_bytes // part_size_bytes)


def part_byte_range(part_number: int, part_size_bytes: int, file_size_bytes: int) -> tuple[int, int]:
    """Half-open byte range ``[start, end)`` the client sends for a part."""
    start = (part_number - 1) * part_size_bytes
    return start, min(part_number * part_size_bytes, file_size_bytes)


def sanitize_key_component(value: str) -> str:
    return _UNSAFE_KEY_CHARS.sub("_", value)


def build_object_key(file_name: str, campaign_id: Optional[str], now: datetime) -> str:
    """``uploads/{campaign or "uncategorized"}/{epoch_ms}-{sanitized name}``."""
    folder = sanitize_key_component(campaign_id) if campaign_id else "uncategorized"
    epoch_ms = int(now.timestamp() * 1000)
    return f"uploads/{folder}/{epoch_ms}-{sanitize_key_component(file_name)}"


def sanitize_metadata_value(value: Any) -> str:
    """Printable ASCII only, trimmed, capped for storage user metadata."""
    cleaned = _NON_PRINTABLE.sub(" ", str(value)).strip()
    return cleaned[:MAX_METADATA_VALUE_LENGTH]


def build_storage_metadata(
    file_name: str,
    asset_type: AssetType,
    owner_id: uuid.UUID,
    campaign_id: Optional[str],
    metadata: dict[str, Any],
) -> dict[str, str]:
    values: dict[str, Any] = {
        "originalName": file_name,
        "campaignId": campaign_id or "uncategorized",
        "uploaderId": str(owner_id),
        "assetType": asset_type.value,
    }
    for field in ("title", "description"):
        if metadata.get(field):
            values[field] = metadata[field]
    return {key: sanitize_metadata_value(value) for key, value in values.items()}


def derive_title(file_name: str, metadata: dict[str, Any]) -> str:
    """Explicit metadata title, else the file name without its extension."""
    title = metadata.get("title")
    if isinstance(title, str) and title.strip():
        return title.strip()
    stem, _ = os.path.splitext(file_name)
    return stem or file_name


def normalize_etag(etag: str) -> str:
    return etag.strip().strip('"')


def validate_completed_parts(
    parts: Iterable[UploadedPart], total_parts: Optional[int] = None
) -> list[UploadedPart]:
    """Check the client's part list and return it with ETags normalized.

    Raises:
        InvalidUploadRequestError: Empty list, bad numbers, duplicates,
            blank ETags, or (given ``total_parts``) an incomplete set
    """
    normalized: list[UploadedPart] = []
    seen: set[int] = set()
    for part in parts:
        if part.part_number < 1:
            raise InvalidUploadRequestError(f"Invalid part number: {part.part_number}")
        if part.part_number in seen:
            raise InvalidUploadRequestError(f"Duplicate part number: {part.part_number}")
        etag = normalize_etag(part.etag or "")
        if not etag:
            raise InvalidUploadRequestError(f"Missing ETag for part {part.part_number}")
        seen.add(part.part_number)
        normalized.append(UploadedPart(part_number=part.part_number, etag=etag))

    if not normalized:
        raise InvalidUploadRequestError("At least one part is required")

    if total_parts is not None and seen != set(range(1, total_parts + 1)):
        raise InvalidUploadRequestError(
            f"Expected parts 1..{total_parts}, got {len(seen)} part(s)"
        )
    return normalized


# ==================== Service ====================

class UploadService:
    """Coordinates the session store, object storage and the transcode queue."""

    def __init__(
        self,
        session: AsyncSession,
        storage: ObjectStorageGateway,
        queue: TranscodeQueueService,
        notify_pipeline: Callable[..., Any] = dispatch_pipeline_notification,
        trigger_fast_path: Callable[..., Any] = trigger_high_priority_run,
        part_size_bytes: Optional[int] = None,
    ):
        self.session = session
        self.storage = storage
        self.queue = queue
        self.notify_pipeline = notify_pipeline
        self.trigger_fast_path = trigger_fast_path
        self.part_size_bytes = part_size_bytes or settings.UPLOAD_PART_SIZE_BYTES
        self.sessions = UploadSessionRepository(session)
        self.assets = AssetRepository(session)

    async def start_upload(
        self,
        file_name: str,
        file_size_bytes: int,
        mime_type: str,
        asset_type: AssetType,
        owner_id: uuid.UUID,
        campaign_id: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> StartUploadResponse:
        """Open a multipart upload and presign every part.

        Raises:
            InvalidUploadRequestError: If the request fails validation
            StorageError: If object storage cannot open the upload
        """
        file_name = (file_name or "").strip()
        mime_type = (mime_type or "").strip()
        metadata = dict(metadata or {})

        if not file_name:
            raise InvalidUploadRequestError("fileName is required")
        if not mime_type:
            raise InvalidUploadRequestError("mimeType is required")
        if file_size_bytes is None or file_size_bytes <= 0:
            raise InvalidUploadRequestError("fileSizeBytes must be greater than 0")
        try:
            asset_type = AssetType(asset_type)
        except ValueError:
            raise InvalidUploadRequestError(f"Unsupported assetType: {asset_type}")

        total_parts = calculate_total_parts(file_size_bytes, self.part_size_bytes)
        if total_parts > settings.UPLOAD_MAX_PARTS:
            raise InvalidUploadRequestError(
                f"File needs {total_parts} parts; the limit is {settings.UPLOAD_MAX_PARTS}"
            )

        now = utcnow()
        object_key = build_object_key(file_name, campaign_id, now)
        upload = await asyncio.to_thread(
            self.storage.create_multipart_upload,
            object_key,
            mime_type,
            build_storage_metadata(file_name, asset_type, owner_id, campaign_id, metadata),
        )

        try:
            urls = await asyncio.to_thread(
                self._presign_parts, object_key, upload.upload_id, total_parts
            )
            upload_session = await self.sessions.create(
                UploadSession(
                    external_upload_id=upload.upload_id,
                    object_key=object_key,
                    storage_bucket=upload.bucket,
                    file_name=file_name,
                    file_size_bytes=file_size_bytes,
                    mime_type=mime_type,
                    asset_type=asset_type.value,
                    total_parts=total_parts,
                    part_size_bytes=self.part_size_bytes,
                    uploaded_part_numbers=[],
                    status=UploadSessionStatus.IN_PROGRESS.value,
                    owner_id=owner_id,
                    campaign_id=campaign_id,
                    arbitrary_metadata=metadata,
                    expires_at=now + timedelta(hours=settings.UPLOAD_SESSION_TTL_HOURS),
                    created_at=now,
                )
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            await self._abort_quietly(object_key, upload.upload_id)
            raise

        UPLOAD_SESSIONS_TOTAL.labels(asset_type=asset_type.value, outcome="started").inc()
        log_info(
            logger,
            "Upload session started",
            session_id=str(upload_session.id),
            object_key=object_key,
            total_parts=total_parts,
            file_size_bytes=file_size_bytes,
        )

        return StartUploadResponse(
            session_id=upload_session.id,
            external_upload_id=upload.upload_id,
            object_key=object_key,
            part_size_bytes=self.part_size_bytes,
            total_parts=total_parts,
            expires_at=upload_session.expires_at,
            parts=[PartUploadUrl(part_number=n, url=url) for n, url in enumerate(urls, start=1)],
        )

    async def complete_upload(
        self,
        session_id: uuid.UUID,
        external_upload_id: str,
        parts: Iterable[UploadedPart],
        asset_type: AssetType,
        owner_id: uuid.UUID,
        priority: TranscodePriority = TranscodePriority.NORMAL,
    ) -> CompleteUploadResponse:
        """Finalize the upload and register the asset.

        Raises:
            InvalidUploadRequestError: Bad part list or asset type
            SessionNotFoundError: Unknown session, or owned by someone else
            SessionNotInProgressError: Session already completed or expired
            SessionExpiredError: Session lifetime has passed (now EXPIRED)
            UploadIdMismatchError: Upload id differs from the stored handle
            StorageError: Storage refused to finalize; session stays IN_PROGRESS
        """
        parts = validate_completed_parts(parts)
        try:
            asset_type = AssetType(asset_type)
        except ValueError:
            raise InvalidUploadRequestError(f"Unsupported assetType: {asset_type}")

        upload_session = await self.sessions.get_for_update(session_id)
        try:
            self._check_completable(upload_session, owner_id)
        except SessionStateError:
            await self.session.rollback()
            raise

        now = utcnow()
        if upload_session.is_expired_at(now):
            await self.sessions.mark_expired(upload_session)
            await self.session.commit()
            UPLOAD_SESSIONS_TOTAL.labels(
                asset_type=upload_session.asset_type, outcome="expired"
            ).inc()
            raise SessionExpiredError(f"Upload session {session_id} has expired")

        if external_upload_id != upload_session.external_upload_id:
            await self.session.rollback()
            raise UploadIdMismatchError("Upload id does not match this session")

        try:
            if asset_type.value != upload_session.asset_type:
                raise InvalidUploadRequestError(
                    f"assetType {asset_type.value} does not match the session's "
                    f"{upload_session.asset_type}"
                )
            parts = validate_completed_parts(parts, upload_session.total_parts)
            await asyncio.to_thread(
                self.storage.complete_multipart_upload,
                upload_session.object_key,
                upload_session.external_upload_id,
                parts,
            )
        except (InvalidUploadRequestError, StorageError):
            await self.session.rollback()
            raise

        try:
            asset, job = await self._register_asset(
                upload_session, asset_type, [p.part_number for p in parts], priority, now
            )
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            log_error(
                logger,
                "Object stored but asset was not recorded; object is orphaned",
                exception=e,
                bucket=upload_session.storage_bucket,
                object_key=upload_session.object_key,
                external_upload_id=upload_session.external_upload_id,
                session_id=str(upload_session.id),
            )
            raise

        UPLOAD_SESSIONS_TOTAL.labels(asset_type=asset_type.value, outcome="completed").inc()
        UPLOAD_BYTES_TOTAL.labels(asset_type=asset_type.value).inc(upload_session.file_size_bytes)
        log_info(
            logger,
            "Upload completed",
            session_id=str(upload_session.id),
            asset_id=str(asset.id),
            job_id=str(job.id) if job else None,
        )

        if job is not None:
            self.notify_pipeline(
                asset.id,
                asset_type,
                upload_session.object_key,
                upload_session.storage_bucket,
                get_correlation_id(),
            )
            if priority is TranscodePriority.HIGH:
                self.trigger_fast_path(get_correlation_id())

        return CompleteUploadResponse(
            asset_id=asset.id,
            asset_type=asset_type,
            upload_session_id=upload_session.id,
            queued_for_transcode=job is not None,
            job_id=job.id if job else None,
            job_status=job.status if job else None,
            priority=TranscodePriority(job.priority).name if job else None,
        )

    # ==================== Internals ====================

    def _presign_parts(self, object_key: str, upload_id: str, total_parts: int) -> list[str]:
        return [
            self.storage.presign_part_upload(
                object_key,
                upload_id,
                part_number,
                settings.UPLOAD_PART_URL_EXPIRES_SECONDS,
            )
            for part_number in range(1, total_parts + 1)
        ]

    async def _abort_quietly(self, object_key: str, upload_id: str) -> None:
        try:
            await asyncio.to_thread(self.storage.abort_multipart_upload, object_key, upload_id)
        except StorageError as e:
            log_error(
                logger,
                "Failed to abort multipart upload",
                exception=e,
                object_key=object_key,
                external_upload_id=upload_id,
            )

    @staticmethod
    def _check_completable(
        upload_session: Optional[UploadSession],
        owner_id: uuid.UUID,
    ) -> None:
        if upload_session is None or upload_session.owner_id != owner_id:
            raise SessionNotFoundError("Upload session not found")
        if not upload_session.is_in_progress():
            raise SessionNotInProgressError(
                f"Upload session is {upload_session.status}, not IN_PROGRESS"
            )

    async def _register_asset(
        self,
        upload_session: UploadSession,
        asset_type: AssetType,
        part_numbers: list[int],
        priority: TranscodePriority,
        now: datetime,
    ):
        metadata = dict(upload_session.arbitrary_metadata or {})
        asset = await self.assets.create(
            asset_type=asset_type,
            title=derive_title(upload_session.file_name, metadata),
            filename=upload_session.file_name,
            original_size_bytes=upload_session.file_size_bytes,
            mime_type=upload_session.mime_type,
            storage_key=upload_session.object_key,
            storage_bucket=upload_session.storage_bucket,
            owner_id=upload_session.owner_id,
            campaign_id=upload_session.campaign_id,
            upload_session_id=upload_session.id,
            extra_metadata={**metadata, "uploadSessionId": str(upload_session.id)},
        )

        job = None
        if asset_type.requires_transcode:
            job, _ = await self.queue.enqueue(
                self.session,
                asset_id=asset.id,
                storage_key=upload_session.object_key,
                storage_bucket=upload_session.storage_bucket,
                priority=priority,
            )

        await self.sessions.mark_completed(
            upload_session,
            asset_id=asset.id,
            part_numbers=part_numbers,
            completed_at=now,
        )
        return asset, job
