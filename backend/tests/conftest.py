"""Shared fixtures: test settings, a throwaway SQLite database and fakes."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-media-ingest")
os.environ.setdefault("STORAGE_BUCKET", "media-test")
os.environ.setdefault("LOG_JSON", "false")

import uuid
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from media_ingest.core.clock import utcnow
from media_ingest.core.database import Base
from media_ingest.core.storage import MultipartUpload, ObjectStorageGateway
from media_ingest.modules.asset.models import Asset, AssetStatus, AssetType
from media_ingest.modules.transcoding.models import TranscodeJob, TranscodePriority, TranscodeStatus
from media_ingest.modules.upload.models import UploadSession  # noqa: F401


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """File-backed SQLite so concurrent sessions see each other's commits."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'media_ingest.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
def owner_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def storage() -> MagicMock:
    """Storage gateway double with deterministic URLs and handles."""
    gateway = MagicMock(spec=ObjectStorageGateway)
    gateway.bucket = "media-test"
    gateway.create_multipart_upload.side_effect = (
        lambda key, content_type, metadata=None: MultipartUpload(
            upload_id=f"upload-{uuid.uuid4().hex}", key=key, bucket="media-test"
        )
    )
    gateway.presign_part_upload.side_effect = (
        lambda key, upload_id, part_number, expires_in: (
            f"https://storage.test/{key}?uploadId={upload_id}&partNumber={part_number}"
        )
    )
    gateway.complete_multipart_upload.return_value = '"assembled-etag"'
    gateway.presign_download.side_effect = (
        lambda key, expires_in, bucket=None: f"https://storage.test/{key}?signed=1"
    )
    return gateway



@pytest.fixture
def make_video_asset(session_factory):
    """Factory inserting a committed video asset."""

    async def make(owner_id=None, status=AssetStatus.PROCESSING) -> Asset:
        async with session_factory() as session:
            asset = Asset(
                asset_type=AssetType.VIDEO.value,
                title="Keynote",
                filename="keynote.mp4",
                original_size_bytes=26214400,
                mime_type="video/mp4",
                status=status.value,
                storage_key=f"uploads/uncategorized/{uuid.uuid4().hex}-keynote.mp4",
                storage_bucket="media-test",
                owner_id=owner_id or uuid.uuid4(),
                extra_metadata={},
            )
            session.add(asset)
            await session.commit()
            return asset

    return make


@pytest.fixture
def make_job(session_factory):
    """Factory inserting a PENDING job created ``age_seconds`` ago."""

    async def make(
        asset: Asset,
        priority: TranscodePriority = TranscodePriority.NORMAL,
        age_seconds: float = 0,
        max_attempts: int = 3,
    ) -> TranscodeJob:
        async with session_factory() as session:
            job = TranscodeJob(
                asset_id=asset.id,
                storage_key=asset.storage_key,
                storage_bucket=asset.storage_bucket,
                status=TranscodeStatus.PENDING.value,
                priority=int(priority),
                attempts=0,
                max_attempts=max_attempts,
                created_at=utcnow() - timedelta(seconds=age_seconds),
            )
            session.add(job)
            await session.commit()
            return job

    return make
