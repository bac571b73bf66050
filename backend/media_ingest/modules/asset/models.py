"""Asset model: a stored media object and its playback state."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Float, Index, JSON, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from media_ingest.core.clock import utcnow
from media_ingest.core.database import Base


class AssetType(str, Enum):
    """Kind of media an asset holds."""
    VIDEO = "VIDEO"
    IMAGE = "IMAGE"
    DOCUMENT = "DOCUMENT"

    @property
    def requires_transcode(self) -> bool:
        """Only video goes through the streaming provider."""
        return self is AssetType.VIDEO


class AssetStatus(str, Enum):
    """Asset lifecycle status."""
    PROCESSING = "PROCESSING"
    READY = "READY"
    ERROR = "ERROR"


class Asset(Base):
    """A media object in storage.

    Video assets start PROCESSING and become READY once the transcode
    worker has written every playback field; other kinds are READY on
    creation.
    """

    __tablename__ = "assets"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    asset_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    filename: Mapped[str] = mapped_column(String(1024), nullable=False)
    original_size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AssetStatus.PROCESSING.value, index=True
    )

    # Location in object storage
    storage_key: Mapped[str] = mapped_column(Text, nullable=False)
    storage_bucket: Mapped[str] = mapped_column(String(255), nullable=False)

    # Ownership
    owner_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    campaign_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    upload_session_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    # Playback (written by the transcode worker in a single update)
    stream_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    playback_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    thumbnail_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    duration_seconds: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    resolution: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    # {reason, failed_at, attempts} once transcoding has been given up
    error_metadata: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    extra_metadata: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        Index("ix_assets_owner_created", "owner_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Asset(id={self.id}, type={self.asset_type}, status={self.status})>"

    @property
    def kind(self) -> AssetType:
        return AssetType(self.asset_type)

    def is_ready(self) -> bool:
        return self.status == AssetStatus.READY.value
