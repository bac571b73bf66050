"""Transcode job model for the provider handoff queue."""

import uuid
from datetime import datetime
from enum import Enum, IntEnum
from typing import Optional

from sqlalchemy import DateTime, Index, Integer, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from media_ingest.core.clock import utcnow
from media_ingest.core.database import Base


class TranscodeStatus(str, Enum):
    """Transcode job status. COMPLETED and FAILED are terminal."""
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


ACTIVE_STATUSES = (TranscodeStatus.PENDING.value, TranscodeStatus.PROCESSING.value)


class TranscodePriority(IntEnum):
    """Queue priority (higher = more urgent)."""
    LOW = 0
    NORMAL = 1
    HIGH = 2


class TranscodeJob(Base):
    """One attempt-bounded handoff of a video asset to the provider."""

    __tablename__ = "transcode_jobs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Non-owning reference, no FK cascade
    asset_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    storage_key: Mapped[str] = mapped_column(Text, nullable=False)
    storage_bucket: Mapped[str] = mapped_column(String(255), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TranscodeStatus.PENDING.value
    )
    priority: Mapped[int] = mapped_column(
        Integer, nullable=False, default=int(TranscodePriority.NORMAL)
    )

    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Provider job handle once ingest was accepted; reused on retry
    provider_handle: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Python-side default keeps microsecond ordering for FIFO within a priority
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    started_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("ix_transcode_jobs_claim", "status", "priority", "created_at"),
        # At most one non-terminal job per asset
        Index(
            "uq_transcode_jobs_active_asset",
            "asset_id",
            unique=True,
            postgresql_where=text("status IN ('PENDING', 'PROCESSING')"),
            sqlite_where=text("status IN ('PENDING', 'PROCESSING')"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<TranscodeJob(id={self.id}, asset={self.asset_id}, status={self.status}, "
            f"attempts={self.attempts}/{self.max_attempts})>"
        )

    @property
    def priority_name(self) -> str:
        return TranscodePriority(self.priority).name
