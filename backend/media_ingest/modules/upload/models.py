"""Upload session model for multipart uploads."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Integer, JSON, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from media_ingest.core.clock import as_utc, utcnow
from media_ingest.core.database import Base


class UploadSessionStatus(str, Enum):
    """Upload session status.

    IN_PROGRESS moves to COMPLETED or EXPIRED exactly once; neither
    terminal state reverts.
    """
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    EXPIRED = "EXPIRED"


class UploadSession(Base):
    """Server-side record of one multipart upload handshake."""

    __tablename__ = "upload_sessions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Opaque storage handle, stored whole and compared exactly
    external_upload_id: Mapped[str] = mapped_column(Text, nullable=False)
    object_key: Mapped[str] = mapped_column(Text, nullable=False)
    storage_bucket: Mapped[str] = mapped_column(String(255), nullable=False)

    # File description
    file_name: Mapped[str] = mapped_column(String(1024), nullable=False)
    file_size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(255), nullable=False)
    asset_type: Mapped[str] = mapped_column(String(20), nullable=False)

    # Part layout
    total_parts: Mapped[int] = mapped_column(Integer, nullable=False)
    part_size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    uploaded_part_numbers: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=UploadSessionStatus.IN_PROGRESS.value, index=True
    )

    owner_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    campaign_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    arbitrary_metadata: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    # Set on completion
    asset_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return f"<UploadSession(id={self.id}, status={self.status}, parts={self.total_parts})>"

    def is_in_progress(self) -> bool:
        return self.status == UploadSessionStatus.IN_PROGRESS.value

    def is_expired_at(self, now: datetime) -> bool:
        """Whether the session's lifetime has passed at ``now``."""
        return now > as_utc(self.expires_at)
