"""Pydantic schemas for the asset API."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field

from media_ingest.modules.asset.models import AssetStatus, AssetType


class AssetInfo(BaseModel):
    """Asset as returned to its owner."""

    id: uuid.UUID
    asset_type: AssetType = Field(..., alias="assetType")
    title: str
    filename: str
    original_size_bytes: int = Field(..., alias="originalSizeBytes")
    mime_type: str = Field(..., alias="mimeType")
    status: AssetStatus
    campaign_id: Optional[str] = Field(None, alias="campaignId")
    upload_session_id: Optional[uuid.UUID] = Field(None, alias="uploadSessionId")
    stream_id: Optional[str] = Field(None, alias="streamId")
    playback_url: Optional[str] = Field(None, alias="playbackUrl")
    thumbnail_url: Optional[str] = Field(None, alias="thumbnailUrl")
    duration_seconds: Optional[float] = Field(None, alias="durationSeconds")
    resolution: Optional[str] = None
    error_metadata: Optional[dict] = Field(None, alias="errorMetadata")
    # ORM attribute first: every mapped class also has a SQLAlchemy `metadata`
    extra_metadata: dict = Field(
        default_factory=dict,
        validation_alias=AliasChoices("extra_metadata", "metadata"),
        serialization_alias="metadata",
    )
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")

    model_config = {
        "from_attributes": True,
        "populate_by_name": True,
    }
