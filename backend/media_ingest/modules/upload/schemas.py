"""Pydantic schemas for the multipart upload API.

Wire format is camelCase; Python attributes stay snake_case.
"""

import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from media_ingest.modules.asset.models import AssetType
from media_ingest.modules.transcoding.schemas import PriorityName


# ==================== Start ====================

class StartUploadRequest(BaseModel):
    """Request to open a multipart upload session."""

    file_name: str = Field(..., alias="fileName", description="Original file name")
    file_size_bytes: int = Field(..., alias="fileSizeBytes", description="Total size in bytes")
    mime_type: str = Field(..., alias="mimeType", description="Content type of the file")
    asset_type: AssetType = Field(..., alias="assetType", description="VIDEO, IMAGE or DOCUMENT")
    campaign_id: Optional[str] = Field(None, alias="campaignId")
    metadata: Optional[dict[str, Any]] = Field(
        None, description="Free-form metadata; title and description are recognised"
    )

    model_config = {
        "populate_by_name": True,
        "json_schema_extra": {
            "example": {
                "fileName": "keynote.mp4",
                "fileSizeBytes": 26214400,
                "mimeType": "video/mp4",
                "assetType": "VIDEO",
                "campaignId": "spring-launch",
                "metadata": {"title": "Keynote"},
            }
        },
    }


class PartUploadUrl(BaseModel):
    """Presigned PUT URL for one part."""

    part_number: int = Field(..., alias="partNumber")
    url: str

    model_config = {"populate_by_name": True}


class StartUploadResponse(BaseModel):
    """Everything the client needs to upload the parts."""

    session_id: uuid.UUID = Field(..., alias="sessionId")
    external_upload_id: str = Field(..., alias="externalUploadId")
    object_key: str = Field(..., alias="objectKey")
    part_size_bytes: int = Field(..., alias="partSizeBytes")
    total_parts: int = Field(..., alias="totalParts")
    expires_at: datetime = Field(..., alias="expiresAt")
    parts: list[PartUploadUrl]

    model_config = {"populate_by_name": True}


# ==================== Complete ====================

class CompletedPart(BaseModel):
    """A part the client uploaded, with the ETag storage returned."""

    part_number: int = Field(..., alias="partNumber")
    e_tag: str = Field(..., alias="eTag")

    model_config = {"populate_by_name": True}


class CompleteUploadRequest(BaseModel):
    """Request to finalize a multipart upload."""

    session_id: uuid.UUID = Field(..., alias="sessionId")
    external_upload_id: str = Field(..., alias="externalUploadId")
    parts: list[CompletedPart]
    asset_type: AssetType = Field(..., alias="assetType")
    priority: PriorityName = Field("NORMAL", description="Transcode queue priority")

    model_config = {"populate_by_name": True}


class CompleteUploadResponse(BaseModel):
    """Created asset and, for video, its transcode job."""

    asset_id: uuid.UUID = Field(..., alias="assetId")
    asset_type: AssetType = Field(..., alias="assetType")
    upload_session_id: uuid.UUID = Field(..., alias="uploadSessionId")
    queued_for_transcode: bool = Field(..., alias="queuedForTranscode")
    job_id: Optional[uuid.UUID] = Field(None, alias="jobId")
    job_status: Optional[str] = Field(None, alias="jobStatus")
    priority: Optional[PriorityName] = None

    model_config = {"populate_by_name": True}
