"""Pydantic schemas for the transcode queue API."""

import uuid
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from media_ingest.modules.transcoding.models import TranscodeJob

PriorityName = Literal["LOW", "NORMAL", "HIGH"]


class TranscodeJobInfo(BaseModel):
    """Transcode job as exposed over the API."""

    id: uuid.UUID
    asset_id: uuid.UUID = Field(..., alias="assetId")
    status: str
    priority: str
    attempts: int
    max_attempts: int = Field(..., alias="maxAttempts")
    last_error: Optional[str] = Field(None, alias="lastError")
    provider_handle: Optional[str] = Field(None, alias="providerHandle")
    created_at: datetime = Field(..., alias="createdAt")
    started_at: Optional[datetime] = Field(None, alias="startedAt")
    completed_at: Optional[datetime] = Field(None, alias="completedAt")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_job(cls, job: TranscodeJob) -> "TranscodeJobInfo":
        return cls(
            id=job.id,
            asset_id=job.asset_id,
            status=job.status,
            priority=job.priority_name,
            attempts=job.attempts,
            max_attempts=job.max_attempts,
            last_error=job.last_error,
            provider_handle=job.provider_handle,
            created_at=job.created_at,
            started_at=job.started_at,
            completed_at=job.completed_at,
        )


class QueueRunResponse(BaseModel):
    """Outcome counts of one queue sweep."""

    claimed: int
    completed: int
    retrying: int
    failed: int
    lost: int


class QueueStatsResponse(BaseModel):
    """Job counts by status."""

    pending: int = Field(0, alias="PENDING")
    processing: int = Field(0, alias="PROCESSING")
    completed: int = Field(0, alias="COMPLETED")
    failed: int = Field(0, alias="FAILED")
    total: int = 0

    model_config = {"populate_by_name": True}


class RequeueResponse(BaseModel):
    """Result of a manual requeue."""

    job: TranscodeJobInfo
    created: bool
