"""Transcode queue: priority-ordered jobs handed to the stream provider."""

from media_ingest.modules.transcoding.models import (
    ACTIVE_STATUSES,
    TranscodeJob,
    TranscodePriority,
    TranscodeStatus,
)

__all__ = [
    "ACTIVE_STATUSES",
    "TranscodeJob",
    "TranscodePriority",
    "TranscodeStatus",
]
