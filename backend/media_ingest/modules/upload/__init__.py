"""Upload module for the multipart upload handshake.

Start opens a storage multipart upload and hands out presigned part URLs;
complete finalizes it, registers the asset and queues video for transcoding.
"""

from media_ingest.modules.upload.models import UploadSession, UploadSessionStatus

__all__ = ["UploadSession", "UploadSessionStatus"]
