"""Object storage gateway for S3-compatible backends (S3, R2, MinIO).

A thin stateless wrapper over boto3: multipart upload lifecycle and
presigned URLs. Clients upload parts straight to storage; bytes never
pass through this service.
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionError as BotoConnectionError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from media_ingest.core.config import settings
from media_ingest.core.metrics import STORAGE_ERRORS_TOTAL

logger = logging.getLogger(__name__)

# S3 error codes that mean "try again later" rather than "request is wrong"
_TRANSIENT_ERROR_CODES = frozenset((
    "SlowDown",
    "ServiceUnavailable",
    "InternalError",
    "RequestTimeout",
    "RequestTimeTooSkewed",
    "503",
    "500",
))


class StorageError(Exception):
    """Object storage rejected or failed a request."""

    def __init__(self, message: str, operation: str = "", code: Optional[str] = None):
        super().__init__(message)
        self.operation = operation
        self.code = code


class StorageUnavailableError(StorageError):
    """Object storage could not be reached or is temporarily unavailable."""

    pass


@dataclass
class StorageConfig:
    """Connection settings for the storage backend."""
    bucket: str
    region: str = "auto"
    access_key: str = ""
    secret_key: str = ""
    endpoint_url: Optional[str] = None
    connect_timeout: float = 5.0
    read_timeout: float = 30.0
    max_retries: int = 3

    @classmethod
    def from_settings(cls) -> "StorageConfig":
        return cls(
            bucket=settings.STORAGE_BUCKET,
            region=settings.STORAGE_REGION,
            access_key=settings.STORAGE_ACCESS_KEY,
            secret_key=settings.STORAGE_SECRET_KEY,
            endpoint_url=settings.STORAGE_ENDPOINT_URL,
            connect_timeout=settings.STORAGE_CONNECT_TIMEOUT_SECONDS,
            read_timeout=settings.STORAGE_READ_TIMEOUT_SECONDS,
            max_retries=settings.STORAGE_MAX_RETRIES,
        )


@dataclass
class MultipartUpload:
    """Handle returned when a multipart upload is opened."""
    upload_id: str
    key: str
    bucket: str


@dataclass
class UploadedPart:
    """A part the client reports as uploaded."""
    part_number: int
    etag: str


def _translate_error(operation: str, exc: Exception) -> StorageError:
    """Map a botocore exception onto the storage error hierarchy."""
    STORAGE_ERRORS_TOTAL.labels(operation=operation).inc()

    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        code = str(error.get("Code", ""))
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        message = f"{operation} failed: {code or 'unknown'} {error.get('Message', '')}".strip()
        if code in _TRANSIENT_ERROR_CODES or (status is not None and status >= 500):
            return StorageUnavailableError(message, operation=operation, code=code)
        return StorageError(message, operation=operation, code=code)

    if isinstance(
        exc,
        (EndpointConnectionError, ConnectTimeoutError, ReadTimeoutError, BotoConnectionError),
    ):
        return StorageUnavailableError(f"{operation} failed: {exc}", operation=operation)

    return StorageError(f"{operation} failed: {exc}", operation=operation)


class ObjectStorageGateway:
    """Multipart uploads and presigned URLs against one bucket."""

    def __init__(self, config: StorageConfig, client: Any = None):
        self.config = config
        self._client = client

    @property
    def bucket(self) -> str:
        return self.config.bucket

    def _get_client(self) -> Any:
        """Get or create the boto3 S3 client."""
        if self._client is None:
            client_kwargs: dict[str, Any] = {
                "service_name": "s3",
                "region_name": self.config.region or "auto",
                "aws_access_key_id": self.config.access_key or None,
                "aws_secret_access_key": self.config.secret_key or None,
                "config": BotoConfig(
                    signature_version="s3v4",
                    s3={"addressing_style": "path"},
                    connect_timeout=self.config.connect_timeout,
                    read_timeout=self.config.read_timeout,
                    retries={"max_attempts": self.config.max_retries, "mode": "standard"},
                ),
            }
            if self.config.endpoint_url:
                client_kwargs["endpoint_url"] = self.config.endpoint_url
            self._client = boto3.client(**client_kwargs)
        return self._client

    # ==================== Multipart upload ====================

    def create_multipart_upload(
        self,
        key: str,
        content_type: str,
        metadata: Optional[dict[str, str]] = None,
    ) -> MultipartUpload:
        """Open a multipart upload and return its opaque upload id."""
        try:
            response = self._get_client().create_multipart_upload(
                Bucket=self.bucket,
                Key=key,
                ContentType=content_type,
                Metadata=metadata or {},
            )
        except (ClientError, BotoCoreError) as e:
            raise _translate_error("create_multipart_upload", e) from e

        upload_id = response.get("UploadId")
        if not upload_id:
            STORAGE_ERRORS_TOTAL.labels(operation="create_multipart_upload").inc()
            raise StorageError(
                "create_multipart_upload returned no UploadId",
                operation="create_multipart_upload",
            )
        return MultipartUpload(upload_id=upload_id, key=key, bucket=self.bucket)

    def presign_part_upload(
        self,
        key: str,
        upload_id: str,
        part_number: int,
        expires_in: int,
    ) -> str:
        """Presigned PUT URL for one part of a multipart upload."""
        try:
            return self._get_client().generate_presigned_url(
                ClientMethod="upload_part",
                Params={
                    "Bucket": self.bucket,
                    "Key": key,
                    "UploadId": upload_id,
                    "PartNumber": part_number,
                },
                ExpiresIn=expires_in,
            )
        except (ClientError, BotoCoreError) as e:
            raise _translate_error("presign_part_upload", e) from e

    def complete_multipart_upload(
        self,
        key: str,
        upload_id: str,
        parts: Iterable[UploadedPart],
    ) -> Optional[str]:
        """Finalize a multipart upload.

        Parts are sent sorted by part number, as S3 requires.

        Returns:
            The ETag of the assembled object, when the backend reports one
        """
        ordered = sorted(parts, key=lambda p: p.part_number)
        try:
            response = self._get_client().complete_multipart_upload(
                Bucket=self.bucket,
                Key=key,
                UploadId=upload_id,
                MultipartUpload={
                    "Parts": [
                        {"ETag": part.etag, "PartNumber": part.part_number}
                        for part in ordered
                    ]
                },
            )
        except (ClientError, BotoCoreError) as e:
            raise _translate_error("complete_multipart_upload", e) from e
        return response.get("ETag")

    def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        try:
            self._get_client().abort_multipart_upload(
                Bucket=self.bucket,
                Key=key,
                UploadId=upload_id,
            )
        except (ClientError, BotoCoreError) as e:
            raise _translate_error("abort_multipart_upload", e) from e

    # ==================== Downloads ====================

    def presign_download(
        self,
        key: str,
        expires_in: int,
        bucket: Optional[str] = None,
    ) -> str:
        """Presigned GET URL for a stored object."""
        try:
            return self._get_client().generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": bucket or self.bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except (ClientError, BotoCoreError) as e:
            raise _translate_error("presign_download", e) from e


_gateway: Optional[ObjectStorageGateway] = None


def get_storage_gateway() -> ObjectStorageGateway:
    """Process-wide gateway built from settings."""
    global _gateway
    if _gateway is None:
        _gateway = ObjectStorageGateway(StorageConfig.from_settings())
    return _gateway
