"""Tests for the S3-compatible storage gateway over a mocked boto3 client."""

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from media_ingest.core.storage import (
    ObjectStorageGateway,
    StorageConfig,
    StorageError,
    StorageUnavailableError,
    UploadedPart,
)


def client_error(code: str, status: int, operation: str = "CreateMultipartUpload") -> ClientError:
    return ClientError(
        {
            "Error": {"Code": code, "Message": f"{code} happened"},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        operation,
    )


@pytest.fixture
def boto_client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def gateway(boto_client) -> ObjectStorageGateway:
    return ObjectStorageGateway(StorageConfig(bucket="media-test"), client=boto_client)


class TestMultipartLifecycle:
    def test_create_returns_upload_handle(self, gateway, boto_client):
        boto_client.create_multipart_upload.return_value = {"UploadId": "opaque~id/with+chars"}

        upload = gateway.create_multipart_upload(
            "uploads/c/1-a.mp4", "video/mp4", {"title": "A"}
        )

        assert upload.upload_id == "opaque~id/with+chars"
        assert upload.bucket == "media-test"
        boto_client.create_multipart_upload.assert_called_once_with(
            Bucket="media-test",
            Key="uploads/c/1-a.mp4",
            ContentType="video/mp4",
            Metadata={"title": "A"},
        )

    def test_create_without_upload_id_is_an_error(self, gateway, boto_client):
        boto_client.create_multipart_upload.return_value = {}

        with pytest.raises(StorageError):
            gateway.create_multipart_upload("k", "video/mp4")

    def test_presign_part(self, gateway, boto_client):
        boto_client.generate_presigned_url.return_value = "https://storage.test/k?partNumber=2"

        url = gateway.presign_part_upload("k", "upload-1", 2, 3600)

        assert url == "https://storage.test/k?partNumber=2"
        boto_client.generate_presigned_url.assert_called_once_with(
            ClientMethod="upload_part",
            Params={"Bucket": "media-test", "Key": "k", "UploadId": "upload-1", "PartNumber": 2},
            ExpiresIn=3600,
        )

    def test_complete_sends_parts_in_order(self, gateway, boto_client):
        boto_client.complete_multipart_upload.return_value = {"ETag": '"final"'}

        etag = gateway.complete_multipart_upload(
            "k",
            "upload-1",
            [UploadedPart(3, "c"), UploadedPart(1, "a"), UploadedPart(2, "b")],
        )

        assert etag == '"final"'
        sent = boto_client.complete_multipart_upload.call_args.kwargs["MultipartUpload"]["Parts"]
        assert [p["PartNumber"] for p in sent] == [1, 2, 3]
        assert [p["ETag"] for p in sent] == ["a", "b", "c"]

    def test_presign_download_uses_object_bucket(self, gateway, boto_client):
        boto_client.generate_presigned_url.return_value = "https://storage.test/other/k"

        gateway.presign_download("k", 600, bucket="other")

        params = boto_client.generate_presigned_url.call_args.kwargs["Params"]
        assert params == {"Bucket": "other", "Key": "k"}


class TestErrorTranslation:
    """Transient failures become StorageUnavailableError."""

    @pytest.mark.parametrize(
        "code,status",
        [("SlowDown", 503), ("ServiceUnavailable", 503), ("InternalError", 500), ("Weird", 502)],
    )
    def test_transient_client_errors(self, gateway, boto_client, code, status):
        boto_client.create_multipart_upload.side_effect = client_error(code, status)

        with pytest.raises(StorageUnavailableError) as exc_info:
            gateway.create_multipart_upload("k", "video/mp4")

        assert exc_info.value.code == code
        assert exc_info.value.operation == "create_multipart_upload"

    @pytest.mark.parametrize("code,status", [("AccessDenied", 403), ("NoSuchUpload", 404)])
    def test_permanent_client_errors(self, gateway, boto_client, code, status):
        boto_client.complete_multipart_upload.side_effect = client_error(
            code, status, "CompleteMultipartUpload"
        )

        with pytest.raises(StorageError) as exc_info:
            gateway.complete_multipart_upload("k", "u", [UploadedPart(1, "a")])

        assert not isinstance(exc_info.value, StorageUnavailableError)
        assert exc_info.value.code == code

    def test_connection_failure(self, gateway, boto_client):
        boto_client.abort_multipart_upload.side_effect = EndpointConnectionError(
            endpoint_url="https://storage.test"
        )

        with pytest.raises(StorageUnavailableError):
            gateway.abort_multipart_upload("k", "u")
