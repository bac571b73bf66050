"""Tests for the best-effort processing pipeline notification."""

import json
import uuid
from unittest.mock import MagicMock, patch

import httpx
import pytest

from media_ingest.core.config import settings
from media_ingest.core.storage import StorageUnavailableError
from media_ingest.modules.asset.models import AssetType
from media_ingest.modules.upload import tasks
from media_ingest.modules.upload.tasks import (
    PIPELINE_DEFAULTS,
    build_pipeline_payload,
    dispatch_pipeline_notification,
    notify_processing_pipeline,
)

OBJECT_KEY = "uploads/spring-launch/1700000000000-keynote.mp4"


@pytest.fixture
def pipeline_base(monkeypatch):
    monkeypatch.setattr(settings, "PROCESSING_API_BASE", "https://pipeline.test/")
    return "https://pipeline.test"


class TestPipelinePayload:
    def test_payload_carries_download_url(self):
        payload = build_pipeline_payload("asset-1", "VIDEO", "https://storage.test/k?signed=1")

        assert payload["api_url"] == "https://storage.test/k?signed=1"
        assert payload["asset_id"] == "asset-1"
        assert payload["asset_type"] == "VIDEO"
        for key, value in PIPELINE_DEFAULTS.items():
            assert payload[key] == value


class TestNotifyProcessingPipeline:
    """Failures are reported as False, never raised."""

    @pytest.mark.asyncio
    async def test_accepted_with_presigned_source(self, pipeline_base, storage):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(202, json={"status": "queued"})

        ok = await notify_processing_pipeline(
            "asset-1",
            "VIDEO",
            OBJECT_KEY,
            "media-test",
            storage=storage,
            transport=httpx.MockTransport(handler),
        )

        assert ok is True
        assert seen["url"] == f"{pipeline_base}/process-from-api"
        assert seen["body"]["api_url"] == f"https://storage.test/{OBJECT_KEY}?signed=1"
        assert seen["body"]["scene_preset"] == "long_video"
        storage.presign_download.assert_called_once_with(
            OBJECT_KEY, settings.PROCESSING_API_DOWNLOAD_EXPIRES_SECONDS, "media-test"
        )

    @pytest.mark.asyncio
    async def test_rejected(self, pipeline_base, storage):
        transport = httpx.MockTransport(lambda request: httpx.Response(500, text="boom"))

        ok = await notify_processing_pipeline(
            "asset-1", "VIDEO", OBJECT_KEY, storage=storage, transport=transport
        )
        assert ok is False

    @pytest.mark.asyncio
    async def test_unreachable(self, pipeline_base, storage):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        ok = await notify_processing_pipeline(
            "asset-1", "VIDEO", OBJECT_KEY, storage=storage, transport=httpx.MockTransport(handler)
        )
        assert ok is False

    @pytest.mark.asyncio
    async def test_presign_failure_skips_post(self, pipeline_base, storage):
        storage.presign_download.side_effect = StorageUnavailableError("down")
        handler = MagicMock()

        ok = await notify_processing_pipeline(
            "asset-1", "VIDEO", OBJECT_KEY, storage=storage, transport=httpx.MockTransport(handler)
        )

        assert ok is False
        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_skipped_without_base_url(self, monkeypatch, storage):
        monkeypatch.setattr(settings, "PROCESSING_API_BASE", None)
        handler = MagicMock()

        ok = await notify_processing_pipeline(
            "asset-1", "VIDEO", OBJECT_KEY, storage=storage, transport=httpx.MockTransport(handler)
        )

        assert ok is False
        handler.assert_not_called()
        storage.presign_download.assert_not_called()


class TestDispatch:
    def test_dispatch_queues_task(self):
        asset_id = uuid.uuid4()
        with patch.object(tasks, "notify_processing_pipeline_task") as task:
            assert dispatch_pipeline_notification(
                asset_id, AssetType.VIDEO, OBJECT_KEY, "media-test", "cid-1"
            ) is True

        task.delay.assert_called_once_with(
            str(asset_id), "VIDEO", OBJECT_KEY, "media-test", "cid-1"
        )

    def test_broker_failure_is_swallowed(self):
        with patch.object(tasks, "notify_processing_pipeline_task") as task:
            task.delay.side_effect = ConnectionError("broker down")

            assert dispatch_pipeline_notification(uuid.uuid4(), AssetType.VIDEO, OBJECT_KEY) is False
