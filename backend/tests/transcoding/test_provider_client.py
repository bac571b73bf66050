"""Tests for the stream provider client and playback detail parsing."""

import json

import httpx
import pytest
from hypothesis import given, settings, strategies as st

from media_ingest.modules.transcoding.provider import (
    StreamProviderClient,
    TranscodeProviderError,
    TranscodeRetryableError,
    parse_stream_details,
)


def client_for(handler) -> StreamProviderClient:
    return StreamProviderClient(
        base_url="https://provider.test/client/v4/accounts/acct/",
        api_token="secret-token",
        timeout=5,
        transport=httpx.MockTransport(handler),
    )


class TestIngest:
    """Ingest hands the provider a source URL and returns its handle."""

    @pytest.mark.asyncio
    async def test_ingest_posts_copy_request(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True, "result": {"uid": "abc123"}})

        handle = await client_for(handler).ingest(
            "https://storage.test/uploads/a.mp4?signed=1",
            {"assetId": "asset-1", "name": "Keynote"},
        )

        assert handle == "abc123"
        assert seen["path"] == "/client/v4/accounts/acct/stream/copy"
        assert seen["auth"] == "Bearer secret-token"
        assert seen["body"]["url"] == "https://storage.test/uploads/a.mp4?signed=1"
        assert seen["body"]["meta"] == {"assetId": "asset-1", "name": "Keynote"}
        assert seen["body"]["requireSignedURLs"] is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 429, 500, 503])
    async def test_http_errors_are_retryable(self, status):
        client = client_for(lambda request: httpx.Response(status, text="nope"))

        with pytest.raises(TranscodeProviderError) as exc_info:
            await client.ingest("https://storage.test/a.mp4", {})

        assert exc_info.value.status_code == status
        assert isinstance(exc_info.value, TranscodeRetryableError)

    @pytest.mark.asyncio
    async def test_unsuccessful_envelope_rejected(self):
        client = client_for(
            lambda request: httpx.Response(
                200, json={"success": False, "errors": [{"code": 10005, "message": "bad url"}]}
            )
        )

        with pytest.raises(TranscodeProviderError, match="not successful"):
            await client.ingest("https://storage.test/a.mp4", {})

    @pytest.mark.asyncio
    async def test_missing_uid_rejected(self):
        client = client_for(
            lambda request: httpx.Response(200, json={"success": True, "result": {}})
        )

        with pytest.raises(TranscodeProviderError, match="uid"):
            await client.ingest("https://storage.test/a.mp4", {})

    @pytest.mark.asyncio
    async def test_non_json_body_rejected(self):
        client = client_for(lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(TranscodeProviderError, match="non-JSON"):
            await client.ingest("https://storage.test/a.mp4", {})


class TestGetDetails:
    @pytest.mark.asyncio
    async def test_details_are_parsed(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path.endswith("/stream/abc123")
            return httpx.Response(200, json={
                "success": True,
                "result": {
                    "uid": "abc123",
                    "readyToStream": True,
                    "playback": {"hls": "https://cdn.test/abc123.m3u8"},
                    "thumbnail": "https://cdn.test/abc123.jpg",
                    "duration": 12.0,
                    "input": {"width": 1280, "height": 720},
                },
            })

        details = await client_for(handler).get_details("abc123")

        assert details.ready is True
        assert details.playback_url == "https://cdn.test/abc123.m3u8"
        assert details.resolution == "1280x720"
        assert details.duration_seconds == 12.0


class TestParseStreamDetails:
    """Provider placeholders map to missing values, never to bogus ones."""

    def test_unknown_duration_and_size(self):
        details = parse_stream_details("h1", {
            "readyToStream": False,
            "duration": -1,
            "input": {"width": -1, "height": -1},
        })

        assert details.stream_id == "h1"
        assert details.ready is False
        assert details.duration_seconds is None
        assert details.resolution is None

    def test_dash_used_when_hls_missing(self):
        details = parse_stream_details("h1", {
            "readyToStream": True,
            "playback": {"dash": "https://cdn.test/h1.mpd"},
        })
        assert details.ready is True
        assert details.playback_url == "https://cdn.test/h1.mpd"

    @given(ready=st.booleans(), has_playback=st.booleans())
    @settings(max_examples=100)
    def test_ready_requires_playback_url(self, ready: bool, has_playback: bool):
        result = {"readyToStream": ready}
        if has_playback:
            result["playback"] = {"hls": "https://cdn.test/x.m3u8"}

        details = parse_stream_details("x", result)

        assert details.ready == (ready and has_playback)
        if details.ready:
            assert details.playback_url
