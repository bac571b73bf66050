"""Client for the external transcoding/streaming provider.

Speaks the Cloudflare Stream "copy from URL" API: the provider pulls the
source from a presigned URL and later reports playback details.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from media_ingest.core.config import settings
from media_ingest.core.metrics import PROVIDER_REQUESTS_TOTAL

logger = logging.getLogger(__name__)


class TranscodeRetryableError(Exception):
    """A transcode attempt failed in a way worth retrying."""
    pass


class TranscodeProviderError(TranscodeRetryableError):
    """The provider rejected a request or answered with an error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class StreamNotReadyError(TranscodeRetryableError):
    """The provider accepted the source but playback is not available yet."""
    pass


@dataclass
class StreamDetails:
    """Playback details reported by the provider."""
    stream_id: str
    ready: bool
    playback_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    duration_seconds: Optional[float] = None
    resolution: Optional[str] = None


def parse_stream_details(handle: str, result: dict[str, Any]) -> StreamDetails:
    """Build StreamDetails from a provider ``result`` object."""
    playback = result.get("playback") or {}
    playback_url = playback.get("hls") or playback.get("dash")

    duration = result.get("duration")
    # The provider reports -1 while the duration is still unknown
    duration_seconds = float(duration) if duration is not None and duration >= 0 else None

    source = result.get("input") or {}
    width, height = source.get("width"), source.get("height")
    resolution = f"{width}x{height}" if width and height and width > 0 and height > 0 else None

    return StreamDetails(
        stream_id=result.get("uid") or handle,
        ready=bool(result.get("readyToStream")) and bool(playback_url),
        playback_url=playback_url,
        thumbnail_url=result.get("thumbnail"),
        duration_seconds=duration_seconds,
        resolution=resolution,
    )


class StreamProviderClient:
    """Async client for the provider's ingest and details endpoints."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the provider client.

        Args:
            base_url: Provider API base (uses settings if not provided)
            api_token: Bearer token for the provider API
            timeout: Per-request timeout in seconds
            transport: Custom httpx transport, used by tests
        """
        self.base_url = (base_url or settings.TRANSCODE_PROVIDER_BASE_URL).rstrip("/")
        self.api_token = api_token if api_token is not None else settings.TRANSCODE_PROVIDER_API_TOKEN
        self.timeout = timeout or settings.TRANSCODE_PROVIDER_TIMEOUT_SECONDS
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Authorization": f"Bearer {self.api_token}"},
            timeout=self.timeout,
            transport=self.transport,
        )

    @staticmethod
    def _unwrap(operation: str, response: httpx.Response) -> dict[str, Any]:
        """Check status and the ``success`` envelope, return ``result``."""
        PROVIDER_REQUESTS_TOTAL.labels(
            operation=operation, status=str(response.status_code)
        ).inc()

        if response.status_code >= 400:
            raise TranscodeProviderError(
                f"{operation} failed with HTTP {response.status_code}: {response.text[:500]}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError:
            raise TranscodeProviderError(
                f"{operation} returned a non-JSON body", status_code=response.status_code
            )

        if not body.get("success"):
            errors = body.get("errors") or []
            raise TranscodeProviderError(
                f"{operation} was not successful: {errors}", status_code=response.status_code
            )

        result = body.get("result")
        if not isinstance(result, dict):
            raise TranscodeProviderError(f"{operation} returned no result")
        return result

    async def ingest(self, source_url: str, correlation: dict[str, Any]) -> str:
        """Ask the provider to pull a source file.

        Args:
            source_url: Presigned GET URL of the uploaded object
            correlation: Metadata echoed back by the provider (asset id, name, owner)

        Returns:
            Provider handle (stream uid)

        Raises:
            TranscodeProviderError: If the provider rejects the request
            httpx.HTTPError: On network failure or timeout
        """
        payload = {
            "url": source_url,
            "meta": correlation,
            "requireSignedURLs": False,
            "allowedOrigins": [],
            "thumbnailTimestampPct": 0.1,
        }
        async with self._client() as client:
            response = await client.post("/stream/copy", json=payload)

        result = self._unwrap("ingest", response)
        handle = result.get("uid")
        if not handle:
            raise TranscodeProviderError("ingest response carried no stream uid")

        logger.info("Provider accepted source", extra={"stream_id": handle})
        return handle

    async def get_details(self, handle: str) -> StreamDetails:
        """Fetch playback details for a stream handle."""
        async with self._client() as client:
            response = await client.get(f"/stream/{handle}")

        return parse_stream_details(handle, self._unwrap("get_details", response))
