"""Celery application configuration."""

import asyncio
from typing import Awaitable, Callable, TypeVar

from celery import Celery
from celery.signals import worker_process_init

from media_ingest.core.config import settings
from media_ingest.core.database import engine
from media_ingest.core.logging import setup_logging
from media_ingest.core.tracing import setup_tracing

T = TypeVar("T")

celery_app = Celery(
    "media_ingest",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=3600,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    beat_schedule={
        "transcode-queue-sweep": {
            "task": "media_ingest.modules.transcoding.tasks.process_transcode_queue_task",
            "schedule": float(settings.TRANSCODE_SWEEP_INTERVAL_SECONDS),
        },
        "transcode-release-stale-claims": {
            "task": "media_ingest.modules.transcoding.tasks.release_stale_claims_task",
            "schedule": 300.0,
        },
    },
)

celery_app.autodiscover_tasks(
    ["media_ingest.modules.transcoding", "media_ingest.modules.upload"]
)


def run_async(coro_factory: Callable[[], Awaitable[T]]) -> T:
    """Run a coroutine from a synchronous task body.

    Each call gets a fresh event loop, so pooled async DB connections are
    disposed before the loop closes.
    """
    async def runner() -> T:
        try:
            return await coro_factory()
        finally:
            await engine.dispose()

    return asyncio.run(runner())


@worker_process_init.connect
def init_worker_observability(**kwargs) -> None:
    """Per-process logging and tracing for Celery workers."""
    setup_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)
    setup_tracing(
        service_name=f"{settings.PROJECT_NAME} worker",
        service_version=settings.VERSION,
        environment="development" if settings.DEBUG else "production",
        otlp_endpoint=settings.OTLP_ENDPOINT,
    )
