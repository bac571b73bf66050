"""Celery tasks driving the transcode queue.

The beat schedule runs the periodic sweep and the stale-claim release;
the HIGH-priority fast path dispatches a one-job sweep right after an
urgent enqueue commits.
"""

import logging
from datetime import timedelta
from typing import Optional

from media_ingest.core.celery_app import celery_app, run_async
from media_ingest.core.config import settings
from media_ingest.core.logging import correlation_scope, log_error
from media_ingest.modules.transcoding.service import build_transcode_queue_service

logger = logging.getLogger(__name__)


@celery_app.task(name="media_ingest.modules.transcoding.tasks.process_transcode_queue_task")
def process_transcode_queue_task(batch_size: Optional[int] = None) -> dict:
    """Periodic sweep: claim and run up to ``batch_size`` jobs."""
    with correlation_scope():
        summary = run_async(
            lambda: build_transcode_queue_service().process_queue(
                batch_size or settings.TRANSCODE_BATCH_SIZE
            )
        )
    return summary.to_dict()


@celery_app.task(name="media_ingest.modules.transcoding.tasks.process_high_priority_task")
def process_high_priority_task(correlation_id: Optional[str] = None) -> dict:
    """Out-of-band single claim for a freshly enqueued HIGH job.

    The claim takes whatever is most urgent, which is the new job unless
    an older HIGH job is still waiting.
    """
    with correlation_scope(correlation_id):
        summary = run_async(
            lambda: build_transcode_queue_service().process_queue(batch_size=1)
        )
    return summary.to_dict()


@celery_app.task(name="media_ingest.modules.transcoding.tasks.release_stale_claims_task")
def release_stale_claims_task() -> dict:
    with correlation_scope():
        released = run_async(
            lambda: build_transcode_queue_service().release_stale_claims(
                timedelta(minutes=settings.TRANSCODE_STALE_AFTER_MINUTES)
            )
        )
    return {"released": released}


def trigger_high_priority_run(correlation_id: Optional[str] = None) -> bool:
    """Dispatch the fast path; failure to dispatch is logged, never raised.

    Returns:
        True if the task was handed to the broker
    """
    try:
        process_high_priority_task.delay(correlation_id)
        return True
    except Exception as e:
        log_error(logger, "Failed to dispatch high-priority transcode run", exception=e)
        return False
