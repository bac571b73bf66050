"""Prometheus metrics for the ingest API and transcode workers."""

import os

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    Info,
    CollectorRegistry,
    generate_latest,
    CONTENT_TYPE_LATEST,
    multiprocess,
)

REGISTRY = CollectorRegistry()

# Gunicorn / multi-worker deployments aggregate from a shared directory
if "PROMETHEUS_MULTIPROC_DIR" in os.environ or "prometheus_multiproc_dir" in os.environ:
    multiprocess.MultiProcessCollector(REGISTRY)


# ============================================
# Application Info
# ============================================
APP_INFO = Info(
    "media_ingest_app",
    "Application information",
    registry=REGISTRY,
)


# ============================================
# HTTP Request Metrics
# ============================================
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=REGISTRY,
)

HTTP_REQUESTS_IN_PROGRESS = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests currently in progress",
    ["method", "endpoint"],
    registry=REGISTRY,
)


# ============================================
# Upload Session Metrics
# ============================================
UPLOAD_SESSIONS_TOTAL = Counter(
    "upload_sessions_total",
    "Upload session transitions by asset type and outcome",
    ["asset_type", "outcome"],
    registry=REGISTRY,
)

UPLOAD_BYTES_TOTAL = Counter(
    "upload_bytes_total",
    "Bytes accepted through completed multipart uploads",
    ["asset_type"],
    registry=REGISTRY,
)

STORAGE_ERRORS_TOTAL = Counter(
    "storage_errors_total",
    "Object storage call failures by operation",
    ["operation"],
    registry=REGISTRY,
)


# ============================================
# Transcode Queue Metrics
# ============================================
QUEUE_DEPTH = Gauge(
    "transcode_queue_depth",
    "Number of transcode jobs by status",
    ["status"],
    registry=REGISTRY,
)

TRANSCODE_JOBS_TOTAL = Counter(
    "transcode_jobs_total",
    "Transcode job runs by outcome",
    ["outcome"],
    registry=REGISTRY,
)

TRANSCODE_JOB_DURATION_SECONDS = Histogram(
    "transcode_job_duration_seconds",
    "Wall time of a single transcode worker run",
    ["outcome"],
    buckets=[0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0],
    registry=REGISTRY,
)

TRANSCODE_STALE_RECLAIMED_TOTAL = Counter(
    "transcode_stale_reclaimed_total",
    "Abandoned PROCESSING claims returned to the queue",
    registry=REGISTRY,
)

PROVIDER_REQUESTS_TOTAL = Counter(
    "transcode_provider_requests_total",
    "Requests made to the transcode provider",
    ["operation", "status"],
    registry=REGISTRY,
)


def get_metrics() -> bytes:
    """Latest metrics in Prometheus text format."""
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    return CONTENT_TYPE_LATEST


def set_app_info(version: str, environment: str) -> None:
    APP_INFO.info({
        "version": version,
        "environment": environment,
    })
