"""Application configuration settings.

All configuration values are loaded from environment variables (.env file).
No sensitive values should be hardcoded here.
"""

from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    PROJECT_NAME: str = "Media Ingest API"
    VERSION: str = "0.1.0"
    API_V1_PREFIX: str = "/api/v1"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # Database - REQUIRED
    DATABASE_URL: str
    DATABASE_POOL_SIZE: int = 10
    DATABASE_ECHO: bool = False

    # Redis - REQUIRED (Celery broker and result backend)
    REDIS_URL: str

    # Security - REQUIRED (no defaults for sensitive values)
    # Tokens are issued by the external auth service; we only verify them.
    SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"

    # CORS
    CORS_ORIGINS: list[str] = []

    # Object storage (S3, R2, MinIO or any S3-compatible service)
    STORAGE_BUCKET: str = ""
    STORAGE_REGION: str = "auto"
    STORAGE_ACCESS_KEY: str = ""
    STORAGE_SECRET_KEY: str = ""
    STORAGE_ENDPOINT_URL: Optional[str] = None
    STORAGE_CONNECT_TIMEOUT_SECONDS: float = 5.0
    STORAGE_READ_TIMEOUT_SECONDS: float = 30.0
    STORAGE_MAX_RETRIES: int = 3

    # Multipart upload
    UPLOAD_PART_SIZE_BYTES: int = 10 * 1024 * 1024
    UPLOAD_MAX_PARTS: int = 10_000
    UPLOAD_PART_URL_EXPIRES_SECONDS: int = 3600
    UPLOAD_SESSION_TTL_HOURS: int = 24

    # Transcode provider (Cloudflare Stream compatible)
    TRANSCODE_PROVIDER_BASE_URL: str = ""
    TRANSCODE_PROVIDER_API_TOKEN: str = ""
    TRANSCODE_PROVIDER_TIMEOUT_SECONDS: float = 30.0
    TRANSCODE_SOURCE_URL_EXPIRES_SECONDS: int = 3600

    # Transcode queue
    TRANSCODE_MAX_ATTEMPTS: int = 3
    TRANSCODE_BATCH_SIZE: int = 5
    TRANSCODE_WORKER_CONCURRENCY: int = 3
    TRANSCODE_SWEEP_INTERVAL_SECONDS: int = 60
    TRANSCODE_STALE_AFTER_MINUTES: int = 30

    # Downstream processing pipeline (optional)
    PROCESSING_API_BASE: Optional[str] = None
    PROCESSING_API_TIMEOUT_SECONDS: float = 10.0
    PROCESSING_API_DOWNLOAD_EXPIRES_SECONDS: int = 3600

    # Tracing
    OTLP_ENDPOINT: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
