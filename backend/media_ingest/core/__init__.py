"""Core module for configuration and shared infrastructure."""

from media_ingest.core.config import settings
from media_ingest.core.database import Base, get_db

__all__ = [
    "settings",
    "Base",
    "get_db",
]
