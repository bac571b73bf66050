"""Bearer token verification for API routes."""

from media_ingest.modules.auth.jwt import create_access_token, get_current_owner_id

__all__ = ["create_access_token", "get_current_owner_id"]
