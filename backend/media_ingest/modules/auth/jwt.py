"""Bearer token verification.

Tokens are issued by the external auth service and signed with the shared
SECRET_KEY. The ``sub`` claim is the owner id.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError

from media_ingest.core.config import settings


class TokenPayload(BaseModel):
    """JWT token payload structure."""

    sub: str  # Owner ID
    exp: datetime
    type: str = "access"


def create_access_token(owner_id: uuid.UUID, expires_delta: timedelta = timedelta(minutes=15)) -> str:
    """Create a signed access token.

    Used by tests and local tooling; production tokens come from the
    auth service.
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(owner_id),
        "iat": now,
        "exp": now + expires_delta,
        "type": "access",
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> Optional[TokenPayload]:
    """Decode and validate a JWT token.

    Signature and expiry are checked by python-jose.

    Returns:
        TokenPayload | None: Decoded payload if valid, None otherwise
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
        return TokenPayload(
            sub=payload["sub"],
            exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            type=payload.get("type", "access"),
        )
    except (JWTError, KeyError, ValidationError):
        return None


security = HTTPBearer(auto_error=False)


async def get_current_owner_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> uuid.UUID:
    """FastAPI dependency resolving the authenticated owner id.

    Raises:
        HTTPException: 401 if the token is missing, invalid or expired
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_token(credentials.credentials)
    if payload is None or payload.type != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return uuid.UUID(payload.sub)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token subject",
            headers={"WWW-Authenticate": "Bearer"},
        )
