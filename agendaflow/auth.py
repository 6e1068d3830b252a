"""Bearer-token identity for the HTTP layer.

Tokens are HS256 JWTs signed with ``TOKEN_SECRET`` carrying ``sub`` (user),
``org``, ``role`` and ``exp``. The booking core never looks at identities;
the API only uses them to check the caller belongs to the organization in
the path.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from agendaflow.config import settings

logger = logging.getLogger(__name__)

bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Identity:
    user_id: str
    org_id: str
    role: str


def issue_token(
    identity: Identity,
    secret: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed access token for ``identity``."""
    secret = secret or settings.security.token_secret
    expires_delta = expires_delta or timedelta(minutes=settings.security.token_ttl_minutes)
    claims = {
        "sub": identity.user_id,
        "org": identity.org_id,
        "role": identity.role,
        "exp": datetime.now(UTC) + expires_delta,
    }
    return jwt.encode(claims, secret, algorithm=settings.security.token_algorithm)


def decode_token(token: str, secret: str | None = None) -> Identity | None:
    """Return the token's identity, or None if it is malformed, forged or expired."""
    secret = secret or settings.security.token_secret
    try:
        claims = jwt.decode(token, secret, algorithms=[settings.security.token_algorithm])
    except JWTError as exc:
        logger.warning("Token verification failed: %s", exc)
        return None
    try:
        return Identity(user_id=claims["sub"], org_id=claims["org"], role=claims["role"])
    except KeyError:
        logger.warning("Token missing identity claims")
        return None


async def verify_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),  # noqa: B008
) -> Identity:
    """FastAPI dependency: resolve the caller's identity, 401 on failure."""
    if not settings.security.token_secret:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="TOKEN_SECRET not configured",
        )
    identity = decode_token(credentials.credentials) if credentials else None
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity


def require_org(org_id: str, identity: Identity) -> None:
    """403 unless the identity belongs to ``org_id``."""
    if identity.org_id != org_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Token does not grant access to this organization",
        )
