"""
PetMatch Backend - Bearer Token Authentication
==============================================

What:  Resolves the acting principal (Actor: id + role) from the request's
       `Authorization: Bearer <jwt>` header.
How:   Tokens are HMAC-signed JWTs (python-jose) issued by the auth service
       with claims {sub, role, exp, iat, type: "access"}. This module only
       verifies them; create_access_token() exists for local tooling and tests.
Who:   Route handlers via Depends(get_current_actor).
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt

from app.config import settings
from app.exceptions import AuthenticationError
from app.services.permissions import ROLES, Actor

logger = logging.getLogger(__name__)

# auto_error=False so a missing header reaches our own 401 handler
bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(
    subject: str,
    role: str,
    expires_minutes: Optional[int] = None,
) -> str:
    """Sign an access token for `subject` with the configured secret."""
    now = datetime.now(timezone.utc)
    minutes = expires_minutes if expires_minutes is not None else settings.jwt_access_token_expire_minutes
    payload = {
        "sub": subject,
        "role": role,
        "iat": now,
        "exp": now + timedelta(minutes=minutes),
        "type": "access",
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Actor:
    """
    Verify `token` and return the Actor it names.

    Raises:
        AuthenticationError: bad signature, expired, wrong type, or missing claims
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError:
        raise AuthenticationError(message="Token has expired")
    except JWTError as e:
        logger.warning("JWT verification failed: %s", str(e))
        raise AuthenticationError(message="Invalid authentication token")

    if payload.get("type", "access") != "access":
        raise AuthenticationError(message="Invalid token type")

    subject = payload.get("sub")
    role = payload.get("role")
    if not subject or role not in ROLES:
        raise AuthenticationError(
            message="Token is missing a valid subject or role",
            context={"role": role} if role else None,
        )
    return Actor(id=str(subject), role=role)


async def get_current_actor(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Actor:
    """
    FastAPI dependency returning the authenticated Actor.

    The Actor is also kept on request.state.actor for the access log.

    Example usage in a route:
        @router.post("/adoptions")
        async def submit(..., actor: Actor = Depends(get_current_actor)):
            ...
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError(message="Not authorized to access this route")
    actor = decode_access_token(credentials.credentials)
    request.state.actor = actor
    return actor
