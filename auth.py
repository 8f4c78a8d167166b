"""Bearer-token helpers for admin-only routes.

Tokens are HS256 JWTs signed with ``Settings.secret_key`` whose payload holds
``username`` and ``is_admin``. A missing or unverifiable token is treated as
an anonymous caller; the ``ensure_*`` dependencies decide what anonymous
callers may do.
"""
from __future__ import annotations

from typing import Annotated, Optional

import structlog
from fastapi import Depends, Request
from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError

from errors import UnauthorizedError
from settings import get_settings

logger = structlog.get_logger(__name__)


class TokenPayload(BaseModel):
    username: str
    is_admin: bool = False


def create_token(username: str, is_admin: bool = False) -> str:
    settings = get_settings()
    payload = {"username": username, "is_admin": is_admin}
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> TokenPayload:
    """Decode and validate a token; raises ``UnauthorizedError`` on failure."""
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
        return TokenPayload.model_validate(payload)
    except (JWTError, ValidationError) as exc:
        logger.warning("JWT verification failed", exc=str(exc))
        raise UnauthorizedError("Invalid token") from exc


# Helper to extract Authorization header (works with FastAPI DI)
def _get_authorization_header(request: Request) -> Optional[str]:
    return request.headers.get("Authorization")


# --- FastAPI dependencies ---
def get_current_user(
    authorization: Annotated[Optional[str], Depends(_get_authorization_header)],
) -> Optional[TokenPayload]:
    if not authorization or not authorization.lower().startswith("bearer "):
        return None

    token = authorization.split(" ", 1)[1].strip()
    try:
        return verify_token(token)
    except UnauthorizedError:
        return None


def ensure_logged_in(
    user: Annotated[Optional[TokenPayload], Depends(get_current_user)],
) -> TokenPayload:
    if user is None:
        raise UnauthorizedError()
    return user


def ensure_admin(
    user: Annotated[TokenPayload, Depends(ensure_logged_in)],
) -> TokenPayload:
    if not user.is_admin:
        logger.info("Admin route refused", username=user.username)
        raise UnauthorizedError()
    return user
