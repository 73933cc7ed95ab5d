"""Bearer token adapter producing the caller context for each request."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Request

from ..config import Settings
from ..domain import CallerContext
from ..errors import ForbiddenError, WorkOrderError

logger = logging.getLogger(__name__)

TOKEN_LIFETIME = timedelta(hours=8)


class UnauthenticatedError(WorkOrderError):
    """No bearer token was presented."""

    code = "UNAUTHENTICATED"
    http_status = 401


def issue_token(
    caller: CallerContext,
    secret: str,
    *,
    algorithm: str = "HS256",
    lifetime: timedelta = TOKEN_LIFETIME,
    now: Optional[datetime] = None,
) -> str:
    issued = now or datetime.now(timezone.utc)
    payload = {
        "id": caller.id,
        "role": caller.role,
        "iat": int(issued.timestamp()),
        "exp": int((issued + lifetime).timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_token(token: str, secret: str, *, algorithm: str = "HS256") -> CallerContext:
    try:
        claims = jwt.decode(
            token, secret, algorithms=[algorithm], options={"require": ["role"]}
        )
    except jwt.InvalidTokenError as exc:
        logger.warning("Rejected bearer token: %s", exc)
        raise ForbiddenError("Invalid or expired token") from exc
    role = str(claims.get("role") or "").strip()
    if not role:
        raise ForbiddenError("Token carries no role")
    return CallerContext(id=str(claims.get("id", "")), role=role)


async def get_caller(request: Request) -> CallerContext:
    settings: Settings = request.app.state.settings
    header = request.headers.get("authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise UnauthenticatedError("Missing bearer token")
    return decode_token(token.strip(), settings.jwt_secret, algorithm=settings.jwt_algorithm)


__all__ = ["UnauthenticatedError", "issue_token", "decode_token", "get_caller", "TOKEN_LIFETIME"]
