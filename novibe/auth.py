"""Bearer-token authentication against the external auth provider's JWTs.

Only two things are read from a token: the user id (``sub``) and the tier
(``app_metadata.tier``, falling back to a top-level ``tier`` claim).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import PyJWTError

from novibe.config import Settings, get_settings
from novibe.errors import AccessDenied, AuthenticationRequired
from novibe.models import TIERS

log = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    user_id: str
    tier: str | None = None  # None when the token carries no tier claim


def tier_from_claims(claims: dict[str, Any]) -> str | None:
    app_metadata = claims.get("app_metadata") or {}
    tier = app_metadata.get("tier") if isinstance(app_metadata, dict) else None
    tier = tier or claims.get("tier")
    return tier if tier in TIERS else None


def decode_access_token(token: str, settings: Settings | None = None) -> dict[str, Any]:
    settings = settings or get_settings()
    if not settings.auth_jwt_secret:
        log.error("AUTH_JWT_SECRET is not configured; rejecting request")
        raise AuthenticationRequired("Authentication is not configured")
    try:
        return jwt.decode(
            token,
            settings.auth_jwt_secret,
            algorithms=[settings.auth_jwt_algorithm],
            audience=settings.auth_jwt_audience or None,
            options={"require": ["sub", "exp"]},
        )
    except PyJWTError as exc:
        log.info("Rejected bearer token: %s", exc)
        raise AuthenticationRequired("Invalid or expired token") from exc


def create_access_token(
    user_id: str, tier: str | None = "free", expires_in: int = 3600, settings: Settings | None = None,
) -> str:
    """Mint a token in the auth provider's format (local development and tests)."""
    settings = settings or get_settings()
    now = datetime.now(UTC)
    payload: dict[str, Any] = {
        "sub": user_id,
        "aud": settings.auth_jwt_audience,
        "iat": now,
        "exp": now + timedelta(seconds=expires_in),
    }
    if tier is not None:
        payload["app_metadata"] = {"tier": tier}
    return jwt.encode(payload, settings.auth_jwt_secret, algorithm=settings.auth_jwt_algorithm)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> CurrentUser:
    if credentials is None or not credentials.credentials:
        raise AuthenticationRequired()
    claims = decode_access_token(credentials.credentials)
    return CurrentUser(user_id=str(claims["sub"]), tier=tier_from_claims(claims))


def require_tier(user_tier: str, allowed: tuple[str, ...], message: str) -> None:
    if user_tier not in allowed:
        raise AccessDenied(message)
