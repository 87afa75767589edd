from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Protocol

import requests
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from chat_api.core.config import settings
from chat_api.core.errors import Internal, Unauthorized

logger = logging.getLogger(__name__)


def create_access_token(subject: str, extra: dict | None = None, expires_minutes: int | None = None) -> str:
    """Mint a token the way the identity provider does (dev and tests)."""
    now = datetime.now(timezone.utc)
    exp_min = settings.JWT_EXPIRE_MINUTES if expires_minutes is None else expires_minutes
    payload = {
        "sub": subject,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=exp_min)).timestamp()),
    }
    if settings.JWT_AUDIENCE:
        payload["aud"] = settings.JWT_AUDIENCE
    if extra:
        payload.update(extra)

    return jwt.encode(
        payload,
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )


def decode_access_token(token: str) -> dict | None:
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            options={"verify_aud": bool(settings.JWT_AUDIENCE)},
        )
    except JWTError:
        return None


class IdentityVerifier(Protocol):
    def verify(self, token: str) -> str:
        """Return the stable user id for ``token`` or raise ``Unauthorized``."""
        ...


class JWTIdentityVerifier:
    """Verifies provider-issued HS256 tokens locally using the shared secret."""

    def verify(self, token: str) -> str:
        payload = decode_access_token(token)
        if not payload or not payload.get("sub"):
            raise Unauthorized()
        return str(payload["sub"])


class RemoteIdentityVerifier:
    """
    Asks the identity provider who owns the token
    (GET {identity_url}/auth/v1/user with the caller's bearer token).
    """

    def __init__(self, base_url: str, api_key: str = "", timeout: float = 5.0):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    def verify(self, token: str) -> str:
        headers = {"Authorization": f"Bearer {token}"}
        if self.api_key:
            headers["apikey"] = self.api_key
        try:
            resp = requests.get(f"{self.base_url}/auth/v1/user", headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("Identity provider unreachable: %s", e)
            raise Internal("Identity provider unavailable.")

        if resp.status_code != 200:
            logger.warning("Identity provider rejected token: %s", resp.status_code)
            raise Unauthorized()

        try:
            user_id = resp.json().get("id")
        except ValueError:
            raise Unauthorized()
        if not user_id:
            raise Unauthorized()
        return str(user_id)


def build_identity_verifier() -> IdentityVerifier:
    if settings.identity_backend == "remote":
        return RemoteIdentityVerifier(settings.identity_url, settings.identity_api_key)
    return JWTIdentityVerifier()


_verifier = build_identity_verifier()


def get_identity_verifier() -> IdentityVerifier:
    return _verifier


_security = HTTPBearer(auto_error=False)


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(_security),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> str:
    """
    Dependency: resolve the bearer credential to a user id.
    Expects: Authorization: Bearer <token>
    Raises: Unauthorized if the header is missing or the token is rejected
    """
    if credentials is None or not credentials.credentials:
        raise Unauthorized("Unauthorized: No token provided.")

    try:
        return verifier.verify(credentials.credentials)
    except Unauthorized:
        logger.info("Rejected bearer token")
        raise
