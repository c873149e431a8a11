"""Self-issued JWT bearer tokens for anonymous devices."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import jwt

from voicememo.adapters.auth.base import AuthVerificationError, TokenVerifier
from voicememo.schemas.auth import AuthPrincipal

_ALGORITHM = "HS256"


@dataclass(frozen=True, slots=True)
class IssuedToken:
    token: str
    expires_in_sec: int


class JwtTokenService(TokenVerifier):
    """Issues and verifies HS256 tokens carrying ``sub`` (user) and ``deviceId`` claims."""

    def __init__(self, *, secret: str, ttl_seconds: int) -> None:
        self._secret = secret
        self._ttl_seconds = ttl_seconds

    def issue_token(self, *, user_id: str, device_id: str) -> IssuedToken:
        issued_at = datetime.now(UTC)
        claims = {
            "sub": user_id,
            "deviceId": device_id,
            "iat": issued_at,
            "exp": issued_at + timedelta(seconds=self._ttl_seconds),
        }
        token = jwt.encode(claims, self._secret, algorithm=_ALGORITHM)
        return IssuedToken(token=token, expires_in_sec=self._ttl_seconds)

    def verify_token(self, token: str) -> AuthPrincipal:
        try:
            decoded = jwt.decode(
                token,
                self._secret,
                algorithms=[_ALGORITHM],
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise AuthVerificationError("Bearer token expired") from exc
        except jwt.InvalidTokenError as exc:
            raise AuthVerificationError("Invalid bearer token") from exc

        user_id = str(decoded.get("sub") or "").strip()
        device_id = str(decoded.get("deviceId") or "").strip()
        if not user_id:
            raise AuthVerificationError("Bearer token missing user identity")
        if not device_id:
            raise AuthVerificationError("Bearer token missing device identity")

        return AuthPrincipal(user_id=user_id, device_id=device_id)


__all__ = ["IssuedToken", "JwtTokenService"]
