"""Auth verifier adapters."""

from .base import AuthVerificationError, TokenVerifier
from .jwt_auth import IssuedToken, JwtTokenService
from .mock_auth import MockTokenVerifier

__all__ = [
    "AuthVerificationError",
    "IssuedToken",
    "JwtTokenService",
    "MockTokenVerifier",
    "TokenVerifier",
]
