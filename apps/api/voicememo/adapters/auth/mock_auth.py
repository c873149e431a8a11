"""Mock auth verifier for local development and tests."""

from voicememo.adapters.auth.base import AuthVerificationError, TokenVerifier
from voicememo.schemas.auth import AuthPrincipal


class MockTokenVerifier(TokenVerifier):
    """Accepts deterministic test tokens only.

    Expected token format:
    - ``test:<user_id>`` (device defaults to ``device-<user_id>``)
    - ``test:<user_id>:<device_id>``
    """

    def verify_token(self, token: str) -> AuthPrincipal:
        parts = token.split(":")
        if len(parts) not in (2, 3) or parts[0] != "test":
            raise AuthVerificationError("Invalid bearer token")

        user_id = parts[1].strip()
        if not user_id:
            raise AuthVerificationError("Bearer token missing user identity")

        device_id = parts[2].strip() if len(parts) == 3 else f"device-{user_id}"
        if not device_id:
            raise AuthVerificationError("Bearer token missing device identity")

        return AuthPrincipal(user_id=user_id, device_id=device_id)


__all__ = ["MockTokenVerifier"]
