"""Anonymous device registration."""

from __future__ import annotations

import logging

from voicememo.adapters.auth import JwtTokenService
from voicememo.core.logging_safety import safe_log_identifier
from voicememo.repositories.awaitable import AsyncJobStore
from voicememo.repositories.base import JobStore
from voicememo.schemas.auth import AnonymousAuthRequest, AnonymousAuthResponse

logger = logging.getLogger(__name__)


class AnonymousAuthService:
    def __init__(self, store: JobStore, token_service: JwtTokenService) -> None:
        self._store = AsyncJobStore(store)
        self._token_service = token_service

    async def register(self, payload: AnonymousAuthRequest) -> AnonymousAuthResponse:
        user, device = await self._store.create_user_with_device(device_model=payload.device_model.strip())
        issued = self._token_service.issue_token(user_id=user.id, device_id=device.id)
        logger.info(
            "auth.registered principal_id=%s device_id=%s",
            safe_log_identifier(user.id, prefix="pid"),
            safe_log_identifier(device.id, prefix="did"),
        )
        return AnonymousAuthResponse(
            token=issued.token,
            user_id=user.id,
            device_id=device.id,
            expires_in_sec=issued.expires_in_sec,
        )


__all__ = ["AnonymousAuthService"]
