"""Audio upload service layer."""

from __future__ import annotations

from collections.abc import AsyncIterable
import logging

from voicememo.adapters.errors import AudioStorageError, AudioValidationError
from voicememo.adapters.storage import AudioStorage
from voicememo.adapters.storage.local import is_valid_file_key
from voicememo.core.logging_safety import safe_log_identifier
from voicememo.domain.audio_validation import ALLOWED_AUDIO_EXTENSIONS, is_allowed_extension, validate_audio_payload
from voicememo.errors import ApiError, not_found, validation_error
from voicememo.repositories.awaitable import AsyncJobStore
from voicememo.repositories.base import JobStore
from voicememo.schemas.auth import AuthPrincipal
from voicememo.schemas.upload import UploadAcceptedResponse, UploadInitRequest, UploadInitResponse
from voicememo.services.sessions import resolve_session

logger = logging.getLogger(__name__)


def _storage_unavailable() -> ApiError:
    return ApiError(status_code=503, code="STORAGE_UNAVAILABLE", message="Audio storage is unavailable")


def _payload_too_large(max_bytes: int) -> ApiError:
    return ApiError(
        status_code=413,
        code="PAYLOAD_TOO_LARGE",
        message=f"Audio file too large. Maximum size: {max_bytes} bytes",
    )


class UploadService:
    def __init__(self, store: JobStore, storage: AudioStorage, *, max_audio_bytes: int) -> None:
        self._store = AsyncJobStore(store)
        self._storage = storage
        self._max_audio_bytes = max_audio_bytes

    async def init_upload(self, *, principal: AuthPrincipal, payload: UploadInitRequest) -> UploadInitResponse:
        if not is_allowed_extension(payload.file_ext):
            raise validation_error(
                "Invalid file extension",
                details={"allowed_extensions": sorted(ALLOWED_AUDIO_EXTENSIONS)},
            )

        session = await resolve_session(self._store, principal=principal, session_id=payload.session_id)
        try:
            target = self._storage.create_upload_target(
                session_id=session.id,
                file_ext=payload.file_ext,
                content_type=payload.content_type,
                metadata={
                    "sessionId": session.id,
                    "userId": principal.user_id,
                    "deviceId": principal.device_id,
                },
            )
        except AudioStorageError as exc:
            logger.error(
                "upload.init_failed session_id=%s reason=%s",
                safe_log_identifier(session.id, prefix="sid"),
                exc,
            )
            raise _storage_unavailable() from exc

        logger.info(
            "upload.initialized session_id=%s file_key=%s",
            safe_log_identifier(session.id, prefix="sid"),
            safe_log_identifier(target.file_key, prefix="fk"),
        )
        return UploadInitResponse(session_id=session.id, upload_url=target.upload_url, audio_url=target.audio_url)

    async def accept_upload(
        self,
        *,
        file_key: str,
        body: AsyncIterable[bytes],
        declared_size: int | None = None,
    ) -> UploadAcceptedResponse:
        """Store a directly uploaded body, reading no more than ``max_audio_bytes`` of it."""
        if not self._storage.accepts_direct_uploads:
            raise not_found()
        if not is_valid_file_key(file_key) or not is_allowed_extension(file_key.rsplit(".", 1)[-1]):
            raise validation_error("Invalid file key")
        if declared_size is not None and declared_size > self._max_audio_bytes:
            raise _payload_too_large(self._max_audio_bytes)
        data = await self._read_capped(body)

        try:
            validate_audio_payload(data, max_bytes=self._max_audio_bytes)
        except AudioValidationError as exc:
            raise validation_error(str(exc)) from exc

        try:
            await self._storage.save_audio(file_key, data)
        except AudioStorageError as exc:
            raise validation_error(str(exc)) from exc
        except OSError as exc:
            logger.error("upload.write_failed file_key=%s", safe_log_identifier(file_key, prefix="fk"))
            raise _storage_unavailable() from exc

        logger.info(
            "upload.stored file_key=%s size_bytes=%s",
            safe_log_identifier(file_key, prefix="fk"),
            len(data),
        )
        return UploadAcceptedResponse(file_key=file_key)

    async def _read_capped(self, body: AsyncIterable[bytes]) -> bytes:
        data = bytearray()
        async for chunk in body:
            data.extend(chunk)
            if len(data) > self._max_audio_bytes:
                raise _payload_too_large(self._max_audio_bytes)
        return bytes(data)


__all__ = ["UploadService"]
