"""Transcript submission and status service layer."""

from __future__ import annotations

import logging

from voicememo.core.logging_safety import safe_log_identifier
from voicememo.errors import not_found, validation_error
from voicememo.repositories.awaitable import AsyncJobStore
from voicememo.repositories.base import DuplicateIdempotencyKeyError, JobRecord, JobStore
from voicememo.schemas.auth import AuthPrincipal
from voicememo.schemas.transcript import (
    CreateTranscriptRequest,
    CreateTranscriptResponse,
    TranscriptStatusResponse,
)
from voicememo.services.dispatcher import PipelineDispatcher
from voicememo.services.projections import project_transcript
from voicememo.services.sessions import resolve_session

logger = logging.getLogger(__name__)

IDEMPOTENCY_KEY_MAX_LENGTH = 255


def normalize_idempotency_key(raw_key: str | None) -> str:
    key = (raw_key or "").strip()
    if not key:
        raise validation_error("Idempotency-Key header is required")
    if len(key) > IDEMPOTENCY_KEY_MAX_LENGTH:
        raise validation_error(
            "Idempotency-Key header is too long",
            details={"max_length": IDEMPOTENCY_KEY_MAX_LENGTH},
        )
    return key


class TranscriptService:
    def __init__(self, store: JobStore, dispatcher: PipelineDispatcher) -> None:
        self._store = AsyncJobStore(store)
        self._dispatcher = dispatcher

    async def submit(
        self,
        *,
        principal: AuthPrincipal,
        idempotency_key: str | None,
        payload: CreateTranscriptRequest,
    ) -> CreateTranscriptResponse:
        key = normalize_idempotency_key(idempotency_key)
        safe_key = safe_log_identifier(key, prefix="idk")

        existing = await self._store.get_job_by_idempotency_key(key)
        if existing is not None:
            logger.info(
                "transcript.replayed idempotency_key=%s job_id=%s status=%s",
                safe_key,
                safe_log_identifier(existing.id, prefix="jid"),
                existing.status.value,
            )
            return await self._replay(principal, existing)

        session = await resolve_session(self._store, principal=principal, session_id=payload.session_id)
        try:
            record = await self._store.create_job(
                session_id=session.id,
                idempotency_key=key,
                job_input=payload.to_job_input(),
                want_summary=payload.want_summary,
                requested_language=payload.language,
            )
        except DuplicateIdempotencyKeyError:
            existing = await self._store.get_job_by_idempotency_key(key)
            if existing is None:
                raise
            logger.info(
                "transcript.replayed idempotency_key=%s job_id=%s reason=concurrent_insert",
                safe_key,
                safe_log_identifier(existing.id, prefix="jid"),
            )
            return await self._replay(principal, existing)

        self._dispatcher.enqueue(record.id)
        logger.info(
            "transcript.accepted idempotency_key=%s job_id=%s session_id=%s input=%s want_summary=%s",
            safe_key,
            safe_log_identifier(record.id, prefix="jid"),
            safe_log_identifier(session.id, prefix="sid"),
            record.input.kind,
            record.want_summary,
        )
        return CreateTranscriptResponse(session_id=record.session_id, transcript_id=record.id, status=record.status)

    async def get_status(self, *, principal: AuthPrincipal, transcript_id: str) -> TranscriptStatusResponse:
        return project_transcript(await self._get_owned_job(principal, transcript_id))

    async def _replay(self, principal: AuthPrincipal, record: JobRecord) -> CreateTranscriptResponse:
        # Keys are global; a key held by another user's job must not reveal it.
        if await self._store.get_session_for_user(user_id=principal.user_id, session_id=record.session_id) is None:
            raise not_found()
        return CreateTranscriptResponse(session_id=record.session_id, transcript_id=record.id, status=record.status)

    async def _get_owned_job(self, principal: AuthPrincipal, transcript_id: str) -> JobRecord:
        record = await self._store.get_job(transcript_id)
        if record is None:
            raise not_found()
        if await self._store.get_session_for_user(user_id=principal.user_id, session_id=record.session_id) is None:
            raise not_found()
        return record


__all__ = [
    "IDEMPOTENCY_KEY_MAX_LENGTH",
    "TranscriptService",
    "normalize_idempotency_key",
]
