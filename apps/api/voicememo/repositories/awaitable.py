"""Awaitable access to a synchronous job store."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import TypeVar

from voicememo.core.pagination import PageCursor
from voicememo.repositories.base import (
    DeviceRecord,
    JobRecord,
    JobStore,
    SessionRecord,
    SessionSummaryRecord,
    UserRecord,
)
from voicememo.schemas.transcript import AudioInput, Summary, TextInput, TranscriptStatus

T = TypeVar("T")


class AsyncJobStore:
    """Coroutine facade over a ``JobStore``.

    Calls into a backend that does blocking I/O run in a worker thread, so the
    event loop keeps serving requests and other pipeline jobs while a query or
    commit is in progress. Non-blocking backends are called inline.
    """

    def __init__(self, store: JobStore) -> None:
        self._store = store

    @property
    def store(self) -> JobStore:
        return self._store

    async def _call(self, method: Callable[..., T], /, *args, **kwargs) -> T:
        if self._store.blocking_io:
            return await asyncio.to_thread(method, *args, **kwargs)
        return method(*args, **kwargs)

    async def create_user_with_device(self, *, device_model: str) -> tuple[UserRecord, DeviceRecord]:
        return await self._call(self._store.create_user_with_device, device_model=device_model)

    async def create_session(self, *, user_id: str, device_id: str) -> SessionRecord:
        return await self._call(self._store.create_session, user_id=user_id, device_id=device_id)

    async def get_session_for_user(self, *, user_id: str, session_id: str) -> SessionRecord | None:
        return await self._call(self._store.get_session_for_user, user_id=user_id, session_id=session_id)

    async def list_sessions_for_user(
        self,
        *,
        user_id: str,
        limit: int,
        cursor: PageCursor | None = None,
    ) -> list[SessionSummaryRecord]:
        return await self._call(self._store.list_sessions_for_user, user_id=user_id, limit=limit, cursor=cursor)

    async def create_job(
        self,
        *,
        session_id: str,
        idempotency_key: str,
        job_input: AudioInput | TextInput,
        want_summary: bool,
        requested_language: str,
    ) -> JobRecord:
        return await self._call(
            self._store.create_job,
            session_id=session_id,
            idempotency_key=idempotency_key,
            job_input=job_input,
            want_summary=want_summary,
            requested_language=requested_language,
        )

    async def get_job(self, job_id: str) -> JobRecord | None:
        return await self._call(self._store.get_job, job_id)

    async def get_job_by_idempotency_key(self, idempotency_key: str) -> JobRecord | None:
        return await self._call(self._store.get_job_by_idempotency_key, idempotency_key)

    async def list_jobs_for_session(
        self,
        *,
        session_id: str,
        limit: int,
        cursor: PageCursor | None = None,
    ) -> list[JobRecord]:
        return await self._call(self._store.list_jobs_for_session, session_id=session_id, limit=limit, cursor=cursor)

    async def list_jobs_by_status(self, statuses: set[TranscriptStatus]) -> list[JobRecord]:
        return await self._call(self._store.list_jobs_by_status, statuses)

    async def transition_job(
        self,
        *,
        job_id: str,
        new_status: TranscriptStatus,
        transcript_text: str | None = None,
        language: str | None = None,
        confidence: float | None = None,
        summary: Summary | None = None,
        error: str | None = None,
    ) -> JobRecord:
        return await self._call(
            self._store.transition_job,
            job_id=job_id,
            new_status=new_status,
            transcript_text=transcript_text,
            language=language,
            confidence=confidence,
            summary=summary,
            error=error,
        )


__all__ = ["AsyncJobStore"]
