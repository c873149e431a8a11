"""Recording session service layer."""

from __future__ import annotations

import logging

from voicememo.core.logging_safety import safe_log_identifier
from voicememo.core.pagination import clamp_limit, decode_cursor, encode_cursor
from voicememo.errors import not_found
from voicememo.repositories.awaitable import AsyncJobStore
from voicememo.repositories.base import JobStore, SessionRecord
from voicememo.schemas.auth import AuthPrincipal
from voicememo.schemas.session import (
    Session,
    SessionDetailResponse,
    SessionListItem,
    SessionsListResponse,
)
from voicememo.schemas.transcript import TranscriptPage
from voicememo.services.projections import project_transcript

logger = logging.getLogger(__name__)

SESSION_DETAIL_TRANSCRIPT_LIMIT = 100


async def resolve_session(store: AsyncJobStore, *, principal: AuthPrincipal, session_id: str | None) -> SessionRecord:
    """Return the caller's session, or open a new one for the caller's device when none is named."""
    if session_id is None:
        session = await store.create_session(user_id=principal.user_id, device_id=principal.device_id)
        logger.info(
            "session.created session_id=%s principal_id=%s",
            safe_log_identifier(session.id, prefix="sid"),
            safe_log_identifier(principal.user_id, prefix="pid"),
        )
        return session

    session = await store.get_session_for_user(user_id=principal.user_id, session_id=session_id)
    if session is None:
        raise not_found()
    return session


def _to_session(record: SessionRecord) -> Session:
    return Session(
        id=record.id,
        user_id=record.user_id,
        device_id=record.device_id,
        started_at=record.started_at,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


class SessionService:
    def __init__(self, store: JobStore) -> None:
        self._store = AsyncJobStore(store)

    async def list_sessions(self, *, principal: AuthPrincipal, limit: int | None, cursor: str | None) -> SessionsListResponse:
        page_size = clamp_limit(limit)
        # One extra row tells whether another page exists.
        rows = await self._store.list_sessions_for_user(
            user_id=principal.user_id,
            limit=page_size + 1,
            cursor=decode_cursor(cursor),
        )
        page, has_more = rows[:page_size], len(rows) > page_size

        next_cursor = None
        if has_more:
            last = page[-1].session
            next_cursor = encode_cursor(created_at=last.created_at, row_id=last.id)

        return SessionsListResponse(
            sessions=[
                SessionListItem(
                    **_to_session(row.session).model_dump(),
                    transcript_count=row.transcript_count,
                    last_activity=row.last_activity,
                )
                for row in page
            ],
            next_cursor=next_cursor,
        )

    async def get_session_detail(self, *, principal: AuthPrincipal, session_id: str) -> SessionDetailResponse:
        session = await self._get_owned_session(principal, session_id)
        jobs = await self._store.list_jobs_for_session(session_id=session.id, limit=SESSION_DETAIL_TRANSCRIPT_LIMIT)
        return SessionDetailResponse(
            session=_to_session(session),
            transcripts=[project_transcript(job) for job in jobs],
        )

    async def list_session_transcripts(
        self,
        *,
        principal: AuthPrincipal,
        session_id: str,
        limit: int | None,
        cursor: str | None,
    ) -> TranscriptPage:
        session = await self._get_owned_session(principal, session_id)
        page_size = clamp_limit(limit)
        rows = await self._store.list_jobs_for_session(
            session_id=session.id,
            limit=page_size + 1,
            cursor=decode_cursor(cursor),
        )
        page, has_more = rows[:page_size], len(rows) > page_size

        next_cursor = None
        if has_more:
            next_cursor = encode_cursor(created_at=page[-1].created_at, row_id=page[-1].id)

        return TranscriptPage(
            items=[project_transcript(job) for job in page],
            limit=page_size,
            next_cursor=next_cursor,
        )

    async def _get_owned_session(self, principal: AuthPrincipal, session_id: str) -> SessionRecord:
        session = await self._store.get_session_for_user(user_id=principal.user_id, session_id=session_id)
        if session is None:
            raise not_found()
        return session


__all__ = ["SESSION_DETAIL_TRANSCRIPT_LIMIT", "SessionService", "resolve_session"]
