"""In-memory job store used for local development and tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import ClassVar
from uuid import uuid4

from voicememo.core.pagination import PageCursor
from voicememo.domain.job_fsm import ensure_transition
from voicememo.errors import not_found
from voicememo.repositories.base import (
    DeviceRecord,
    DuplicateIdempotencyKeyError,
    JobRecord,
    JobStore,
    SessionRecord,
    SessionSummaryRecord,
    UserRecord,
)
from voicememo.schemas.transcript import AudioInput, Summary, TextInput, TranscriptStatus


def _newest_first(records: list, cursor: PageCursor | None, limit: int) -> list:
    ordered = sorted(records, key=lambda record: (record.created_at, record.id), reverse=True)
    if cursor is not None:
        ordered = [record for record in ordered if (record.created_at, record.id) < cursor.sort_key()]
    return ordered[:limit]


@dataclass(slots=True)
class InMemoryStore(JobStore):
    """Simple, deterministic persistence layer for scaffolding and tests.

    Each method runs without awaiting, so on a single event loop every call
    is atomic with respect to concurrently running jobs.
    """

    blocking_io: ClassVar[bool] = False

    users: dict[str, UserRecord] = field(default_factory=dict)
    devices: dict[str, DeviceRecord] = field(default_factory=dict)
    sessions: dict[str, SessionRecord] = field(default_factory=dict)
    jobs: dict[str, JobRecord] = field(default_factory=dict)
    job_ids_by_idempotency_key: dict[str, str] = field(default_factory=dict)
    job_write_count: int = 0

    def create_user_with_device(self, *, device_model: str) -> tuple[UserRecord, DeviceRecord]:
        now = datetime.now(UTC)
        user = UserRecord(id=str(uuid4()), created_at=now)
        device = DeviceRecord(id=str(uuid4()), user_id=user.id, model=device_model, created_at=now)
        self.users[user.id] = user
        self.devices[device.id] = device
        return user, device

    def create_session(self, *, user_id: str, device_id: str) -> SessionRecord:
        now = datetime.now(UTC)
        session = SessionRecord(
            id=str(uuid4()),
            user_id=user_id,
            device_id=device_id,
            started_at=now,
            created_at=now,
            updated_at=now,
        )
        self.sessions[session.id] = session
        return session

    def get_session(self, session_id: str) -> SessionRecord | None:
        return self.sessions.get(session_id)

    def list_sessions_for_user(
        self,
        *,
        user_id: str,
        limit: int,
        cursor: PageCursor | None = None,
    ) -> list[SessionSummaryRecord]:
        owned = [record for record in self.sessions.values() if record.user_id == user_id]
        summaries = []
        for session in _newest_first(owned, cursor, limit):
            session_jobs = [job for job in self.jobs.values() if job.session_id == session.id]
            summaries.append(
                SessionSummaryRecord(
                    session=session,
                    transcript_count=len(session_jobs),
                    last_activity=max((job.created_at for job in session_jobs), default=None),
                )
            )
        return summaries

    def create_job(
        self,
        *,
        session_id: str,
        idempotency_key: str,
        job_input: AudioInput | TextInput,
        want_summary: bool,
        requested_language: str,
    ) -> JobRecord:
        if idempotency_key in self.job_ids_by_idempotency_key:
            raise DuplicateIdempotencyKeyError(idempotency_key)

        now = datetime.now(UTC)
        job = JobRecord(
            id=str(uuid4()),
            session_id=session_id,
            idempotency_key=idempotency_key,
            input=job_input,
            want_summary=want_summary,
            requested_language=requested_language,
            status=TranscriptStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        self.jobs[job.id] = job
        self.job_ids_by_idempotency_key[idempotency_key] = job.id
        self.job_write_count += 1
        return job

    def get_job(self, job_id: str) -> JobRecord | None:
        return self.jobs.get(job_id)

    def get_job_by_idempotency_key(self, idempotency_key: str) -> JobRecord | None:
        job_id = self.job_ids_by_idempotency_key.get(idempotency_key)
        if job_id is None:
            return None
        return self.jobs.get(job_id)

    def list_jobs_for_session(
        self,
        *,
        session_id: str,
        limit: int,
        cursor: PageCursor | None = None,
    ) -> list[JobRecord]:
        session_jobs = [job for job in self.jobs.values() if job.session_id == session_id]
        return _newest_first(session_jobs, cursor, limit)

    def list_jobs_by_status(self, statuses: set[TranscriptStatus]) -> list[JobRecord]:
        matching = [job for job in self.jobs.values() if job.status in statuses]
        return sorted(matching, key=lambda job: (job.created_at, job.id))

    def transition_job(
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
        job = self.jobs.get(job_id)
        if job is None:
            raise not_found()

        ensure_transition(job.status, new_status)
        if transcript_text is not None:
            job.transcript_text = transcript_text
            job.language = language
            job.confidence = confidence
        if summary is not None:
            job.summary = summary
        if error is not None:
            job.error = error
        job.status = new_status
        job.updated_at = datetime.now(UTC)
        self.job_write_count += 1
        return job
