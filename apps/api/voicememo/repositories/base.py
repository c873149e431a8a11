"""Job store contract and record types shared by every backend."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import ClassVar

from voicememo.core.pagination import PageCursor
from voicememo.schemas.transcript import AudioInput, Summary, TextInput, TranscriptStatus


class DuplicateIdempotencyKeyError(Exception):
    """Raised when a job insert collides with an existing idempotency key."""

    def __init__(self, idempotency_key: str) -> None:
        self.idempotency_key = idempotency_key
        super().__init__("Idempotency key already used")


@dataclass(slots=True)
class UserRecord:
    id: str
    created_at: datetime


@dataclass(slots=True)
class DeviceRecord:
    id: str
    user_id: str
    model: str
    created_at: datetime


@dataclass(slots=True)
class SessionRecord:
    id: str
    user_id: str
    device_id: str
    started_at: datetime
    created_at: datetime
    updated_at: datetime


@dataclass(slots=True)
class SessionSummaryRecord:
    session: SessionRecord
    transcript_count: int
    last_activity: datetime | None


@dataclass(slots=True)
class JobRecord:
    id: str
    session_id: str
    idempotency_key: str
    input: AudioInput | TextInput
    want_summary: bool
    requested_language: str
    status: TranscriptStatus
    created_at: datetime
    updated_at: datetime
    transcript_text: str | None = None
    language: str | None = None
    confidence: float | None = None
    summary: Summary | None = None
    error: str | None = None


class JobStore(ABC):
    """Durable home of users, devices, sessions and transcript jobs.

    Every method is synchronous and returns only after the write is visible
    to subsequent reads. Async callers go through ``AsyncJobStore``, which
    moves calls off the event loop when ``blocking_io`` is set.
    """

    blocking_io: ClassVar[bool] = True

    @abstractmethod
    def create_user_with_device(self, *, device_model: str) -> tuple[UserRecord, DeviceRecord]: ...

    @abstractmethod
    def create_session(self, *, user_id: str, device_id: str) -> SessionRecord: ...

    @abstractmethod
    def get_session(self, session_id: str) -> SessionRecord | None: ...

    def get_session_for_user(self, *, user_id: str, session_id: str) -> SessionRecord | None:
        session = self.get_session(session_id)
        if session is None or session.user_id != user_id:
            return None
        return session

    @abstractmethod
    def list_sessions_for_user(
        self,
        *,
        user_id: str,
        limit: int,
        cursor: PageCursor | None = None,
    ) -> list[SessionSummaryRecord]:
        """Newest first, strictly older than ``cursor`` when given."""

    @abstractmethod
    def create_job(
        self,
        *,
        session_id: str,
        idempotency_key: str,
        job_input: AudioInput | TextInput,
        want_summary: bool,
        requested_language: str,
    ) -> JobRecord:
        """Insert a PENDING job; raise ``DuplicateIdempotencyKeyError`` if the key exists."""

    @abstractmethod
    def get_job(self, job_id: str) -> JobRecord | None: ...

    @abstractmethod
    def get_job_by_idempotency_key(self, idempotency_key: str) -> JobRecord | None: ...

    @abstractmethod
    def list_jobs_for_session(
        self,
        *,
        session_id: str,
        limit: int,
        cursor: PageCursor | None = None,
    ) -> list[JobRecord]:
        """Newest first, strictly older than ``cursor`` when given."""

    @abstractmethod
    def list_jobs_by_status(self, statuses: set[TranscriptStatus]) -> list[JobRecord]:
        """Oldest first."""

    @abstractmethod
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
        """Apply an FSM-validated status change together with its stage fields in one write."""


__all__ = [
    "DeviceRecord",
    "DuplicateIdempotencyKeyError",
    "JobRecord",
    "JobStore",
    "SessionRecord",
    "SessionSummaryRecord",
    "UserRecord",
]
