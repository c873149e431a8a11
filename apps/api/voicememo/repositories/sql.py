"""SQLAlchemy-backed job store for relational databases."""

from __future__ import annotations

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    String,
    Text,
    and_,
    create_engine,
    func,
    or_,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

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


class Base(DeclarativeBase):
    pass


class UserRow(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class DeviceRow(Base):
    __tablename__ = "devices"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class SessionRow(Base):
    __tablename__ = "sessions"
    __table_args__ = (Index("ix_sessions_user_created", "user_id", "created_at"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    device_id: Mapped[str] = mapped_column(String(64), nullable=False)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class TranscriptRow(Base):
    __tablename__ = "transcripts"
    __table_args__ = (
        Index("ix_transcripts_session_created", "session_id", "created_at"),
        Index("ix_transcripts_status", "status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    session_id: Mapped[str] = mapped_column(ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False)
    idempotency_key: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    audio_url: Mapped[str | None] = mapped_column(Text, default=None)
    input_text: Mapped[str | None] = mapped_column(Text, default=None)
    want_summary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    requested_language: Mapped[str] = mapped_column(String(16), nullable=False, default="en")
    status: Mapped[TranscriptStatus] = mapped_column(
        Enum(TranscriptStatus, native_enum=False, validate_strings=True, length=16),
        nullable=False,
    )
    transcript_text: Mapped[str | None] = mapped_column(Text, default=None)
    language: Mapped[str | None] = mapped_column(String(16), default=None)
    confidence: Mapped[float | None] = mapped_column(Float, default=None)
    summary_id: Mapped[str | None] = mapped_column(String(36), default=None)
    summary_model: Mapped[str | None] = mapped_column(String(100), default=None)
    summary_text: Mapped[str | None] = mapped_column(Text, default=None)
    error: Mapped[str | None] = mapped_column(Text, default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


def make_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite:"):
        options: dict = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # A single shared connection keeps an in-memory database alive across sessions.
            options["poolclass"] = StaticPool
        return create_engine(database_url, **options)
    return create_engine(database_url, pool_pre_ping=True, pool_size=5, max_overflow=5, pool_recycle=1800)


def _aware(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; every stored value is UTC.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


class SqlStore(JobStore):
    def __init__(self, engine: Engine, *, create_schema: bool = True) -> None:
        self._engine = engine
        self._session_factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
        if create_schema:
            Base.metadata.create_all(engine)

    @classmethod
    def from_url(cls, database_url: str) -> "SqlStore":
        return cls(make_engine(database_url))

    def dispose(self) -> None:
        self._engine.dispose()

    def create_user_with_device(self, *, device_model: str) -> tuple[UserRecord, DeviceRecord]:
        now = datetime.now(UTC)
        user = UserRow(id=str(uuid4()), created_at=now)
        device = DeviceRow(id=str(uuid4()), user_id=user.id, model=device_model, created_at=now)
        with self._session_factory.begin() as db:
            db.add(user)
            db.flush()
            db.add(device)
        return (
            UserRecord(id=user.id, created_at=now),
            DeviceRecord(id=device.id, user_id=user.id, model=device_model, created_at=now),
        )

    def create_session(self, *, user_id: str, device_id: str) -> SessionRecord:
        now = datetime.now(UTC)
        row = SessionRow(
            id=str(uuid4()),
            user_id=user_id,
            device_id=device_id,
            started_at=now,
            created_at=now,
            updated_at=now,
        )
        with self._session_factory.begin() as db:
            db.add(row)
        return self._to_session(row)

    def get_session(self, session_id: str) -> SessionRecord | None:
        with self._session_factory() as db:
            row = db.get(SessionRow, session_id)
            return self._to_session(row) if row is not None else None

    def list_sessions_for_user(
        self,
        *,
        user_id: str,
        limit: int,
        cursor: PageCursor | None = None,
    ) -> list[SessionSummaryRecord]:
        transcript_count = func.count(TranscriptRow.id)
        last_activity = func.max(TranscriptRow.created_at)
        statement = (
            select(SessionRow, transcript_count, last_activity)
            .outerjoin(TranscriptRow, TranscriptRow.session_id == SessionRow.id)
            .where(SessionRow.user_id == user_id)
            .group_by(SessionRow.id)
            .order_by(SessionRow.created_at.desc(), SessionRow.id.desc())
            .limit(limit)
        )
        if cursor is not None:
            statement = statement.where(self._older_than(SessionRow, cursor))

        with self._session_factory() as db:
            return [
                SessionSummaryRecord(
                    session=self._to_session(row),
                    transcript_count=int(count or 0),
                    last_activity=_aware(latest),
                )
                for row, count, latest in db.execute(statement).all()
            ]

    def create_job(
        self,
        *,
        session_id: str,
        idempotency_key: str,
        job_input: AudioInput | TextInput,
        want_summary: bool,
        requested_language: str,
    ) -> JobRecord:
        now = datetime.now(UTC)
        row = TranscriptRow(
            id=str(uuid4()),
            session_id=session_id,
            idempotency_key=idempotency_key,
            audio_url=job_input.audio_url if isinstance(job_input, AudioInput) else None,
            input_text=job_input.text if isinstance(job_input, TextInput) else None,
            want_summary=want_summary,
            requested_language=requested_language,
            status=TranscriptStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        try:
            with self._session_factory.begin() as db:
                db.add(row)
        except IntegrityError as exc:
            if self.get_job_by_idempotency_key(idempotency_key) is not None:
                raise DuplicateIdempotencyKeyError(idempotency_key) from exc
            raise
        return self._to_job(row)

    def get_job(self, job_id: str) -> JobRecord | None:
        with self._session_factory() as db:
            row = db.get(TranscriptRow, job_id)
            return self._to_job(row) if row is not None else None

    def get_job_by_idempotency_key(self, idempotency_key: str) -> JobRecord | None:
        statement = select(TranscriptRow).where(TranscriptRow.idempotency_key == idempotency_key)
        with self._session_factory() as db:
            row = db.scalars(statement).first()
            return self._to_job(row) if row is not None else None

    def list_jobs_for_session(
        self,
        *,
        session_id: str,
        limit: int,
        cursor: PageCursor | None = None,
    ) -> list[JobRecord]:
        statement = (
            select(TranscriptRow)
            .where(TranscriptRow.session_id == session_id)
            .order_by(TranscriptRow.created_at.desc(), TranscriptRow.id.desc())
            .limit(limit)
        )
        if cursor is not None:
            statement = statement.where(self._older_than(TranscriptRow, cursor))
        with self._session_factory() as db:
            return [self._to_job(row) for row in db.scalars(statement).all()]

    def list_jobs_by_status(self, statuses: set[TranscriptStatus]) -> list[JobRecord]:
        statement = (
            select(TranscriptRow)
            .where(TranscriptRow.status.in_(list(statuses)))
            .order_by(TranscriptRow.created_at, TranscriptRow.id)
        )
        with self._session_factory() as db:
            return [self._to_job(row) for row in db.scalars(statement).all()]

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
        with self._session_factory.begin() as db:
            row = db.get(TranscriptRow, job_id, with_for_update=True)
            if row is None:
                raise not_found()

            ensure_transition(row.status, new_status)
            if transcript_text is not None:
                row.transcript_text = transcript_text
                row.language = language
                row.confidence = confidence
            if summary is not None:
                row.summary_id = summary.id
                row.summary_model = summary.model
                row.summary_text = summary.text
            if error is not None:
                row.error = error
            row.status = new_status
            row.updated_at = datetime.now(UTC)
        return self._to_job(row)

    @staticmethod
    def _older_than(model: type[SessionRow] | type[TranscriptRow], cursor: PageCursor):
        return or_(
            model.created_at < cursor.created_at,
            and_(model.created_at == cursor.created_at, model.id < cursor.id),
        )

    @staticmethod
    def _to_session(row: SessionRow) -> SessionRecord:
        return SessionRecord(
            id=row.id,
            user_id=row.user_id,
            device_id=row.device_id,
            started_at=_aware(row.started_at),
            created_at=_aware(row.created_at),
            updated_at=_aware(row.updated_at),
        )

    @staticmethod
    def _to_job(row: TranscriptRow) -> JobRecord:
        job_input: AudioInput | TextInput
        if row.audio_url is not None:
            job_input = AudioInput(audio_url=row.audio_url)
        else:
            job_input = TextInput(text=row.input_text)

        summary = None
        if row.summary_text is not None:
            summary = Summary(id=row.summary_id or "", model=row.summary_model or "", text=row.summary_text)

        return JobRecord(
            id=row.id,
            session_id=row.session_id,
            idempotency_key=row.idempotency_key,
            input=job_input,
            want_summary=row.want_summary,
            requested_language=row.requested_language,
            status=row.status,
            created_at=_aware(row.created_at),
            updated_at=_aware(row.updated_at),
            transcript_text=row.transcript_text,
            language=row.language,
            confidence=row.confidence,
            summary=summary,
            error=row.error,
        )


__all__ = ["Base", "SqlStore", "make_engine"]
