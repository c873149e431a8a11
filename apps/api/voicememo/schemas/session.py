"""Recording session API schemas."""

from datetime import datetime

from voicememo.schemas.base import CamelModel
from voicememo.schemas.transcript import TranscriptStatusResponse


class Session(CamelModel):
    id: str
    user_id: str
    device_id: str
    started_at: datetime
    created_at: datetime
    updated_at: datetime


class SessionListItem(Session):
    transcript_count: int
    last_activity: datetime | None = None


class SessionsListResponse(CamelModel):
    sessions: list[SessionListItem]
    next_cursor: str | None = None


class SessionDetailResponse(CamelModel):
    session: Session
    transcripts: list[TranscriptStatusResponse]
