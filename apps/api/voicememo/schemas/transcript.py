"""Transcript job API schemas."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, Field, model_validator

from voicememo.schemas.base import CamelModel


class TranscriptStatus(str, Enum):
    PENDING = "PENDING"
    TRANSCRIBING = "TRANSCRIBING"
    SUMMARIZING = "SUMMARIZING"
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"


class AudioInput(BaseModel):
    kind: Literal["audio"] = "audio"
    audio_url: str = Field(min_length=1)


class TextInput(BaseModel):
    kind: Literal["text"] = "text"
    text: str = Field(min_length=1)


JobInput = Annotated[AudioInput | TextInput, Field(discriminator="kind")]


class Summary(CamelModel):
    id: str
    model: str
    text: str


class TranscriptMeta(CamelModel):
    duration_sec: float | None = Field(default=None, ge=0)
    device: str | None = Field(default=None, max_length=100)


class CreateTranscriptRequest(CamelModel):
    session_id: str | None = Field(default=None, min_length=1)
    audio_url: str | None = Field(default=None, max_length=2048, pattern=r"^https?://\S+$")
    text: str | None = Field(default=None, max_length=100_000)
    language: str = Field(default="en", min_length=2, max_length=16)
    confidence: float | None = Field(default=None, ge=0, le=1)
    want_summary: bool = False
    meta: TranscriptMeta | None = None

    @model_validator(mode="after")
    def _require_exactly_one_input(self) -> "CreateTranscriptRequest":
        has_audio = self.audio_url is not None
        has_text = self.text is not None
        if has_audio == has_text:
            raise ValueError("Exactly one of audioUrl or text must be provided")
        if has_text and not self.text.strip():
            raise ValueError("text must not be blank")
        return self

    def to_job_input(self) -> AudioInput | TextInput:
        if self.audio_url is not None:
            return AudioInput(audio_url=self.audio_url)
        return TextInput(text=self.text)


class CreateTranscriptResponse(CamelModel):
    ok: bool = True
    session_id: str
    transcript_id: str
    status: TranscriptStatus


class TranscriptStatusResponse(CamelModel):
    id: str
    status: TranscriptStatus
    session_id: str
    created_at: datetime
    updated_at: datetime
    text: str | None = None
    language: str | None = None
    confidence: float | None = None
    summary: Summary | None = None
    error: str | None = None


class TranscriptPage(CamelModel):
    items: list[TranscriptStatusResponse]
    limit: int
    next_cursor: str | None = None
