"""Audio upload API schemas."""

from pydantic import Field

from voicememo.schemas.base import CamelModel


class UploadInitRequest(CamelModel):
    file_ext: str = Field(pattern=r"^[a-zA-Z0-9]+$", max_length=10)
    content_type: str = Field(pattern=r"^audio/", max_length=100)
    session_id: str | None = Field(default=None, min_length=1)


class UploadInitResponse(CamelModel):
    session_id: str
    upload_url: str
    audio_url: str


class UploadAcceptedResponse(CamelModel):
    success: bool = True
    file_key: str
