"""Authentication schemas."""

from pydantic import BaseModel, Field

from voicememo.schemas.base import CamelModel


class AuthPrincipal(BaseModel):
    """Normalized authenticated principal used by business services."""

    user_id: str = Field(min_length=1)
    device_id: str = Field(min_length=1)


class AnonymousAuthRequest(CamelModel):
    device_model: str = Field(min_length=1, max_length=100)


class AnonymousAuthResponse(CamelModel):
    token: str
    user_id: str
    device_id: str
    expires_in_sec: int
