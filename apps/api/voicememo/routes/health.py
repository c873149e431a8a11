"""Liveness route."""

from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends

from voicememo.core.config import Settings, get_settings
from voicememo.schemas.health import HealthResponse

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
async def health(settings: Annotated[Settings, Depends(get_settings)]) -> HealthResponse:
    return HealthResponse(status="ok", timestamp=datetime.now(UTC), version=settings.app_version)
