"""Transcript routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Header, Path

from voicememo.routes.dependencies import (
    enforce_transcript_rate_limit,
    get_authenticated_principal,
    get_transcript_service,
)
from voicememo.schemas.auth import AuthPrincipal
from voicememo.schemas.error import ErrorResponse, NoLeakNotFoundError, RateLimitedError, ValidationErrorResponse
from voicememo.schemas.transcript import CreateTranscriptRequest, CreateTranscriptResponse, TranscriptStatusResponse
from voicememo.services.transcripts import TranscriptService

router = APIRouter(tags=["Transcripts"])


@router.post(
    "/transcripts",
    response_model=CreateTranscriptResponse,
    dependencies=[Depends(enforce_transcript_rate_limit)],
    responses={
        400: {"model": ValidationErrorResponse},
        401: {"model": ErrorResponse},
        404: {"model": NoLeakNotFoundError},
        429: {"model": RateLimitedError},
    },
)
async def create_transcript(
    payload: CreateTranscriptRequest,
    principal: Annotated[AuthPrincipal, Depends(get_authenticated_principal)],
    service: Annotated[TranscriptService, Depends(get_transcript_service)],
    idempotency_key: Annotated[str | None, Header(alias="Idempotency-Key")] = None,
) -> CreateTranscriptResponse:
    return await service.submit(principal=principal, idempotency_key=idempotency_key, payload=payload)


@router.get(
    "/transcripts/{transcriptId}",
    response_model=TranscriptStatusResponse,
    response_model_exclude_none=True,
    responses={404: {"model": NoLeakNotFoundError}},
)
async def get_transcript(
    transcript_id: Annotated[str, Path(alias="transcriptId")],
    principal: Annotated[AuthPrincipal, Depends(get_authenticated_principal)],
    service: Annotated[TranscriptService, Depends(get_transcript_service)],
) -> TranscriptStatusResponse:
    return await service.get_status(principal=principal, transcript_id=transcript_id)
