"""Recording session routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query

from voicememo.routes.dependencies import get_authenticated_principal, get_session_service
from voicememo.schemas.auth import AuthPrincipal
from voicememo.schemas.error import NoLeakNotFoundError
from voicememo.schemas.session import SessionDetailResponse, SessionsListResponse
from voicememo.schemas.transcript import TranscriptPage
from voicememo.services.sessions import SessionService

router = APIRouter(tags=["Sessions"])


@router.get("/sessions", response_model=SessionsListResponse)
async def list_sessions(
    principal: Annotated[AuthPrincipal, Depends(get_authenticated_principal)],
    service: Annotated[SessionService, Depends(get_session_service)],
    limit: Annotated[int | None, Query()] = None,
    cursor: str | None = None,
) -> SessionsListResponse:
    return await service.list_sessions(principal=principal, limit=limit, cursor=cursor)


@router.get(
    "/sessions/{sessionId}",
    response_model=SessionDetailResponse,
    response_model_exclude_none=True,
    responses={404: {"model": NoLeakNotFoundError}},
)
async def get_session(
    session_id: Annotated[str, Path(alias="sessionId")],
    principal: Annotated[AuthPrincipal, Depends(get_authenticated_principal)],
    service: Annotated[SessionService, Depends(get_session_service)],
) -> SessionDetailResponse:
    return await service.get_session_detail(principal=principal, session_id=session_id)


@router.get(
    "/sessions/{sessionId}/transcripts",
    response_model=TranscriptPage,
    response_model_exclude_none=True,
    responses={404: {"model": NoLeakNotFoundError}},
)
async def list_session_transcripts(
    session_id: Annotated[str, Path(alias="sessionId")],
    principal: Annotated[AuthPrincipal, Depends(get_authenticated_principal)],
    service: Annotated[SessionService, Depends(get_session_service)],
    limit: Annotated[int | None, Query()] = None,
    cursor: str | None = None,
) -> TranscriptPage:
    return await service.list_session_transcripts(principal=principal, session_id=session_id, limit=limit, cursor=cursor)
