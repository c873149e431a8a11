"""Anonymous device authentication routes."""

from typing import Annotated

from fastapi import APIRouter, Depends

from voicememo.routes.dependencies import get_anonymous_auth_service
from voicememo.schemas.auth import AnonymousAuthRequest, AnonymousAuthResponse
from voicememo.schemas.error import ValidationErrorResponse
from voicememo.services.auth import AnonymousAuthService

router = APIRouter(tags=["Auth"])


@router.post(
    "/auth/anonymous",
    response_model=AnonymousAuthResponse,
    responses={400: {"model": ValidationErrorResponse}},
)
async def register_anonymous_device(
    payload: AnonymousAuthRequest,
    service: Annotated[AnonymousAuthService, Depends(get_anonymous_auth_service)],
) -> AnonymousAuthResponse:
    return await service.register(payload)
