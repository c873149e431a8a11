"""Audio upload routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Request

from voicememo.routes.dependencies import get_authenticated_principal, get_upload_service
from voicememo.schemas.auth import AuthPrincipal
from voicememo.schemas.error import ErrorResponse, NoLeakNotFoundError, ValidationErrorResponse
from voicememo.schemas.upload import UploadAcceptedResponse, UploadInitRequest, UploadInitResponse
from voicememo.services.uploads import UploadService

router = APIRouter(tags=["Uploads"])


@router.post(
    "/upload-init",
    response_model=UploadInitResponse,
    responses={
        400: {"model": ValidationErrorResponse},
        404: {"model": NoLeakNotFoundError},
        503: {"model": ErrorResponse},
    },
)
async def init_upload(
    payload: UploadInitRequest,
    principal: Annotated[AuthPrincipal, Depends(get_authenticated_principal)],
    service: Annotated[UploadService, Depends(get_upload_service)],
) -> UploadInitResponse:
    return await service.init_upload(principal=principal, payload=payload)


@router.put(
    "/upload/{fileKey:path}",
    response_model=UploadAcceptedResponse,
    responses={
        400: {"model": ValidationErrorResponse},
        404: {"model": NoLeakNotFoundError},
        413: {"model": ErrorResponse},
    },
)
async def upload_audio(
    file_key: Annotated[str, Path(alias="fileKey")],
    request: Request,
    service: Annotated[UploadService, Depends(get_upload_service)],
) -> UploadAcceptedResponse:
    declared = request.headers.get("content-length", "")
    return await service.accept_upload(
        file_key=file_key,
        body=request.stream(),
        declared_size=int(declared) if declared.isdigit() else None,
    )
