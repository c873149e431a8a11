"""Dependency wiring for routes."""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import uuid4

from fastapi import Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from voicememo.adapters.auth import AuthVerificationError, JwtTokenService, MockTokenVerifier, TokenVerifier
from voicememo.adapters.storage import AudioStorage
from voicememo.core.config import Settings, get_settings
from voicememo.core.logging_safety import safe_log_identifier
from voicememo.core.rate_limit import FixedWindowRateLimiter
from voicememo.errors import ApiError
from voicememo.repositories.base import JobStore
from voicememo.schemas.auth import AuthPrincipal
from voicememo.services.auth import AnonymousAuthService
from voicememo.services.dispatcher import PipelineDispatcher
from voicememo.services.sessions import SessionService
from voicememo.services.transcripts import TranscriptService
from voicememo.services.uploads import UploadService

bearer_scheme = HTTPBearer(auto_error=False, scheme_name="bearerAuth")
logger = logging.getLogger(__name__)


def _request_correlation_id(request: Request) -> str:
    existing = getattr(request.state, "correlation_id", None)
    if isinstance(existing, str) and existing:
        return existing

    correlation_id = request.headers.get("X-Correlation-Id")
    if correlation_id:
        request.state.correlation_id = correlation_id
        return correlation_id

    generated = f"req-{uuid4()}"
    request.state.correlation_id = generated
    return generated


def _client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def get_store(request: Request) -> JobStore:
    return request.app.state.store


def get_storage(request: Request) -> AudioStorage:
    return request.app.state.storage


def get_dispatcher(request: Request) -> PipelineDispatcher:
    return request.app.state.dispatcher


def get_token_service(request: Request) -> JwtTokenService:
    return request.app.state.token_service


def get_token_verifier(
    settings: Annotated[Settings, Depends(get_settings)],
    token_service: Annotated[JwtTokenService, Depends(get_token_service)],
) -> TokenVerifier:
    """Resolve provider adapter from configuration."""
    if settings.auth_provider == "mock":
        return MockTokenVerifier()
    return token_service


async def get_authenticated_principal(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)],
    verifier: Annotated[TokenVerifier, Depends(get_token_verifier)],
) -> AuthPrincipal:
    """Validate bearer token and attach normalized principal to request context."""
    correlation_id = _request_correlation_id(request)
    safe_correlation_id = safe_log_identifier(correlation_id, prefix="cid")
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        logger.warning(
            "auth.rejected correlation_id=%s method=%s path=%s reason=missing_bearer",
            safe_correlation_id,
            request.method,
            request.url.path,
        )
        raise ApiError(status_code=401, code="UNAUTHORIZED", message="Access token required")

    try:
        principal = verifier.verify_token(credentials.credentials)
    except AuthVerificationError as exc:
        logger.warning(
            "auth.rejected correlation_id=%s method=%s path=%s reason=token_verification_failed",
            safe_correlation_id,
            request.method,
            request.url.path,
        )
        raise ApiError(status_code=403, code="FORBIDDEN", message=str(exc) or "Invalid bearer token") from exc

    logger.info(
        "auth.accepted correlation_id=%s method=%s path=%s principal_id=%s",
        safe_correlation_id,
        request.method,
        request.url.path,
        safe_log_identifier(principal.user_id, prefix="pid"),
    )
    request.state.auth_principal = principal
    return principal


def _enforce(limiter: FixedWindowRateLimiter, request: Request, *, scope: str) -> None:
    key = _client_key(request)
    if limiter.hit(key):
        return

    retry_after = limiter.retry_after_seconds(key)
    logger.warning(
        "ratelimit.rejected scope=%s client=%s path=%s retry_after=%s",
        scope,
        safe_log_identifier(key, prefix="cli"),
        request.url.path,
        retry_after,
    )
    raise ApiError(
        status_code=429,
        code="RATE_LIMITED",
        message="Too many requests, please try again later",
        details={"retry_after_seconds": retry_after},
    )


def enforce_api_rate_limit(request: Request) -> None:
    _enforce(request.app.state.api_rate_limiter, request, scope="api")


def enforce_transcript_rate_limit(request: Request) -> None:
    _enforce(request.app.state.transcript_rate_limiter, request, scope="transcripts")


def get_transcript_service(
    store: Annotated[JobStore, Depends(get_store)],
    dispatcher: Annotated[PipelineDispatcher, Depends(get_dispatcher)],
) -> TranscriptService:
    return TranscriptService(store, dispatcher)


def get_session_service(store: Annotated[JobStore, Depends(get_store)]) -> SessionService:
    return SessionService(store)


def get_upload_service(
    store: Annotated[JobStore, Depends(get_store)],
    storage: Annotated[AudioStorage, Depends(get_storage)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> UploadService:
    return UploadService(store, storage, max_audio_bytes=settings.max_audio_bytes)


def get_anonymous_auth_service(
    store: Annotated[JobStore, Depends(get_store)],
    token_service: Annotated[JwtTokenService, Depends(get_token_service)],
) -> AnonymousAuthService:
    return AnonymousAuthService(store, token_service)
