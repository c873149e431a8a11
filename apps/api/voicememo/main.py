"""FastAPI application entrypoint.

Run with ``uvicorn --factory voicememo.main:create_app``.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
import logging

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from voicememo.adapters.auth import JwtTokenService
from voicememo.adapters.storage import AudioStorage, LocalAudioStorage, S3AudioStorage
from voicememo.adapters.summarization import (
    GeminiSummarizationAdapter,
    MockSummarizationAdapter,
    SummarizationAdapter,
)
from voicememo.adapters.transcription import (
    MockTranscriptionAdapter,
    TranscriptionAdapter,
    WhisperTranscriptionAdapter,
)
from voicememo.core.config import Settings, get_settings
from voicememo.core.rate_limit import FixedWindowRateLimiter
from voicememo.errors import ApiError
from voicememo.repositories.base import JobStore
from voicememo.repositories.memory import InMemoryStore
from voicememo.repositories.sql import SqlStore
from voicememo.routes import auth_router, health_router, sessions_router, transcripts_router, uploads_router
from voicememo.routes.dependencies import enforce_api_rate_limit
from voicememo.schemas.error import ErrorResponse
from voicememo.services.dispatcher import PipelineDispatcher, recover_interrupted_jobs
from voicememo.services.pipeline import TranscriptPipeline

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> JobStore:
    if settings.store_backend == "sql":
        return SqlStore.from_url(settings.database_url)
    return InMemoryStore()


def build_storage(settings: Settings) -> AudioStorage:
    if settings.storage_provider == "s3":
        return S3AudioStorage(
            bucket=settings.s3_bucket,
            region=settings.s3_region,
            public_cdn_base=settings.public_cdn_base,
        )
    return LocalAudioStorage(upload_dir=settings.upload_dir, public_base_url=settings.public_base_url)


def build_transcriber(settings: Settings) -> TranscriptionAdapter:
    if settings.stt_provider == "mock":
        return MockTranscriptionAdapter(max_audio_bytes=settings.max_audio_bytes)
    return WhisperTranscriptionAdapter(
        api_key=settings.openai_api_key,
        max_audio_bytes=settings.max_audio_bytes,
        timeout_seconds=settings.transcription_timeout_seconds,
    )


def build_summarizer(settings: Settings) -> SummarizationAdapter:
    if settings.summary_provider == "mock":
        return MockSummarizationAdapter()
    return GeminiSummarizationAdapter(
        api_key=settings.gemini_api_key,
        timeout_seconds=settings.summarization_timeout_seconds,
    )


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    state = app.state
    await recover_interrupted_jobs(state.store, state.dispatcher)
    await state.dispatcher.start()
    try:
        yield
    finally:
        await state.dispatcher.stop()
        await state.transcriber.aclose()
        await state.summarizer.aclose()
        if isinstance(state.store, SqlStore):
            state.store.dispose()


def create_app(
    *,
    store: JobStore | None = None,
    storage: AudioStorage | None = None,
    transcriber: TranscriptionAdapter | None = None,
    summarizer: SummarizationAdapter | None = None,
) -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Voice Memo API", version=settings.app_version, lifespan=_lifespan)

    app.state.store = store if store is not None else build_store(settings)
    app.state.storage = storage if storage is not None else build_storage(settings)
    app.state.transcriber = transcriber if transcriber is not None else build_transcriber(settings)
    app.state.summarizer = summarizer if summarizer is not None else build_summarizer(settings)
    app.state.pipeline = TranscriptPipeline(
        store=app.state.store,
        storage=app.state.storage,
        transcriber=app.state.transcriber,
        summarizer=app.state.summarizer,
    )
    app.state.dispatcher = PipelineDispatcher(app.state.pipeline.run, worker_count=settings.worker_count)
    app.state.token_service = JwtTokenService(secret=settings.jwt_secret, ttl_seconds=settings.token_ttl_seconds)
    app.state.api_rate_limiter = FixedWindowRateLimiter(
        limit=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.state.transcript_rate_limiter = FixedWindowRateLimiter(
        limit=settings.transcript_rate_limit_max,
        window_seconds=settings.rate_limit_window_seconds,
    )

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.exception_handler(ApiError)
    async def handle_api_error(_, exc: ApiError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.payload.model_dump(mode="json", exclude_none=True),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(_, exc: RequestValidationError) -> JSONResponse:
        errors = [
            {"loc": [str(part) for part in error.get("loc", ())], "msg": error.get("msg", "")}
            for error in exc.errors()
        ]
        payload = ErrorResponse(code="VALIDATION_ERROR", message="Invalid request", details={"errors": errors})
        return JSONResponse(status_code=400, content=payload.model_dump(mode="json", exclude_none=True))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "request.failed method=%s path=%s error=%s",
            request.method,
            request.url.path,
            type(exc).__name__,
            exc_info=exc,
        )
        payload = ErrorResponse(code="INTERNAL_ERROR", message="Internal server error")
        return JSONResponse(status_code=500, content=payload.model_dump(mode="json", exclude_none=True))

    api_v1 = APIRouter(prefix="/v1", dependencies=[Depends(enforce_api_rate_limit)])
    api_v1.include_router(uploads_router)
    api_v1.include_router(transcripts_router)
    api_v1.include_router(sessions_router)

    app.include_router(health_router)
    app.include_router(auth_router, dependencies=[Depends(enforce_api_rate_limit)])
    app.include_router(api_v1)

    if isinstance(app.state.storage, LocalAudioStorage):
        app.state.storage.root.mkdir(parents=True, exist_ok=True)
        app.mount("/uploads", StaticFiles(directory=app.state.storage.root), name="uploads")

    return app
