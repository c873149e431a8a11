"""Transcript processing pipeline.

A job moves through the states defined in ``voicememo.domain.job_fsm``:

    PENDING -> TRANSCRIBING -> SUMMARIZING -> COMPLETE
                            \\-> COMPLETE         (no summary requested)
    PENDING -> SUMMARIZING -> COMPLETE          (text input)
    PENDING -> COMPLETE                         (text input, no summary)

Any adapter failure moves the job straight to FAILED with ``error`` set.
Each transition is persisted, together with the fields the finished stage
produced, before the next stage begins.
"""

from __future__ import annotations

import logging
from uuid import uuid4

from voicememo.adapters.errors import AdapterError
from voicememo.adapters.storage.base import AudioStorage
from voicememo.adapters.summarization.base import SummarizationAdapter
from voicememo.adapters.transcription.base import TranscriptionAdapter
from voicememo.core.logging_safety import safe_log_identifier, safe_log_url
from voicememo.domain.job_fsm import is_terminal
from voicememo.repositories.awaitable import AsyncJobStore
from voicememo.repositories.base import JobRecord, JobStore
from voicememo.schemas.transcript import AudioInput, Summary, TextInput, TranscriptStatus

logger = logging.getLogger(__name__)

INTERNAL_FAILURE_MESSAGE = "Internal processing error"


class TranscriptPipeline:
    def __init__(
        self,
        *,
        store: JobStore,
        storage: AudioStorage,
        transcriber: TranscriptionAdapter,
        summarizer: SummarizationAdapter,
    ) -> None:
        self._store = AsyncJobStore(store)
        self._storage = storage
        self._transcriber = transcriber
        self._summarizer = summarizer

    async def run(self, job_id: str) -> JobRecord | None:
        """Drive one PENDING job to a terminal state; any other state is left untouched."""
        safe_job_id = safe_log_identifier(job_id, prefix="jid")
        job = await self._store.get_job(job_id)
        if job is None:
            logger.warning("pipeline.skipped job_id=%s reason=job_not_found", safe_job_id)
            return None
        if is_terminal(job.status):
            logger.info("pipeline.skipped job_id=%s reason=terminal status=%s", safe_job_id, job.status.value)
            return job
        if job.status is not TranscriptStatus.PENDING:
            logger.warning("pipeline.skipped job_id=%s reason=already_started status=%s", safe_job_id, job.status.value)
            return job

        try:
            if isinstance(job.input, AudioInput):
                job = await self._transcription_stage(job)
                if job.status is not TranscriptStatus.SUMMARIZING:
                    return job
                source_text = job.transcript_text or ""
            elif isinstance(job.input, TextInput):
                if not job.want_summary:
                    return await self._advance(job, TranscriptStatus.COMPLETE)
                job = await self._advance(job, TranscriptStatus.SUMMARIZING)
                source_text = job.input.text
            else:
                raise TypeError(f"Unsupported job input: {type(job.input).__name__}")

            return await self._summarization_stage(job, source_text)
        except Exception:
            logger.exception("pipeline.crashed job_id=%s", safe_job_id)
            return await self._fail_unexpected(job_id)

    async def _transcription_stage(self, job: JobRecord) -> JobRecord:
        job = await self._advance(job, TranscriptStatus.TRANSCRIBING)
        audio_url = job.input.audio_url
        try:
            audio = await self._storage.fetch_audio(audio_url)
            result = await self._transcriber.transcribe(audio, language_hint=job.requested_language)
        except AdapterError as exc:
            logger.warning(
                "pipeline.transcription_failed job_id=%s audio_url=%s reason=%s",
                safe_log_identifier(job.id, prefix="jid"),
                safe_log_url(audio_url),
                type(exc).__name__,
            )
            return await self._fail(job, str(exc))

        next_status = TranscriptStatus.SUMMARIZING if job.want_summary else TranscriptStatus.COMPLETE
        return await self._advance(
            job,
            next_status,
            transcript_text=result.text,
            language=result.language,
            confidence=result.confidence,
        )

    async def _summarization_stage(self, job: JobRecord, source_text: str) -> JobRecord:
        try:
            result = await self._summarizer.summarize(source_text)
        except AdapterError as exc:
            logger.warning(
                "pipeline.summarization_failed job_id=%s reason=%s",
                safe_log_identifier(job.id, prefix="jid"),
                type(exc).__name__,
            )
            return await self._fail(job, str(exc))

        summary = Summary(id=str(uuid4()), model=result.model, text=result.text)
        return await self._advance(job, TranscriptStatus.COMPLETE, summary=summary)

    async def _advance(self, job: JobRecord, new_status: TranscriptStatus, **fields) -> JobRecord:
        previous_status = job.status
        updated = await self._store.transition_job(job_id=job.id, new_status=new_status, **fields)
        logger.info(
            "pipeline.transition job_id=%s prev_status=%s new_status=%s",
            safe_log_identifier(job.id, prefix="jid"),
            previous_status.value,
            updated.status.value,
        )
        return updated

    async def _fail(self, job: JobRecord, message: str) -> JobRecord:
        return await self._advance(job, TranscriptStatus.FAILED, error=message or "Processing failed")

    async def _fail_unexpected(self, job_id: str) -> JobRecord | None:
        job = await self._store.get_job(job_id)
        if job is None or is_terminal(job.status) or job.status is TranscriptStatus.PENDING:
            # PENDING -> FAILED is not a lifecycle edge; the job stays visible for recovery.
            return job
        return await self._fail(job, INTERNAL_FAILURE_MESSAGE)


__all__ = ["INTERNAL_FAILURE_MESSAGE", "TranscriptPipeline"]
