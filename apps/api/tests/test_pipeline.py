"""Transcript pipeline stage, failure and recovery tests."""

from __future__ import annotations

from dataclasses import dataclass, field
import unittest

import httpx

from voicememo.adapters.errors import AudioStorageError, SummarizationError
from voicememo.adapters.storage.base import AudioStorage, UploadTarget
from voicememo.adapters.summarization import MockSummarizationAdapter, SummaryResult
from voicememo.adapters.transcription import (
    MockTranscriptionAdapter,
    TranscriptionResult,
    WhisperTranscriptionAdapter,
)
from voicememo.repositories.memory import InMemoryStore
from voicememo.schemas.transcript import AudioInput, TextInput, TranscriptStatus
from voicememo.services.dispatcher import INTERRUPTED_MESSAGE, PipelineDispatcher, recover_interrupted_jobs
from voicememo.services.pipeline import INTERNAL_FAILURE_MESSAGE, TranscriptPipeline

MP3_BYTES = b"ID3" + b"\x00" * 128
AUDIO_URL = "http://localhost:3000/uploads/audio/s-1/clip.mp3"


@dataclass
class _RecordingStore(InMemoryStore):
    transitions: list[tuple[str, TranscriptStatus]] = field(default_factory=list)

    def transition_job(self, *, job_id, new_status, **fields):
        updated = super().transition_job(job_id=job_id, new_status=new_status, **fields)
        self.transitions.append((job_id, new_status))
        return updated


class _DictStorage(AudioStorage):
    def __init__(self, blobs: dict[str, bytes] | None = None) -> None:
        self.blobs = dict(blobs or {})

    def create_upload_target(self, *, session_id, file_ext, content_type, metadata) -> UploadTarget:
        file_key = self.generate_file_key(session_id, file_ext)
        return UploadTarget(file_key=file_key, upload_url=f"memory://{file_key}", audio_url=f"memory://{file_key}")

    async def fetch_audio(self, audio_url: str) -> bytes:
        try:
            return self.blobs[audio_url]
        except KeyError as exc:
            raise AudioStorageError("Audio file not found") from exc


class _CountingTranscriber(MockTranscriptionAdapter):
    def __init__(self) -> None:
        super().__init__(max_audio_bytes=1024 * 1024)
        self.calls = 0

    async def _transcribe(self, audio, *, audio_format, language_hint) -> TranscriptionResult:
        self.calls += 1
        return TranscriptionResult(text="buy milk and call mom", language=language_hint, confidence=0.95)


class _CountingSummarizer(MockSummarizationAdapter):
    def __init__(self, *, error: Exception | None = None) -> None:
        self.calls = 0
        self.inputs: list[str] = []
        self._error = error

    async def summarize(self, text: str) -> SummaryResult:
        self.calls += 1
        self.inputs.append(text)
        if self._error is not None:
            raise self._error
        return await super().summarize(text)


class _ExplodingSummarizer(MockSummarizationAdapter):
    async def summarize(self, text: str) -> SummaryResult:
        raise RuntimeError("unexpected provider bug")


class TranscriptPipelineTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.store = _RecordingStore()
        self.session = self.store.create_session(user_id="user-1", device_id="device-1")
        self.storage = _DictStorage({AUDIO_URL: MP3_BYTES})
        self.transcriber = _CountingTranscriber()
        self.summarizer = _CountingSummarizer()

    def _pipeline(self, **overrides) -> TranscriptPipeline:
        return TranscriptPipeline(
            store=self.store,
            storage=overrides.get("storage", self.storage),
            transcriber=overrides.get("transcriber", self.transcriber),
            summarizer=overrides.get("summarizer", self.summarizer),
        )

    def _create(self, key: str, job_input, *, want_summary: bool):
        return self.store.create_job(
            session_id=self.session.id,
            idempotency_key=key,
            job_input=job_input,
            want_summary=want_summary,
            requested_language="en",
        )

    def _statuses(self, job_id: str) -> list[TranscriptStatus]:
        return [status for recorded_id, status in self.store.transitions if recorded_id == job_id]

    async def test_text_input_with_summary_goes_straight_to_summarizing(self) -> None:
        job = self._create("K1", TextInput(text="buy milk and call mom"), want_summary=True)

        result = await self._pipeline().run(job.id)

        self.assertEqual(result.status, TranscriptStatus.COMPLETE)
        self.assertEqual(self._statuses(job.id), [TranscriptStatus.SUMMARIZING, TranscriptStatus.COMPLETE])
        self.assertEqual(self.transcriber.calls, 0)
        self.assertEqual(self.summarizer.inputs, ["buy milk and call mom"])
        self.assertEqual(result.summary.model, "mock-summarizer")
        self.assertTrue(result.summary.id)
        self.assertIsNone(result.error)

    async def test_text_input_without_summary_completes_without_adapter_calls(self) -> None:
        job = self._create("K1", TextInput(text="note to self"), want_summary=False)

        result = await self._pipeline().run(job.id)

        self.assertEqual(result.status, TranscriptStatus.COMPLETE)
        self.assertEqual(self._statuses(job.id), [TranscriptStatus.COMPLETE])
        self.assertIsNone(result.summary)
        self.assertEqual(self.transcriber.calls, 0)
        self.assertEqual(self.summarizer.calls, 0)

    async def test_audio_input_runs_transcription_then_summarization(self) -> None:
        job = self._create("K2", AudioInput(audio_url=AUDIO_URL), want_summary=True)

        result = await self._pipeline().run(job.id)

        self.assertEqual(
            self._statuses(job.id),
            [TranscriptStatus.TRANSCRIBING, TranscriptStatus.SUMMARIZING, TranscriptStatus.COMPLETE],
        )
        self.assertEqual(result.transcript_text, "buy milk and call mom")
        self.assertEqual(result.language, "en")
        self.assertEqual(result.confidence, 0.95)
        self.assertEqual(self.summarizer.inputs, ["buy milk and call mom"])
        self.assertIsNotNone(result.summary)
        self.assertGreaterEqual(result.updated_at, result.created_at)

    async def test_audio_input_without_summary_never_summarizes(self) -> None:
        job = self._create("K2", AudioInput(audio_url=AUDIO_URL), want_summary=False)

        result = await self._pipeline().run(job.id)

        self.assertEqual(self._statuses(job.id), [TranscriptStatus.TRANSCRIBING, TranscriptStatus.COMPLETE])
        self.assertIsNone(result.summary)
        self.assertEqual(self.summarizer.calls, 0)

    async def test_transcription_timeout_fails_job_without_summarization(self) -> None:
        def raise_timeout(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        whisper = WhisperTranscriptionAdapter(
            api_key="sk-test",
            max_audio_bytes=1024 * 1024,
            timeout_seconds=0.01,
            transport=httpx.MockTransport(raise_timeout),
        )
        job = self._create("K2", AudioInput(audio_url=AUDIO_URL), want_summary=True)
        try:
            result = await self._pipeline(transcriber=whisper).run(job.id)
        finally:
            await whisper.aclose()

        self.assertEqual(result.status, TranscriptStatus.FAILED)
        self.assertEqual(self._statuses(job.id), [TranscriptStatus.TRANSCRIBING, TranscriptStatus.FAILED])
        self.assertEqual(result.error, "Transcription failed: request timed out")
        self.assertIsNone(result.transcript_text)
        self.assertIsNone(result.summary)
        self.assertEqual(self.summarizer.calls, 0)

    async def test_missing_audio_object_fails_job(self) -> None:
        job = self._create("K3", AudioInput(audio_url="http://localhost:3000/uploads/audio/s-1/gone.mp3"), want_summary=True)

        result = await self._pipeline().run(job.id)

        self.assertEqual(result.status, TranscriptStatus.FAILED)
        self.assertEqual(result.error, "Audio file not found")
        self.assertEqual(self.transcriber.calls, 0)

    async def test_invalid_audio_payload_fails_before_provider_call(self) -> None:
        cases = {
            "empty": (b"", "Audio file is empty"),
            "garbage": (b"not audio at all", "Invalid audio file format"),
        }
        for name, (payload, expected_error) in cases.items():
            with self.subTest(name=name):
                url = f"http://localhost:3000/uploads/audio/s-1/{name}.mp3"
                self.storage.blobs[url] = payload
                job = self._create(f"K-{name}", AudioInput(audio_url=url), want_summary=False)

                result = await self._pipeline().run(job.id)

                self.assertEqual(result.status, TranscriptStatus.FAILED)
                self.assertEqual(result.error, expected_error)
        self.assertEqual(self.transcriber.calls, 0)

    async def test_summarization_failure_keeps_transcript_and_fails_job(self) -> None:
        summarizer = _CountingSummarizer(error=SummarizationError("Summarization failed: no summary generated"))
        job = self._create("K4", AudioInput(audio_url=AUDIO_URL), want_summary=True)

        result = await self._pipeline(summarizer=summarizer).run(job.id)

        self.assertEqual(result.status, TranscriptStatus.FAILED)
        self.assertEqual(result.error, "Summarization failed: no summary generated")
        self.assertEqual(result.transcript_text, "buy milk and call mom")
        self.assertIsNone(result.summary)

    async def test_unexpected_exception_fails_job_with_generic_message(self) -> None:
        job = self._create("K5", TextInput(text="hello"), want_summary=True)

        with self.assertLogs("voicememo.services.pipeline", level="ERROR"):
            result = await self._pipeline(summarizer=_ExplodingSummarizer()).run(job.id)

        self.assertEqual(result.status, TranscriptStatus.FAILED)
        self.assertEqual(result.error, INTERNAL_FAILURE_MESSAGE)

    async def test_rerunning_terminal_job_is_a_no_op(self) -> None:
        job = self._create("K2", AudioInput(audio_url=AUDIO_URL), want_summary=True)
        pipeline = self._pipeline()
        await pipeline.run(job.id)
        snapshot = (job.status, job.updated_at, job.summary, self.store.job_write_count)

        again = await pipeline.run(job.id)

        self.assertEqual((again.status, again.updated_at, again.summary, self.store.job_write_count), snapshot)
        self.assertEqual(self.transcriber.calls, 1)
        self.assertEqual(self.summarizer.calls, 1)

    async def test_job_already_in_flight_is_left_alone(self) -> None:
        job = self._create("K2", AudioInput(audio_url=AUDIO_URL), want_summary=True)
        self.store.transition_job(job_id=job.id, new_status=TranscriptStatus.TRANSCRIBING)
        writes = self.store.job_write_count

        result = await self._pipeline().run(job.id)

        self.assertEqual(result.status, TranscriptStatus.TRANSCRIBING)
        self.assertEqual(self.store.job_write_count, writes)
        self.assertEqual(self.transcriber.calls, 0)

    async def test_unknown_job_returns_none(self) -> None:
        self.assertIsNone(await self._pipeline().run("missing-job"))


class StartupRecoveryTests(unittest.IsolatedAsyncioTestCase):
    async def test_pending_jobs_requeued_and_mid_stage_jobs_failed(self) -> None:
        store = InMemoryStore()
        session = store.create_session(user_id="user-1", device_id="device-1")

        def create(key: str):
            return store.create_job(
                session_id=session.id,
                idempotency_key=key,
                job_input=TextInput(text=key),
                want_summary=True,
                requested_language="en",
            )

        pending = create("pending")
        summarizing = create("summarizing")
        store.transition_job(job_id=summarizing.id, new_status=TranscriptStatus.SUMMARIZING)
        complete = create("complete")
        store.transition_job(job_id=complete.id, new_status=TranscriptStatus.COMPLETE)

        ran: list[str] = []

        async def runner(job_id: str) -> None:
            ran.append(job_id)

        dispatcher = PipelineDispatcher(runner, worker_count=1)
        requeued, failed = await recover_interrupted_jobs(store, dispatcher)

        self.assertEqual((requeued, failed), (1, 1))
        self.assertEqual(dispatcher.pending_job_ids(), [pending.id])
        self.assertEqual(store.get_job(summarizing.id).status, TranscriptStatus.FAILED)
        self.assertEqual(store.get_job(summarizing.id).error, INTERRUPTED_MESSAGE)
        self.assertEqual(store.get_job(complete.id).status, TranscriptStatus.COMPLETE)

        await dispatcher.start()
        try:
            await dispatcher.join()
        finally:
            await dispatcher.stop()
        self.assertEqual(ran, [pending.id])


if __name__ == "__main__":
    unittest.main()
