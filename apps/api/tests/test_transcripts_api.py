"""Transcript submission, idempotency and status API tests."""

from __future__ import annotations

import asyncio
import os
import tempfile
import time
import unittest

from fastapi.testclient import TestClient

from voicememo.adapters.errors import TranscriptionError
from voicememo.adapters.summarization import MockSummarizationAdapter, SummaryResult
from voicememo.adapters.transcription import MockTranscriptionAdapter, TranscriptionResult
from voicememo.core.config import get_settings
from voicememo.errors import ApiError
from voicememo.main import create_app
from voicememo.repositories.memory import InMemoryStore
from voicememo.schemas.auth import AuthPrincipal
from voicememo.schemas.transcript import CreateTranscriptRequest, TextInput, TranscriptStatus
from voicememo.services.dispatcher import PipelineDispatcher
from voicememo.services.transcripts import TranscriptService

MP3_BYTES = b"ID3" + b"\x00" * 256
OWNER = {"Authorization": "Bearer test:owner-1:watch-1"}
OTHER = {"Authorization": "Bearer test:owner-2:watch-2"}


class _SettingsEnvCase(unittest.TestCase):
    _env_keys = (
        "VOICEMEMO_JWT_SECRET",
        "VOICEMEMO_AUTH_PROVIDER",
        "VOICEMEMO_STT_PROVIDER",
        "VOICEMEMO_SUMMARY_PROVIDER",
        "VOICEMEMO_UPLOAD_DIR",
        "VOICEMEMO_PUBLIC_BASE_URL",
        "VOICEMEMO_TRANSCRIPT_RATE_LIMIT_MAX",
        "VOICEMEMO_RATE_LIMIT_MAX_REQUESTS",
    )

    def setUp(self) -> None:
        self._old_env = {k: os.environ.get(k) for k in self._env_keys}
        self._upload_dir = tempfile.TemporaryDirectory()
        os.environ["VOICEMEMO_JWT_SECRET"] = "test-secret-with-at-least-32-bytes!!"
        os.environ["VOICEMEMO_AUTH_PROVIDER"] = "mock"
        os.environ["VOICEMEMO_STT_PROVIDER"] = "mock"
        os.environ["VOICEMEMO_SUMMARY_PROVIDER"] = "mock"
        os.environ["VOICEMEMO_UPLOAD_DIR"] = self._upload_dir.name
        os.environ["VOICEMEMO_PUBLIC_BASE_URL"] = "http://testserver"
        os.environ["VOICEMEMO_TRANSCRIPT_RATE_LIMIT_MAX"] = "1000"
        os.environ["VOICEMEMO_RATE_LIMIT_MAX_REQUESTS"] = "1000"
        get_settings.cache_clear()

    def tearDown(self) -> None:
        for key, value in self._old_env.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value
        get_settings.cache_clear()
        self._upload_dir.cleanup()


class _CountingTranscriber(MockTranscriptionAdapter):
    def __init__(self, *, error: Exception | None = None) -> None:
        super().__init__(max_audio_bytes=1024 * 1024)
        self.calls = 0
        self._error = error

    async def _transcribe(self, audio, *, audio_format, language_hint) -> TranscriptionResult:
        self.calls += 1
        if self._error is not None:
            raise self._error
        return TranscriptionResult(text="pick up the kids at five", language=language_hint, confidence=0.95)


class _CountingSummarizer(MockSummarizationAdapter):
    def __init__(self) -> None:
        self.calls = 0

    async def summarize(self, text: str) -> SummaryResult:
        self.calls += 1
        return await super().summarize(text)


def _wait_for_terminal(client: TestClient, transcript_id: str, headers: dict, timeout: float = 5.0) -> dict:
    deadline = time.monotonic() + timeout
    while True:
        body = client.get(f"/v1/transcripts/{transcript_id}", headers=headers).json()
        if body["status"] in (TranscriptStatus.COMPLETE.value, TranscriptStatus.FAILED.value):
            return body
        if time.monotonic() > deadline:
            raise AssertionError(f"transcript {transcript_id} stuck in {body['status']}")
        time.sleep(0.01)


def _upload_audio(client: TestClient, headers: dict, session_id: str | None = None) -> dict:
    init_body = {"fileExt": "mp3", "contentType": "audio/mpeg"}
    if session_id is not None:
        init_body["sessionId"] = session_id
    target = client.post("/v1/upload-init", headers=headers, json=init_body).json()
    upload_path = target["uploadUrl"].removeprefix("http://testserver")
    stored = client.put(upload_path, content=MP3_BYTES, headers={"Content-Type": "audio/mpeg"})
    assert stored.status_code == 200, stored.text
    return target


class TranscriptSubmissionApiTests(_SettingsEnvCase):
    def test_text_only_submission_with_summary_completes(self) -> None:
        summarizer = _CountingSummarizer()
        transcriber = _CountingTranscriber()
        app = create_app(transcriber=transcriber, summarizer=summarizer)

        with TestClient(app) as client:
            created = client.post(
                "/v1/transcripts",
                headers={**OWNER, "Idempotency-Key": "K1"},
                json={"text": "Pick up the kids at five and grab groceries.", "wantSummary": True},
            )
            self.assertEqual(created.status_code, 200)
            payload = created.json()
            self.assertTrue(payload["ok"])
            self.assertEqual(payload["status"], "PENDING")
            self.assertTrue(payload["sessionId"])

            final = _wait_for_terminal(client, payload["transcriptId"], OWNER)

        self.assertEqual(final["status"], "COMPLETE")
        self.assertNotIn("text", final)
        self.assertEqual(final["summary"]["model"], "mock-summarizer")
        self.assertNotIn("error", final)
        self.assertEqual(transcriber.calls, 0)
        self.assertEqual(summarizer.calls, 1)

    def test_text_only_submission_without_summary_completes_without_transcript(self) -> None:
        summarizer = _CountingSummarizer()
        transcriber = _CountingTranscriber()
        app = create_app(transcriber=transcriber, summarizer=summarizer)

        with TestClient(app) as client:
            created = client.post(
                "/v1/transcripts",
                headers={**OWNER, "Idempotency-Key": "K1"},
                json={"text": "Hello world", "wantSummary": False},
            ).json()
            final = _wait_for_terminal(client, created["transcriptId"], OWNER)

        self.assertEqual(final["status"], "COMPLETE")
        self.assertNotIn("text", final)
        self.assertNotIn("summary", final)
        self.assertNotIn("confidence", final)
        self.assertEqual((transcriber.calls, summarizer.calls), (0, 0))

    def test_audio_submission_completes_and_resubmission_replays_without_work(self) -> None:
        summarizer = _CountingSummarizer()
        transcriber = _CountingTranscriber()
        app = create_app(transcriber=transcriber, summarizer=summarizer)

        with TestClient(app) as client:
            target = _upload_audio(client, OWNER)
            request_body = {
                "sessionId": target["sessionId"],
                "audioUrl": target["audioUrl"],
                "language": "en",
                "wantSummary": True,
                "meta": {"durationSec": 4.2, "device": "watch"},
            }
            first = client.post("/v1/transcripts", headers={**OWNER, "Idempotency-Key": "K2"}, json=request_body).json()
            final = _wait_for_terminal(client, first["transcriptId"], OWNER)
            writes_after_completion = app.state.store.job_write_count

            replay = client.post("/v1/transcripts", headers={**OWNER, "Idempotency-Key": "K2"}, json=request_body)

        self.assertEqual(first["sessionId"], target["sessionId"])
        self.assertEqual(final["status"], "COMPLETE")
        self.assertEqual(final["text"], "pick up the kids at five")
        self.assertEqual(final["language"], "en")
        self.assertEqual(final["confidence"], 0.95)
        self.assertIn("summary", final)
        self.assertEqual(replay.status_code, 200)
        self.assertEqual(
            replay.json(),
            {"ok": True, "sessionId": target["sessionId"], "transcriptId": first["transcriptId"], "status": "COMPLETE"},
        )
        self.assertEqual(transcriber.calls, 1)
        self.assertEqual(summarizer.calls, 1)
        self.assertEqual(app.state.store.job_write_count, writes_after_completion)
        self.assertEqual(len(app.state.store.jobs), 1)

    def test_transcription_timeout_fails_without_summarization(self) -> None:
        summarizer = _CountingSummarizer()
        transcriber = _CountingTranscriber(error=TranscriptionError("Transcription failed: request timed out"))
        app = create_app(transcriber=transcriber, summarizer=summarizer)

        with TestClient(app) as client:
            target = _upload_audio(client, OWNER)
            created = client.post(
                "/v1/transcripts",
                headers={**OWNER, "Idempotency-Key": "K2"},
                json={"audioUrl": target["audioUrl"], "wantSummary": True},
            ).json()
            final = _wait_for_terminal(client, created["transcriptId"], OWNER)

        self.assertEqual(final["status"], "FAILED")
        self.assertEqual(final["error"], "Transcription failed: request timed out")
        self.assertNotIn("summary", final)
        self.assertNotIn("text", final)
        self.assertEqual(summarizer.calls, 0)

    def test_duplicate_key_before_processing_returns_same_job_and_enqueues_once(self) -> None:
        app = create_app()
        client = TestClient(app)
        headers = {**OWNER, "Idempotency-Key": "same-key"}

        first = client.post("/v1/transcripts", headers=headers, json={"text": "one"}).json()
        second = client.post("/v1/transcripts", headers=headers, json={"text": "a different body"}).json()

        self.assertEqual(first, second)
        self.assertEqual(len(app.state.store.jobs), 1)
        self.assertEqual(app.state.dispatcher.pending_job_ids(), [first["transcriptId"]])

    def test_input_exclusivity_and_body_validation(self) -> None:
        app = create_app()
        client = TestClient(app)
        invalid_bodies = {
            "neither": {"wantSummary": True},
            "both": {"text": "hi", "audioUrl": "http://testserver/uploads/audio/s/a.mp3"},
            "blank_text": {"text": "   "},
            "empty_text": {"text": ""},
            "bad_url": {"audioUrl": "ftp://example.com/a.mp3"},
            "confidence_range": {"text": "hi", "confidence": 1.5},
        }
        for index, (name, body) in enumerate(invalid_bodies.items()):
            with self.subTest(name=name):
                response = client.post(
                    "/v1/transcripts",
                    headers={**OWNER, "Idempotency-Key": f"bad-{index}"},
                    json=body,
                )
                self.assertEqual(response.status_code, 400)
                self.assertEqual(response.json()["code"], "VALIDATION_ERROR")

        self.assertEqual(app.state.store.jobs, {})
        self.assertEqual(app.state.store.sessions, {})

    def test_idempotency_key_header_is_required_and_bounded(self) -> None:
        app = create_app()
        client = TestClient(app)

        missing = client.post("/v1/transcripts", headers=OWNER, json={"text": "hi"})
        blank = client.post("/v1/transcripts", headers={**OWNER, "Idempotency-Key": "  "}, json={"text": "hi"})
        too_long = client.post("/v1/transcripts", headers={**OWNER, "Idempotency-Key": "k" * 256}, json={"text": "hi"})

        for response in (missing, blank, too_long):
            self.assertEqual(response.status_code, 400)
            self.assertEqual(response.json()["code"], "VALIDATION_ERROR")
        self.assertEqual(app.state.store.jobs, {})

    def test_foreign_session_transcript_and_key_are_not_found(self) -> None:
        app = create_app()
        client = TestClient(app)
        not_found = {"code": "RESOURCE_NOT_FOUND", "message": "Resource not found"}

        created = client.post("/v1/transcripts", headers={**OWNER, "Idempotency-Key": "mine"}, json={"text": "hi"}).json()

        foreign_session = client.post(
            "/v1/transcripts",
            headers={**OTHER, "Idempotency-Key": "theirs"},
            json={"text": "hi", "sessionId": created["sessionId"]},
        )
        foreign_get = client.get(f"/v1/transcripts/{created['transcriptId']}", headers=OTHER)
        foreign_replay = client.post("/v1/transcripts", headers={**OTHER, "Idempotency-Key": "mine"}, json={"text": "hi"})
        missing = client.get("/v1/transcripts/missing-id", headers=OWNER)

        for response in (foreign_session, foreign_get, foreign_replay, missing):
            self.assertEqual(response.status_code, 404)
            self.assertEqual(response.json(), not_found)
        self.assertEqual(len(app.state.store.jobs), 1)

    def test_pending_projection_omits_result_fields(self) -> None:
        app = create_app()
        client = TestClient(app)

        created = client.post("/v1/transcripts", headers={**OWNER, "Idempotency-Key": "p"}, json={"text": "hi"}).json()
        status_body = client.get(f"/v1/transcripts/{created['transcriptId']}", headers=OWNER).json()

        self.assertEqual(status_body["status"], "PENDING")
        self.assertEqual(status_body["sessionId"], created["sessionId"])
        for absent in ("text", "language", "confidence", "summary", "error"):
            self.assertNotIn(absent, status_body)

    def test_submission_rate_limit_returns_429(self) -> None:
        os.environ["VOICEMEMO_TRANSCRIPT_RATE_LIMIT_MAX"] = "2"
        get_settings.cache_clear()
        app = create_app()
        client = TestClient(app)

        statuses = [
            client.post("/v1/transcripts", headers={**OWNER, "Idempotency-Key": f"r-{index}"}, json={"text": "hi"}).status_code
            for index in range(3)
        ]

        self.assertEqual(statuses, [200, 200, 429])
        limited = client.post("/v1/transcripts", headers={**OWNER, "Idempotency-Key": "r-x"}, json={"text": "hi"})
        self.assertEqual(limited.json()["code"], "RATE_LIMITED")
        self.assertGreaterEqual(limited.json()["details"]["retry_after_seconds"], 1)

class _LateDuplicateStore(InMemoryStore):
    """Misses the key on the first lookup, as when a concurrent request inserts it in between."""

    def __init__(self) -> None:
        super().__init__()
        self.key_lookups = 0

    def get_job_by_idempotency_key(self, idempotency_key: str):
        self.key_lookups += 1
        if self.key_lookups == 1:
            return None
        return super().get_job_by_idempotency_key(idempotency_key)


class ConcurrentSubmissionTests(unittest.IsolatedAsyncioTestCase):
    async def test_racing_duplicate_insert_returns_existing_job_without_enqueue(self) -> None:
        store = _LateDuplicateStore()
        principal = AuthPrincipal(user_id="owner-1", device_id="watch-1")
        session = store.create_session(user_id=principal.user_id, device_id=principal.device_id)
        winner = store.create_job(
            session_id=session.id,
            idempotency_key="K-race",
            job_input=TextInput(text="first writer"),
            want_summary=False,
            requested_language="en",
        )
        dispatcher = PipelineDispatcher(lambda job_id: asyncio.sleep(0))
        service = TranscriptService(store, dispatcher)

        response = await service.submit(
            principal=principal,
            idempotency_key="K-race",
            payload=CreateTranscriptRequest(session_id=session.id, text="second writer"),
        )

        self.assertEqual(response.transcript_id, winner.id)
        self.assertEqual(response.session_id, session.id)
        self.assertEqual(response.status, TranscriptStatus.PENDING)
        self.assertEqual(store.key_lookups, 2)
        self.assertEqual(list(store.jobs), [winner.id])
        self.assertEqual(dispatcher.qsize(), 0)

    async def test_racing_duplicate_held_by_another_user_is_not_found(self) -> None:
        store = _LateDuplicateStore()
        owner_session = store.create_session(user_id="owner-1", device_id="watch-1")
        store.create_job(
            session_id=owner_session.id,
            idempotency_key="K-race",
            job_input=TextInput(text="first writer"),
            want_summary=False,
            requested_language="en",
        )
        dispatcher = PipelineDispatcher(lambda job_id: asyncio.sleep(0))
        service = TranscriptService(store, dispatcher)

        with self.assertRaises(ApiError) as raised:
            await service.submit(
                principal=AuthPrincipal(user_id="owner-2", device_id="watch-2"),
                idempotency_key="K-race",
                payload=CreateTranscriptRequest(text="second writer"),
            )

        self.assertEqual(raised.exception.status_code, 404)
        self.assertEqual(dispatcher.qsize(), 0)



if __name__ == "__main__":
    unittest.main()
