"""Client-facing views of stored transcript jobs."""

from voicememo.repositories.base import JobRecord
from voicememo.schemas.transcript import TranscriptStatus, TranscriptStatusResponse


def project_transcript(record: JobRecord) -> TranscriptStatusResponse:
    """Status-shaped view: result fields only once COMPLETE, ``error`` only once FAILED."""
    response = TranscriptStatusResponse(
        id=record.id,
        status=record.status,
        session_id=record.session_id,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )
    if record.status is TranscriptStatus.COMPLETE:
        response.text = record.transcript_text
        response.language = record.language or record.requested_language
        response.confidence = record.confidence
        response.summary = record.summary
    elif record.status is TranscriptStatus.FAILED:
        response.error = record.error
    return response


__all__ = ["project_transcript"]
