"""Audio payload checks applied before any speech-to-text call."""

from voicememo.adapters.errors import AudioValidationError

ALLOWED_AUDIO_EXTENSIONS: frozenset[str] = frozenset({"mp3", "wav", "m4a", "aac", "ogg", "flac"})

_MP3_FRAME_SYNC_SECOND_BYTES = frozenset({0xFB, 0xF3, 0xF2})
_ADTS_SECOND_BYTES = frozenset({0xF1, 0xF9})


def is_allowed_extension(file_ext: str) -> bool:
    return file_ext.lower() in ALLOWED_AUDIO_EXTENSIONS


def detect_audio_format(payload: bytes) -> str | None:
    """Return the container format named by the payload's leading bytes, if recognised."""
    header = payload[:12]
    if header.startswith(b"ID3"):
        return "mp3"
    if len(header) >= 2 and header[0] == 0xFF:
        if header[1] in _MP3_FRAME_SYNC_SECOND_BYTES:
            return "mp3"
        if header[1] in _ADTS_SECOND_BYTES:
            return "aac"
    if header.startswith(b"RIFF") and header[8:12] == b"WAVE":
        return "wav"
    if header.startswith(b"OggS"):
        return "ogg"
    if header.startswith(b"fLaC"):
        return "flac"
    if header[4:8] == b"ftyp":
        return "m4a"
    return None


def validate_audio_payload(payload: bytes, *, max_bytes: int) -> str:
    """Reject empty, oversized or unrecognised payloads; return the detected format."""
    if not payload:
        raise AudioValidationError("Audio file is empty")
    if len(payload) > max_bytes:
        raise AudioValidationError(f"Audio file too large. Maximum size: {max_bytes} bytes")

    audio_format = detect_audio_format(payload)
    if audio_format is None:
        raise AudioValidationError("Invalid audio file format")
    return audio_format
