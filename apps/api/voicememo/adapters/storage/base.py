"""Audio blob storage interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
import secrets
import time


@dataclass(frozen=True, slots=True)
class UploadTarget:
    file_key: str
    upload_url: str
    audio_url: str


class AudioStorage(ABC):
    """Resolves upload destinations and audio references for the pipeline."""

    #: Whether the API itself accepts uploads at ``PUT /v1/upload/{fileKey}``.
    accepts_direct_uploads: bool = False

    @staticmethod
    def generate_file_key(session_id: str, file_ext: str) -> str:
        timestamp_ms = int(time.time() * 1000)
        return f"audio/{session_id}/{timestamp_ms}-{secrets.token_hex(3)}.{file_ext.lower()}"

    @abstractmethod
    def create_upload_target(
        self,
        *,
        session_id: str,
        file_ext: str,
        content_type: str,
        metadata: dict[str, str],
    ) -> UploadTarget:
        """Allocate a file key and return where the client uploads it and how it is referenced."""

    @abstractmethod
    async def fetch_audio(self, audio_url: str) -> bytes:
        """Read the audio behind a reference issued by this storage or raise ``AudioStorageError``."""

    async def save_audio(self, file_key: str, data: bytes) -> None:
        raise NotImplementedError("This storage does not accept direct uploads")


__all__ = ["AudioStorage", "UploadTarget"]
