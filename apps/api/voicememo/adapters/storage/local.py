"""Filesystem-backed audio storage for single-host deployments."""

from __future__ import annotations

import asyncio
from pathlib import Path
import re

from voicememo.adapters.errors import AudioStorageError
from voicememo.adapters.storage.base import AudioStorage, UploadTarget

_FILE_KEY_PATTERN = re.compile(r"^audio/[A-Za-z0-9_-]+/[A-Za-z0-9_-]+\.[A-Za-z0-9]+$")


def is_valid_file_key(file_key: str) -> bool:
    return bool(_FILE_KEY_PATTERN.fullmatch(file_key))


class LocalAudioStorage(AudioStorage):
    accepts_direct_uploads = True

    def __init__(self, *, upload_dir: str | Path, public_base_url: str) -> None:
        self._root = Path(upload_dir).resolve()
        self._base_url = public_base_url.rstrip("/")

    @property
    def root(self) -> Path:
        return self._root

    @property
    def public_prefix(self) -> str:
        return f"{self._base_url}/uploads/"

    def create_upload_target(
        self,
        *,
        session_id: str,
        file_ext: str,
        content_type: str,
        metadata: dict[str, str],
    ) -> UploadTarget:
        file_key = self.generate_file_key(session_id, file_ext)
        return UploadTarget(
            file_key=file_key,
            upload_url=f"{self._base_url}/v1/upload/{file_key}",
            audio_url=f"{self.public_prefix}{file_key}",
        )

    async def save_audio(self, file_key: str, data: bytes) -> None:
        path = self._resolve(file_key)
        await asyncio.to_thread(_write_file, path, data)

    async def fetch_audio(self, audio_url: str) -> bytes:
        if not audio_url.startswith(self.public_prefix):
            raise AudioStorageError("Audio reference does not belong to this storage")

        path = self._resolve(audio_url[len(self.public_prefix):])
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as exc:
            raise AudioStorageError("Audio file not found") from exc
        except OSError as exc:
            raise AudioStorageError("Audio file could not be read") from exc

    def _resolve(self, file_key: str) -> Path:
        if not is_valid_file_key(file_key):
            raise AudioStorageError("Invalid audio file key")
        path = (self._root / file_key).resolve()
        if not path.is_relative_to(self._root):
            raise AudioStorageError("Invalid audio file key")
        return path


def _write_file(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


__all__ = ["LocalAudioStorage", "is_valid_file_key"]
