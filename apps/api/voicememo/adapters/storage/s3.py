"""S3 audio storage adapter using pre-signed upload URLs."""

from __future__ import annotations

import asyncio
from typing import Any

from voicememo.adapters.errors import AudioStorageError
from voicememo.adapters.storage.base import AudioStorage, UploadTarget

_PRESIGN_EXPIRES_SECONDS = 3600
_CACHE_CONTROL = "public, max-age=31536000"


class S3AudioStorage(AudioStorage):
    def __init__(
        self,
        *,
        bucket: str | None,
        region: str | None,
        public_cdn_base: str | None,
        client: Any | None = None,
    ) -> None:
        self._bucket = bucket
        self._region = region
        self._cdn_base = (public_cdn_base or "").rstrip("/")
        self._client = client

    def _get_client(self) -> Any:
        if self._client is not None:
            return self._client
        try:
            import boto3
        except ImportError as exc:  # pragma: no cover - depends on optional package
            raise AudioStorageError("S3 storage is unavailable") from exc

        self._client = boto3.client("s3", region_name=self._region)
        return self._client

    def create_upload_target(
        self,
        *,
        session_id: str,
        file_ext: str,
        content_type: str,
        metadata: dict[str, str],
    ) -> UploadTarget:
        if not self._bucket or not self._cdn_base:
            raise AudioStorageError("S3 storage is not configured")

        file_key = self.generate_file_key(session_id, file_ext)
        upload_url = self._get_client().generate_presigned_url(
            "put_object",
            Params={
                "Bucket": self._bucket,
                "Key": file_key,
                "ContentType": content_type,
                "Metadata": metadata,
                "CacheControl": _CACHE_CONTROL,
            },
            ExpiresIn=_PRESIGN_EXPIRES_SECONDS,
        )
        return UploadTarget(file_key=file_key, upload_url=upload_url, audio_url=f"{self._cdn_base}/{file_key}")

    async def fetch_audio(self, audio_url: str) -> bytes:
        prefix = f"{self._cdn_base}/"
        if not self._bucket or not self._cdn_base or not audio_url.startswith(prefix):
            raise AudioStorageError("Audio reference does not belong to this storage")

        file_key = audio_url[len(prefix):]
        client = self._get_client()
        try:
            return await asyncio.to_thread(_read_object, client, self._bucket, file_key)
        except Exception as exc:  # pragma: no cover - provider exception surface
            raise AudioStorageError("Audio file could not be read from object storage") from exc


def _read_object(client: Any, bucket: str, key: str) -> bytes:
    response = client.get_object(Bucket=bucket, Key=key)
    return response["Body"].read()


__all__ = ["S3AudioStorage"]
