"""Audio blob storage adapters."""

from .base import AudioStorage, UploadTarget
from .local import LocalAudioStorage
from .s3 import S3AudioStorage

__all__ = ["AudioStorage", "LocalAudioStorage", "S3AudioStorage", "UploadTarget"]
