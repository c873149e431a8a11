"""Keyset cursors for newest-first listings."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from datetime import UTC, datetime

PAGE_LIMIT_DEFAULT = 20
PAGE_LIMIT_MAX = 100


@dataclass(frozen=True, slots=True)
class PageCursor:
    """Position after the last returned row: rows strictly older than this come next."""

    created_at: datetime
    id: str

    def sort_key(self) -> tuple[datetime, str]:
        return (self.created_at, self.id)


def encode_cursor(*, created_at: datetime, row_id: str) -> str:
    raw = f"{created_at.isoformat()}|{row_id}".encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_cursor(cursor: str | None) -> PageCursor | None:
    """Parse a cursor produced by ``encode_cursor``; malformed cursors restart from the first page."""
    if cursor is None:
        return None
    normalized = cursor.strip()
    if not normalized:
        return None

    padded = normalized + "=" * (-len(normalized) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError):
        return None

    created_at_text, separator, row_id = raw.partition("|")
    if not separator or not row_id:
        return None
    try:
        created_at = datetime.fromisoformat(created_at_text)
    except ValueError:
        return None
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=UTC)
    return PageCursor(created_at=created_at, id=row_id)


def clamp_limit(limit: int | None) -> int:
    if limit is None or limit < 1:
        return PAGE_LIMIT_DEFAULT
    return min(limit, PAGE_LIMIT_MAX)
