"""Media port — turns voice notes and bill photos into plain text.

Every method returns None on failure instead of raising, so the caller can
fall back to asking the user to type.
"""

from __future__ import annotations

from typing import Protocol


class MediaPort(Protocol):
    """Abstract media interface used by the webhook handler."""

    async def download_media(self, media_id: str) -> bytes | None: ...

    async def transcribe_audio(self, audio: bytes) -> str | None: ...

    async def read_bill(self, image: bytes) -> str | None: ...
