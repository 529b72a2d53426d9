"""WhatsApp media adapter — implements MediaPort.

Downloading is a two-step Graph API call: resolve the media id to a
short-lived URL, then fetch the bytes with the same bearer token.
Transcription and bill reading are delegated to the core modules.

Gracefully degrades: every method returns None on failure.
"""

from __future__ import annotations

import logging

import httpx

from moneycoach.adapters.whatsapp_messenger import GRAPH_BASE_URL
from moneycoach.config import settings
from moneycoach.core import transcriber, vision

logger = logging.getLogger(__name__)

_TIMEOUT_SECONDS = 30


class WhatsAppMedia:
    """WhatsApp Cloud API implementation of MediaPort."""

    def __init__(
        self,
        access_token: str | None = None,
        api_version: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._access_token = access_token or settings.WHATSAPP_ACCESS_TOKEN
        self._api_version = api_version or settings.WHATSAPP_API_VERSION
        self._client = client or httpx.AsyncClient(timeout=_TIMEOUT_SECONDS)

    async def download_media(self, media_id: str) -> bytes | None:
        if not media_id:
            return None

        headers = {"Authorization": f"Bearer {self._access_token}"}
        try:
            meta = await self._client.get(
                f"{GRAPH_BASE_URL}/{self._api_version}/{media_id}", headers=headers,
            )
            meta.raise_for_status()
            url = meta.json().get("url")
            if not url:
                logger.warning("No download URL for media %s", media_id)
                return None

            resp = await self._client.get(url, headers=headers)
            resp.raise_for_status()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Media download failed for %s: %s", media_id, exc)
            return None

        logger.info("Downloaded media %s (%d bytes)", media_id, len(resp.content))
        return resp.content

    async def transcribe_audio(self, audio: bytes) -> str | None:
        return await transcriber.transcribe_audio(audio)

    async def read_bill(self, image: bytes) -> str | None:
        return await vision.read_bill(image)

    async def aclose(self) -> None:
        await self._client.aclose()
