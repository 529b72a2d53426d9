"""WhatsApp Cloud API adapter — implements MessagingPort.

Sends text replies (split into WhatsApp-sized chunks) and read receipts
through the Graph API. A failed send raises MessagingError; a failed read
receipt is only logged.
"""

from __future__ import annotations

import logging

import httpx

from moneycoach.config import settings
from moneycoach.ports.messaging_port import MessagingError

logger = logging.getLogger(__name__)

GRAPH_BASE_URL = "https://graph.facebook.com"
MAX_MESSAGE_LENGTH = 4000
_TIMEOUT_SECONDS = 15


def split_message(text: str, max_length: int = MAX_MESSAGE_LENGTH) -> list[str]:
    """Split ``text`` into chunks of at most ``max_length`` characters.

    Prefers the last newline inside the window when it sits in the second
    half of it, then the last space, then a hard cut. Leading whitespace of
    the remainder is dropped.
    """
    if len(text) <= max_length:
        return [text]

    chunks: list[str] = []
    remaining = text
    while len(remaining) > max_length:
        window = remaining[:max_length]
        cut = window.rfind("\n")
        if cut < max_length // 2:
            cut = window.rfind(" ")
        if cut <= 0:
            cut = max_length
        chunks.append(remaining[:cut])
        remaining = remaining[cut:].lstrip()
    if remaining:
        chunks.append(remaining)
    return chunks


class WhatsAppMessenger:
    """WhatsApp Cloud API implementation of MessagingPort."""

    def __init__(
        self,
        phone_number_id: str | None = None,
        access_token: str | None = None,
        api_version: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._phone_number_id = phone_number_id or settings.WHATSAPP_PHONE_NUMBER_ID
        self._access_token = access_token or settings.WHATSAPP_ACCESS_TOKEN
        self._api_version = api_version or settings.WHATSAPP_API_VERSION
        self._client = client or httpx.AsyncClient(timeout=_TIMEOUT_SECONDS)

    @property
    def messages_url(self) -> str:
        return f"{GRAPH_BASE_URL}/{self._api_version}/{self._phone_number_id}/messages"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._access_token}",
            "Content-Type": "application/json",
        }

    async def send_text(self, to: str, text: str) -> None:
        """Send ``text`` to ``to``, one request per chunk, in order."""
        for chunk in split_message(text):
            payload = {
                "messaging_product": "whatsapp",
                "recipient_type": "individual",
                "to": to,
                "type": "text",
                "text": {"preview_url": False, "body": chunk},
            }
            try:
                resp = await self._client.post(
                    self.messages_url, json=payload, headers=self._headers(),
                )
                resp.raise_for_status()
            except httpx.HTTPStatusError as exc:
                logger.error(
                    "WhatsApp send failed for %s: %s %s",
                    to, exc.response.status_code, exc.response.text,
                )
                raise MessagingError(
                    f"WhatsApp send failed with status {exc.response.status_code}"
                ) from exc
            except httpx.HTTPError as exc:
                logger.error("WhatsApp send failed for %s: %s", to, exc)
                raise MessagingError(f"WhatsApp send failed: {exc}") from exc

        logger.info("Sent %d chars to %s", len(text), to)

    async def mark_as_read(self, message_id: str) -> None:
        payload = {
            "messaging_product": "whatsapp",
            "status": "read",
            "message_id": message_id,
        }
        try:
            resp = await self._client.post(
                self.messages_url, json=payload, headers=self._headers(),
            )
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Failed to mark %s as read: %s", message_id, exc)

    async def aclose(self) -> None:
        await self._client.aclose()
