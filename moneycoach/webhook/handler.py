"""
MoneyCoach Assistant — Webhook Message Handler.

Walks a WhatsApp webhook payload, gates each message through the dedup cache
and hands it to its own detached asyncio task, so the HTTP request can be
acknowledged immediately.

Per message:
    text  → ActionService
    audio → download → transcribe → echo "You said" → ActionService
    image → download → read bill → echo → ActionService (caption as fallback)

Each task has its own error boundary: failures are logged and the user gets
a fixed apology when possible.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from pydantic import BaseModel, ValidationError

from moneycoach.core.dedup import DedupCache
from moneycoach.webhook.models import Change, ChangeValue, Entry, InboundMessage, WebhookPayload

if TYPE_CHECKING:
    from moneycoach.core.action_service import ActionService
    from moneycoach.ports.media_port import MediaPort
    from moneycoach.ports.messaging_port import MessagingPort

logger = logging.getLogger(__name__)

AUDIO_DOWNLOAD_FAILED = "I couldn't download this audio. Please type your message instead."
AUDIO_UNCLEAR = (
    "I couldn't clearly understand this voice note. "
    "Please type a short line about your money question."
)
IMAGE_DOWNLOAD_FAILED = (
    "I couldn't download this image. Please type your expense like: 'Spent 790 on Pizza'."
)
IMAGE_UNREADABLE = (
    "I couldn't read this bill correctly. Please type a quick line like: 'Spent 790 on Pizza'."
)
APOLOGY_MESSAGE = "Sorry, something went wrong on my side. Please try again in a minute."

# Strong references to in-flight tasks until they finish
_background_tasks: set[asyncio.Task] = set()


def _validate(model: type[BaseModel], raw: object, what: str):
    """Validate one piece of the payload; None (and a warning) when malformed."""
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        logger.warning("Skipping malformed webhook %s: %d error(s)", what, exc.error_count())
        return None


class WebhookHandler:
    """Turns webhook payloads into replies via the service and transports."""

    def __init__(
        self,
        service: ActionService,
        messenger: MessagingPort,
        media: MediaPort,
        dedup: DedupCache | None = None,
    ) -> None:
        self._service = service
        self._messenger = messenger
        self._media = media
        self._dedup = dedup or DedupCache()

    # ------------------------------------------------------------------
    # Payload intake
    # ------------------------------------------------------------------

    def handle_payload(self, body: object) -> list[asyncio.Task]:
        """Schedule processing for every new message in ``body``.

        Malformed payloads are ignored; a malformed entry, change or message
        is skipped without dropping the rest of the batch. Returns the
        spawned tasks.
        """
        payload = _validate(WebhookPayload, body, "payload")
        if payload is None or not payload.object or not payload.entry:
            return []

        tasks: list[asyncio.Task] = []
        for raw_entry in payload.entry:
            entry = _validate(Entry, raw_entry, "entry")
            if entry is None:
                continue
            for raw_change in entry.changes:
                change = _validate(Change, raw_change, "change")
                if change is None or change.field != "messages" or change.value is None:
                    continue
                value = _validate(ChangeValue, change.value, "change value")
                if value is None:
                    continue
                profile_name = value.profile_name

                for raw_message in value.messages:
                    message = _validate(InboundMessage, raw_message, "message")
                    if message is None or not message.id or not message.sender:
                        continue

                    logger.info(
                        "Incoming WhatsApp message from %s (%s) type=%s id=%s: %s",
                        message.sender, profile_name, message.type, message.id,
                        message.preview(),
                    )

                    if not self._dedup.should_process(message.id):
                        logger.debug("Duplicate message %s, skipping", message.id)
                        continue

                    tasks.append(self._spawn(message, profile_name))
        return tasks

    def _spawn(self, message: InboundMessage, profile_name: str | None) -> asyncio.Task:
        task = asyncio.create_task(self._guarded(message, profile_name))
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)
        return task

    async def _guarded(self, message: InboundMessage, profile_name: str | None) -> None:
        try:
            await self.route_message(message, profile_name)
        except Exception:
            logger.exception("Failed to process message %s from %s", message.id, message.sender)
            try:
                await self._messenger.send_text(message.sender, APOLOGY_MESSAGE)
            except Exception as exc:
                logger.error("Could not send apology to %s: %s", message.sender, exc)

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    async def route_message(self, message: InboundMessage, profile_name: str | None = None) -> None:
        """Normalize one message to text and reply to it."""
        if message.type == "text":
            text = ((message.text.body if message.text else None) or "").strip()
            if text:
                await self._process_text(message, text, profile_name)
            return

        if message.type == "audio":
            await self._route_audio(message, profile_name)
            return

        if message.type == "image":
            await self._route_image(message, profile_name)
            return

        logger.debug("Ignoring unsupported message type %s", message.type)

    async def _route_audio(self, message: InboundMessage, profile_name: str | None) -> None:
        await self._messenger.mark_as_read(message.id)

        audio = await self._media.download_media(message.audio.id if message.audio else "")
        if not audio:
            await self._messenger.send_text(message.sender, AUDIO_DOWNLOAD_FAILED)
            return

        transcript = await self._media.transcribe_audio(audio)
        if not transcript:
            await self._messenger.send_text(message.sender, AUDIO_UNCLEAR)
            return

        await self._messenger.send_text(message.sender, f'You said: "{transcript}"')
        await self._process_text(message, transcript, profile_name)

    async def _route_image(self, message: InboundMessage, profile_name: str | None) -> None:
        await self._messenger.mark_as_read(message.id)

        image_ref = message.image
        caption = ((image_ref.caption if image_ref else None) or "").strip()

        image = await self._media.download_media(image_ref.id if image_ref else "")
        if not image:
            await self._messenger.send_text(message.sender, IMAGE_DOWNLOAD_FAILED)
            return

        sentence = await self._media.read_bill(image)
        if sentence:
            await self._messenger.send_text(message.sender, f'I read your bill as: "{sentence}".')
            await self._process_text(message, sentence, profile_name)
            return

        if caption:
            await self._process_text(message, caption, profile_name)
            return

        await self._messenger.send_text(message.sender, IMAGE_UNREADABLE)

    async def _process_text(
        self, message: InboundMessage, text: str, profile_name: str | None,
    ) -> None:
        await self._messenger.mark_as_read(message.id)
        response = await self._service.process_text(message.sender, text, profile_name)
        await self._messenger.send_text(message.sender, response.message)
