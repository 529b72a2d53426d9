"""
MoneyCoach Assistant — Audio Transcriber.

Voice notes are the fastest way to log a spend. After transcription the text
flows through the same pipeline as typed messages.

Uses any OpenAI-compatible speech-to-text endpoint (OpenAI, Groq, ...).
"""

from __future__ import annotations

import logging

from openai import AsyncOpenAI

from moneycoach.config import settings

logger = logging.getLogger(__name__)

_client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY, base_url=settings.OPENAI_BASE_URL)


async def transcribe_audio(audio: bytes, filename: str = "voice_note.ogg") -> str | None:
    """Transcribe a WhatsApp voice note.

    Args:
        audio: Raw audio bytes (WhatsApp sends OGG/Opus).
        filename: Name hint so the endpoint can detect the format.

    Returns:
        The transcript, or None if the call failed or heard nothing.
    """
    try:
        response = await _client.audio.transcriptions.create(
            model=settings.TRANSCRIPTION_MODEL,
            file=(filename, audio, "audio/ogg"),
        )
    except Exception as exc:
        logger.error("Audio transcription failed: %s", exc)
        return None

    text = (response.text or "").strip()
    if not text:
        logger.warning("Transcription returned empty text")
        return None

    logger.info("Transcribed %d chars from %s", len(text), filename)
    return text
