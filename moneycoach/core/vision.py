"""
MoneyCoach Assistant — Bill Reader.

Reads a photo of a bill or receipt and condenses it to one loggable sentence,
"Spent <amount> on <item>", which then goes through the normal text pipeline.

Two attempts: structured JSON output first, then a plain-text answer matched
with a regex. Returns None if both fail.
"""

from __future__ import annotations

import base64
import logging
import re

from openai import AsyncOpenAI

from moneycoach.config import settings
from moneycoach.core.parser import extract_json_object

logger = logging.getLogger(__name__)

_client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY, base_url=settings.OPENAI_BASE_URL)

_JSON_PROMPT = (
    "You are an OCR expert for Indian bills and receipts. "
    'Return JSON: {"amount": number, "item": string}. '
    "amount = total paid in rupees (no currency sign), "
    'item = short label like "Pizza", "Groceries", "Taxi".'
)

_TEXT_PROMPT = (
    "Look at this Indian bill or receipt and answer in EXACTLY one sentence:\n"
    "Spent <amount> on <item>\n"
    "Example: Spent 790 on Pizza\n"
    "No extra words, no currency symbols, only that sentence."
)

_SPENT_RE = re.compile(r"spent\s+([\d,.]+)\s+on\s+(.+)", re.IGNORECASE)


def _image_message(prompt: str, image: bytes) -> list[dict]:
    encoded = base64.b64encode(image).decode("ascii")
    return [
        {
            "role": "user",
            "content": [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": f"data:image/jpeg;base64,{encoded}"}},
            ],
        }
    ]


def sentence_from_json(raw: str) -> str | None:
    data = extract_json_object(raw or "")
    if not data:
        return None
    amount = data.get("amount")
    item = str(data.get("item") or "").strip()
    if isinstance(amount, bool) or not isinstance(amount, (int, float)) or not item:
        return None
    return f"Spent {round(amount)} on {item}"


def sentence_from_text(raw: str) -> str | None:
    match = _SPENT_RE.search(raw or "")
    if not match:
        return None
    try:
        amount = round(float(match.group(1).replace(",", "").rstrip(".")))
    except ValueError:
        return None
    item = re.sub(r"[\s.]+$", "", match.group(2)) or "purchase"
    return f"Spent {amount} on {item}"


async def read_bill(image: bytes) -> str | None:
    """Return "Spent <amount> on <item>" for a bill photo, or None."""
    try:
        response = await _client.chat.completions.create(
            model=settings.VISION_MODEL,
            temperature=0.1,
            max_tokens=256,
            response_format={"type": "json_object"},
            messages=_image_message(_JSON_PROMPT, image),
        )
        sentence = sentence_from_json(response.choices[0].message.content or "")
        if sentence:
            logger.info("Bill read (json mode): %s", sentence)
            return sentence
    except Exception as exc:
        logger.warning("Vision JSON mode failed: %s", exc)

    try:
        response = await _client.chat.completions.create(
            model=settings.VISION_MODEL,
            temperature=0.1,
            max_tokens=128,
            messages=_image_message(_TEXT_PROMPT, image),
        )
        sentence = sentence_from_text(response.choices[0].message.content or "")
        if sentence:
            logger.info("Bill read (text mode): %s", sentence)
            return sentence
    except Exception as exc:
        logger.error("Vision text mode failed: %s", exc)

    return None
