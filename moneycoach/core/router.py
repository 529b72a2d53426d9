"""
MoneyCoach Assistant — Intent Router.

Deterministic commands (strict mode, greetings, forecast, health score) are
answered locally and never reach the LLM. Everything else is delegated to
inference.

Rules are evaluated in order and the first match wins. The checks are plain
substring tests, so e.g. "strict budget, I want to start saving" counts as
a strict-mode toggle.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)


class Intent(Enum):
    STRICT_ON = "strict_on"
    STRICT_OFF = "strict_off"
    GREETING = "greeting"
    FORECAST = "forecast"
    HEALTH = "health"
    INFERENCE = "inference"


GREETINGS = frozenset({"hi", "hello", "hey", "start"})
_ON_TOKENS = (" on", "enable", "start")
_OFF_TOKENS = ("off", "disable", "stop", "remove")
_FORECAST_PREFIXES = ("impact", "plan", "save more")


def normalize(text: str | None) -> str:
    return (text or "").strip().lower()


def _is_strict_on(text: str) -> bool:
    if "strict" not in text:
        return False
    return text.startswith("on ") or any(tok in text for tok in _ON_TOKENS)


def _is_strict_off(text: str) -> bool:
    return "strict" in text and any(tok in text for tok in _OFF_TOKENS)


def _is_greeting(text: str) -> bool:
    return text in GREETINGS


def _is_forecast(text: str) -> bool:
    return text.startswith(_FORECAST_PREFIXES)


def _is_health(text: str) -> bool:
    return text in ("health", "score") or "financial health" in text


_RULES: list[tuple[Intent, Callable[[str], bool]]] = [
    (Intent.STRICT_ON, _is_strict_on),
    (Intent.STRICT_OFF, _is_strict_off),
    (Intent.GREETING, _is_greeting),
    (Intent.FORECAST, _is_forecast),
    (Intent.HEALTH, _is_health),
]


def classify_intent(text: str | None) -> Intent:
    """Map a raw inbound message to the handler that should answer it."""
    normalized = normalize(text)
    for intent, matches in _RULES:
        if matches(normalized):
            logger.debug("Routed '%s' to %s", normalized[:40], intent.value)
            return intent
    return Intent.INFERENCE
