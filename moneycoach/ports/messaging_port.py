"""Messaging port — abstract interface for replying to users.

Core modules depend on this protocol, never on a specific messaging provider.
"""

from __future__ import annotations

from typing import Protocol


class MessagingError(Exception):
    """Raised when an outbound message could not be delivered."""


class MessagingPort(Protocol):
    """Abstract outbound messaging interface used by core modules."""

    async def send_text(self, to: str, text: str) -> None: ...

    async def mark_as_read(self, message_id: str) -> None: ...
