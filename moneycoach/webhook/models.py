"""Pydantic models for the WhatsApp Cloud API webhook payload.

Only the fields the pipeline reads are modelled; everything else is ignored.
Container lists stay raw so the handler can validate each item on its own
and skip a malformed one without losing the rest of the batch.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore")


class TextBody(_Lenient):
    body: str | None = None


class MediaRef(_Lenient):
    id: str | None = None
    caption: str | None = None


class InboundMessage(_Lenient):
    id: str | None = None
    sender: str | None = Field(default=None, alias="from")
    type: str | None = None
    text: TextBody | None = None
    audio: MediaRef | None = None
    image: MediaRef | None = None

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def preview(self) -> str:
        """Short, log-friendly description of the message content."""
        if self.type == "text":
            body = (self.text.body if self.text else None) or ""
            return body[:80]
        return f"[{self.type or 'unknown'} message]"


class Profile(_Lenient):
    name: str | None = None


class Contact(_Lenient):
    wa_id: str | None = None
    profile: Profile | None = None


class ChangeValue(_Lenient):
    messaging_product: str | None = None
    contacts: list[Any] = []
    messages: list[Any] = []

    @property
    def profile_name(self) -> str | None:
        if not self.contacts:
            return None
        try:
            contact = Contact.model_validate(self.contacts[0])
        except ValidationError:
            return None
        return contact.profile.name if contact.profile else None


class Change(_Lenient):
    field: str | None = None
    value: Any = None


class Entry(_Lenient):
    id: str | None = None
    changes: list[Any] = []


class WebhookPayload(_Lenient):
    object: str | None = None
    entry: list[Any] = []
