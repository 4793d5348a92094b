"""Data models for one inbound webhook cycle."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class MessageType(str, Enum):
    TEXT = "text"
    OTHER = "other"


@dataclass(frozen=True)
class InboundEvent:
    """First message of a WhatsApp webhook delivery, normalized."""

    sender_id: str
    message_type: MessageType
    text_body: str | None = None
    message_id: str | None = None
    raw_type: str = "text"  # type string as sent by Meta, kept for logging

    @property
    def is_text(self) -> bool:
        return self.message_type is MessageType.TEXT and bool(self.text_body)


@dataclass(frozen=True)
class OutboundReply:
    """Text reply to send back to the originating WhatsApp user."""

    recipient_id: str
    body: str
