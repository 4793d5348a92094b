"""Inbound side of the WhatsApp Cloud API webhook.

Handles the Meta verification handshake (GET), HMAC verification of event
deliveries (POST), and extraction of the first message from the nested
payload.
"""

from __future__ import annotations

import hmac
import logging
from collections.abc import Mapping
from typing import Any

from src.webhook.models import InboundEvent, MessageType
from src.webhook.signature import SIGNATURE_HEADER, verify_signature

logger = logging.getLogger(__name__)


class WhatsAppWebhook:
    """Authenticates and parses WhatsApp Business webhook requests."""

    def __init__(self, app_secret: str, verify_token: str) -> None:
        self._app_secret = app_secret
        self._verify_token = verify_token

    def verify_signature(self, headers: Mapping[str, str], body: bytes) -> bool:
        return verify_signature(body, headers.get(SIGNATURE_HEADER), self._app_secret)

    def handle_verification(self, params: Mapping[str, str]) -> str | None:
        """Answer Meta's subscription handshake.

        Returns the challenge to echo back when the mode is ``subscribe`` and
        the verify token matches, otherwise None (the caller responds 403).
        """
        mode = params.get("hub.mode")
        token = params.get("hub.verify_token", "")
        logger.debug(
            "Webhook verification request: mode=%s token=%s...", mode, token[:10],
        )
        if mode != "subscribe":
            return None
        if not hmac.compare_digest(token.encode(), self._verify_token.encode()):
            return None
        return params.get("hub.challenge", "")

    @staticmethod
    def parse_event(payload: Any) -> InboundEvent | None:
        """Extract the first message of the first change of the first entry.

        Any missing or mistyped field at any depth yields None. Deliveries
        without a ``messages`` array (status callbacks) also yield None.
        """
        try:
            value = payload["entry"][0]["changes"][0]["value"]
            message = value["messages"][0]
            sender = message["from"]
        except (KeyError, IndexError, TypeError):
            return None
        if not isinstance(sender, str) or not sender:
            return None

        raw_type = message.get("type")
        if not isinstance(raw_type, str):
            raw_type = "unknown"
        text = message.get("text")
        body = text.get("body") if isinstance(text, dict) else None
        message_id = message.get("id")

        return InboundEvent(
            sender_id=sender,
            message_type=MessageType.TEXT if raw_type == "text" else MessageType.OTHER,
            text_body=body if isinstance(body, str) else None,
            message_id=message_id if isinstance(message_id, str) else None,
            raw_type=raw_type,
        )
