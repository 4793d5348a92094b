"""Webhook handler: verified WhatsApp event -> Gemini -> WhatsApp reply.

Runs after the platform has already been acknowledged. Pipeline stages:
1. Extract the first message from the payload (no message: stop)
2. Type gate (not plain text: send the unsupported notice, stop)
3. Completion via Gemini (failures become a fallback reply)
4. Delivery via the WhatsApp Cloud API (single attempt)
5. Audit log of the delivery outcome
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from src.models import AuditEvent, AuditEventType, RiskLevel
from src.webhook.models import InboundEvent, OutboundReply
from src.webhook.whatsapp import WhatsAppWebhook

if TYPE_CHECKING:
    from src.audit.logger import AuditLogger
    from src.clients.gemini import GeminiClient
    from src.clients.whatsapp import WhatsAppClient
    from src.persona import Persona

logger = logging.getLogger(__name__)

_PREVIEW_CHARS = 50


class WebhookHandler:
    """Processes one acknowledged webhook delivery end to end."""

    def __init__(
        self,
        completion: GeminiClient,
        delivery: WhatsAppClient,
        persona: Persona,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._completion = completion
        self._delivery = delivery
        self._persona = persona
        self._audit = audit_logger

    async def process(self, payload: Any) -> bool | None:
        """Run the pipeline; never raises.

        Returns the delivery outcome, or None if nothing was sent (non-message
        event or an unexpected fault).
        """
        try:
            return await self._process(payload)
        except Exception:
            logger.exception("Error processing webhook event")
            return None

    async def _process(self, payload: Any) -> bool | None:
        # Stage 1: Extract
        event = WhatsAppWebhook.parse_event(payload)
        if event is None:
            logger.debug("Webhook delivery without messages ignored")
            return None
        logger.info("Message received from %s: %s", event.sender_id, event.raw_type)

        # Stage 2: Type gate
        if not event.is_text:
            logger.warning("Unsupported message type: %s", event.raw_type)
            reply = OutboundReply(event.sender_id, self._persona.unsupported_notice)
            return await self._deliver(event, reply)

        # Stage 3: Completion
        text = event.text_body or ""
        logger.info("Content: %s...", text[:_PREVIEW_CHARS])
        answer = await self._completion.complete(text, event.sender_id)

        # Stage 4: Delivery
        sent = await self._deliver(event, OutboundReply(event.sender_id, answer))
        if sent:
            logger.info("Conversation with %s completed", event.sender_id)
        else:
            logger.error("Failed to deliver reply to %s", event.sender_id)
        return sent

    async def _deliver(self, event: InboundEvent, reply: OutboundReply) -> bool:
        sent = await self._delivery.send_text(reply.recipient_id, reply.body)

        # Stage 5: Audit log
        if self._audit:
            try:
                self._audit.log(AuditEvent(
                    event_type=(
                        AuditEventType.REPLY_DELIVERED if sent else AuditEventType.REPLY_FAILED
                    ),
                    sender_id=event.sender_id,
                    action="reply",
                    result="success" if sent else "failure",
                    risk_level=RiskLevel.INFO if sent else RiskLevel.MEDIUM,
                    details={
                        "message_id": event.message_id,
                        "message_type": event.raw_type,
                    },
                ))
            except OSError:
                logger.exception("Failed to write audit event for %s", event.sender_id)
        return sent
