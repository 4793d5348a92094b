"""Shared test fixtures for the WhatsApp relay."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from src.audit.logger import AuditLogger
from src.config import RelayConfig
from src.models import AuditEvent, AuditEventType, RiskLevel
from src.persona import Persona

APP_SECRET = "test_app_secret"
VERIFY_TOKEN = "test_verify_token"


@pytest.fixture
def mock_audit_logger() -> MagicMock:
    return MagicMock(spec=AuditLogger)


# --- Factory functions for test data ---


def make_config(**kwargs: Any) -> RelayConfig:
    """Factory for RelayConfig with fake credentials."""
    defaults: dict[str, Any] = {
        "whatsapp_token": "test_whatsapp_token",
        "phone_number_id": "987654321098765",
        "app_secret": APP_SECRET,
        "verify_token": VERIFY_TOKEN,
        "gemini_api_key": "test_gemini_key",
    }
    defaults.update(kwargs)
    return RelayConfig(**defaults)


def make_persona(**kwargs: Any) -> Persona:
    """Factory for a short, recognizable test persona."""
    defaults: dict[str, Any] = {
        "name": "Tester",
        "system_prompt": "You are a test assistant.",
        "user_prompt_template": "User ({sender}): {text}",
        "empty_reply": "EMPTY_REPLY",
        "error_reply": "ERROR_REPLY",
        "unsupported_notice": "UNSUPPORTED_NOTICE",
    }
    defaults.update(kwargs)
    return Persona(**defaults)


def make_audit_event(**kwargs: Any) -> AuditEvent:
    """Factory for AuditEvent with sensible defaults."""
    defaults: dict[str, Any] = {
        "event_type": AuditEventType.SIGNATURE_FAILURE,
        "action": "POST /webhook",
        "result": "blocked",
        "risk_level": RiskLevel.HIGH,
    }
    defaults.update(kwargs)
    return AuditEvent(**defaults)


def make_whatsapp_payload(
    text: str | None = "hello",
    phone: str = "5215512345678",
    message_type: str = "text",
    message_id: str = "wamid.TEST",
) -> dict[str, Any]:
    """Meta webhook delivery with a single inbound message."""
    message: dict[str, Any] = {
        "from": phone,
        "id": message_id,
        "timestamp": "1700000000",
        "type": message_type,
    }
    if text is not None:
        message["text"] = {"body": text}
    return {
        "object": "whatsapp_business_account",
        "entry": [
            {
                "id": "BUSINESS_ID",
                "changes": [
                    {
                        "value": {
                            "messaging_product": "whatsapp",
                            "metadata": {"phone_number_id": "PHONE_ID"},
                            "messages": [message],
                        },
                        "field": "messages",
                    }
                ],
            }
        ],
    }


def make_status_payload() -> dict[str, Any]:
    """Meta webhook delivery carrying only a delivery-status callback."""
    return {
        "object": "whatsapp_business_account",
        "entry": [
            {
                "id": "BUSINESS_ID",
                "changes": [
                    {
                        "value": {
                            "messaging_product": "whatsapp",
                            "metadata": {"phone_number_id": "PHONE_ID"},
                            "statuses": [{"id": "wamid.OUT", "status": "delivered"}],
                        },
                        "field": "messages",
                    }
                ],
            }
        ],
    }


def make_response(
    status_code: int, json_body: Any = None, text: str | None = None,
) -> httpx.Response:
    """Real httpx.Response bound to a request, so raise_for_status works."""
    request = httpx.Request("POST", "https://upstream.test/")
    if json_body is not None:
        return httpx.Response(status_code, json=json_body, request=request)
    return httpx.Response(status_code, text=text or "", request=request)


def mock_async_client(post: AsyncMock) -> MagicMock:
    """A patched httpx.AsyncClient class whose instances use ``post``."""
    client = AsyncMock()
    client.post = post
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    client_cls = MagicMock(return_value=client)
    return client_cls
