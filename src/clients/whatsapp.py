"""Delivery client for the WhatsApp Cloud API send-message endpoint."""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class WhatsAppClient:
    """Sends text messages on behalf of one WhatsApp business phone number.

    One attempt per message: a failed send is logged and dropped, never
    retried, so the user cannot receive the same reply twice.
    """

    def __init__(
        self,
        access_token: str,
        phone_number_id: str,
        api_base: str = "https://graph.facebook.com",
        api_version: str = "v18.0",
        timeout: float = 15.0,
    ) -> None:
        self._access_token = access_token
        self._phone_number_id = phone_number_id
        self._api_base = api_base
        self._api_version = api_version
        self._timeout = timeout

    @property
    def url(self) -> str:
        return (
            f"{self._api_base.rstrip('/')}/{self._api_version}"
            f"/{self._phone_number_id}/messages"
        )

    @staticmethod
    def build_payload(to: str, body: str) -> dict[str, Any]:
        return {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": to,
            "type": "text",
            "text": {"body": body},
        }

    async def send_text(self, to: str, body: str) -> bool:
        """Send ``body`` to ``to``. Returns False on any failure."""
        headers = {"Authorization": f"Bearer {self._access_token}"}
        try:
            async with httpx.AsyncClient(verify=True) as client:
                resp = await client.post(
                    self.url,
                    json=self.build_payload(to, body),
                    headers=headers,
                    timeout=self._timeout,
                )
        except httpx.HTTPError as exc:
            logger.error(
                "WhatsApp send failed: status=None code=None message=%s phone_number_id=%s",
                str(exc) or type(exc).__name__,
                self._phone_number_id,
            )
            return False

        if not resp.is_success:
            code, message = _provider_error(resp)
            logger.error(
                "WhatsApp send failed: status=%s code=%s message=%s phone_number_id=%s",
                resp.status_code,
                code,
                message,
                self._phone_number_id,
            )
            return False

        logger.info("Message sent to %s: %s", to, _message_id(resp))
        return True


def _provider_error(response: httpx.Response) -> tuple[Any, Any]:
    """Extract Graph API ``error.code`` and ``error.message``."""
    try:
        error = response.json()["error"]
        return error.get("code"), error.get("message")
    except (ValueError, KeyError, TypeError, AttributeError):
        return None, response.text[:200]


def _message_id(response: httpx.Response) -> str | None:
    try:
        return response.json()["messages"][0]["id"]
    except (ValueError, KeyError, IndexError, TypeError):
        return None
