"""Completion client for the Gemini ``generateContent`` REST endpoint."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from src.persona import Persona

logger = logging.getLogger(__name__)

_GENERATION_CONFIG = {
    "temperature": 0.3,
    "maxOutputTokens": 500,
    "topP": 0.8,
    "topK": 40,
}


class GeminiClient:
    """Turns a user's message into the persona's reply.

    ``complete`` never raises: every failure degrades to one of the persona's
    canned replies so the sender always gets an answer.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        persona: Persona,
        api_base: str = "https://generativelanguage.googleapis.com",
        timeout: float = 15.0,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._persona = persona
        self._api_base = api_base
        self._timeout = timeout

    @property
    def url(self) -> str:
        return f"{self._api_base.rstrip('/')}/v1beta/models/{self._model}:generateContent"

    def build_request(self, text: str, sender_id: str) -> dict[str, Any]:
        return {
            "contents": [{
                "role": "user",
                "parts": [
                    {"text": self._persona.system_prompt},
                    {"text": self._persona.render_user_prompt(text, sender_id)},
                ],
            }],
            "generationConfig": dict(_GENERATION_CONFIG),
        }

    async def complete(self, text: str, sender_id: str) -> str:
        try:
            async with httpx.AsyncClient() as client:
                resp = await client.post(
                    self.url,
                    params={"key": self._api_key},
                    json=self.build_request(text, sender_id),
                    timeout=self._timeout,
                )
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Gemini request failed: status=%s message=%s model=%s",
                exc.response.status_code,
                _error_message(exc.response),
                self._model,
            )
            return self._persona.error_reply
        except (httpx.HTTPError, ValueError) as exc:
            # ValueError covers a 2xx body that is not JSON
            logger.error(
                "Gemini request failed: status=None message=%s model=%s",
                str(exc) or type(exc).__name__,
                self._model,
            )
            return self._persona.error_reply

        reply = extract_candidate_text(data)
        if reply is None:
            logger.warning("Gemini response had no candidate text (model=%s)", self._model)
            return self._persona.empty_reply
        return reply


def extract_candidate_text(data: Any) -> str | None:
    """Return ``candidates[0].content.parts[0].text`` if it is a non-empty string."""
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    if not isinstance(text, str) or not text:
        return None
    return text


def _error_message(response: httpx.Response) -> str:
    """Best-effort ``error.message`` from a Google API error body."""
    try:
        message = response.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return response.text[:200]
    return str(message)
