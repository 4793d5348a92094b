"""Assistant persona: the prompt and canned replies the relay speaks with."""

from __future__ import annotations

import json
from pathlib import Path
from string import Formatter

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from src.config import ConfigError

_TEMPLATE_FIELDS = frozenset({"sender", "text"})


class Persona(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    system_prompt: str
    user_prompt_template: str = "Consulta del usuario ({sender}): {text}"
    empty_reply: str  # model answered without usable text
    error_reply: str  # model call failed
    unsupported_notice: str  # inbound message was not plain text

    @field_validator("user_prompt_template")
    @classmethod
    def _template_fields(cls, value: str) -> str:
        try:
            fields = [field for _, field, _, _ in Formatter().parse(value) if field is not None]
        except ValueError as exc:
            raise ValueError(f"Malformed user_prompt_template: {exc}") from exc
        unknown = [field for field in fields if field not in _TEMPLATE_FIELDS]
        if unknown:
            raise ValueError(
                f"user_prompt_template may only use {{sender}} and {{text}}, got {unknown}"
            )
        try:
            value.format(sender="", text="")
        except (KeyError, IndexError, ValueError) as exc:
            # nested fields inside a format spec, or a bad conversion
            raise ValueError(f"Malformed user_prompt_template: {exc}") from exc
        return value

    def render_user_prompt(self, text: str, sender: str) -> str:
        return self.user_prompt_template.format(sender=sender, text=text)


DEFAULT_PERSONA = Persona(
    name="Harry",
    system_prompt=(
        "Eres Harry, el asistente financiero oficial de IBRICOM/MBV.\n"
        "Tu función es procesar alertas financieras, consultas de tesorería "
        "y notificaciones bancarias.\n"
        "Responde de manera profesional, concisa y directa.\n"
        "Si la consulta es sobre finanzas, banca o tesorería, proporciona "
        "información útil.\n"
        "Si no entiendes la consulta, pide aclaración de forma cortés."
    ),
    empty_reply="He recibido tu mensaje. ¿En qué puedo ayudarte con tus finanzas hoy?",
    error_reply=(
        "Gracias por tu mensaje. Soy Harry, asistente financiero de IBRICOM. "
        "En este momento estoy procesando tu consulta. Por favor, indícame si "
        "necesitas información sobre alertas bancarias, tesorería o reportes "
        "financieros."
    ),
    unsupported_notice=(
        "Por ahora solo proceso mensajes de texto. "
        "Pronto tendré más funcionalidades."
    ),
)


def load_persona(persona_path: str | None) -> Persona:
    """Load a persona from a JSON file, or the built-in one if no path is set."""
    if persona_path is None:
        return DEFAULT_PERSONA
    path = Path(persona_path)
    if not path.exists():
        raise ConfigError(f"Persona file not found: {persona_path}")
    try:
        return Persona.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise ConfigError(f"Invalid persona file {persona_path}: {exc}") from exc
