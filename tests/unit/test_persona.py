"""Tests for persona loading."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from src.config import ConfigError
from src.persona import DEFAULT_PERSONA, Persona, load_persona

PERSONAS_DIR = Path(__file__).parent.parent.parent / "config" / "personas"


def _persona_dict(**kwargs: str) -> dict[str, str]:
    data = {
        "name": "Ana",
        "system_prompt": "Eres Ana.",
        "empty_reply": "empty",
        "error_reply": "error",
        "unsupported_notice": "unsupported",
    }
    data.update(kwargs)
    return data


def test_no_path_uses_default_persona() -> None:
    assert load_persona(None) is DEFAULT_PERSONA


def test_default_persona_renders_sender_and_text() -> None:
    prompt = DEFAULT_PERSONA.render_user_prompt("hola", "5215500000000")
    assert prompt == "Consulta del usuario (5215500000000): hola"


def test_user_text_with_braces_is_not_formatted() -> None:
    prompt = DEFAULT_PERSONA.render_user_prompt("precio {total}", "1")
    assert prompt.endswith("precio {total}")


def test_load_from_json(tmp_path: Path) -> None:
    path = tmp_path / "persona.json"
    path.write_text(json.dumps(_persona_dict()), encoding="utf-8")
    persona = load_persona(str(path))
    assert persona.name == "Ana"
    assert persona.user_prompt_template == DEFAULT_PERSONA.user_prompt_template


def test_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="not found"):
        load_persona(str(tmp_path / "absent.json"))


def test_invalid_json_raises(tmp_path: Path) -> None:
    path = tmp_path / "persona.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError, match="Invalid persona"):
        load_persona(str(path))


def test_missing_field_raises(tmp_path: Path) -> None:
    data = _persona_dict()
    del data["error_reply"]
    path = tmp_path / "persona.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    with pytest.raises(ConfigError, match="Invalid persona"):
        load_persona(str(path))


def test_unknown_template_field_rejected() -> None:
    with pytest.raises(ValueError):
        Persona(**_persona_dict(user_prompt_template="{sender} {account}: {text}"))


@pytest.mark.parametrize("template", [
    "{text.upper}",
    "{text[0]}",
    "{sender.__class__}: {text}",
    "{}: {text}",
    "{0}",
    "{text:{width}}",
    "{text",
])
def test_template_rejects_anything_but_bare_fields(template: str) -> None:
    with pytest.raises(ValueError):
        Persona(**_persona_dict(user_prompt_template=template))


def test_template_allows_literal_braces_and_format_spec() -> None:
    persona = Persona(**_persona_dict(user_prompt_template="{{id}} {sender:>4}: {text!s}"))
    assert persona.render_user_prompt("hola", "42") == "{id}   42: hola"


def test_shipped_personas_are_valid() -> None:
    paths = sorted(PERSONAS_DIR.glob("*.json"))
    assert paths
    for path in paths:
        persona = load_persona(str(path))
        assert persona.system_prompt
