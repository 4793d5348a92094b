"""Process-wide relay configuration, read once from the environment."""

from __future__ import annotations

import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

# Sample phone number id from Meta's getting-started docs
PLACEHOLDER_PHONE_NUMBER_ID = "123456789012345"

# env var -> field name
_REQUIRED_VARS = {
    "WHATSAPP_TOKEN": "whatsapp_token",
    "PHONE_NUMBER_ID": "phone_number_id",
    "APP_SECRET": "app_secret",
    "WEBHOOK_VERIFY_TOKEN": "verify_token",
    "GEMINI_API_KEY": "gemini_api_key",
}

_OPTIONAL_VARS = {
    "GEMINI_MODEL": "gemini_model",
    "PORT": "port",
    "UPSTREAM_TIMEOUT": "upstream_timeout",
    "GEMINI_API_BASE": "gemini_api_base",
    "WHATSAPP_API_BASE": "whatsapp_api_base",
    "WHATSAPP_API_VERSION": "whatsapp_api_version",
    "PERSONA_PATH": "persona_path",
    "AUDIT_LOG_PATH": "audit_log_path",
    "LOG_LEVEL": "log_level",
}

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class ConfigError(Exception):
    """Raised when the relay cannot start with the given configuration."""


class RelayConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    whatsapp_token: str = Field(min_length=1)
    phone_number_id: str = Field(min_length=1)
    app_secret: str = Field(min_length=1)
    verify_token: str = Field(min_length=1)
    gemini_api_key: str = Field(min_length=1)

    gemini_model: str = "gemini-1.5-flash"
    port: int = Field(default=10000, ge=1, le=65535)
    upstream_timeout: float = Field(default=15.0, gt=0)
    gemini_api_base: str = "https://generativelanguage.googleapis.com"
    whatsapp_api_base: str = "https://graph.facebook.com"
    whatsapp_api_version: str = "v18.0"
    persona_path: str | None = None
    audit_log_path: str | None = None
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"unknown log level: {value}")
        return level

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> RelayConfig:
        """Build the config from environment variables.

        Every missing required variable is reported at once. Empty strings
        count as missing. Raises ConfigError; callers decide whether that is
        fatal.
        """
        env = os.environ if environ is None else environ

        missing = [var for var in _REQUIRED_VARS if not env.get(var)]
        if missing:
            raise ConfigError(
                f"Missing required environment variables: {', '.join(missing)}"
            )

        values: dict[str, str] = {
            field: env[var] for var, field in _REQUIRED_VARS.items()
        }
        for var, field in _OPTIONAL_VARS.items():
            if env.get(var):
                values[field] = env[var]

        try:
            config = cls.model_validate(values)
        except ValidationError as exc:
            raise ConfigError(f"Invalid configuration: {exc}") from exc

        if config.phone_number_id == PLACEHOLDER_PHONE_NUMBER_ID:
            raise ConfigError(
                "PHONE_NUMBER_ID is the documentation placeholder; "
                "use the real number id from the Meta app dashboard"
            )
        return config

    @property
    def phone_number_configured(self) -> bool:
        return self.phone_number_id != PLACEHOLDER_PHONE_NUMBER_ID

    def summary(self) -> dict[str, object]:
        """Log-safe view of the config (no secrets)."""
        return {
            "phone_number_id": self.phone_number_id,
            "gemini_model": self.gemini_model,
            "port": self.port,
            "upstream_timeout": self.upstream_timeout,
            "whatsapp_api_version": self.whatsapp_api_version,
            "persona_path": self.persona_path,
            "audit_log_enabled": self.audit_log_path is not None,
        }
