"""Shared Pydantic data models for the WhatsApp relay."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field

# --- Enums ---


class AuditEventType(str, Enum):
    SIGNATURE_FAILURE = "signature_failure"
    VERIFICATION_SUCCESS = "verification_success"
    VERIFICATION_FAILURE = "verification_failure"
    REPLY_DELIVERED = "reply_delivered"
    REPLY_FAILED = "reply_failed"


class RiskLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


# --- Audit Models ---


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class AuditEvent(BaseModel):
    timestamp: str = Field(default_factory=_now_iso)
    event_type: AuditEventType
    source_ip: str | None = None
    sender_id: str | None = None
    action: str
    result: str  # "success" | "failure" | "blocked"
    risk_level: RiskLevel
    details: dict[str, object] | None = None
