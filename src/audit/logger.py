"""Audit trail for webhook security events.

Append-only JSON Lines. Each line carries ``prev_hash``, the SHA-256 of the
line before it, so truncation or edits are detectable with
``validate_audit_chain``.
"""

from __future__ import annotations

import fcntl
import hashlib
import json
from dataclasses import dataclass
from pathlib import Path

from src.models import AuditEvent


@dataclass
class ChainValidationResult:
    valid: bool
    broken_at_line: int | None = None


def _line_hash(line: str) -> str:
    return hashlib.sha256(line.encode()).hexdigest()


def validate_audit_chain(log_path: Path) -> ChainValidationResult:
    """Check that every line's prev_hash matches the line before it."""
    text = log_path.read_text(encoding="utf-8").strip()
    if not text:
        return ChainValidationResult(valid=True)

    previous: str | None = None
    for number, line in enumerate(text.split("\n"), start=1):
        expected = _line_hash(previous) if previous is not None else None
        try:
            entry = json.loads(line)
        except json.JSONDecodeError:
            return ChainValidationResult(valid=False, broken_at_line=number)
        if not isinstance(entry, dict) or entry.get("prev_hash") != expected:
            return ChainValidationResult(valid=False, broken_at_line=number)
        previous = line
    return ChainValidationResult(valid=True)


class AuditLogger:
    """Writes AuditEvents to a hash-chained JSON Lines file with rotation."""

    def __init__(
        self,
        log_path: str,
        max_bytes: int = 10_485_760,
        backup_count: int = 5,
    ) -> None:
        self.log_path = Path(log_path)
        self._max_bytes = max_bytes
        self._backup_count = backup_count
        self._last_line: str | None = None
        # Continue the chain of an existing file
        if self.log_path.exists():
            text = self.log_path.read_text(encoding="utf-8").strip()
            if text:
                self._last_line = text.split("\n")[-1]

    def _backup(self, index: int) -> Path:
        return self.log_path.with_name(f"{self.log_path.name}.{index}")

    def _maybe_rotate(self) -> bool:
        if not self.log_path.exists() or self.log_path.stat().st_size < self._max_bytes:
            return False
        self._backup(self._backup_count).unlink(missing_ok=True)
        for index in range(self._backup_count - 1, 0, -1):
            if self._backup(index).exists():
                self._backup(index).rename(self._backup(index + 1))
        self.log_path.rename(self._backup(1))
        return True

    def log(self, event: AuditEvent) -> None:
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        data = json.loads(event.model_dump_json())

        lock_file = self.log_path.with_name(f".{self.log_path.name}.lock")
        with open(lock_file, "w") as lf:
            fcntl.flock(lf, fcntl.LOCK_EX)
            try:
                # A rotated-in file starts a fresh chain
                if self._maybe_rotate():
                    self._last_line = None
                data["prev_hash"] = (
                    _line_hash(self._last_line) if self._last_line is not None else None
                )
                line = json.dumps(data, separators=(",", ":"), ensure_ascii=False)
                with open(self.log_path, "a", encoding="utf-8") as f:
                    f.write(line + "\n")
            finally:
                fcntl.flock(lf, fcntl.LOCK_UN)

        self._last_line = line
