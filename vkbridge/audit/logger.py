"""Audit trail of webhook and send outcomes.

Events are appended as JSON Lines. Each line carries ``prev_hash``, the
SHA-256 of the line before it, so truncation or editing of the log is
detectable with :func:`validate_audit_chain`.

String details passed to :meth:`AuditLogger.record` have VK ``access_token``
query values masked.
"""

from __future__ import annotations

import fcntl
import hashlib
import json
import os
from dataclasses import dataclass
from pathlib import Path

from vkbridge.models import AuditEvent, AuditEventType, RiskLevel, redact_token


@dataclass
class ChainValidationResult:
    valid: bool
    broken_at_line: int | None = None


def _line_hash(line: str) -> str:
    return hashlib.sha256(line.encode()).hexdigest()


def validate_audit_chain(log_path: Path) -> ChainValidationResult:
    """Check that every line's ``prev_hash`` matches the preceding line."""
    text = log_path.read_text().strip()
    if not text:
        return ChainValidationResult(valid=True)

    previous: str | None = None
    for number, line in enumerate(text.split("\n"), start=1):
        expected = _line_hash(previous) if previous is not None else None
        if json.loads(line).get("prev_hash") != expected:
            return ChainValidationResult(valid=False, broken_at_line=number)
        previous = line

    return ChainValidationResult(valid=True)


class AuditLogger:
    """Append-only audit log with size-based rotation and a hash chain."""

    def __init__(
        self,
        log_path: str,
        max_bytes: int = 10_485_760,
        backup_count: int = 5,
    ) -> None:
        self.log_path = Path(log_path)
        self._max_bytes = max_bytes
        self._backup_count = backup_count
        self._last_line = self._read_last_line()

    @classmethod
    def from_env(cls, log_path: str) -> AuditLogger:
        """Create an AuditLogger sized from AUDIT_LOG_* environment variables."""
        return cls(
            log_path=log_path,
            max_bytes=int(os.environ.get("AUDIT_LOG_MAX_BYTES", "10485760")),
            backup_count=int(os.environ.get("AUDIT_LOG_BACKUP_COUNT", "5")),
        )

    def _read_last_line(self) -> str | None:
        if not self.log_path.exists():
            return None
        text = self.log_path.read_text().strip()
        return text.split("\n")[-1] if text else None

    def _backup(self, index: int) -> Path:
        return self.log_path.with_name(f"{self.log_path.name}.{index}")

    def _maybe_rotate(self) -> None:
        if not self.log_path.exists() or self.log_path.stat().st_size < self._max_bytes:
            return

        self._backup(self._backup_count).unlink(missing_ok=True)
        for index in range(self._backup_count - 1, 0, -1):
            if self._backup(index).exists():
                self._backup(index).rename(self._backup(index + 1))
        self.log_path.rename(self._backup(1))

    def log(self, event: AuditEvent) -> None:
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

        data = json.loads(event.model_dump_json())
        data["prev_hash"] = _line_hash(self._last_line) if self._last_line is not None else None
        line = json.dumps(data, separators=(",", ":"))

        # Rotation and append happen under one lock so writers never interleave
        lock_file = self.log_path.with_name(f".{self.log_path.name}.lock")
        with open(lock_file, "w") as lf:
            fcntl.flock(lf, fcntl.LOCK_EX)
            try:
                self._maybe_rotate()
                with open(self.log_path, "a") as f:
                    f.write(line + "\n")
            finally:
                fcntl.flock(lf, fcntl.LOCK_UN)

        self._last_line = line

    def record(
        self,
        event_type: AuditEventType,
        action: str,
        result: str,
        risk_level: RiskLevel = RiskLevel.INFO,
        channel_uuid: str | None = None,
        **details: object,
    ) -> None:
        """Shorthand for logging an event built from keyword arguments."""
        masked = {k: redact_token(v) if isinstance(v, str) else v for k, v in details.items()}
        self.log(AuditEvent(
            event_type=event_type,
            action=action,
            result=result,
            risk_level=risk_level,
            channel_uuid=channel_uuid,
            details=masked or None,
        ))
