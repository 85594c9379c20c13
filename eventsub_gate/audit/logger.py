"""Hash-chained JSON Lines audit trail for EventSub deliveries.

One line per delivery outcome: signature failures, stale or malformed
deliveries, challenges, notifications and revocations. Every line carries
``prev_hash``, the SHA-256 of the line written before it. Rotation does not
restart the chain: the first line of a fresh file links to the last line of
the file that became ``.1``, so ``validate_audit_chain`` walks the surviving
backups oldest first and then the live file as one sequence.

Only header-derived identifiers go in; the webhook secret never does.
"""

from __future__ import annotations

import fcntl
import hashlib
import json
import os
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from eventsub_gate.models import AuditEvent, AuditEventType, RiskLevel

if TYPE_CHECKING:
    from eventsub_gate.webhook.models import WebhookDeliveryHeaders

DEFAULT_MAX_BYTES = 10_485_760
DEFAULT_BACKUP_COUNT = 5


@dataclass
class ChainValidationResult:
    valid: bool
    broken_at_line: int | None = None
    broken_in: Path | None = None


def _line_hash(line: str) -> str:
    return hashlib.sha256(line.encode()).hexdigest()


def _read_lines(path: Path) -> list[str]:
    if not path.exists():
        return []
    text = path.read_text().strip()
    return text.split("\n") if text else []


def rotated_files(log_path: Path) -> list[Path]:
    """Numbered backups of ``log_path`` that still exist, oldest first."""
    prefix = f"{log_path.name}."
    numbered = [
        (int(p.name[len(prefix):]), p)
        for p in log_path.parent.glob(f"{log_path.name}.*")
        if p.name[len(prefix):].isdigit()
    ]
    return [p for _, p in sorted(numbered, reverse=True)]


def validate_audit_chain(log_path: Path) -> ChainValidationResult:
    """Check every ``prev_hash`` link from the oldest surviving backup to the live file.

    Without backups the first line must have ``prev_hash`` null. With backups
    the oldest surviving line is the anchor, since its predecessor may have
    been rotated out.
    """
    backups = rotated_files(log_path)
    previous: str | None = None
    first = True
    for path in [*backups, log_path]:
        for number, line in enumerate(_read_lines(path), start=1):
            prev_hash = json.loads(line).get("prev_hash")
            if first:
                anchored = bool(backups) or prev_hash is None
                first = False
                if not anchored:
                    return ChainValidationResult(False, number, path)
            elif prev_hash != _line_hash(previous):  # type: ignore[arg-type]
                return ChainValidationResult(False, number, path)
            previous = line
    return ChainValidationResult(valid=True)


class AuditLogger:
    """Append-only audit trail of webhook delivery outcomes."""

    def __init__(
        self,
        log_path: str,
        max_bytes: int = DEFAULT_MAX_BYTES,
        backup_count: int = DEFAULT_BACKUP_COUNT,
    ) -> None:
        self.log_path = Path(log_path)
        self._max_bytes = max_bytes
        self._backup_count = backup_count
        self._last_line = self._tail()

    @classmethod
    def from_env(cls, log_path: str) -> AuditLogger:
        """Build with AUDIT_LOG_MAX_BYTES / AUDIT_LOG_BACKUP_COUNT overrides."""
        return cls(
            log_path=log_path,
            max_bytes=int(os.environ.get("AUDIT_LOG_MAX_BYTES", DEFAULT_MAX_BYTES)),
            backup_count=int(os.environ.get("AUDIT_LOG_BACKUP_COUNT", DEFAULT_BACKUP_COUNT)),
        )

    def _tail(self) -> str | None:
        """Last line written, so a restart continues the chain (even right after rotation)."""
        for path in (self.log_path, self._backup(1)):
            lines = _read_lines(path)
            if lines:
                return lines[-1]
        return None

    def _backup(self, index: int) -> Path:
        return self.log_path.with_name(f"{self.log_path.name}.{index}")

    @contextmanager
    def _locked(self) -> Iterator[None]:
        lock_path = self.log_path.with_name(f".{self.log_path.name}.lock")
        with open(lock_path, "w") as lock:
            fcntl.flock(lock, fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock, fcntl.LOCK_UN)

    def _rotate_if_full(self) -> None:
        if not self.log_path.exists() or self.log_path.stat().st_size < self._max_bytes:
            return
        self._backup(self._backup_count).unlink(missing_ok=True)
        for index in range(self._backup_count - 1, 0, -1):
            if self._backup(index).exists():
                self._backup(index).rename(self._backup(index + 1))
        self.log_path.rename(self._backup(1))

    def log(self, event: AuditEvent) -> None:
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        with self._locked():
            self._rotate_if_full()
            entry = event.model_dump(mode="json")
            entry["prev_hash"] = _line_hash(self._last_line) if self._last_line else None
            line = json.dumps(entry, separators=(",", ":"))
            with self.log_path.open("a") as f:
                f.write(line + "\n")
        self._last_line = line

    def log_delivery(
        self,
        event_type: AuditEventType,
        delivery: WebhookDeliveryHeaders,
        *,
        source_ip: str | None,
        result: str,
        risk_level: RiskLevel,
        details: dict[str, object] | None = None,
    ) -> AuditEvent:
        """Record one delivery outcome keyed by its message id and message type."""
        event = AuditEvent(
            event_type=event_type,
            source_ip=source_ip,
            message_id=delivery.message_id or None,
            action=delivery.message_type or "unknown",
            result=result,
            risk_level=risk_level,
            details=details,
        )
        self.log(event)
        return event
