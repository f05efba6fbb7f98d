"""Audit trail for administrative operations.

Each account or data mutation appends one JSON line to ``admin-events.jsonl``.
Lines carry an HMAC-SHA256 signature when a signing key is available
(``/run/secrets/audit_log_signing_key`` or ``AUDIT_LOG_SIGNING_KEY``), and
``scripts/iq_admin.py verify-audit`` re-checks them offline.
"""

from __future__ import annotations
import datetime
import hashlib
import hmac
import json
import logging
import os
from pathlib import Path
from typing import Any, Literal, NamedTuple, Optional

from internquest.config.settings import load_secret_from_file

logger = logging.getLogger(__name__)

AUDIT_LOG_DIR = Path(os.environ.get("AUDIT_LOG_DIR", ".runtime/audit"))
AUDIT_LOG_FILE = AUDIT_LOG_DIR / "admin-events.jsonl"

EventType = Literal[
    "create_user_with_role",
    "provision_account",
    "delete_user",
    "update_user_password",
    "migrate_student_ids",
]

# Detail keys that may hold credentials or one-time setup links
REDACTED_DETAIL_KEYS = frozenset({"password", "newPassword", "link", "setupLink", "oobCode"})


class AuditReport(NamedTuple):
    total: int
    valid: int
    bad_lines: list[int]

    @property
    def ok(self) -> bool:
        return self.total == self.valid


def _signing_key() -> bytes:
    key = load_secret_from_file("audit_log_signing_key", "AUDIT_LOG_SIGNING_KEY") or ""
    return key.strip().encode("utf-8")


def _signature(event: dict[str, Any], key: bytes) -> str:
    canonical = json.dumps(event, sort_keys=True, separators=(",", ":"), default=str)
    return hmac.new(key, canonical.encode("utf-8"), hashlib.sha256).hexdigest()


def _redact(details: Optional[dict[str, Any]]) -> dict[str, Any]:
    return {k: ("[redacted]" if k in REDACTED_DETAIL_KEYS else v) for k, v in (details or {}).items()}


def log_event(
    event_type: EventType,
    target: str,
    *,
    operator: str = "system",
    details: dict[str, Any] | None = None,
    success: bool = True,
) -> None:
    """Append an audit event for an administrative operation.

    Args:
        event_type: Operation name
        target: Affected account (uid or email) or collection list
        operator: Caller uid, the CLI operator name, or "system"
        details: Extra context; credential and link keys are redacted
        success: Whether the operation completed
    """
    event = {
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        "event_type": event_type,
        "target": target,
        "operator": operator,
        "success": success,
        "details": _redact(details),
    }
    key = _signing_key()
    if key:
        event["signature"] = _signature(event, key)

    AUDIT_LOG_DIR.mkdir(mode=0o700, parents=True, exist_ok=True)
    with AUDIT_LOG_FILE.open("a", encoding="utf-8") as f:
        f.write(json.dumps(event, ensure_ascii=False, default=str) + "\n")
    AUDIT_LOG_FILE.chmod(0o600)


def safe_log_event(event_type: EventType, target: str, **kwargs: Any) -> bool:
    """Like log_event, but a failed write is logged instead of raised."""
    try:
        log_event(event_type, target, **kwargs)
        return True
    except Exception as exc:
        logger.warning("Audit event %s for %s not written: %s", event_type, target, exc)
        return False


def verify_audit_log() -> AuditReport:
    """Check every event signature against the current signing key.

    Unsigned, malformed, and tampered events are reported by line number.
    """
    if not AUDIT_LOG_FILE.exists():
        return AuditReport(0, 0, [])

    key = _signing_key()
    total = 0
    bad_lines: list[int] = []
    with AUDIT_LOG_FILE.open("r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            if not line.strip():
                continue
            total += 1
            try:
                event = json.loads(line)
            except json.JSONDecodeError:
                bad_lines.append(lineno)
                continue
            stored = event.pop("signature", "") if isinstance(event, dict) else ""
            if not (key and stored and hmac.compare_digest(stored, _signature(event, key))):
                bad_lines.append(lineno)

    return AuditReport(total, total - len(bad_lines), bad_lines)
