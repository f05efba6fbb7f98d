"""Student-id to email lookup with account-block enforcement.

Profiles written by older admin tools store block status in several shapes.
The predicate is the union of all of them: dropping one silently unblocks
accounts that were blocked through that shape.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from internquest.core.errors import ErrorKind, ServiceError
from internquest.core.store import DocumentStore

logger = logging.getLogger(__name__)

ACCOUNT_BLOCKED = "ACCOUNT_BLOCKED"


def _account_access(data: dict[str, Any]) -> dict[str, Any]:
    access = data.get("accountAccess")
    return access if isinstance(access, dict) else {}


def _status_is_blocked(value: Any) -> bool:
    if value is None:
        return False
    return str(value).strip().lower() == "blocked"


def _non_empty(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


# Each extractor answers "does this shape say blocked?" for one legacy schema.
BLOCK_INDICATORS: list[tuple[str, Callable[[dict[str, Any]], bool]]] = [
    ("accountAccess.isBlocked", lambda d: _account_access(d).get("isBlocked") is True),
    ("isBlocked", lambda d: d.get("isBlocked") is True),
    ("is_blocked", lambda d: d.get("is_blocked") is True),
    ("blocked", lambda d: d.get("blocked") is True),
    ("accountStatus", lambda d: _status_is_blocked(d.get("accountStatus"))),
    ("status", lambda d: _status_is_blocked(d.get("status"))),
]

REASON_EXTRACTORS: list[Callable[[dict[str, Any]], Optional[str]]] = [
    lambda d: _non_empty(_account_access(d).get("blockedReason")),
    lambda d: _non_empty(d.get("blockedReason")),
    lambda d: _non_empty(d.get("blockReason")),
]

BLOCKED_BY_EXTRACTORS: list[Callable[[dict[str, Any]], Optional[str]]] = [
    lambda d: _non_empty(_account_access(d).get("blockedBy")),
    lambda d: _non_empty(d.get("blockedBy")),
]


def _first_match(extractors, data: dict[str, Any]) -> Optional[str]:
    for extract in extractors:
        value = extract(data)
        if value is not None:
            return value
    return None


def blocked_indicator(data: dict[str, Any]) -> Optional[str]:
    """Return the name of the first shape marking the profile blocked, or None."""
    for name, predicate in BLOCK_INDICATORS:
        if predicate(data):
            return name
    return None


def is_blocked(data: Optional[dict[str, Any]]) -> bool:
    if not isinstance(data, dict):
        return False
    return blocked_indicator(data) is not None


class AccountBlockedError(ServiceError):
    """Raised when a looked-up account is blocked. Never carries the email."""

    def __init__(self, reason: Optional[str], blocked_by: Optional[str]):
        self.reason = reason
        self.blocked_by = blocked_by
        super().__init__(ErrorKind.PERMISSION_DENIED, ACCOUNT_BLOCKED)

    def to_payload(self) -> dict:
        return {"error": ACCOUNT_BLOCKED, "reason": self.reason, "blockedBy": self.blocked_by}


@dataclass(frozen=True)
class LookupResult:
    email: Optional[str]

    def to_dict(self) -> dict:
        return {"email": self.email}


def normalize_student_id(student_id: str) -> str:
    return student_id.replace("-", "")


def lookup_email_by_student_id(
    store: DocumentStore,
    student_id: Any,
    *,
    users_collection: str = "users",
    student_id_field: str = "studentId",
) -> LookupResult:
    """Resolve a student id to the account email.

    Exact match first, then the hyphen-stripped variant. A missing profile and
    a profile without an email are deliberately indistinguishable.

    Raises:
        ServiceError: INVALID_ARGUMENT if student_id is not a non-empty string
        AccountBlockedError: If any block indicator is set on the profile
    """
    if not isinstance(student_id, str) or not student_id:
        raise ServiceError(ErrorKind.INVALID_ARGUMENT, "studentId is required")

    doc = store.find_first(users_collection, student_id_field, student_id)
    if doc is None:
        normalized = normalize_student_id(student_id)
        if normalized != student_id:
            doc = store.find_first(users_collection, student_id_field, normalized)
    if doc is None:
        return LookupResult(email=None)

    data = doc.data or {}
    indicator = blocked_indicator(data)
    if indicator is not None:
        logger.info("Lookup refused for blocked account (uid=%s, indicator=%s)", doc.id, indicator)
        raise AccountBlockedError(
            reason=_first_match(REASON_EXTRACTORS, data),
            blocked_by=_first_match(BLOCKED_BY_EXTRACTORS, data),
        )

    email = data.get("email")
    return LookupResult(email=email if isinstance(email, str) else None)
