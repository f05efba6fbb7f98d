"""Authorization gate for privileged operations.

Every privileged operation calls authorize() before doing anything else:
    1. no verified caller              -> UNAUTHENTICATED
    2. missing/unrecognized role claim -> PERMISSION_DENIED ("Missing caller role claim.")
    3. role not allowed for operation  -> PERMISSION_DENIED (operation-specific message)
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Optional

from internquest.core.errors import ErrorKind, ServiceError
from internquest.core.roles import Role, can_create, normalize_role


@dataclass(frozen=True)
class CallerIdentity:
    """Verified caller derived from an ID token or callable context."""

    uid: str
    claims: dict[str, Any] = field(default_factory=dict)

    @property
    def raw_role(self) -> Any:
        return self.claims.get("role")

    @property
    def email(self) -> Optional[str]:
        return self.claims.get("email")

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> "CallerIdentity":
        uid = claims.get("uid") or claims.get("user_id") or claims.get("sub") or ""
        return cls(uid=str(uid), claims=dict(claims))


@dataclass(frozen=True)
class OperationPolicy:
    allowed: frozenset[Role]
    denied_message: str


OPERATION_POLICIES: dict[str, OperationPolicy] = {
    "list_managed_users": OperationPolicy(
        frozenset({Role.ADMIN, Role.COORDINATOR}),
        "You do not have permission to list managed users.",
    ),
    "create_user_with_role": OperationPolicy(
        frozenset({Role.ADMIN, Role.COORDINATOR}),
        "You do not have permission to create user accounts.",
    ),
    "migrate_student_ids": OperationPolicy(
        frozenset({Role.ADMIN}),
        "Only Super Admin can run migrations.",
    ),
    "provision_account": OperationPolicy(
        frozenset({Role.ADMIN}),
        "Forbidden: admin role required",
    ),
    "push_to_user": OperationPolicy(
        frozenset({Role.ADMIN}),
        "Forbidden: admin role required",
    ),
    "delete_user": OperationPolicy(
        frozenset({Role.ADMIN}),
        "You do not have permission to delete user accounts.",
    ),
    "update_user_password": OperationPolicy(
        frozenset({Role.ADMIN}),
        "You do not have permission to change user passwords.",
    ),
}


def require_caller(caller: Optional[CallerIdentity]) -> CallerIdentity:
    if caller is None or not caller.uid:
        raise ServiceError(ErrorKind.UNAUTHENTICATED, "Authentication required.")
    return caller


def require_role(caller: Optional[CallerIdentity]) -> Role:
    """Steps 1 and 2 of the gate: authenticated caller with a recognized role."""
    caller = require_caller(caller)
    role = normalize_role(caller.raw_role)
    if role is None:
        raise ServiceError(ErrorKind.PERMISSION_DENIED, "Missing caller role claim.")
    return role


def authorize(caller: Optional[CallerIdentity], operation: str) -> Role:
    """Run the full gate for a named operation and return the caller's role.

    Raises:
        ServiceError: UNAUTHENTICATED or PERMISSION_DENIED
        KeyError: If the operation has no registered policy (programming error)
    """
    policy = OPERATION_POLICIES[operation]
    role = require_role(caller)
    if role not in policy.allowed:
        raise ServiceError(ErrorKind.PERMISSION_DENIED, policy.denied_message)
    return role


def authorize_target(caller_role: Role, target_role: Role) -> None:
    """Enforce the account-creation hierarchy for a specific target role."""
    if can_create(caller_role, target_role):
        return
    if caller_role is Role.COORDINATOR:
        raise ServiceError(ErrorKind.PERMISSION_DENIED, "Coordinators can only create adviser accounts.")
    if caller_role is Role.ADMIN:
        raise ServiceError(
            ErrorKind.PERMISSION_DENIED,
            "Admins can only create coordinator or adviser accounts.",
        )
    raise ServiceError(ErrorKind.PERMISSION_DENIED, "You do not have permission to create user accounts.")
