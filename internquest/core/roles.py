"""Role model for InternQuest administrators.

Roles form a strict hierarchy for account creation:
    admin        -> coordinator, adviser
    coordinator  -> adviser
    adviser      -> (nobody)

All functions here are pure and never raise.
"""
from __future__ import annotations
from enum import Enum
from typing import Any, Optional


class Role(str, Enum):
    ADMIN = "admin"
    COORDINATOR = "coordinator"
    ADVISER = "adviser"


# Claim values still issued by older tooling
LEGACY_ALIASES = {"super_admin": Role.ADMIN}

CREATABLE_ROLES: dict[Role, frozenset[Role]] = {
    Role.ADMIN: frozenset({Role.COORDINATOR, Role.ADVISER}),
    Role.COORDINATOR: frozenset({Role.ADVISER}),
    Role.ADVISER: frozenset(),
}

LISTABLE_ROLES: dict[Role, frozenset[Role]] = {
    Role.ADMIN: frozenset({Role.COORDINATOR, Role.ADVISER}),
    Role.COORDINATOR: frozenset({Role.ADVISER}),
    Role.ADVISER: frozenset(),
}

ROLE_LABELS = {
    Role.ADMIN: "Admin",
    Role.COORDINATOR: "Coordinator",
    Role.ADVISER: "Adviser",
}

# Account roles accepted by the HTTP provisioning endpoint (student onboarding)
ACCOUNT_ROLE_STUDENT = "student"
ACCOUNT_ROLES = ("student", "admin", "super_admin")


def normalize_role(raw: Any) -> Optional[Role]:
    """Normalize a raw role claim.

    Trims and lowercases the input, maps legacy aliases to admin, and returns
    None for missing or unrecognized values. Never defaults to a privileged role.

    Example:
        >>> normalize_role("Super_Admin ")
        <Role.ADMIN: 'admin'>
        >>> normalize_role("") is None
        True
    """
    if raw is None:
        return None
    if isinstance(raw, Role):
        return raw
    try:
        value = str(raw).strip().lower()
    except Exception:
        return None
    if not value:
        return None
    if value in LEGACY_ALIASES:
        return LEGACY_ALIASES[value]
    try:
        return Role(value)
    except ValueError:
        return None


def creatable_roles(caller: Any) -> frozenset[Role]:
    role = normalize_role(caller)
    if role is None:
        return frozenset()
    return CREATABLE_ROLES[role]


def listable_roles(caller: Any) -> frozenset[Role]:
    role = normalize_role(caller)
    if role is None:
        return frozenset()
    return LISTABLE_ROLES[role]


def can_create(caller_role: Any, target_role: Any) -> bool:
    """Return True if caller_role may create an account with target_role."""
    target = normalize_role(target_role)
    if target is None:
        return False
    return target in creatable_roles(caller_role)


def is_admin_role(raw: Any) -> bool:
    """Check if a raw claim is admin-equivalent (admin or legacy super_admin)."""
    return normalize_role(raw) is Role.ADMIN


def role_label(role: Any) -> str:
    normalized = normalize_role(role)
    if normalized is None:
        return "User"
    return ROLE_LABELS[normalized]


def normalize_account_role(raw: Any) -> str:
    """Map the provisioning endpoint's role input to a stored account role.

    Unknown values fall back to student; admin-equivalent values are written
    canonically as admin.
    """
    value = str(raw).strip().lower() if raw is not None else ""
    if value not in ACCOUNT_ROLES:
        return ACCOUNT_ROLE_STUDENT
    if is_admin_role(value):
        return Role.ADMIN.value
    return value
