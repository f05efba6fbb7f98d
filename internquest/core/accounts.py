"""
Account Provisioning Service — administrator and student accounts

This module holds every operation that creates, lists, deletes or changes
identity-provider accounts. It is used by the callable API, the HTTP
provisioning endpoint and the operator CLI.

Architecture:
    Callables (/callable/*) ──┐
    HTTP (/createUserAccount) ├──> accounts.py ──> identity provider + document store + mailer
    CLI (scripts/iq_admin.py) ┘

Guarantees:
    - The authorization gate runs before any external call
    - Input validation runs before any external call
    - Provisioning is not transactional: an identity created before a later
      step fails is left in place and reported (audit trail + error message)
    - Passwords and password-setup links are never logged or audited
"""

from __future__ import annotations
import html
import logging
from typing import Any, Optional

from internquest.core import audit
from internquest.core.authz import CallerIdentity, authorize, authorize_target
from internquest.core.errors import ErrorKind, ServiceError, wrap_internal
from internquest.core.firebase.exceptions import (
    EMAIL_ALREADY_EXISTS,
    INVALID_EMAIL,
    USER_NOT_FOUND,
    IdentityProviderError,
)
from internquest.core.roles import (
    Role,
    is_admin_role,
    listable_roles,
    normalize_account_role,
    normalize_role,
    role_label,
)
from internquest.core.services import Services
from internquest.core.store import SERVER_TIMESTAMP

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
SETUP_EMAIL_SUBJECT = "Set up your InternQuest Admin password"


# ─────────────────────────────────────────────────────────────────────────────
# Validation
# ─────────────────────────────────────────────────────────────────────────────

def _as_payload(payload: Any) -> dict:
    return payload if isinstance(payload, dict) else {}


def _trimmed(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def is_valid_email(email: Any) -> bool:
    """Shallow syntax check; the identity provider does the real validation."""
    if not email or not isinstance(email, str):
        return False
    value = email.strip()
    return "@" in value and "." in value


def normalize_sections(raw: Any) -> list[dict[str, str]]:
    """Normalize section assignments to {year, programCode, section}.

    Entries missing any of the three values after trimming are dropped.
    """
    if not isinstance(raw, list):
        return []
    sections = []
    for entry in raw:
        entry = entry if isinstance(entry, dict) else {}
        section = {
            "year": _trimmed(entry.get("year")),
            "programCode": _trimmed(entry.get("programCode")),
            "section": _trimmed(entry.get("section")),
        }
        if section["year"] and section["programCode"] and section["section"]:
            sections.append(section)
    return sections


def _serialize_timestamp(value: Any) -> Any:
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


def _create_identity(services: Services, **kwargs) -> str:
    """Create an identity, mapping known provider conflicts to classified errors."""
    try:
        return services.identity.create_user(**kwargs)
    except IdentityProviderError as exc:
        if exc.code == EMAIL_ALREADY_EXISTS:
            raise ServiceError(ErrorKind.ALREADY_EXISTS, "A user with this email already exists.")
        if exc.code == INVALID_EMAIL:
            raise ServiceError(ErrorKind.INVALID_ARGUMENT, "Invalid email address.")
        raise


def render_setup_email(role: Role, link: str) -> str:
    label = html.escape(role_label(role))
    href = html.escape(link, quote=True)
    return f"""
      <div style="font-family: Arial, sans-serif; line-height: 1.5;">
        <h2>Welcome to InternQuest Admin</h2>
        <p>An account was created for you with the role: <strong>{label}</strong>.</p>
        <p>Please set your password using the link below:</p>
        <p><a href="{href}" target="_blank" rel="noopener noreferrer">Set your password</a></p>
        <p>If you did not expect this email, you can ignore it.</p>
      </div>
    """


# ─────────────────────────────────────────────────────────────────────────────
# Administrator accounts (callables)
# ─────────────────────────────────────────────────────────────────────────────

def create_user_with_role(services: Services, caller: Optional[CallerIdentity], payload: Any) -> dict:
    """Create a coordinator or adviser account and email a password-setup link.

    Order of checks: gate, target role, hierarchy, email, username. Nothing
    external is touched until all of them pass.

    Args:
        services: Collaborators (identity, store, mailer)
        caller: Verified caller identity (None if unauthenticated)
        payload: {email, username, role, sections?}

    Returns:
        {"success": True}

    Raises:
        ServiceError: UNAUTHENTICATED, PERMISSION_DENIED, INVALID_ARGUMENT,
            ALREADY_EXISTS, FAILED_PRECONDITION (mailer unconfigured), INTERNAL
    """
    caller_role = authorize(caller, "create_user_with_role")
    data = _as_payload(payload)

    target_role = normalize_role(data.get("role"))
    if target_role is None:
        raise ServiceError(
            ErrorKind.INVALID_ARGUMENT,
            "A valid 'role' is required ('coordinator' or 'adviser').",
        )
    authorize_target(caller_role, target_role)

    email = _trimmed(data.get("email"))
    username = _trimmed(data.get("username"))
    if not is_valid_email(email):
        raise ServiceError(ErrorKind.INVALID_ARGUMENT, "A valid 'email' is required.")
    if not username:
        raise ServiceError(ErrorKind.INVALID_ARGUMENT, "A non-empty 'username' is required.")
    sections = normalize_sections(data.get("sections"))

    uid = None
    step = "create identity"
    try:
        uid = _create_identity(services, email=email, email_verified=False, disabled=False)

        step = "assign role claim"
        services.identity.set_custom_claims(uid, {"role": target_role.value, "mustSetPassword": True})

        step = "write profile"
        services.store.set(services.users_collection, uid, {
            "email": email,
            "username": username,
            "role": target_role.value,
            "sections": sections,
            "createdAt": SERVER_TIMESTAMP,
        })

        step = "generate setup link"
        link = services.identity.generate_password_setup_link(email, services.app_base_url)

        step = "send setup email"
        services.mailer.send(email, SETUP_EMAIL_SUBJECT, render_setup_email(target_role, link))
    except Exception as exc:
        if uid is not None:
            # Identity exists without the remaining steps; leave it for manual remediation
            logger.error("Provisioning incomplete (uid=%s, step=%s): %s", uid, step, exc)
            audit.safe_log_event(
                "create_user_with_role",
                uid,
                operator=caller.uid,
                details={"role": target_role.value, "failed_step": step},
                success=False,
            )
        if isinstance(exc, ServiceError):
            raise
        if uid is not None:
            raise wrap_internal(f"Failed to create user (uid={uid}, step: {step})", exc)
        raise wrap_internal("Failed to create user", exc)

    logger.info("Account provisioned (uid=%s, role=%s, by=%s)", uid, target_role.value, caller.uid)
    audit.safe_log_event(
        "create_user_with_role",
        uid,
        operator=caller.uid,
        details={"role": target_role.value, "sections": len(sections)},
    )
    return {"success": True}


def list_managed_users(services: Services, caller: Optional[CallerIdentity], payload: Any = None) -> dict:
    """List the accounts the caller manages (admin: coordinators and advisers,
    coordinator: advisers)."""
    caller_role = authorize(caller, "list_managed_users")
    roles = sorted(role.value for role in listable_roles(caller_role))

    try:
        docs = services.store.where_in(services.users_collection, "role", roles)
    except Exception as exc:
        raise wrap_internal("Failed to list managed users", exc)

    users = []
    for doc in docs:
        data = doc.data or {}
        users.append({
            "uid": doc.id,
            "email": data.get("email") or None,
            "username": data.get("username") or None,
            "role": data.get("role") or None,
            "sections": data.get("sections") if isinstance(data.get("sections"), list) else [],
            "createdAt": _serialize_timestamp(data.get("createdAt")) or None,
        })
    return {"users": users}


# ─────────────────────────────────────────────────────────────────────────────
# Direct account provisioning (HTTP endpoint and CLI)
# ─────────────────────────────────────────────────────────────────────────────

def provision_account(services: Services, caller: Optional[CallerIdentity], payload: Any) -> dict:
    """Create a password-based account (student onboarding or admin seeding).

    The role is one of student/admin/super_admin; anything else becomes
    student. Only admin-equivalent accounts receive a role claim.

    Returns:
        {"uid": str, "role": str}
    """
    authorize(caller, "provision_account")
    data = _as_payload(payload)

    email = data.get("email")
    password = data.get("password")
    student_id = data.get("studentId")
    if not email or not isinstance(email, str):
        raise ServiceError(ErrorKind.INVALID_ARGUMENT, "email is required")
    if not password or not isinstance(password, str):
        raise ServiceError(ErrorKind.INVALID_ARGUMENT, "password is required")
    if not student_id or not isinstance(student_id, str):
        raise ServiceError(ErrorKind.INVALID_ARGUMENT, "studentId is required")

    first_name = _trimmed(data.get("firstName"))
    last_name = _trimmed(data.get("lastName"))
    role = normalize_account_role(data.get("role"))
    display_name = " ".join(part for part in (first_name, last_name) if part)

    uid = None
    try:
        uid = _create_identity(
            services,
            email=email,
            password=password,
            display_name=display_name or None,
        )
        if is_admin_role(role):
            services.identity.set_custom_claims(uid, {"role": role})
        services.store.set(services.users_collection, uid, {
            "email": email,
            "studentId": student_id,
            "firstName": first_name,
            "lastName": last_name,
            "role": role,
            "createdAt": SERVER_TIMESTAMP,
            "createdByUid": caller.uid,
        }, merge=True)
    except Exception as exc:
        if uid is not None:
            logger.error("Provisioning incomplete (uid=%s): %s", uid, exc)
            audit.safe_log_event(
                "provision_account", uid, operator=caller.uid, details={"role": role}, success=False,
            )
        if isinstance(exc, ServiceError):
            raise
        raise wrap_internal("Failed to create account", exc)

    logger.info("Account provisioned (uid=%s, role=%s, by=%s)", uid, role, caller.uid)
    audit.safe_log_event("provision_account", uid, operator=caller.uid, details={"role": role})
    return {"uid": uid, "role": role}


# ─────────────────────────────────────────────────────────────────────────────
# Account maintenance (callables)
# ─────────────────────────────────────────────────────────────────────────────

def resolve_user(services: Services, uid: Any, email: Any) -> dict:
    """Find an identity by uid, falling back to email.

    Raises:
        ServiceError: NOT_FOUND if neither identifier matches
        IdentityProviderError: On any other provider failure
    """
    if uid:
        try:
            return services.identity.get_user(str(uid))
        except IdentityProviderError as exc:
            if exc.code != USER_NOT_FOUND:
                raise
            if not email:
                raise ServiceError(ErrorKind.NOT_FOUND, "User not found in Firebase Auth")
    try:
        return services.identity.get_user_by_email(str(email))
    except IdentityProviderError as exc:
        if exc.code == USER_NOT_FOUND:
            raise ServiceError(ErrorKind.NOT_FOUND, "User not found in Firebase Auth")
        raise


def delete_user(services: Services, caller: Optional[CallerIdentity], payload: Any) -> dict:
    """Delete an identity-provider account by uid or email."""
    authorize(caller, "delete_user")
    data = _as_payload(payload)
    uid, email = data.get("uid"), data.get("email")
    if not uid and not email:
        raise ServiceError(ErrorKind.INVALID_ARGUMENT, "Either uid or email must be provided")

    try:
        user = resolve_user(services, uid, email)
        services.identity.delete_user(user["uid"])
    except ServiceError:
        raise
    except Exception as exc:
        raise wrap_internal("Failed to delete user", exc)

    logger.info("Account deleted (uid=%s, by=%s)", user["uid"], caller.uid)
    audit.safe_log_event("delete_user", user["uid"], operator=caller.uid)
    return {"success": True, "message": f"User {user['uid']} deleted successfully"}


def update_user_password(services: Services, caller: Optional[CallerIdentity], payload: Any) -> dict:
    """Set a new password on an account identified by uid or email."""
    authorize(caller, "update_user_password")
    data = _as_payload(payload)
    uid, email = data.get("uid"), data.get("email")
    new_password = data.get("newPassword")

    if not new_password or not isinstance(new_password, str) or not new_password.strip():
        raise ServiceError(
            ErrorKind.INVALID_ARGUMENT,
            "newPassword is required and must be a non-empty string",
        )
    if not uid and not email:
        raise ServiceError(ErrorKind.INVALID_ARGUMENT, "Either uid or email must be provided")
    if len(new_password) < MIN_PASSWORD_LENGTH:
        raise ServiceError(
            ErrorKind.INVALID_ARGUMENT,
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
        )

    try:
        user = resolve_user(services, uid, email)
        services.identity.update_user(user["uid"], password=new_password)
    except ServiceError:
        raise
    except Exception as exc:
        raise wrap_internal("Failed to update password", exc)

    logger.info("Password updated (uid=%s, by=%s)", user["uid"], caller.uid)
    audit.safe_log_event("update_user_password", user["uid"], operator=caller.uid)
    return {
        "success": True,
        "message": f"Password updated successfully for user {user['uid']}",
        "uid": user["uid"],
    }


# ─────────────────────────────────────────────────────────────────────────────
# Operator provisioning (CLI, trusted credentials, no caller gate)
# ─────────────────────────────────────────────────────────────────────────────

def upsert_account(
    services: Services,
    *,
    email: str,
    password: str,
    student_id: str,
    first_name: str = "",
    last_name: str = "",
    role: str = "student",
    update_if_exists: bool = False,
    operator: str = "cli",
) -> dict:
    """Create a password account, or update an existing one by email.

    Returns:
        {"uid": str, "role": str, "created": bool}
    """
    stored_role = normalize_account_role(role)
    display_name = " ".join(part for part in (first_name, last_name) if part)

    existing = None
    if update_if_exists:
        try:
            existing = services.identity.get_user_by_email(email)
        except IdentityProviderError as exc:
            if exc.code != USER_NOT_FOUND:
                raise

    if existing is None:
        uid = _create_identity(services, email=email, password=password, display_name=display_name or None)
        created = True
    else:
        uid = existing["uid"]
        fields: dict[str, Any] = {"password": password}
        if display_name:
            fields["display_name"] = display_name
        services.identity.update_user(uid, **fields)
        created = False

    if is_admin_role(stored_role):
        services.identity.set_custom_claims(uid, {"role": stored_role})

    services.store.set(services.users_collection, uid, {
        "email": email,
        "studentId": student_id,
        "firstName": first_name,
        "lastName": last_name,
        "role": stored_role,
        "createdAt": SERVER_TIMESTAMP,
    }, merge=True)

    logger.info("Account %s by operator (uid=%s, role=%s)", "created" if created else "updated", uid, stored_role)
    audit.safe_log_event(
        "provision_account",
        uid,
        operator=operator,
        details={"role": stored_role, "created": created},
    )
    return {"uid": uid, "role": stored_role, "created": created}
