"""Firebase Authentication adapter (identity provider)."""
from __future__ import annotations
import logging
from typing import Any, Optional

from firebase_admin import auth
from firebase_admin import exceptions as firebase_exceptions

from .exceptions import (
    EMAIL_ALREADY_EXISTS,
    INVALID_ARGUMENT,
    INVALID_EMAIL,
    USER_NOT_FOUND,
    IdentityProviderError,
)

logger = logging.getLogger(__name__)


def _translate(exc: Exception) -> IdentityProviderError:
    """Map Firebase Admin SDK errors onto provider error codes."""
    if isinstance(exc, auth.EmailAlreadyExistsError):
        return IdentityProviderError(EMAIL_ALREADY_EXISTS, str(exc))
    if isinstance(exc, auth.UserNotFoundError):
        return IdentityProviderError(USER_NOT_FOUND, str(exc))
    if isinstance(exc, ValueError):
        # The SDK validates arguments locally and raises ValueError
        if "email" in str(exc).lower():
            return IdentityProviderError(INVALID_EMAIL, str(exc))
        return IdentityProviderError(INVALID_ARGUMENT, str(exc))
    if isinstance(exc, firebase_exceptions.FirebaseError):
        return IdentityProviderError(f"auth/{str(exc.code).lower()}", str(exc))
    return IdentityProviderError("auth/unknown", str(exc))


def _user_to_dict(record: Any) -> dict[str, Any]:
    return {
        "uid": record.uid,
        "email": record.email,
        "displayName": record.display_name,
        "disabled": record.disabled,
        "customClaims": dict(record.custom_claims or {}),
    }


class FirebaseIdentityProvider:
    """Identity operations backed by Firebase Authentication.

    Every method raises IdentityProviderError on failure.
    """

    def __init__(self, app=None):
        self.app = app

    def create_user(
        self,
        email: str,
        password: Optional[str] = None,
        display_name: Optional[str] = None,
        email_verified: bool = False,
        disabled: bool = False,
    ) -> str:
        """Create a user and return its uid. Without a password the account
        can only be activated through a password-setup link."""
        kwargs: dict[str, Any] = {
            "email": email,
            "email_verified": email_verified,
            "disabled": disabled,
        }
        if password:
            kwargs["password"] = password
        if display_name:
            kwargs["display_name"] = display_name
        try:
            record = auth.create_user(app=self.app, **kwargs)
        except Exception as exc:
            raise _translate(exc)
        logger.info("Identity created (uid=%s)", record.uid)
        return record.uid

    def set_custom_claims(self, uid: str, claims: dict[str, Any]) -> None:
        """Replace the custom claims of a user."""
        try:
            auth.set_custom_user_claims(uid, claims, app=self.app)
        except Exception as exc:
            raise _translate(exc)

    def generate_password_setup_link(self, email: str, continue_url: Optional[str] = None) -> str:
        settings = None
        if continue_url:
            settings = auth.ActionCodeSettings(url=continue_url, handle_code_in_app=False)
        try:
            return auth.generate_password_reset_link(email, action_code_settings=settings, app=self.app)
        except Exception as exc:
            raise _translate(exc)

    def get_user(self, uid: str) -> dict[str, Any]:
        try:
            return _user_to_dict(auth.get_user(uid, app=self.app))
        except Exception as exc:
            raise _translate(exc)

    def get_user_by_email(self, email: str) -> dict[str, Any]:
        try:
            return _user_to_dict(auth.get_user_by_email(email, app=self.app))
        except Exception as exc:
            raise _translate(exc)

    def update_user(self, uid: str, **fields: Any) -> None:
        """Update identity fields (email, password, display_name, disabled)."""
        try:
            auth.update_user(uid, app=self.app, **fields)
        except Exception as exc:
            raise _translate(exc)

    def delete_user(self, uid: str) -> None:
        try:
            auth.delete_user(uid, app=self.app)
        except Exception as exc:
            raise _translate(exc)
