"""Push notification fan-out.

Direct pushes (to the caller's own device, or to any user for admins) and the
automatic push sent when a notification record is created. A recipient
without a registered device token is not an error: the push is skipped.
"""
from __future__ import annotations
import logging
from typing import Any, Callable, Optional

from internquest.core.authz import CallerIdentity, authorize, require_caller
from internquest.core.errors import ErrorKind, ServiceError, wrap_internal
from internquest.core.push import PushGatewayError, is_expo_push_token
from internquest.core.services import NOTIFICATIONS_COLLECTION, Services

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "InternQuest"
DEFAULT_BODY = "You have a new notification."
DEVICE_TOKEN_FIELD = "expoPushToken"


def _non_empty_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value:
        return value
    return None


def _first_target(notification: dict) -> Optional[str]:
    targets = notification.get("targetStudentIds")
    if isinstance(targets, list) and targets and targets[0] is not None:
        return _non_empty_str(str(targets[0]))
    return None


# Recipient field names used by successive notification writers, highest priority first
RECIPIENT_EXTRACTORS: list[Callable[[dict], Optional[str]]] = [
    lambda n: _non_empty_str(n.get("userId")),
    lambda n: _non_empty_str(n.get("userid")),
    lambda n: _non_empty_str(n.get("targetStudentId")),
    _first_target,
]


def resolve_recipient(notification: dict) -> Optional[str]:
    for extract in RECIPIENT_EXTRACTORS:
        recipient = extract(notification)
        if recipient:
            return recipient
    return None


def is_broadcast(notification: dict) -> bool:
    return str(notification.get("targetType") or "").lower() == "all"


def _first_text(*values: Any, default: str) -> str:
    for value in values:
        if value:
            return str(value)
    return default


def device_token(profile: Optional[dict]) -> Optional[str]:
    """Return the profile's push token if present and well formed."""
    if not isinstance(profile, dict):
        return None
    token = profile.get(DEVICE_TOKEN_FIELD)
    if is_expo_push_token(token):
        return token
    return None


def _push_result(tickets: list) -> dict:
    return {"ok": True, "ticketsCount": len(tickets), "tickets": tickets}


def _send(services: Services, token: str, title: str, body: str, data: Optional[dict]) -> list:
    try:
        return services.push.send([token], title, body, data)
    except PushGatewayError as exc:
        raise wrap_internal("Failed to send push", exc)


def _message(payload: Any) -> tuple[str, str, Optional[dict]]:
    payload = payload if isinstance(payload, dict) else {}
    title = _first_text(payload.get("title"), default=DEFAULT_TITLE)
    body = _first_text(payload.get("body"), default=DEFAULT_BODY)
    data = payload.get("data") if isinstance(payload.get("data"), dict) else None
    return title, body, data


def push_to_self(services: Services, caller: Optional[CallerIdentity], payload: Any) -> dict:
    """Push a message to the caller's own registered device."""
    caller = require_caller(caller)
    title, body, data = _message(payload)

    token = device_token(services.store.get(services.users_collection, caller.uid))
    if token is None:
        logger.debug("No push token registered (uid=%s)", caller.uid)
        return _push_result([])
    return _push_result(_send(services, token, title, body, data))


def push_to_user(services: Services, caller: Optional[CallerIdentity], payload: Any) -> dict:
    """Push a message to any user's device (admin only).

    Raises:
        ServiceError: INVALID_ARGUMENT without userId, NOT_FOUND for an unknown user
    """
    authorize(caller, "push_to_user")
    user_id = _trimmed_id(payload)
    if not user_id:
        raise ServiceError(ErrorKind.INVALID_ARGUMENT, "userId is required")
    title, body, data = _message(payload)

    profile = services.store.get(services.users_collection, user_id)
    if profile is None:
        raise ServiceError(ErrorKind.NOT_FOUND, "User not found")
    token = device_token(profile)
    if token is None:
        logger.debug("No push token registered (uid=%s)", user_id)
        return _push_result([])
    return _push_result(_send(services, token, title, body, data))


def _trimmed_id(payload: Any) -> str:
    if not isinstance(payload, dict) or payload.get("userId") is None:
        return ""
    return str(payload["userId"]).strip()


def on_notification_created(services: Services, notification_id: str, notification: Any) -> Optional[list]:
    """Push a newly created notification record to its recipient.

    Skipped (returns None) for opted-out records, broadcasts, records without
    a recipient and recipients without a device token. Never raises.
    """
    try:
        if not isinstance(notification, dict):
            return None
        if notification.get("sendPush") is False:
            return None
        recipient = resolve_recipient(notification)
        if not recipient or is_broadcast(notification):
            return None

        token = device_token(services.store.get(services.users_collection, recipient))
        if token is None:
            return None

        title = _first_text(notification.get("title"), notification.get("subject"), default=DEFAULT_TITLE)
        body = _first_text(
            notification.get("description"),
            notification.get("message"),
            notification.get("body"),
            default=DEFAULT_BODY,
        )
        extra = notification.get("data") if isinstance(notification.get("data"), dict) else {}
        data = {"notificationId": notification_id, **extra}
        tickets = services.push.send([token], title, body, data)
        logger.info("Notification pushed (id=%s, recipient=%s, tickets=%d)", notification_id, recipient, len(tickets))
        return tickets
    except Exception:
        logger.exception("Push for notification %s failed", notification_id)
        return None


def push_stored_notification(services: Services, notification_id: str) -> Optional[list]:
    """Load a notification record by id and push it. None if the record is missing."""
    notification = services.store.get(NOTIFICATIONS_COLLECTION, notification_id)
    if notification is None:
        logger.warning("Notification %s not found; push skipped", notification_id)
        return None
    return on_notification_created(services, notification_id, notification)
