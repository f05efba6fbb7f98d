"""Expo push gateway client.

Sends push messages through the Expo push HTTP API. Messages are chunked and
sent sequentially; tickets are returned in send order.
"""
from __future__ import annotations
import logging
import re
from typing import Any, Iterable, Optional

import requests

logger = logging.getLogger(__name__)

EXPO_PUSH_URL = "https://exp.host/--/api/v2/push/send"
PUSH_CHUNK_SIZE = 100
REQUEST_TIMEOUT = 10

_EXPO_TOKEN_PATTERN = re.compile(r"^(ExponentPushToken|ExpoPushToken)\[.+\]$")
_UUID_PATTERN = re.compile(r"^[a-z\d]{8}-[a-z\d]{4}-[a-z\d]{4}-[a-z\d]{4}-[a-z\d]{12}$", re.IGNORECASE)


class PushGatewayError(Exception):
    """Push gateway rejected the request or was unreachable."""

    def __init__(self, message: str, code: str = "push/unavailable"):
        self.code = code
        super().__init__(message)


def is_expo_push_token(token: Any) -> bool:
    if not isinstance(token, str):
        return False
    return bool(_EXPO_TOKEN_PATTERN.match(token) or _UUID_PATTERN.match(token))


def chunk_messages(messages: list[dict], size: int = PUSH_CHUNK_SIZE) -> list[list[dict]]:
    return [messages[i:i + size] for i in range(0, len(messages), size)]


def build_messages(
    tokens: Iterable[str],
    title: str,
    body: str,
    data: Optional[dict] = None,
) -> list[dict]:
    """Build Expo messages, dropping malformed tokens."""
    messages = []
    for token in tokens:
        if not is_expo_push_token(token):
            continue
        message = {"to": token, "sound": "default", "title": title, "body": body}
        if isinstance(data, dict):
            message["data"] = data
        messages.append(message)
    return messages


class ExpoPushGateway:
    """HTTP client for the Expo push service."""

    def __init__(self, url: str = EXPO_PUSH_URL, access_token: Optional[str] = None):
        self.url = url
        self.access_token = access_token

    def send(self, tokens: Iterable[str], title: str, body: str, data: Optional[dict] = None) -> list[dict]:
        """Send one message per valid token and return the delivery tickets.

        Raises:
            PushGatewayError: On HTTP or transport failure
        """
        messages = build_messages(tokens, title, body, data)
        tickets: list[dict] = []
        for chunk in chunk_messages(messages):
            tickets.extend(self._send_chunk(chunk))
        return tickets

    def _send_chunk(self, chunk: list[dict]) -> list[dict]:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        try:
            resp = requests.post(self.url, json=chunk, headers=headers, timeout=REQUEST_TIMEOUT)
        except requests.RequestException as exc:
            raise PushGatewayError(f"Push gateway unreachable: {exc}")
        if resp.status_code >= 400:
            raise PushGatewayError(f"Push gateway returned HTTP {resp.status_code}", code=f"push/http-{resp.status_code}")
        try:
            payload = resp.json() or {}
        except ValueError as exc:
            raise PushGatewayError(f"Push gateway returned an invalid response: {exc}", code="push/invalid-response")
        if not isinstance(payload, dict):
            raise PushGatewayError("Push gateway returned an invalid response", code="push/invalid-response")
        tickets = payload.get("data") or []
        if isinstance(tickets, dict):
            tickets = [tickets]
        logger.debug("Push chunk sent: messages=%d tickets=%d", len(chunk), len(tickets))
        return list(tickets)
