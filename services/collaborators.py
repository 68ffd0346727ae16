"""
Collaborators the engine consumes but does not own: the user directory, the property catalog
and the notification channel. In-process implementations are the default; HTTP ones are used
when their base URLs are configured.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Optional, Protocol

import httpx

from schemas.external import PropertyRecord, UserRecord

logger = logging.getLogger(__name__)


class UserDirectory(Protocol):
    async def get_user(self, user_id: int) -> Optional[UserRecord]: ...


class PropertyCatalog(Protocol):
    async def get_property(self, property_id: int) -> Optional[PropertyRecord]: ...


class NotificationDispatcher(Protocol):
    async def notify(self, event: str, payload: dict[str, Any]) -> None: ...


class InMemoryUserDirectory:
    def __init__(self, users: Optional[list[UserRecord]] = None):
        self._users: dict[int, UserRecord] = {u.id: u for u in users or []}

    def add(self, user: UserRecord) -> None:
        self._users[user.id] = user

    async def get_user(self, user_id: int) -> Optional[UserRecord]:
        return self._users.get(user_id)


class InMemoryPropertyCatalog:
    def __init__(self, properties: Optional[list[PropertyRecord]] = None):
        self._properties: dict[int, PropertyRecord] = {p.id: p for p in properties or []}

    def add(self, prop: PropertyRecord) -> None:
        self._properties[prop.id] = prop

    async def get_property(self, property_id: int) -> Optional[PropertyRecord]:
        return self._properties.get(property_id)


async def _get_json(base_url: str, path: str, timeout: float) -> Optional[dict]:
    async with httpx.AsyncClient(base_url=base_url, timeout=timeout) as client:
        response = await client.get(path)
        if response.status_code == 404:
            return None
        response.raise_for_status()
        body = response.json()
    # Both {"data": {...}} envelopes and bare objects are accepted
    if isinstance(body, dict) and isinstance(body.get("data"), dict):
        return body["data"]
    return body


class HttpUserDirectory:
    def __init__(self, base_url: str, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def get_user(self, user_id: int) -> Optional[UserRecord]:
        data = await _get_json(self.base_url, f"/users/{user_id}", self.timeout)
        return UserRecord.model_validate(data) if data is not None else None


class HttpPropertyCatalog:
    def __init__(self, base_url: str, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def get_property(self, property_id: int) -> Optional[PropertyRecord]:
        data = await _get_json(self.base_url, f"/properties/{property_id}", self.timeout)
        return PropertyRecord.model_validate(data) if data is not None else None


class LoggingNotificationDispatcher:
    """Writes each event to the log; also keeps the last events for inspection."""

    def __init__(self, keep: int = 100):
        self.keep = keep
        self.sent: list[tuple[str, dict[str, Any]]] = []

    async def notify(self, event: str, payload: dict[str, Any]) -> None:
        logger.info("notification %s %s", event, json.dumps(payload, default=str, sort_keys=True))
        self.sent.append((event, payload))
        if len(self.sent) > self.keep:
            del self.sent[: len(self.sent) - self.keep]


class WebhookNotificationDispatcher:
    def __init__(self, url: str, timeout: float = 10.0):
        self.url = url
        self.timeout = timeout

    async def notify(self, event: str, payload: dict[str, Any]) -> None:
        body = json.loads(json.dumps({"event": event, "payload": payload}, default=str))
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(self.url, json=body)
            response.raise_for_status()
        logger.info("Delivered %s to webhook (status %s)", event, response.status_code)


async def safe_notify(notifier: Optional[NotificationDispatcher], event: str, payload: dict[str, Any]) -> None:
    """Fire-and-forget: a failing channel is logged and never fails the caller."""
    if notifier is None:
        return
    try:
        await notifier.notify(event, payload)
    except Exception as e:
        logger.warning("Notification %s failed: %s", event, e)
