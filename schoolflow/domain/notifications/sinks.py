"""Notification sinks: where rendered messages end up."""

from __future__ import annotations

import threading
from typing import Protocol

import httpx

from schoolflow.core.errors import NotificationDeliveryFailure
from .entities import Notification


class NotificationSink(Protocol):
    def deliver(self, notification: Notification) -> None:
        """Deliver one notification. Raises NotificationDeliveryFailure."""
        ...


class NullNotificationSink:
    def deliver(self, notification: Notification) -> None:
        return None


class InboxNotificationSink:
    """Per-user notification inbox with read flags."""

    def __init__(self) -> None:
        self._inbox: dict[str, list[Notification]] = {}
        self._lock = threading.Lock()

    def deliver(self, notification: Notification) -> None:
        with self._lock:
            self._inbox.setdefault(notification.recipient_id, []).append(notification)

    def list_for(self, recipient_id: str, *, unread_only: bool = False) -> list[Notification]:
        """Notifications for ``recipient_id``, newest first."""
        with self._lock:
            items = list(self._inbox.get(recipient_id, []))
        if unread_only:
            items = [n for n in items if not n.read]
        return list(reversed(items))

    def mark_read(self, recipient_id: str, notification_id: str) -> bool:
        with self._lock:
            for notification in self._inbox.get(recipient_id, []):
                if notification.id == notification_id:
                    notification.read = True
                    return True
        return False


class HttpNotificationSink:
    """Deliver notifications by POSTing them to a webhook.

    The timeout is kept short: a slow notification service must not hold up
    the workflow transition that triggered it.
    """

    def __init__(self, webhook_url: str, *, timeout_s: float = 2.0, client: httpx.Client | None = None) -> None:
        """Create an HTTP sink.

        Args:
            webhook_url: Endpoint receiving one JSON document per notification.
            timeout_s: Per-request timeout in seconds.
            client: Optional injected httpx client for testing / transport control.
        """
        self._webhook_url = webhook_url
        self._timeout_s = timeout_s
        self._client = client

    def deliver(self, notification: Notification) -> None:
        body = {
            "id": notification.id,
            "recipient_id": notification.recipient_id,
            "message": notification.message,
            "created_at": notification.created_at.isoformat(),
            "context": notification.context,
        }
        try:
            if self._client is not None:
                resp = self._client.post(self._webhook_url, json=body, timeout=self._timeout_s)
                resp.raise_for_status()
                return

            with httpx.Client() as client:
                resp = client.post(self._webhook_url, json=body, timeout=self._timeout_s)
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise NotificationDeliveryFailure(f"Webhook delivery failed: {exc}") from exc
