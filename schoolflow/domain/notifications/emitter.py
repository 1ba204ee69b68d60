from __future__ import annotations

import time
import uuid
from datetime import datetime, timezone
from typing import Any

from schoolflow.observability.tracing import log_event, new_trace_id
from .entities import Notification
from .renderer import MessageRenderer
from .sinks import NotificationSink, NullNotificationSink


def new_notification_id() -> str:
    return f"notif-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


class NotificationEmitter:
    """
    Fire-and-forget notifications.

    `notify` never raises: rendering or delivery problems are logged as
    `notification.delivery_failed` and reported through the return value.
    """

    def __init__(self, sink: NotificationSink | None = None, renderer: MessageRenderer | None = None) -> None:
        self._sink = sink or NullNotificationSink()
        self._renderer = renderer or MessageRenderer()

    @property
    def sink(self) -> NotificationSink:
        return self._sink

    def notify(
        self,
        recipient_id: str,
        message_template: str,
        context: dict[str, Any] | None = None,
        *,
        trace_id: str | None = None,
    ) -> bool:
        """Render ``message_template`` with ``context`` and hand it to the sink.

        Returns:
            True when the sink accepted the notification.
        """
        trace_id = trace_id or new_trace_id()
        ctx = dict(context or {})
        try:
            message = self._renderer.render(message_template, ctx)
            notification = Notification(
                id=new_notification_id(),
                recipient_id=recipient_id,
                message=message,
                created_at=datetime.now(timezone.utc),
                context=ctx,
            )
            self._sink.deliver(notification)
        except Exception as exc:  # noqa: BLE001
            log_event(
                'notification.delivery_failed',
                trace_id=trace_id,
                recipient_id=recipient_id,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return False

        log_event(
            'notification.delivered',
            trace_id=trace_id,
            recipient_id=recipient_id,
            notification_id=notification.id,
        )
        return True
