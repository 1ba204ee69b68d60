"""This module delivers best-effort notifications about workflow transitions."""
from .entities import Notification
from .renderer import MessageRenderer
from .sinks import HttpNotificationSink, InboxNotificationSink, NotificationSink, NullNotificationSink
from .emitter import NotificationEmitter
