"""
Toast notifications for step completion updates.

Public API:
    notify_step_saved(sink, completed, lesson_name) - Success toast
    notify_step_failed(sink, exc) - Failure toast
    send_notification(sink, notification) - Deliver a prepared toast
    PendingNotifications - Buffering sink for hosts that poll
"""

from .dispatcher import (
    NotificationSink,
    load_toast_templates,
    render_toast,
    send_notification,
    notify_step_saved,
    notify_step_failed,
)
from .sinks import PendingNotifications

__all__ = [
    "NotificationSink",
    "load_toast_templates",
    "render_toast",
    "send_notification",
    "notify_step_saved",
    "notify_step_failed",
    "PendingNotifications",
]
