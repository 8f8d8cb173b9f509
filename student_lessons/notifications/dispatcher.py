"""
Notification dispatcher - renders toasts and hands them to the host surface.

Toast wording lives in messages.yaml, one entry per toast type with a
`title` and a `message`, both `str.format` templates.

Dispatch is fire-and-forget: a failing sink is logged and reported, never
raised back into the state machine.
"""

import logging
from pathlib import Path
from typing import Callable, Literal

import sentry_sdk
import yaml

from student_lessons.constants import FALLBACK_ERROR_MESSAGE
from student_lessons.remote import error_message
from student_lessons.types import Notification

logger = logging.getLogger(__name__)

NotificationSink = Callable[[Notification], None]

_toast_templates: dict[str, dict[str, str]] | None = None


def load_toast_templates() -> dict[str, dict[str, str]]:
    """Read messages.yaml once and keep it for the life of the process."""
    global _toast_templates
    if _toast_templates is None:
        yaml_path = Path(__file__).parent / "messages.yaml"
        with open(yaml_path, encoding="utf-8") as f:
            _toast_templates = yaml.safe_load(f)
    return _toast_templates


def render_toast(
    toast_type: str, variant: Literal["success", "error"], context: dict
) -> Notification:
    """
    Fill in a toast's title and message.

    Raises:
        KeyError: If the toast type is unknown or a placeholder has no value
    """
    template = load_toast_templates()[toast_type]
    return Notification(
        title=template["title"].format(**context),
        message=template["message"].format(**context),
        variant=variant,
    )


def send_notification(sink: NotificationSink | None, notification: Notification) -> None:
    """Deliver one toast to the sink, if any."""
    logger.info(
        f"Notification [{notification.variant}] {notification.title}: {notification.message}"
    )
    if sink is None:
        return
    try:
        sink(notification)
    except Exception as e:
        logger.error(f"Notification sink failed: {e}")
        sentry_sdk.capture_exception(e)


def notify_step_saved(
    sink: NotificationSink | None, completed: bool, lesson_name: str | None
) -> Notification:
    """Success toast naming the lesson; the title follows the requested direction."""
    toast_type = "step_completed" if completed else "step_reopened"
    notification = render_toast(
        toast_type, "success", {"lesson_name": lesson_name or ""}
    )
    send_notification(sink, notification)
    return notification


def notify_step_failed(sink: NotificationSink | None, exc: BaseException) -> Notification:
    """Failure toast with the server's message, or the generic fallback."""
    notification = render_toast(
        "step_update_failed",
        "error",
        {"error_message": error_message(exc) or FALLBACK_ERROR_MESSAGE},
    )
    send_notification(sink, notification)
    return notification
