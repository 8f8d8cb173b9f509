"""Sinks that receive toasts on behalf of a host surface."""

from collections import deque

from student_lessons.types import Notification


class PendingNotifications:
    """Buffers toasts until the host drains them.

    Callable, so an instance can be passed anywhere a sink is expected.
    Oldest entries are dropped once maxlen is reached.
    """

    def __init__(self, maxlen: int = 50):
        self._items: deque[Notification] = deque(maxlen=maxlen)

    def __call__(self, notification: Notification) -> None:
        self._items.append(notification)

    def __len__(self) -> int:
        return len(self._items)

    def drain(self) -> list[Notification]:
        """Return and clear all pending toasts, oldest first."""
        items = list(self._items)
        self._items.clear()
        return items
