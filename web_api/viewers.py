"""Per-student lesson viewers held by the web process."""

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable

from student_lessons import HttpLessonSource, HttpStepCompletionClient, LessonViewer
from student_lessons.channels import LessonSource
from student_lessons.config import get_max_viewers, get_viewer_idle_timeout
from student_lessons.notifications import PendingNotifications
from student_lessons.remote import CompleteStep

logger = logging.getLogger(__name__)


@dataclass
class StudentSession:
    """A viewer plus the toasts it produced that no client has read yet."""

    viewer: LessonViewer
    notifications: PendingNotifications
    last_seen: float = 0.0


class ViewerRegistry:
    """
    Creates one viewer per student on first access and keeps it bound.

    Sessions are kept in least-recently-used order. A session untouched for
    `idle_timeout` seconds is evicted, and once `max_sessions` is reached the
    oldest ones go first. Sessions with an open event stream or a step
    confirmation in flight are never evicted. Eviction cancels the viewer's
    read-channel tasks.
    """

    def __init__(
        self,
        complete_step: CompleteStep,
        source: LessonSource | None = None,
        max_sessions: int | None = None,
        idle_timeout: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._complete_step = complete_step
        self._source = source
        self._max_sessions = max_sessions if max_sessions is not None else get_max_viewers()
        self._idle_timeout = (
            idle_timeout if idle_timeout is not None else get_viewer_idle_timeout()
        )
        self._clock = clock
        self._sessions: OrderedDict[str, StudentSession] = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, student_id: str) -> bool:
        return student_id in self._sessions

    def get(self, student_id: str) -> StudentSession:
        """Return the student's session, creating and binding it if needed.

        Must be called from a running event loop when a source is configured.
        """
        now = self._clock()
        session = self._sessions.get(student_id)
        if session is not None:
            session.last_seen = now
            self._sessions.move_to_end(student_id)
            self._evict(now, keep=student_id)
            return session

        self._evict(now, keep=student_id, reserve=1)
        pending = PendingNotifications()
        viewer = LessonViewer(
            complete_step=self._complete_step, notify=pending, source=self._source
        )
        session = StudentSession(viewer=viewer, notifications=pending, last_seen=now)
        self._sessions[student_id] = session
        if self._source is not None:
            viewer.bind(student_id)
        logger.info(f"Created lessons viewer for student {student_id}")
        return session

    def _evict(self, now: float, keep: str, reserve: int = 0) -> None:
        """Drop idle sessions, then the oldest ones while over capacity."""
        for student_id, session in list(self._sessions.items()):
            over_capacity = len(self._sessions) + reserve > self._max_sessions
            idle = now - session.last_seen >= self._idle_timeout
            if not (over_capacity or idle):
                break
            if student_id == keep or session.viewer.is_active:
                continue
            del self._sessions[student_id]
            session.viewer.unbind()
            reason = "idle" if idle else "over capacity"
            logger.info(f"Evicted lessons viewer for student {student_id} ({reason})")

    async def close_all(self) -> None:
        """Stop every viewer's read channels."""
        for session in self._sessions.values():
            await session.viewer.close()
        self._sessions.clear()


_registry: ViewerRegistry | None = None


def get_registry() -> ViewerRegistry:
    """Get the process-wide registry, creating the HTTP-backed one on first use."""
    global _registry
    if _registry is None:
        _registry = ViewerRegistry(
            complete_step=HttpStepCompletionClient(), source=HttpLessonSource()
        )
    return _registry


def set_registry(registry: ViewerRegistry) -> None:
    """Replace the process-wide registry (tests, alternative hosts)."""
    global _registry
    _registry = registry


async def close_registry() -> None:
    """Close and forget the process-wide registry."""
    global _registry
    if _registry is not None:
        await _registry.close_all()
    _registry = None


def clear_registry() -> None:
    """Forget the process-wide registry without closing it."""
    global _registry
    _registry = None
