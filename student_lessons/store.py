"""Holds the current view state and pushes every new snapshot to subscribers."""

import asyncio
import logging
from typing import Callable

from student_lessons.types import ViewState

logger = logging.getLogger(__name__)


class ViewStateStore:
    """Immutable view-state holder with queue-based subscribers."""

    def __init__(self, initial: ViewState | None = None, max_queue_size: int = 100):
        self._state = initial or ViewState()
        self._subscribers: set[asyncio.Queue] = set()
        self._max_queue_size = max_queue_size

    @property
    def state(self) -> ViewState:
        return self._state

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def update(self, transition: Callable[[ViewState], ViewState]) -> ViewState:
        """
        Apply a transition and publish the result.

        Transitions run synchronously, so no other handler can observe or
        change the state halfway through one. Returning the same object
        publishes nothing.
        """
        new_state = transition(self._state)
        if new_state is self._state:
            return new_state
        self._state = new_state
        self._publish(new_state)
        return new_state

    def subscribe(self) -> asyncio.Queue:
        """Add a subscriber. The queue immediately holds the current state."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._max_queue_size)
        queue.put_nowait(self._state)
        self._subscribers.add(queue)
        logger.info(f"View-state subscriber added ({self.subscriber_count} total)")
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        """Remove a subscriber."""
        self._subscribers.discard(queue)
        logger.info(f"View-state subscriber removed ({self.subscriber_count} total)")

    def _publish(self, state: ViewState) -> None:
        for queue in self._subscribers:
            try:
                queue.put_nowait(state)
            except asyncio.QueueFull:
                # Snapshots are complete; a lagging reader only needs the newest
                logger.warning("View-state subscriber is lagging, replacing its backlog")
                while not queue.empty():
                    queue.get_nowait()
                queue.put_nowait(state)
