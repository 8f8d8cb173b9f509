"""
The student lessons viewer component.

Owns one ViewStateStore and wires it to its collaborators: a LessonSource
for incoming snapshots, a completion callable for step updates, and a
notification sink for toasts. Every handler catches its own failures and
turns them into state (cleared collections or a rolled-back step), so the
component never crashes on a bad snapshot or a failed request.
"""

import asyncio
import logging
from dataclasses import replace
from typing import Any, AsyncIterator, Callable

import sentry_sdk

from student_lessons.channels import LessonSource
from student_lessons.notifications import (
    NotificationSink,
    notify_step_failed,
    notify_step_saved,
)
from student_lessons.projection import project_badges, project_lessons
from student_lessons.remote import CompleteStep, StepResultPayload
from student_lessons.steps import apply_optimistic, apply_result, find_step, roll_back
from student_lessons.store import ViewStateStore
from student_lessons.toggle import toggle_steps
from student_lessons.types import ChannelResult, Lesson, StepResult, ViewState

logger = logging.getLogger(__name__)


def _coerce_result(result: Any) -> StepResult:
    """Accept a StepResult, a raw response dict, or nothing at all."""
    if isinstance(result, StepResult):
        return result
    if isinstance(result, dict):
        return StepResultPayload.model_validate(result).to_result()
    return StepResult()


class LessonViewer:
    """View state for one student's lessons and badges."""

    def __init__(
        self,
        complete_step: CompleteStep,
        notify: NotificationSink | None = None,
        source: LessonSource | None = None,
        store: ViewStateStore | None = None,
    ):
        self.store = store or ViewStateStore()
        self._complete_step = complete_step
        self._notify = notify
        self._source = source
        self._student_id: str | None = None
        self._tasks: list[asyncio.Task] = []
        # (lesson_id, step_id) pairs with a confirmation outstanding
        self._in_flight: set[tuple[str, str]] = set()

    @property
    def state(self) -> ViewState:
        return self.store.state

    @property
    def student_id(self) -> str | None:
        return self._student_id

    @property
    def is_active(self) -> bool:
        """True while a step confirmation is in flight or a stream is subscribed."""
        return bool(self._in_flight) or self.store.subscriber_count > 0

    # --- Read channels ---

    def receive_lessons(self, result: ChannelResult) -> ViewState:
        """Replace the lessons with a fresh projection of one emission."""
        return self._receive(result, "lessons", project_lessons)

    def receive_badges(self, result: ChannelResult) -> ViewState:
        """Replace the badges with a fresh projection of one emission."""
        return self._receive(result, "badges", project_badges)

    def _receive(
        self, result: ChannelResult, channel: str, project: Callable[[Any], tuple]
    ) -> ViewState:
        error_field = f"{channel}_error"
        logger.debug(f"[{channel}] emission for student {self._student_id}")

        if result.data is not None:
            try:
                items = project(result.data)
            except Exception as e:
                logger.error(f"[{channel}] mapping exception: {e}")
                sentry_sdk.capture_exception(e)
                return self.store.update(
                    lambda s: replace(s, **{channel: (), error_field: e})
                )
            return self.store.update(
                lambda s: replace(s, **{channel: items, error_field: None})
            )

        if result.error is not None:
            logger.error(f"[{channel}] error: {result.error}")
            return self.store.update(
                lambda s: replace(s, **{channel: (), error_field: result.error})
            )

        return self.state

    # --- Expand/collapse ---

    def toggle_steps(self, lesson_id: str | int | None) -> ViewState:
        """Show or hide one lesson's steps."""
        return self._update_lessons(lambda lessons: toggle_steps(lessons, lesson_id))

    # --- Step completion ---

    async def complete_step(self, lesson_id: str | int, step_id: str | int) -> bool:
        """
        Flip a step's completion with optimistic feedback.

        The step and its lesson counts change immediately, then the remote
        call decides: success reconciles with the server's values, failure
        restores the previous values. Either way a toast is sent.

        Returns:
            True if a request was issued, False if the step was not found or
            already has a confirmation in flight
        """
        found = find_step(self.state.lessons, lesson_id, step_id)
        if found is None:
            logger.warning(f"Step {step_id} of lesson {lesson_id} not found")
            return False

        lesson_idx, step_idx = found
        lesson = self.state.lessons[lesson_idx]
        step = lesson.steps[step_idx]
        key = (str(lesson_id), str(step_id))
        if step.saving or key in self._in_flight:
            logger.warning(f"Step {step_id} is already saving, ignoring toggle")
            return False

        to = not step.completed
        logger.info(f"Setting step {step_id} of lesson {lesson_id} completed={to}")
        self._in_flight.add(key)
        self._update_lessons(
            lambda lessons: apply_optimistic(lessons, lesson_id, step_id, to)
        )

        try:
            raw_result = await self._complete_step(str(lesson.id), str(step.id), to)
            result = _coerce_result(raw_result)
        except asyncio.CancelledError:
            self._roll_back(lesson, step_id, to)
            raise
        except Exception as e:
            logger.error(f"Step {step_id} update failed: {e}")
            sentry_sdk.capture_exception(e)
            self._roll_back(lesson, step_id, to)
            notify_step_failed(self._notify, e)
            return True
        finally:
            self._in_flight.discard(key)

        logger.debug(f"Server result for step {step_id}: {result}")
        self._update_lessons(
            lambda lessons: apply_result(lessons, lesson_id, step_id, to, result)
        )
        current = self._find_lesson(lesson_id)
        notify_step_saved(self._notify, to, current.name if current else lesson.name)
        return True

    def _roll_back(self, before: Lesson, step_id: str | int, to: bool) -> ViewState:
        return self._update_lessons(
            lambda lessons: roll_back(lessons, before.id, step_id, to, before=before)
        )

    def _find_lesson(self, lesson_id: str | int) -> Lesson | None:
        for lesson in self.state.lessons:
            if str(lesson.id) == str(lesson_id):
                return lesson
        return None

    def _update_lessons(
        self, transition: Callable[[tuple[Lesson, ...]], tuple[Lesson, ...]]
    ) -> ViewState:
        def apply(state: ViewState) -> ViewState:
            lessons = transition(state.lessons)
            if lessons is state.lessons:
                return state
            return replace(state, lessons=lessons)

        return self.store.update(apply)

    # --- Binding to a student ---

    def bind(self, student_id: str | None) -> None:
        """
        Follow a student's read channels, dropping any previous binding.

        Must be called from a running event loop. Binding to the current
        student again is a no-op.
        """
        if self._source is None:
            raise RuntimeError("LessonViewer has no lesson source to bind")
        if student_id == self._student_id and self._tasks:
            return

        self._cancel_tasks()
        self._student_id = student_id
        if not student_id:
            return

        logger.info(f"Binding lessons viewer to student {student_id}")
        self._tasks = [
            asyncio.create_task(
                self._consume(self._source.subscribe_lessons(student_id), self.receive_lessons)
            ),
            asyncio.create_task(
                self._consume(self._source.subscribe_badges(student_id), self.receive_badges)
            ),
        ]

    async def _consume(
        self,
        stream: AsyncIterator[ChannelResult],
        handler: Callable[[ChannelResult], ViewState],
    ) -> None:
        try:
            async for result in stream:
                handler(result)
        except Exception as e:
            logger.error(f"Read channel for student {self._student_id} failed: {e}")
            sentry_sdk.capture_exception(e)
            handler(ChannelResult(error=e))

    def _cancel_tasks(self) -> None:
        for task in self._tasks:
            if not task.done():
                task.cancel()
        self._tasks = []

    def unbind(self) -> None:
        """Stop following read channels without waiting for the tasks to exit."""
        self._cancel_tasks()
        self._student_id = None

    async def close(self) -> None:
        """Stop following read channels."""
        tasks = self._tasks
        self._cancel_tasks()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
