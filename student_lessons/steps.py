"""Step completion transitions: optimistic apply, reconciliation, rollback.

Each function takes the current lessons tuple and returns a new one in which
only the targeted lesson and step are rebuilt. Every other lesson and step is
the same object as before, so callers can detect changes by identity.

Per-step lifecycle:

    Idle(c) --toggle--> Saving(c, !c) --success--> Idle(result.completed ?? !c)
                                      --failure--> Idle(c)
"""

import logging
from dataclasses import replace
from typing import Callable

from student_lessons.projection import is_lesson_complete, step_presentation
from student_lessons.types import Lesson, Step, StepResult

logger = logging.getLogger(__name__)


def find_step(
    lessons: tuple[Lesson, ...], lesson_id: str | int, step_id: str | int
) -> tuple[int, int] | None:
    """Return (lesson index, step index) for string-equal ids, or None."""
    for lesson_idx, lesson in enumerate(lessons):
        if str(lesson.id) != str(lesson_id):
            continue
        for step_idx, step in enumerate(lesson.steps):
            if str(step.id) == str(step_id):
                return lesson_idx, step_idx
        return None
    return None


def _replace_at(items: tuple, index: int, value) -> tuple:
    return items[:index] + (value,) + items[index + 1 :]


def _patch(
    lessons: tuple[Lesson, ...],
    lesson_id: str | int,
    step_id: str | int,
    patch: Callable[[Lesson, Step], tuple[Lesson, Step] | None],
) -> tuple[Lesson, ...]:
    """Rebuild one lesson/step pair; a missing target or a None patch is a no-op."""
    found = find_step(lessons, lesson_id, step_id)
    if found is None:
        logger.warning(
            f"Lesson {lesson_id} / step {step_id} not in current state, skipping"
        )
        return lessons

    lesson_idx, step_idx = found
    lesson = lessons[lesson_idx]
    patched = patch(lesson, lesson.steps[step_idx])
    if patched is None:
        return lessons

    new_lesson, new_step = patched
    new_lesson = replace(new_lesson, steps=_replace_at(lesson.steps, step_idx, new_step))
    return _replace_at(lessons, lesson_idx, new_lesson)


def apply_optimistic(
    lessons: tuple[Lesson, ...], lesson_id: str | int, step_id: str | int, to: bool
) -> tuple[Lesson, ...]:
    """
    Mark the step as saving with its desired completion value.

    The lesson's completed_steps moves by one in the direction of `to`.
    completed is recomputed against the existing total_steps; the step count
    is only used when total_steps was never reported.
    """

    def patch(lesson: Lesson, step: Step) -> tuple[Lesson, Step]:
        new_step = replace(step, saving=True, completed=to, **step_presentation(to))
        completed_steps = (lesson.completed_steps or 0) + (1 if to else -1)
        total_steps = lesson.total_steps
        if total_steps is None:
            total_steps = len(lesson.steps)
        new_lesson = replace(
            lesson,
            completed_steps=completed_steps,
            total_steps=total_steps,
            completed=is_lesson_complete(completed_steps, total_steps),
        )
        return new_lesson, new_step

    return _patch(lessons, lesson_id, step_id, patch)


def apply_result(
    lessons: tuple[Lesson, ...],
    lesson_id: str | int,
    step_id: str | int,
    to: bool,
    result: StepResult,
) -> tuple[Lesson, ...]:
    """
    Overwrite optimistic values with what the server reported.

    Any field the server leaves out keeps the locally held value. When the
    server does not say whether the lesson is complete, that flag is derived
    from the reconciled counts.
    """

    def patch(lesson: Lesson, step: Step) -> tuple[Lesson, Step]:
        completed = result.completed if result.completed is not None else to
        completed_date = (
            result.completed_date
            if result.completed_date is not None
            else step.completed_date
        )
        new_step = replace(
            step,
            saving=False,
            completed=completed,
            completed_date=completed_date,
            **step_presentation(completed),
        )

        completed_steps = (
            result.completed_steps
            if result.completed_steps is not None
            else lesson.completed_steps
        )
        total_steps = (
            result.total_steps if result.total_steps is not None else lesson.total_steps
        )
        if result.lesson_completed is not None:
            lesson_completed = result.lesson_completed
        else:
            lesson_completed = is_lesson_complete(completed_steps, total_steps)

        new_lesson = replace(
            lesson,
            completed_steps=completed_steps,
            total_steps=total_steps,
            completed=lesson_completed,
        )
        return new_lesson, new_step

    return _patch(lessons, lesson_id, step_id, patch)


def roll_back(
    lessons: tuple[Lesson, ...],
    lesson_id: str | int,
    step_id: str | int,
    to: bool,
    before: Lesson | None = None,
) -> tuple[Lesson, ...]:
    """
    Undo an optimistic apply after the remote call failed.

    Only acts while the step still carries the optimistic mutation. If a new
    snapshot has replaced it in the meantime, that snapshot is already
    authoritative and is left alone.

    Counts move back by one rather than being overwritten, so a concurrent
    toggle of another step in the same lesson keeps its own delta. `before`
    is the lesson as it stood before the optimistic apply: counts it never
    had are cleared again once no toggle is left holding them, and its
    completed flag is restored when counts are missing.
    """

    def patch(lesson: Lesson, step: Step) -> tuple[Lesson, Step] | None:
        if not step.saving:
            logger.info(
                f"Step {step_id} was replaced by a newer snapshot, nothing to roll back"
            )
            return None

        revert = not to
        new_step = replace(step, saving=False, completed=revert, **step_presentation(revert))
        completed_steps = (lesson.completed_steps or 0) + (-1 if to else 1)
        total_steps = lesson.total_steps
        if before is not None:
            saving_elsewhere = any(s.saving and s is not step for s in lesson.steps)
            if before.completed_steps is None and completed_steps == 0:
                completed_steps = None
            if before.total_steps is None and not saving_elsewhere:
                total_steps = None

        if before is not None and (completed_steps is None or total_steps is None):
            lesson_completed = before.completed
        else:
            lesson_completed = is_lesson_complete(completed_steps, total_steps)

        new_lesson = replace(
            lesson,
            completed_steps=completed_steps,
            total_steps=total_steps,
            completed=lesson_completed,
        )
        return new_lesson, new_step

    return _patch(lessons, lesson_id, step_id, patch)
