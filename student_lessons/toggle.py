"""Expand/collapse of a lesson's step list."""

import logging
from dataclasses import replace

from student_lessons.projection import lesson_presentation
from student_lessons.types import Lesson

logger = logging.getLogger(__name__)


def toggle_steps(
    lessons: tuple[Lesson, ...], lesson_id: str | int | None
) -> tuple[Lesson, ...]:
    """
    Flip show_steps on the lesson matching lesson_id.

    Ids are compared as strings. Returns the input unchanged when no id is
    given or nothing matches; non-matching lessons are reused as-is.
    """
    logger.debug(f"Toggle requested for lesson {lesson_id!r}")
    if lesson_id is None or lesson_id == "":
        return lessons

    target = str(lesson_id)
    if not any(str(lesson.id) == target for lesson in lessons):
        return lessons

    return tuple(
        replace(lesson, **lesson_presentation(not lesson.show_steps))
        if str(lesson.id) == target
        else lesson
        for lesson in lessons
    )
