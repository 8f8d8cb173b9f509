"""Projection of raw read-channel records into view-state records.

Raw records arrive as JSON-like dicts. They are validated with pydantic so a
malformed snapshot fails as a whole instead of producing a half-mapped
collection; the caller decides what to do with the failure.
"""

import logging
from typing import Annotated, Any

from pydantic import AliasChoices, AliasPath, BaseModel, BeforeValidator, ConfigDict, Field

from student_lessons.constants import (
    DEFAULT_BADGE_ICON,
    LESSON_ICONS,
    LESSON_STEP_BUTTON_LABELS,
    STEP_BUTTON_ICONS,
    STEP_BUTTON_LABELS,
    STEP_BUTTON_VARIANTS,
)
from student_lessons.types import Badge, Lesson, Step

logger = logging.getLogger(__name__)


def _stringify_id(value: Any) -> Any:
    # Upstream ids may be numbers; comparisons are always done on strings
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return value


RecordId = Annotated[str | None, BeforeValidator(_stringify_id)]


class RawStep(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: RecordId = None
    name: str | None = Field(
        default=None, validation_alias=AliasChoices("name", "stepName", "Name")
    )
    completed: bool | None = False
    completed_date: Any = Field(
        default=None, validation_alias=AliasChoices("completedDate", "completed_date")
    )


class RawLesson(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: RecordId = None
    name: str | None = Field(
        default=None, validation_alias=AliasChoices("lessonName", "name")
    )
    date: Any = Field(default=None, validation_alias=AliasChoices("lessonDate", "date"))
    steps: list[RawStep] | None = None
    completed_steps: int | None = Field(
        default=None, validation_alias=AliasChoices("completedSteps", "completed_steps")
    )
    total_steps: int | None = Field(
        default=None, validation_alias=AliasChoices("totalSteps", "total_steps")
    )
    completed: bool | None = None


class RawBadge(BaseModel):
    """Badge record; accepts both the CRM field names and plain keys."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: RecordId = Field(default=None, validation_alias=AliasChoices("Id", "id"))
    name: str | None = Field(default=None, validation_alias=AliasChoices("Name", "name"))
    icon_name: str | None = Field(
        default=None, validation_alias=AliasChoices("Icon_Name__c", "iconName")
    )
    type: str | None = Field(
        default=None, validation_alias=AliasChoices("Badge_Type__c", "type")
    )
    lesson_name: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            AliasPath("Lesson__r", "Name"),
            AliasPath("lesson", "name"),
            "lessonName",
        ),
    )
    date: Any = Field(default=None, validation_alias=AliasChoices("Award_Date__c", "date"))


def step_presentation(completed: bool) -> dict[str, str]:
    """Button fields for a step, as keyword arguments for dataclasses.replace."""
    return {
        "button_label": STEP_BUTTON_LABELS[completed],
        "button_variant": STEP_BUTTON_VARIANTS[completed],
        "button_icon_name": STEP_BUTTON_ICONS[completed],
    }


def lesson_presentation(show_steps: bool) -> dict:
    """Expand/collapse fields for a lesson."""
    return {
        "show_steps": show_steps,
        "step_button_label": LESSON_STEP_BUTTON_LABELS[show_steps],
        "icon_name": LESSON_ICONS[show_steps],
    }


def is_lesson_complete(completed_steps: int | None, total_steps: int | None) -> bool:
    """A lesson is complete when it has steps and all of them are done."""
    total = total_steps or 0
    return total > 0 and (completed_steps or 0) == total


def _ensure_sequence(data: Any) -> list:
    if data is None:
        return []
    if not isinstance(data, (list, tuple)):
        raise TypeError(f"Expected a list of records, got {type(data).__name__}")
    return list(data)


def _project_step(raw: RawStep) -> Step:
    completed = bool(raw.completed)
    return Step(
        id=raw.id,
        name=raw.name,
        completed=completed,
        completed_date=raw.completed_date,
        saving=False,
        extra=dict(raw.model_extra or {}),
        **step_presentation(completed),
    )


def project_lessons(data: Any) -> tuple[Lesson, ...]:
    """
    Map a raw lesson snapshot to view-state lessons.

    Every lesson starts collapsed; expansion state is never carried over from
    a previous snapshot. A record without an id is logged and kept.

    Raises:
        TypeError: If the snapshot is not a list.
        pydantic.ValidationError: If any record is malformed.
    """
    records = _ensure_sequence(data)
    logger.debug(f"Projecting {len(records)} raw lessons")

    lessons = []
    for idx, record in enumerate(records):
        raw = RawLesson.model_validate(record)
        if not raw.id:
            logger.warning(f"Lesson item {idx} missing id: {record!r}")
        for step_idx, step in enumerate(raw.steps or []):
            if not step.id:
                logger.warning(f"Step item {step_idx} of lesson {raw.id} missing id")

        steps = tuple(_project_step(step) for step in raw.steps or [])
        if raw.completed_steps is not None and raw.total_steps is not None:
            completed = is_lesson_complete(raw.completed_steps, raw.total_steps)
        else:
            completed = bool(raw.completed)
        lessons.append(
            Lesson(
                id=raw.id,
                name=raw.name,
                date=raw.date,
                steps=steps,
                completed_steps=raw.completed_steps,
                total_steps=raw.total_steps,
                completed=completed,
                extra=dict(raw.model_extra or {}),
                **lesson_presentation(False),
            )
        )

    summary = [
        {
            "id": lesson.id,
            "name": lesson.name,
            "date": lesson.date,
            "steps": len(lesson.steps),
            "prog": f"{lesson.completed_steps}/{lesson.total_steps}",
            "completed": lesson.completed,
        }
        for lesson in lessons
    ]
    logger.debug(f"Mapped lessons: {summary}")
    return tuple(lessons)


def project_badges(data: Any) -> tuple[Badge, ...]:
    """Map raw badge records; a missing icon falls back to the default award icon."""
    records = _ensure_sequence(data)
    logger.debug(f"Projecting {len(records)} raw badges")

    badges = []
    for idx, record in enumerate(records):
        raw = RawBadge.model_validate(record)
        if not raw.id:
            logger.warning(f"Badge item {idx} missing id")
        badges.append(
            Badge(
                id=raw.id,
                name=raw.name,
                icon_name=raw.icon_name or DEFAULT_BADGE_ICON,
                type=raw.type,
                lesson_name=raw.lesson_name,
                date=raw.date,
            )
        )
    return tuple(badges)
