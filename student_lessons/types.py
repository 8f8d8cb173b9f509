"""
Type definitions for the student lessons view state.

All records are frozen: every transition builds new values and reuses
untouched ones, so the rendering layer can compare by identity.
"""

from dataclasses import dataclass, field
from typing import Any, Literal


@dataclass(frozen=True)
class Step:
    """One completable step inside a lesson."""

    id: str | None
    completed: bool
    button_label: str
    button_variant: str
    button_icon_name: str
    name: str | None = None
    completed_date: str | None = None
    saving: bool = False  # True only while a confirmation is in flight
    extra: dict[str, Any] = field(default_factory=dict)  # Unknown raw fields


@dataclass(frozen=True)
class Lesson:
    """A lesson with its ordered steps and aggregate progress."""

    id: str | None
    steps: tuple[Step, ...]
    completed_steps: int | None
    total_steps: int | None
    completed: bool
    show_steps: bool
    step_button_label: str
    icon_name: str
    name: str | None = None
    date: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Badge:
    """Read-only badge projection."""

    id: str | None
    name: str | None
    icon_name: str
    type: str | None = None
    lesson_name: str | None = None
    date: str | None = None


@dataclass(frozen=True)
class StepResult:
    """Authoritative values returned by the remote completion call.

    Every field is optional; None means "not reported".
    """

    completed: bool | None = None
    completed_date: str | None = None
    completed_steps: int | None = None
    total_steps: int | None = None
    lesson_completed: bool | None = None


@dataclass(frozen=True)
class ChannelResult:
    """One emission of a read channel: either data or an error."""

    data: Any = None
    error: Exception | str | None = None


@dataclass(frozen=True)
class Notification:
    """A toast for the host surface."""

    title: str
    message: str
    variant: Literal["success", "error"]


@dataclass(frozen=True)
class ViewState:
    """Immutable snapshot of everything the component displays."""

    lessons: tuple[Lesson, ...] = ()
    badges: tuple[Badge, ...] = ()
    lessons_error: Exception | str | None = None
    badges_error: Exception | str | None = None

    @property
    def error(self) -> Exception | str | None:
        """The retained error to display, lessons first."""
        return self.lessons_error or self.badges_error
