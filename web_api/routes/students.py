"""
Student lessons API routes.

Endpoints:
- GET /api/students/{student_id}/lessons - Current lessons and badges view state
- POST /api/students/{student_id}/lessons/{lesson_id}/toggle - Show/hide steps
- POST /api/students/{student_id}/lessons/{lesson_id}/steps/{step_id}/complete - Flip a step
- GET /api/students/{student_id}/notifications - Drain pending toasts
- GET /api/students/{student_id}/events - SSE stream of view-state snapshots
"""

import asyncio
import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict

from student_lessons import ViewState, find_step
from web_api.viewers import ViewerRegistry, get_registry

router = APIRouter(prefix="/api/students", tags=["students"])

logger = logging.getLogger(__name__)

KEEPALIVE_SECONDS = 15


class StepResponse(BaseModel):
    model_config = ConfigDict(extra="allow")  # raw fields the projection kept

    id: str | None
    name: str | None
    completed: bool
    completedDate: Any = None
    saving: bool
    buttonLabel: str
    buttonVariant: str
    buttonIconName: str


class LessonResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str | None
    lessonName: str | None
    lessonDate: Any = None
    steps: list[StepResponse]
    completedSteps: int | None
    totalSteps: int | None
    completed: bool
    showSteps: bool
    stepButtonLabel: str
    iconName: str


class BadgeResponse(BaseModel):
    id: str | None
    name: str | None
    iconName: str
    type: str | None
    lessonName: str | None
    date: Any = None


class ViewStateResponse(BaseModel):
    lessons: list[LessonResponse]
    badges: list[BadgeResponse]
    error: str | None = None


class NotificationResponse(BaseModel):
    title: str
    message: str
    variant: str


def serialize_state(state: ViewState) -> dict:
    """Render a view state as camelCase JSON-ready dicts.

    Unknown raw fields of lessons and steps are passed through; projected
    fields win on a name clash.
    """
    return {
        "lessons": [
            {
                **lesson.extra,
                "id": lesson.id,
                "lessonName": lesson.name,
                "lessonDate": lesson.date,
                "steps": [
                    {
                        **step.extra,
                        "id": step.id,
                        "name": step.name,
                        "completed": step.completed,
                        "completedDate": step.completed_date,
                        "saving": step.saving,
                        "buttonLabel": step.button_label,
                        "buttonVariant": step.button_variant,
                        "buttonIconName": step.button_icon_name,
                    }
                    for step in lesson.steps
                ],
                "completedSteps": lesson.completed_steps,
                "totalSteps": lesson.total_steps,
                "completed": lesson.completed,
                "showSteps": lesson.show_steps,
                "stepButtonLabel": lesson.step_button_label,
                "iconName": lesson.icon_name,
            }
            for lesson in state.lessons
        ],
        "badges": [
            {
                "id": badge.id,
                "name": badge.name,
                "iconName": badge.icon_name,
                "type": badge.type,
                "lessonName": badge.lesson_name,
                "date": badge.date,
            }
            for badge in state.badges
        ],
        "error": str(state.error) if state.error is not None else None,
    }


@router.get("/{student_id}/lessons", response_model=ViewStateResponse)
async def get_lessons(student_id: str, registry: ViewerRegistry = Depends(get_registry)):
    """Return the student's current lessons and badges."""
    session = registry.get(student_id)
    return serialize_state(session.viewer.state)


@router.post("/{student_id}/lessons/{lesson_id}/toggle", response_model=ViewStateResponse)
async def toggle_lesson_steps(
    student_id: str,
    lesson_id: str,
    registry: ViewerRegistry = Depends(get_registry),
):
    """Show or hide a lesson's steps. Unknown lesson ids leave the state as is."""
    session = registry.get(student_id)
    return serialize_state(session.viewer.toggle_steps(lesson_id))


@router.post(
    "/{student_id}/lessons/{lesson_id}/steps/{step_id}/complete",
    response_model=ViewStateResponse,
)
async def complete_lesson_step(
    student_id: str,
    lesson_id: str,
    step_id: str,
    registry: ViewerRegistry = Depends(get_registry),
):
    """
    Flip a step's completion and wait for the lesson service to confirm.

    A failed confirmation is not an HTTP error: the step is rolled back and
    an error toast is queued for the student.

    Raises:
        HTTPException: 404 if the step is unknown, 409 if it is already saving
    """
    session = registry.get(student_id)
    if find_step(session.viewer.state.lessons, lesson_id, step_id) is None:
        raise HTTPException(404, "Step not found")

    accepted = await session.viewer.complete_step(lesson_id, step_id)
    if not accepted:
        raise HTTPException(409, "Step update already in progress")
    return serialize_state(session.viewer.state)


@router.get("/{student_id}/notifications", response_model=list[NotificationResponse])
async def drain_notifications(
    student_id: str, registry: ViewerRegistry = Depends(get_registry)
):
    """Return and clear the student's pending toasts."""
    session = registry.get(student_id)
    return [
        {"title": n.title, "message": n.message, "variant": n.variant}
        for n in session.notifications.drain()
    ]


@router.get("/{student_id}/events")
async def stream_view_state(
    student_id: str,
    request: Request,
    registry: ViewerRegistry = Depends(get_registry),
):
    """Stream every view-state snapshot as server-sent events."""
    session = registry.get(student_id)
    store = session.viewer.store
    queue = store.subscribe()

    async def event_generator():
        try:
            while not await request.is_disconnected():
                try:
                    state = await asyncio.wait_for(queue.get(), timeout=KEEPALIVE_SECONDS)
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
                    continue
                yield f"data: {json.dumps(serialize_state(state), default=str)}\n\n"
        finally:
            store.unsubscribe(queue)

    return StreamingResponse(event_generator(), media_type="text/event-stream")
