"""
Outbound step completion call.

The remote service persists a step's completion flag and answers with the
authoritative counts for the lesson. Any field of the answer may be missing.
"""

import logging
from typing import Any, Awaitable, Callable

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from student_lessons.config import get_lessons_api_url, get_request_timeout
from student_lessons.types import StepResult

logger = logging.getLogger(__name__)

# (lesson_id, step_id, completed) -> StepResult
CompleteStep = Callable[[str, str, bool], Awaitable[StepResult]]


class StepUpdateError(Exception):
    """Raised when the remote service refuses or fails a completion update."""

    def __init__(
        self,
        message: str | None = None,
        status_code: int | None = None,
        body: Any = None,
    ):
        super().__init__(message or "Step update failed")
        self.message = message
        self.status_code = status_code
        self.body = body


class StepResultPayload(BaseModel):
    """Wire shape of the completion response."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    completed: bool | None = None
    completed_date: Any = Field(default=None, alias="completedDate")
    completed_steps: int | None = Field(default=None, alias="completedSteps")
    total_steps: int | None = Field(default=None, alias="totalSteps")
    lesson_completed: bool | None = Field(default=None, alias="lessonCompleted")

    def to_result(self) -> StepResult:
        return StepResult(
            completed=self.completed,
            completed_date=self.completed_date,
            completed_steps=self.completed_steps,
            total_steps=self.total_steps,
            lesson_completed=self.lesson_completed,
        )


def error_message(exc: BaseException) -> str | None:
    """Pull a server-supplied message out of a failure, if there is one."""
    message = getattr(exc, "message", None)
    if isinstance(message, str) and message:
        return message
    body = getattr(exc, "body", None)
    if isinstance(body, dict):
        body_message = body.get("message")
        if isinstance(body_message, str) and body_message:
            return body_message
    return None


def _parse_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


class HttpStepCompletionClient:
    """Calls the lesson service over HTTP."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = (base_url or get_lessons_api_url()).rstrip("/")
        self._timeout = timeout if timeout is not None else get_request_timeout()
        self._transport = transport

    async def __call__(self, lesson_id: str, step_id: str, completed: bool) -> StepResult:
        """
        Persist one step's completion flag.

        Returns:
            StepResult with whatever fields the service reported

        Raises:
            StepUpdateError: On transport failure, non-2xx status, or an
                unreadable response body
        """
        url = f"{self._base_url}/steps/complete"
        payload = {
            "studentLessonId": lesson_id,
            "lessonStepId": step_id,
            "completed": completed,
        }
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(url, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Step completion request failed: {e}")
            raise StepUpdateError(status_code=None) from e

        body = _parse_body(response)
        if response.status_code >= 400:
            message = body.get("message") if isinstance(body, dict) else None
            raise StepUpdateError(message, status_code=response.status_code, body=body)

        if body is None:
            return StepResult()
        try:
            return StepResultPayload.model_validate(body).to_result()
        except ValidationError as e:
            raise StepUpdateError(status_code=response.status_code, body=body) from e
