"""Read channels that feed lesson and badge snapshots into the viewer."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator
from urllib.parse import quote

import httpx

from student_lessons.config import (
    get_lessons_api_url,
    get_poll_interval,
    get_request_timeout,
)
from student_lessons.types import ChannelResult

logger = logging.getLogger(__name__)


class LessonSourceError(Exception):
    """Raised when a read channel cannot fetch a snapshot."""

    pass


class LessonSource(ABC):
    """Abstract push-based source keyed by student id.

    Each stream yields a ChannelResult whenever the data for that student
    changes or fetching it fails. Streams run until cancelled.
    """

    @abstractmethod
    def subscribe_lessons(self, student_id: str) -> AsyncIterator[ChannelResult]:
        """Stream lesson snapshots (raw records with nested steps)."""
        pass

    @abstractmethod
    def subscribe_badges(self, student_id: str) -> AsyncIterator[ChannelResult]:
        """Stream badge snapshots."""
        pass


_UNSET = object()
_FAILED = object()


class HttpLessonSource(LessonSource):
    """Polls the lesson service and emits on change."""

    def __init__(
        self,
        base_url: str | None = None,
        poll_interval: float | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = (base_url or get_lessons_api_url()).rstrip("/")
        self._poll_interval = (
            poll_interval if poll_interval is not None else get_poll_interval()
        )
        self._timeout = timeout if timeout is not None else get_request_timeout()
        self._transport = transport

    def subscribe_lessons(self, student_id: str) -> AsyncIterator[ChannelResult]:
        return self._poll(f"/students/{quote(str(student_id), safe='')}/lessons")

    def subscribe_badges(self, student_id: str) -> AsyncIterator[ChannelResult]:
        return self._poll(f"/students/{quote(str(student_id), safe='')}/badges")

    async def _fetch(self, client: httpx.AsyncClient, path: str) -> Any:
        try:
            response = await client.get(f"{self._base_url}{path}")
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise LessonSourceError(
                f"{path} returned {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise LessonSourceError(f"Could not fetch {path}: {e}") from e
        except ValueError as e:
            raise LessonSourceError(f"{path} returned invalid JSON") from e

    async def _poll(self, path: str) -> AsyncIterator[ChannelResult]:
        """Fetch forever; yield only when the payload or error state changes."""
        last: Any = _UNSET
        async with httpx.AsyncClient(
            timeout=self._timeout, transport=self._transport
        ) as client:
            while True:
                try:
                    data = await self._fetch(client, path)
                except LessonSourceError as e:
                    logger.error(f"Poll error for {path}: {e}")
                    if last is not _FAILED:
                        last = _FAILED
                        yield ChannelResult(error=e)
                else:
                    if last is _UNSET or last is _FAILED or data != last:
                        last = data
                        yield ChannelResult(data=data)

                await asyncio.sleep(self._poll_interval)
