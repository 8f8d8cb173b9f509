"""Tests for the LessonViewer component."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from student_lessons.channels import LessonSource
from student_lessons.notifications import PendingNotifications
from student_lessons.remote import StepUpdateError
from student_lessons.types import ChannelResult, StepResult
from student_lessons.viewer import LessonViewer


def make_viewer(raw_lessons, complete_step=None, source=None):
    pending = PendingNotifications()
    viewer = LessonViewer(
        complete_step=complete_step or AsyncMock(return_value=StepResult()),
        notify=pending,
        source=source,
    )
    viewer.receive_lessons(ChannelResult(data=raw_lessons))
    return viewer, pending


class TestReadChannels:
    def test_lessons_emission_replaces_state(self, raw_lessons):
        viewer, _ = make_viewer(raw_lessons)

        assert [lesson.id for lesson in viewer.state.lessons] == ["L1", "L2"]
        assert viewer.state.error is None

    def test_reemission_collapses_expanded_lessons(self, raw_lessons):
        viewer, _ = make_viewer(raw_lessons)
        viewer.toggle_steps("L1")
        assert viewer.state.lessons[0].show_steps is True

        viewer.receive_lessons(ChannelResult(data=raw_lessons))

        assert viewer.state.lessons[0].show_steps is False

    def test_mapping_failure_clears_lessons(self, raw_lessons):
        viewer, _ = make_viewer(raw_lessons)

        viewer.receive_lessons(ChannelResult(data=[{"id": "L1", "totalSteps": "many"}]))

        assert viewer.state.lessons == ()
        assert viewer.state.lessons_error is not None

    def test_lessons_channel_error_clears_lessons(self, raw_lessons):
        viewer, _ = make_viewer(raw_lessons)

        viewer.receive_lessons(ChannelResult(error="boom"))

        assert viewer.state.lessons == ()
        assert viewer.state.error == "boom"

    def test_badge_error_leaves_lessons_alone(self, raw_lessons, raw_badges):
        viewer, _ = make_viewer(raw_lessons)
        viewer.receive_badges(ChannelResult(data=raw_badges))
        lessons_before = viewer.state.lessons

        viewer.receive_badges(ChannelResult(error=RuntimeError("badges down")))

        assert viewer.state.badges == ()
        assert str(viewer.state.badges_error) == "badges down"
        assert viewer.state.lessons is lessons_before

    def test_successful_emission_clears_channel_error(self, raw_lessons, raw_badges):
        viewer, _ = make_viewer(raw_lessons)
        viewer.receive_badges(ChannelResult(error="badges down"))

        viewer.receive_badges(ChannelResult(data=raw_badges))

        assert len(viewer.state.badges) == 2
        assert viewer.state.badges_error is None

    def test_empty_emission_is_ignored(self, raw_lessons):
        viewer, _ = make_viewer(raw_lessons)
        before = viewer.state

        assert viewer.receive_lessons(ChannelResult()) is before


class TestCompleteStep:
    @pytest.mark.asyncio
    async def test_optimistic_then_reconciled(self, raw_lessons):
        """Toggling S1 shows the result at once, then settles on the server's values."""
        gate = asyncio.Event()
        seen_during_call = {}

        async def complete_step(lesson_id, step_id, completed):
            seen_during_call["state"] = viewer.state
            await gate.wait()
            return StepResult(
                completed=True, completed_steps=2, total_steps=2, lesson_completed=True
            )

        viewer, pending = make_viewer(raw_lessons, complete_step=complete_step)
        task = asyncio.create_task(viewer.complete_step("L1", "S1"))
        await asyncio.sleep(0)

        lesson = seen_during_call["state"].lessons[0]
        assert lesson.steps[0].completed is True
        assert lesson.steps[0].saving is True
        assert lesson.completed_steps == 2
        assert lesson.completed is True

        gate.set()
        assert await task is True

        lesson = viewer.state.lessons[0]
        assert lesson.steps[0].saving is False
        assert lesson.completed is True
        [toast] = pending.drain()
        assert toast.variant == "success"
        assert toast.title == "Step completed"
        assert toast.message == "Fractions"

    @pytest.mark.asyncio
    async def test_remote_called_with_desired_value(self, raw_lessons):
        complete_step = AsyncMock(return_value=StepResult())
        viewer, _ = make_viewer(raw_lessons, complete_step=complete_step)

        await viewer.complete_step("L1", "S2")

        complete_step.assert_awaited_once_with("L1", "S2", False)

    @pytest.mark.asyncio
    async def test_reopen_toast_title(self, raw_lessons):
        viewer, pending = make_viewer(raw_lessons)

        await viewer.complete_step("L1", "S2")

        assert pending.drain()[0].title == "Step reopened"

    @pytest.mark.asyncio
    async def test_failure_rolls_back_with_fallback_message(self, raw_lessons):
        viewer, pending = make_viewer(
            raw_lessons,
            complete_step=AsyncMock(side_effect=ConnectionError("offline")),
        )
        before = viewer.state.lessons[0]

        assert await viewer.complete_step("L1", "S1") is True

        lesson = viewer.state.lessons[0]
        assert lesson.steps[0].completed is False
        assert lesson.steps[0].saving is False
        assert lesson.completed_steps == 1
        assert lesson.completed is False
        assert lesson == before
        [toast] = pending.drain()
        assert toast.variant == "error"
        assert toast.title == "Update failed"
        assert toast.message == "Could not update step"

    @pytest.mark.asyncio
    async def test_failure_uses_server_message(self, raw_lessons):
        viewer, pending = make_viewer(
            raw_lessons,
            complete_step=AsyncMock(side_effect=StepUpdateError("Lesson is locked")),
        )

        await viewer.complete_step("L1", "S1")

        assert pending.drain()[0].message == "Lesson is locked"

    @pytest.mark.asyncio
    async def test_accepts_plain_dict_result(self, raw_lessons):
        viewer, _ = make_viewer(
            raw_lessons,
            complete_step=AsyncMock(
                return_value={"completed": True, "completedSteps": 2, "totalSteps": 4}
            ),
        )

        await viewer.complete_step("L1", "S1")

        lesson = viewer.state.lessons[0]
        assert lesson.completed_steps == 2
        assert lesson.total_steps == 4
        assert lesson.completed is False

    @pytest.mark.asyncio
    async def test_unknown_step_does_nothing(self, raw_lessons):
        complete_step = AsyncMock()
        viewer, pending = make_viewer(raw_lessons, complete_step=complete_step)
        before = viewer.state

        assert await viewer.complete_step("L1", "nope") is False

        complete_step.assert_not_awaited()
        assert viewer.state is before
        assert len(pending) == 0

    @pytest.mark.asyncio
    async def test_second_toggle_while_saving_is_ignored(self, raw_lessons):
        gate = asyncio.Event()
        calls = []

        async def complete_step(lesson_id, step_id, completed):
            calls.append(completed)
            await gate.wait()
            return StepResult(completed=True, completed_steps=2)

        viewer, _ = make_viewer(raw_lessons, complete_step=complete_step)
        first = asyncio.create_task(viewer.complete_step("L1", "S1"))
        await asyncio.sleep(0)

        assert await viewer.complete_step("L1", "S1") is False
        assert viewer.state.lessons[0].completed_steps == 2

        gate.set()
        await first
        assert calls == [True]
        assert viewer.state.lessons[0].completed_steps == 2

    @pytest.mark.asyncio
    async def test_steps_in_different_lessons_run_independently(self, raw_lessons):
        gate = asyncio.Event()

        async def complete_step(lesson_id, step_id, completed):
            await gate.wait()
            return StepResult()

        viewer, pending = make_viewer(raw_lessons, complete_step=complete_step)
        first = asyncio.create_task(viewer.complete_step("L1", "S1"))
        second = asyncio.create_task(viewer.complete_step("L2", "S3"))
        await asyncio.sleep(0)

        assert viewer.state.lessons[0].steps[0].saving is True
        assert viewer.state.lessons[1].steps[0].saving is True

        gate.set()
        assert await asyncio.gather(first, second) == [True, True]
        assert not any(step.saving for lesson in viewer.state.lessons for step in lesson.steps)
        assert len(pending.drain()) == 2

    @pytest.mark.asyncio
    async def test_snapshot_during_flight_then_success(self, raw_lessons):
        gate = asyncio.Event()

        async def complete_step(lesson_id, step_id, completed):
            await gate.wait()
            return StepResult(completed=True, completed_steps=2, lesson_completed=True)

        viewer, _ = make_viewer(raw_lessons, complete_step=complete_step)
        task = asyncio.create_task(viewer.complete_step("L1", "S1"))
        await asyncio.sleep(0)

        viewer.receive_lessons(ChannelResult(data=raw_lessons))
        assert viewer.state.lessons[0].steps[0].saving is False

        # Still in flight for this pair, even though the new snapshot reset saving
        assert await viewer.complete_step("L1", "S1") is False

        gate.set()
        await task
        lesson = viewer.state.lessons[0]
        assert lesson.steps[0].completed is True
        assert lesson.completed_steps == 2
        assert lesson.completed is True

    @pytest.mark.asyncio
    async def test_snapshot_during_flight_then_failure_keeps_snapshot(self, raw_lessons):
        gate = asyncio.Event()

        async def complete_step(lesson_id, step_id, completed):
            await gate.wait()
            raise StepUpdateError("nope")

        viewer, pending = make_viewer(raw_lessons, complete_step=complete_step)
        task = asyncio.create_task(viewer.complete_step("L1", "S1"))
        await asyncio.sleep(0)

        viewer.receive_lessons(ChannelResult(data=raw_lessons))
        snapshot = viewer.state.lessons

        gate.set()
        await task
        assert viewer.state.lessons is snapshot
        assert pending.drain()[0].variant == "error"

    @pytest.mark.asyncio
    async def test_lesson_removed_during_flight(self, raw_lessons):
        gate = asyncio.Event()

        async def complete_step(lesson_id, step_id, completed):
            await gate.wait()
            return StepResult(completed=True)

        viewer, pending = make_viewer(raw_lessons, complete_step=complete_step)
        task = asyncio.create_task(viewer.complete_step("L1", "S1"))
        await asyncio.sleep(0)

        viewer.receive_lessons(ChannelResult(data=raw_lessons[1:]))
        snapshot = viewer.state.lessons

        gate.set()
        await task
        assert viewer.state.lessons is snapshot
        # The server did save it, so the student still hears about it
        assert pending.drain()[0].message == "Fractions"

    @pytest.mark.asyncio
    async def test_cancelled_call_does_not_leave_step_saving(self, raw_lessons):
        async def complete_step(lesson_id, step_id, completed):
            await asyncio.Event().wait()

        viewer, _ = make_viewer(raw_lessons, complete_step=complete_step)
        task = asyncio.create_task(viewer.complete_step("L1", "S1"))
        await asyncio.sleep(0)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        step = viewer.state.lessons[0].steps[0]
        assert step.saving is False
        assert step.completed is False
        assert viewer.state.lessons[0].completed_steps == 1

    @pytest.mark.asyncio
    async def test_failure_restores_snapshot_without_counts(self):
        raw = [{"id": "L", "completed": False, "steps": [{"id": "a"}, {"id": "b"}]}]
        viewer, _ = make_viewer(
            raw, complete_step=AsyncMock(side_effect=StepUpdateError("nope"))
        )
        original = viewer.state.lessons

        await viewer.complete_step("L", "a")

        assert viewer.state.lessons == original


class FakeSource(LessonSource):
    """Emits fixed results per student and then waits forever."""

    def __init__(self, lessons_by_student, badges_by_student=None):
        self.lessons_by_student = lessons_by_student
        self.badges_by_student = badges_by_student or {}
        self.subscribed = []

    async def _emit(self, results):
        for result in results:
            yield result
        await asyncio.Event().wait()

    def subscribe_lessons(self, student_id):
        self.subscribed.append(("lessons", student_id))
        return self._emit(self.lessons_by_student.get(student_id, []))

    def subscribe_badges(self, student_id):
        self.subscribed.append(("badges", student_id))
        return self._emit(self.badges_by_student.get(student_id, []))


class BrokenSource(FakeSource):
    async def _explode(self):
        raise ConnectionError("stream died")
        yield  # pragma: no cover

    def subscribe_badges(self, student_id):
        return self._explode()


async def settle():
    for _ in range(5):
        await asyncio.sleep(0)


class TestBinding:
    @pytest.mark.asyncio
    async def test_bind_feeds_both_channels(self, raw_lessons, raw_badges):
        source = FakeSource(
            {"stu-1": [ChannelResult(data=raw_lessons)]},
            {"stu-1": [ChannelResult(data=raw_badges)]},
        )
        viewer = LessonViewer(complete_step=AsyncMock(), source=source)

        viewer.bind("stu-1")
        await settle()

        assert len(viewer.state.lessons) == 2
        assert len(viewer.state.badges) == 2
        await viewer.close()

    @pytest.mark.asyncio
    async def test_rebinding_switches_student(self, raw_lessons):
        source = FakeSource(
            {
                "stu-1": [ChannelResult(data=raw_lessons)],
                "stu-2": [ChannelResult(data=raw_lessons[:1])],
            }
        )
        viewer = LessonViewer(complete_step=AsyncMock(), source=source)

        viewer.bind("stu-1")
        await settle()
        viewer.bind("stu-1")
        viewer.bind("stu-2")
        await settle()

        assert viewer.student_id == "stu-2"
        assert [lesson.id for lesson in viewer.state.lessons] == ["L1"]
        assert source.subscribed.count(("lessons", "stu-1")) == 1
        await viewer.close()

    @pytest.mark.asyncio
    async def test_stream_exception_becomes_error(self, raw_lessons):
        source = BrokenSource({"stu-1": [ChannelResult(data=raw_lessons)]})
        viewer = LessonViewer(complete_step=AsyncMock(), source=source)

        viewer.bind("stu-1")
        await settle()

        assert len(viewer.state.lessons) == 2
        assert viewer.state.badges == ()
        assert isinstance(viewer.state.badges_error, ConnectionError)
        await viewer.close()

    def test_bind_without_source_raises(self):
        viewer = LessonViewer(complete_step=AsyncMock())

        with pytest.raises(RuntimeError):
            viewer.bind("stu-1")
