"""Tests for expanding and collapsing a lesson's steps."""

from student_lessons.toggle import toggle_steps


def test_toggle_expands_matching_lesson(lessons):
    result = toggle_steps(lessons, "L1")

    assert result[0].show_steps is True
    assert result[0].step_button_label == "Hide Steps"
    assert result[0].icon_name == "chevron-down"
    assert result[1] is lessons[1]


def test_toggle_twice_collapses_again(lessons):
    result = toggle_steps(toggle_steps(lessons, "L1"), "L1")

    assert result[0].show_steps is False
    assert result[0].step_button_label == "Show Steps"
    assert result[0].icon_name == "chevron-right"
    assert result == lessons


def test_toggle_compares_ids_as_strings():
    from student_lessons.projection import project_lessons

    lessons = project_lessons([{"id": 5, "steps": []}])

    assert toggle_steps(lessons, 5)[0].show_steps is True
    assert toggle_steps(lessons, "5")[0].show_steps is True


def test_toggle_keeps_steps_untouched(lessons):
    result = toggle_steps(lessons, "L1")

    assert result[0].steps is lessons[0].steps


def test_toggle_without_id_is_noop(lessons):
    assert toggle_steps(lessons, None) is lessons
    assert toggle_steps(lessons, "") is lessons


def test_toggle_unknown_id_is_noop(lessons):
    assert toggle_steps(lessons, "nope") is lessons
