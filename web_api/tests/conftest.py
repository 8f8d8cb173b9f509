# web_api/tests/conftest.py
"""Pytest fixtures for web API tests.

Installs a registry with one pre-populated student so API tests run without
a lesson service. The registry has no read channel, so nothing polls.
"""

from unittest.mock import AsyncMock

import pytest

from student_lessons import ChannelResult, StepResult
from web_api.viewers import ViewerRegistry, clear_registry, set_registry

STUDENT_ID = "stu-1"

RAW_LESSONS = [
    {
        "id": "L1",
        "lessonName": "Fractions",
        "lessonDate": "2024-03-01",
        "completedSteps": 1,
        "totalSteps": 2,
        "completed": False,
        "teacher": "Ms. Rivera",
        "steps": [
            {"id": "S1", "name": "Watch video", "completed": False, "durationMinutes": 5},
            {"id": "S2", "name": "Worksheet", "completed": True},
        ],
    },
    {
        "id": "L2",
        "lessonName": "Decimals",
        "completedSteps": 0,
        "totalSteps": 1,
        "steps": [{"id": "S3", "completed": False}],
    },
]

RAW_BADGES = [
    {
        "Id": "B1",
        "Name": "Fast Learner",
        "Badge_Type__c": "Speed",
        "Lesson__r": {"Name": "Fractions"},
        "Award_Date__c": "2024-03-03",
    }
]


@pytest.fixture
def complete_step():
    return AsyncMock(
        return_value=StepResult(
            completed=True,
            completed_date="2024-03-05",
            completed_steps=2,
            total_steps=2,
            lesson_completed=True,
        )
    )


@pytest.fixture(autouse=True)
def registry(complete_step):
    """Set up a registry with student stu-1's lessons and badges loaded."""
    registry = ViewerRegistry(complete_step=complete_step)
    session = registry.get(STUDENT_ID)
    session.viewer.receive_lessons(ChannelResult(data=RAW_LESSONS))
    session.viewer.receive_badges(ChannelResult(data=RAW_BADGES))
    set_registry(registry)

    yield registry

    clear_registry()
