"""Pytest fixtures for student lessons tests."""

import pytest

from student_lessons.projection import project_lessons


def make_raw_lessons() -> list[dict]:
    """Two lessons: L1 half done, L2 untouched."""
    return [
        {
            "id": "L1",
            "lessonName": "Fractions",
            "lessonDate": "2024-03-01",
            "completedSteps": 1,
            "totalSteps": 2,
            "completed": False,
            "teacher": "Ms. Rivera",
            "steps": [
                {"id": "S1", "name": "Watch video", "completed": False},
                {
                    "id": "S2",
                    "name": "Worksheet",
                    "completed": True,
                    "completedDate": "2024-03-02",
                },
            ],
        },
        {
            "id": "L2",
            "lessonName": "Decimals",
            "lessonDate": "2024-03-08",
            "completedSteps": 0,
            "totalSteps": 1,
            "completed": False,
            "steps": [{"id": "S3", "name": "Read chapter", "completed": False}],
        },
    ]


@pytest.fixture
def raw_lessons():
    return make_raw_lessons()


@pytest.fixture
def raw_badges():
    return [
        {
            "Id": "B1",
            "Name": "Fast Learner",
            "Icon_Name__c": "trophy",
            "Badge_Type__c": "Speed",
            "Lesson__r": {"Name": "Fractions"},
            "Award_Date__c": "2024-03-03",
        },
        {"Id": "B2", "Name": "First Step", "Badge_Type__c": "Milestone"},
    ]


@pytest.fixture
def lessons(raw_lessons):
    return project_lessons(raw_lessons)
