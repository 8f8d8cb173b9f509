"""
Student lessons viewer - platform-agnostic view state.
Can be hosted by the web API or any other interface.
"""

# View-state records
from .types import (
    Step, Lesson, Badge, StepResult, ChannelResult, Notification, ViewState
)

# Projection of read-channel snapshots
from .projection import project_lessons, project_badges, step_presentation

# Expand/collapse
from .toggle import toggle_steps

# Step completion transitions
from .steps import find_step, apply_optimistic, apply_result, roll_back

# Store and component
from .store import ViewStateStore
from .viewer import LessonViewer

# Collaborators
from .channels import LessonSource, HttpLessonSource, LessonSourceError
from .remote import HttpStepCompletionClient, StepUpdateError

__all__ = [
    # Types
    'Step', 'Lesson', 'Badge', 'StepResult', 'ChannelResult', 'Notification', 'ViewState',
    # Projection
    'project_lessons', 'project_badges', 'step_presentation',
    # Toggle
    'toggle_steps',
    # Step engine
    'find_step', 'apply_optimistic', 'apply_result', 'roll_back',
    # Store / component
    'ViewStateStore', 'LessonViewer',
    # Collaborators
    'LessonSource', 'HttpLessonSource', 'LessonSourceError',
    'HttpStepCompletionClient', 'StepUpdateError',
]
