"""Pipeline artifacts: schema, models and repositories."""

from .models import (
    PRD,
    RFC,
    CodingSession,
    Epic,
    Project,
    StoryUserFlow,
    Task,
    TaskType,
    UserFlow,
)

__all__ = [
    "CodingSession",
    "Epic",
    "PRD",
    "Project",
    "RFC",
    "StoryUserFlow",
    "Task",
    "TaskType",
    "UserFlow",
]
