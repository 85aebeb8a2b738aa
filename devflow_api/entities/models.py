"""
Pydantic models for the pipeline artifacts.

Each entity has a read model mirroring its row, a create request and a
partial-update model. Update models are applied with ``exclude_unset`` so
only the fields a caller actually sent are written.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TaskType(str, Enum):
    STORY = "story"
    TASK = "task"
    MILESTONE = "milestone"
    EPIC = "epic"


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    DONE = "done"


class PRDStatus(str, Enum):
    DRAFT = "draft"
    VALIDATED = "validated"
    APPROVED = "approved"


class RFCStatus(str, Enum):
    """Lifecycle of an RFC; only ``approved`` unlocks breakdown."""
    DRAFT = "draft"
    REVIEW = "review"
    APPROVED = "approved"
    REJECTED = "rejected"
    IMPLEMENTED = "implemented"


class EpicStatus(str, Enum):
    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ProgrammerType(str, Enum):
    BACKEND = "backend"
    FRONTEND = "frontend"
    FULLSTACK = "fullstack"


class CodingSessionStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    PAUSED = "paused"


class EntityModel(BaseModel):
    """Base for models built from database rows."""

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_row(cls, row: Any):
        return cls.model_validate(dict(row._mapping))


# Projects
class Project(EntityModel):
    id: str
    name: str
    base_path: str
    tech_stack: str | None = None
    created_at: datetime
    updated_at: datetime


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    base_path: str = Field(..., min_length=1)
    tech_stack: str | None = None


class ProjectUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    tech_stack: str | None = None


# PRD
class PRD(EntityModel):
    id: str
    project_id: str
    vision: str
    personas: list[dict[str, Any]] = Field(default_factory=list)
    status: PRDStatus
    validated_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class PRDCreate(BaseModel):
    project_id: str
    vision: str = Field(..., min_length=1)
    personas: list[dict[str, Any]] = Field(default_factory=list)
    status: PRDStatus = PRDStatus.DRAFT


class PRDUpdate(BaseModel):
    vision: str | None = None
    personas: list[dict[str, Any]] | None = None
    status: PRDStatus | None = None


# Tasks and stories
class Task(EntityModel):
    id: str
    project_id: str
    title: str
    description: str | None = None
    status: TaskStatus
    type: TaskType
    priority: int | None = 0
    acceptance_criteria: list[Any] | None = None
    generated_from_prd: bool | None = False
    story_points: int | None = None
    prd_id: str | None = None
    epic_id: str | None = None
    estimated_days: int | None = None
    breakdown_order: int | None = None
    created_at: datetime
    updated_at: datetime


class TaskCreate(BaseModel):
    project_id: str
    title: str = Field(..., min_length=1)
    description: str | None = None
    type: TaskType = TaskType.TASK
    priority: int = 0
    status: TaskStatus = TaskStatus.TODO
    acceptance_criteria: list[Any] | None = None
    generated_from_prd: bool = False
    story_points: int | None = None
    prd_id: str | None = None
    epic_id: str | None = None
    estimated_days: int | None = Field(None, le=3)
    breakdown_order: int | None = None


class TaskUpdate(BaseModel):
    title: str | None = Field(None, min_length=1)
    description: str | None = None
    status: TaskStatus | None = None
    priority: int | None = None
    acceptance_criteria: list[Any] | None = None
    story_points: int | None = None
    prd_id: str | None = None
    epic_id: str | None = None
    estimated_days: int | None = Field(None, le=3)
    breakdown_order: int | None = None


# Design
class UserFlow(EntityModel):
    id: str
    project_id: str
    flow_name: str
    flow_diagram: str | None = None
    description: str | None = None
    created_at: datetime
    updated_at: datetime


class UserFlowCreate(BaseModel):
    project_id: str
    flow_name: str = Field(..., min_length=1, max_length=255)
    flow_diagram: str | None = None
    description: str | None = None


class UserFlowUpdate(BaseModel):
    flow_name: str | None = Field(None, min_length=1, max_length=255)
    flow_diagram: str | None = None
    description: str | None = None


class StoryUserFlow(EntityModel):
    id: str
    story_id: str
    user_flow_id: str
    created_at: datetime


# RFC
class RFC(EntityModel):
    id: str
    project_id: str
    user_flow_id: str | None = None
    title: str
    content: str
    architecture_type: str | None = None
    status: RFCStatus
    created_at: datetime
    updated_at: datetime


class RFCCreate(BaseModel):
    project_id: str
    title: str = Field(..., min_length=1, max_length=255)
    content: str = ""
    architecture_type: str | None = None
    user_flow_id: str | None = None
    status: RFCStatus = RFCStatus.DRAFT


class RFCUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=255)
    content: str | None = None
    architecture_type: str | None = None
    user_flow_id: str | None = None
    status: RFCStatus | None = None


# Breakdown
class Epic(EntityModel):
    id: str
    project_id: str
    rfc_id: str | None = None
    title: str
    description: str | None = None
    story_points: int | None = None
    status: EpicStatus
    order_index: int | None = None
    created_at: datetime
    updated_at: datetime


class EpicCreate(BaseModel):
    project_id: str
    rfc_id: str | None = None
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    order_index: int | None = None


class EpicUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    story_points: int | None = None
    status: EpicStatus | None = None
    order_index: int | None = None


# Coding
class CodingSession(EntityModel):
    id: str
    project_id: str
    story_id: str
    programmer_type: ProgrammerType
    status: CodingSessionStatus
    progress: int = 0
    current_file: str | None = None
    output: str | None = None
    error: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class CodingSessionCreate(BaseModel):
    project_id: str
    story_id: str
    programmer_type: ProgrammerType = ProgrammerType.FULLSTACK


class CodingSessionUpdate(BaseModel):
    status: CodingSessionStatus | None = None
    progress: int | None = Field(None, ge=0, le=100)
    current_file: str | None = None
    output: str | None = None
    error: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
