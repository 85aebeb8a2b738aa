"""
Models for the traceability engine.

Gap records carry an enum reason code and the item they refer to; the
human-readable text for a gap is produced by ``presentation`` at the HTTP
boundary, never during derivation.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from ..entities.models import PRD, RFC, CodingSession, Epic, Task, UserFlow

APPROVED_RFC_STATUS = "approved"


class GapType(str, Enum):
    """Reason codes for missing links, in emission order."""
    STORY_MISSING_PRD = "story_missing_prd"
    STORY_MISSING_DESIGN = "story_missing_design"
    STORY_MISSING_RFC = "story_missing_rfc"
    STORY_MISSING_BREAKDOWN = "story_missing_breakdown"
    STORY_MISSING_CODING = "story_missing_coding"
    DESIGN_MISSING_STORIES = "design_missing_stories"
    DESIGN_MISSING_RFC = "design_missing_rfc"
    RFC_MISSING_BREAKDOWN = "rfc_missing_breakdown"
    RFC_NOT_APPROVED = "rfc_not_approved"
    EPIC_MISSING_RFC = "epic_missing_rfc"
    EPIC_MISSING_CODING = "epic_missing_coding"


class PipelineStep(str, Enum):
    PRD = "prd"
    STORIES = "stories"
    DESIGN = "design"
    RFC = "rfc"
    BREAKDOWN = "breakdown"
    CODING = "coding"


class ItemType(str, Enum):
    STORY = "story"
    DESIGN = "design"
    RFC = "rfc"
    EPIC = "epic"


class NextStep(str, Enum):
    DESIGN = "design"
    RFC = "rfc"
    BREAKDOWN = "breakdown"
    CODING = "coding"


class TraceabilityGap(BaseModel):
    type: GapType
    item_id: str
    item_title: str
    # Item status, kept for gaps whose text depends on it (rfc_not_approved)
    status: str | None = None


class ItemRef(BaseModel):
    id: str
    title: str


class DesignRef(BaseModel):
    id: str
    flow_name: str


class RFCStatusRef(BaseModel):
    id: str
    title: str
    status: str


class PRDSummary(BaseModel):
    exists: bool
    status: str | None = None
    id: str | None = None


class StorySummary(BaseModel):
    total: int = 0
    with_prd: int = 0
    with_design: int = 0
    with_rfc: int = 0
    with_breakdown: int = 0
    with_coding: int = 0
    without_prd: list[ItemRef] = Field(default_factory=list)
    without_design: list[ItemRef] = Field(default_factory=list)
    without_rfc: list[ItemRef] = Field(default_factory=list)
    without_breakdown: list[ItemRef] = Field(default_factory=list)
    without_coding: list[ItemRef] = Field(default_factory=list)


class DesignSummary(BaseModel):
    total: int = 0
    with_stories: int = 0
    with_rfc: int = 0
    without_stories: list[DesignRef] = Field(default_factory=list)
    without_rfc: list[DesignRef] = Field(default_factory=list)


class RFCSummary(BaseModel):
    total: int = 0
    approved: int = 0
    with_breakdown: int = 0
    without_breakdown: list[ItemRef] = Field(default_factory=list)
    not_approved: list[RFCStatusRef] = Field(default_factory=list)


class BreakdownSummary(BaseModel):
    total: int = 0
    with_rfc: int = 0
    with_coding: int = 0
    without_rfc: list[ItemRef] = Field(default_factory=list)
    without_coding: list[ItemRef] = Field(default_factory=list)


class ProjectCompleteness(BaseModel):
    prd: PRDSummary
    stories: StorySummary
    designs: DesignSummary
    rfc: RFCSummary
    breakdowns: BreakdownSummary
    gaps: list[TraceabilityGap] = Field(default_factory=list)


class StoryTraceability(BaseModel):
    """Forward chain of one story; ``None`` means the link was not found."""
    story: Task
    prd: PRD | None = None
    designs: list[UserFlow] | None = None
    rfc: RFC | None = None
    epic: Epic | None = None
    breakdown_tasks: list[Task] | None = Field(None, serialization_alias="breakdownTasks")
    coding_sessions: list[CodingSession] | None = Field(None, serialization_alias="codingSessions")
    gaps: list[TraceabilityGap] = Field(default_factory=list)


class ValidationResult(BaseModel):
    valid: bool
    missing: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class MissingItem(BaseModel):
    id: str
    title: str
    reason: str


Priority = Literal["high", "medium", "low"]


class Recommendation(BaseModel):
    action: str
    priority: Priority
    items: list[ItemRef] = Field(default_factory=list)


StepStatus = Literal["complete", "partial", "missing", "in_progress", "not_started"]


class FlowStatus(BaseModel):
    prd: StepStatus
    stories: StepStatus
    design: StepStatus
    rfc: StepStatus
    breakdown: StepStatus
    coding: StepStatus


class ProjectDashboard(BaseModel):
    project_id: str
    completeness: ProjectCompleteness
    overall: int | None = None
    recommendations: list[Recommendation] = Field(default_factory=list)
    flow_status: FlowStatus
