from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from .entities.models import PRD, RFC, CodingSession, Epic, Task, UserFlow
from .traceability.models import (
    BreakdownSummary,
    DesignSummary,
    FlowStatus,
    GapType,
    MissingItem,
    PRDSummary,
    Recommendation,
    RFCSummary,
    StorySummary,
)


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str
    timestamp: datetime


class ErrorResponse(BaseModel):
    error: str


# Traceability schemas
class GapResponse(BaseModel):
    type: GapType
    item_id: str
    item_title: str
    missing: str


class CompletenessResponse(BaseModel):
    overall: int | None = Field(None, ge=0, le=100)
    prd: PRDSummary
    stories: StorySummary
    designs: DesignSummary
    rfc: RFCSummary
    breakdowns: BreakdownSummary


class ProjectTraceabilityResponse(BaseModel):
    project_id: str
    completeness: CompletenessResponse
    gaps: list[GapResponse] = Field(default_factory=list)
    recommendations: list[Recommendation] = Field(default_factory=list)
    flow_status: FlowStatus


class StoryTraceabilityResponse(BaseModel):
    story: Task
    prd: PRD | None = None
    designs: list[UserFlow] | None = None
    rfc: RFC | None = None
    epic: Epic | None = None
    breakdown_tasks: list[Task] | None = Field(None, serialization_alias="breakdownTasks")
    coding_sessions: list[CodingSession] | None = Field(None, serialization_alias="codingSessions")
    gaps: list[str] = Field(default_factory=list, description="Gap sentences in chain order")
    gap_details: list[GapResponse] = Field(default_factory=list)


class ValidateRequest(BaseModel):
    # Presence is checked by the route so a missing field maps to 400
    item_id: str | None = Field(None, description="Identifier of the item to check")
    item_type: str | None = Field(None, description="story, design, rfc or epic")
    next_step: str | None = Field(None, description="design, rfc, breakdown or coding")

    @field_validator("item_id", "item_type", "next_step", mode="before")
    @classmethod
    def coerce_numbers(cls, v):
        # Numeric ids are accepted as their string form
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


class MissingItemsResponse(BaseModel):
    project_id: str
    step: str
    missing: list[MissingItem] = Field(default_factory=list)


# Entity schemas
class LinkUserFlowRequest(BaseModel):
    user_flow_id: str = Field(..., min_length=1)


class DeleteResponse(BaseModel):
    success: bool
    message: str
