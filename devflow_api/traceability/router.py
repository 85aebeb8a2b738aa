"""
FastAPI router for the traceability dashboard.

Every endpoint answers errors with ``{"error": "<message>"}``. Input errors
map to 400; anything else, including a story that does not exist, maps to
500 with the underlying message.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine

from ..config import Settings, get_settings
from ..database import get_engine
from ..errors import ValidationInputError
from ..schemas import (
    CompletenessResponse,
    ErrorResponse,
    GapResponse,
    MissingItemsResponse,
    ProjectTraceabilityResponse,
    StoryTraceabilityResponse,
    ValidateRequest,
)
from .models import PipelineStep, TraceabilityGap, ValidationResult
from .presentation import describe_gap, story_gap_sentence
from .service import TraceabilityService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/traceability", tags=["traceability"])

EngineDep = Annotated[Engine, Depends(get_engine)]
SettingsDep = Annotated[Settings, Depends(get_settings)]

VALID_STEPS = [step.value for step in PipelineStep]
ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
}


def get_traceability_service(engine: EngineDep) -> TraceabilityService:
    return TraceabilityService(engine)


TraceabilityServiceDep = Annotated[TraceabilityService, Depends(get_traceability_service)]


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def gap_response(gap: TraceabilityGap) -> GapResponse:
    return GapResponse(type=gap.type, item_id=gap.item_id, item_title=gap.item_title, missing=describe_gap(gap))


@router.get("/project/{project_id}", response_model=ProjectTraceabilityResponse, responses=ERROR_RESPONSES)
def get_project_traceability(
    project_id: str,
    service: TraceabilityServiceDep,
    settings: SettingsDep,
):
    """Traceability dashboard for a project: coverage, gaps and next actions."""
    try:
        dashboard = service.get_project_dashboard(
            project_id, include_overall=settings.traceability.include_overall_score
        )
        completeness = dashboard.completeness
        return ProjectTraceabilityResponse(
            project_id=project_id,
            completeness=CompletenessResponse(
                overall=dashboard.overall,
                prd=completeness.prd,
                stories=completeness.stories,
                designs=completeness.designs,
                rfc=completeness.rfc,
                breakdowns=completeness.breakdowns,
            ),
            gaps=[gap_response(gap) for gap in completeness.gaps],
            recommendations=dashboard.recommendations,
            flow_status=dashboard.flow_status,
        )
    except Exception as e:
        logger.error(f"Error getting project traceability for {project_id}: {e}")
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e) or "Failed to get traceability data")


@router.get("/story/{story_id}", response_model=StoryTraceabilityResponse, responses=ERROR_RESPONSES)
def get_story_traceability(story_id: str, service: TraceabilityServiceDep):
    """Full chain for one story; links that were not found are omitted."""
    try:
        trace = service.get_story_traceability(story_id)
    except Exception as e:
        logger.error(f"Error getting story traceability for {story_id}: {e}")
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e) or "Failed to get story traceability")

    response = StoryTraceabilityResponse(
        story=trace.story,
        prd=trace.prd,
        designs=trace.designs,
        rfc=trace.rfc,
        epic=trace.epic,
        breakdown_tasks=trace.breakdown_tasks,
        coding_sessions=trace.coding_sessions,
        gaps=[story_gap_sentence(gap) for gap in trace.gaps],
        gap_details=[gap_response(gap) for gap in trace.gaps],
    )
    payload = response.model_dump(mode="json", by_alias=True)
    return JSONResponse(content={key: value for key, value in payload.items() if value is not None})


@router.post("/validate", response_model=ValidationResult, responses=ERROR_RESPONSES)
def validate_traceability(request: ValidateRequest, service: TraceabilityServiceDep):
    """Check whether an item may proceed to the next pipeline step."""
    if not request.item_id or not request.item_type or not request.next_step:
        return error_response(
            status.HTTP_400_BAD_REQUEST,
            "Missing required fields: item_id, item_type, next_step",
        )

    try:
        return service.validate_can_proceed(request.item_id, request.item_type, request.next_step)
    except ValidationInputError as e:
        return error_response(status.HTTP_400_BAD_REQUEST, str(e))
    except Exception as e:
        logger.error(f"Error validating traceability for {request.item_id}: {e}")
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e) or "Failed to validate traceability")


@router.get("/missing/{project_id}/{step}", response_model=MissingItemsResponse, responses=ERROR_RESPONSES)
def get_missing_items(project_id: str, step: str, service: TraceabilityServiceDep):
    """Items that block one pipeline step of a project."""
    if step not in VALID_STEPS:
        return error_response(
            status.HTTP_400_BAD_REQUEST,
            f"Invalid step. Must be one of: {', '.join(VALID_STEPS)}",
        )

    try:
        missing = service.get_missing_items(project_id, step)
        return MissingItemsResponse(project_id=project_id, step=step, missing=missing)
    except Exception as e:
        logger.error(f"Error getting missing items for {project_id}/{step}: {e}")
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e) or "Failed to get missing items")
