"""
Traceability and gap analysis for the PRD to coding pipeline.

Computes which artifacts of a project exist, which links between pipeline
stages are missing, and whether an item may proceed to its next step.
"""

from .models import (
    GapType,
    ProjectCompleteness,
    StoryTraceability,
    TraceabilityGap,
    ValidationResult,
)
from .repository import TraceabilityRepository
from .service import TraceabilityService

__all__ = [
    "GapType",
    "ProjectCompleteness",
    "StoryTraceability",
    "TraceabilityGap",
    "TraceabilityRepository",
    "TraceabilityService",
    "ValidationResult",
]
