"""Human-readable rendering of traceability results."""

from __future__ import annotations

from .models import FlowStatus, GapType, ProjectCompleteness, TraceabilityGap

# What is missing, as shown next to a gap on the project dashboard
GAP_MISSING_LABELS: dict[GapType, str] = {
    GapType.STORY_MISSING_PRD: "PRD link",
    GapType.STORY_MISSING_DESIGN: "User flow (design)",
    GapType.STORY_MISSING_RFC: "RFC",
    GapType.STORY_MISSING_BREAKDOWN: "Breakdown (epic)",
    GapType.STORY_MISSING_CODING: "Coding session",
    GapType.DESIGN_MISSING_STORIES: "Linked stories",
    GapType.DESIGN_MISSING_RFC: "RFC",
    GapType.RFC_MISSING_BREAKDOWN: "Breakdown (epic)",
    GapType.RFC_NOT_APPROVED: "Approval (current status: {status})",
    GapType.EPIC_MISSING_RFC: "RFC",
    GapType.EPIC_MISSING_CODING: "Coding sessions",
}

# Sentences used on the per-story chain view
STORY_GAP_SENTENCES: dict[GapType, str] = {
    GapType.STORY_MISSING_PRD: "Story is not linked to a PRD",
    GapType.STORY_MISSING_DESIGN: "Story has no linked user flows (design)",
    GapType.STORY_MISSING_BREAKDOWN: "Story has no epic (breakdown)",
    GapType.STORY_MISSING_RFC: "Story has no linked RFC",
    GapType.STORY_MISSING_CODING: "Story has no coding sessions",
}

# Reasons attached to missing items, per gap type
MISSING_ITEM_REASONS: dict[GapType, str] = {
    GapType.STORY_MISSING_PRD: "Story is not linked to PRD",
    GapType.STORY_MISSING_DESIGN: "Story has no linked user flow (design)",
    GapType.STORY_MISSING_RFC: "Story has no linked RFC",
    GapType.STORY_MISSING_CODING: "Story has no coding session",
    GapType.DESIGN_MISSING_STORIES: "User flow has no linked stories",
    GapType.DESIGN_MISSING_RFC: "User flow has no linked RFC",
    GapType.RFC_NOT_APPROVED: "RFC is not approved (status: {status})",
    GapType.RFC_MISSING_BREAKDOWN: "RFC has no breakdown (epic)",
    GapType.EPIC_MISSING_RFC: "Epic has no RFC",
    GapType.EPIC_MISSING_CODING: "Epic has no coding sessions",
}

NO_PRD_REASON = "No PRD document exists for this project"


def describe_gap(gap: TraceabilityGap) -> str:
    return GAP_MISSING_LABELS[gap.type].format(status=gap.status)


def story_gap_sentence(gap: TraceabilityGap) -> str:
    return STORY_GAP_SENTENCES.get(gap.type, describe_gap(gap))


def missing_item_reason(gap_type: GapType, status: str | None = None) -> str:
    return MISSING_ITEM_REASONS[gap_type].format(status=status)


def compute_flow_status(completeness: ProjectCompleteness) -> FlowStatus:
    """Per-step status shown on the pipeline tracker."""
    stories = completeness.stories
    designs = completeness.designs
    rfc = completeness.rfc
    breakdowns = completeness.breakdowns

    def step(total: int, complete: bool) -> str:
        if total == 0:
            return "missing"
        return "complete" if complete else "partial"

    return FlowStatus(
        prd="complete" if completeness.prd.exists else "missing",
        stories=step(stories.total, not stories.without_prd),
        design=step(designs.total, not designs.without_stories and not stories.without_design),
        rfc=step(rfc.total, rfc.approved == rfc.total and not rfc.without_breakdown),
        breakdown=step(breakdowns.total, not breakdowns.without_rfc),
        coding="in_progress" if stories.with_coding > 0 or breakdowns.with_coding > 0 else "not_started",
    )


def compute_overall_completeness(completeness: ProjectCompleteness) -> int:
    """Percentage of the six pipeline steps that are fully covered."""
    stories = completeness.stories
    designs = completeness.designs
    rfc = completeness.rfc
    breakdowns = completeness.breakdowns

    checks = [
        completeness.prd.exists,
        stories.total > 0 and stories.with_prd == stories.total,
        designs.total > 0 and designs.with_stories == designs.total,
        rfc.total > 0 and rfc.approved == rfc.total,
        breakdowns.total > 0 and breakdowns.with_rfc == breakdowns.total,
        stories.with_coding > 0 or breakdowns.with_coding > 0,
    ]
    return round(sum(checks) / len(checks) * 100)
