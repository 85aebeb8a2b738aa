"""
Gap derivation over an in-memory project snapshot.

Everything here is a pure function: the repository fetches one collection
per stage into a ``ProjectSnapshot`` and ``derive_completeness`` computes the
stage summaries and the gap list with set differences. No function touches
the database, so the rules can be exercised without one.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import TypeVar

from .models import (
    APPROVED_RFC_STATUS,
    BreakdownSummary,
    DesignRef,
    DesignSummary,
    GapType,
    ItemRef,
    PRDSummary,
    ProjectCompleteness,
    RFCStatusRef,
    RFCSummary,
    StorySummary,
    TraceabilityGap,
)


@dataclass(slots=True, frozen=True)
class PRDRecord:
    id: str
    status: str


@dataclass(slots=True, frozen=True)
class StoryRecord:
    id: str
    title: str
    prd_id: str | None = None
    epic_id: str | None = None


@dataclass(slots=True, frozen=True)
class FlowRecord:
    id: str
    flow_name: str


@dataclass(slots=True, frozen=True)
class RFCRecord:
    id: str
    title: str
    status: str
    user_flow_id: str | None = None


@dataclass(slots=True, frozen=True)
class EpicRecord:
    id: str
    title: str
    rfc_id: str | None = None


@dataclass(slots=True, frozen=True)
class ProjectSnapshot:
    """Rows of one project, fetched once per stage.

    ``flows_with_rfc`` and ``rfcs_with_epic`` hold ids referenced from any
    RFC or epic, not just the project's own. ``epic_tasks`` maps task ids to
    the epic they belong to; ``tasks_with_sessions`` holds every story or
    task id that has at least one coding session.
    """

    prd: PRDRecord | None = None
    stories: tuple[StoryRecord, ...] = ()
    flows: tuple[FlowRecord, ...] = ()
    rfcs: tuple[RFCRecord, ...] = ()
    epics: tuple[EpicRecord, ...] = ()
    story_flow_links: frozenset[tuple[str, str]] = field(default_factory=frozenset)
    flows_with_rfc: frozenset[str] = field(default_factory=frozenset)
    rfcs_with_epic: frozenset[str] = field(default_factory=frozenset)
    epic_tasks: dict[str, str] = field(default_factory=dict)
    tasks_with_sessions: frozenset[str] = field(default_factory=frozenset)


T = TypeVar("T")


def partition(items: Sequence[T], matched_ids: set[str] | frozenset[str]) -> tuple[list[T], list[T]]:
    """Split items into (with, without) by id membership, keeping order."""
    with_link = [item for item in items if item.id in matched_ids]
    without_link = [item for item in items if item.id not in matched_ids]
    return with_link, without_link


def _ids(pairs: Iterable[tuple[str, str]], position: int) -> set[str]:
    return {pair[position] for pair in pairs}


# Stories

def stories_with_prd(snapshot: ProjectSnapshot) -> set[str]:
    return {story.id for story in snapshot.stories if story.prd_id}


def stories_with_design(snapshot: ProjectSnapshot) -> set[str]:
    return _ids(snapshot.story_flow_links, 0)


def stories_with_breakdown(snapshot: ProjectSnapshot) -> set[str]:
    epic_ids = {epic.id for epic in snapshot.epics}
    return {story.id for story in snapshot.stories if story.epic_id and story.epic_id in epic_ids}


def stories_with_rfc(snapshot: ProjectSnapshot) -> set[str]:
    """Stories reaching an RFC through their epic or through a linked flow."""
    epics_with_rfc = {epic.id for epic in snapshot.epics if epic.rfc_id}
    via_epic = {story.id for story in snapshot.stories if story.epic_id in epics_with_rfc}
    via_flow = {
        story_id
        for story_id, flow_id in snapshot.story_flow_links
        if flow_id in snapshot.flows_with_rfc
    }
    return via_epic | via_flow


def stories_with_coding(snapshot: ProjectSnapshot) -> set[str]:
    return {story.id for story in snapshot.stories if story.id in snapshot.tasks_with_sessions}


# Designs

def flows_with_stories(snapshot: ProjectSnapshot) -> set[str]:
    return _ids(snapshot.story_flow_links, 1)


def flows_with_rfc(snapshot: ProjectSnapshot) -> set[str]:
    return {flow.id for flow in snapshot.flows if flow.id in snapshot.flows_with_rfc}


# RFCs

def rfcs_approved(snapshot: ProjectSnapshot) -> set[str]:
    return {rfc.id for rfc in snapshot.rfcs if rfc.status == APPROVED_RFC_STATUS}


def rfcs_with_breakdown(snapshot: ProjectSnapshot) -> set[str]:
    return {rfc.id for rfc in snapshot.rfcs if rfc.id in snapshot.rfcs_with_epic}


# Epics

def epics_with_rfc(snapshot: ProjectSnapshot) -> set[str]:
    # Null check only: an rfc_id pointing at a deleted RFC still counts
    return {epic.id for epic in snapshot.epics if epic.rfc_id}


def epics_with_coding(snapshot: ProjectSnapshot) -> set[str]:
    return {
        epic_id
        for task_id, epic_id in snapshot.epic_tasks.items()
        if task_id in snapshot.tasks_with_sessions
    }


def _story_refs(stories: Iterable[StoryRecord]) -> list[ItemRef]:
    return [ItemRef(id=story.id, title=story.title) for story in stories]


def _design_refs(flows: Iterable[FlowRecord]) -> list[DesignRef]:
    return [DesignRef(id=flow.id, flow_name=flow.flow_name) for flow in flows]


def summarize_stories(snapshot: ProjectSnapshot) -> StorySummary:
    stories = snapshot.stories
    with_prd, without_prd = partition(stories, stories_with_prd(snapshot))
    with_design, without_design = partition(stories, stories_with_design(snapshot))
    with_rfc, without_rfc = partition(stories, stories_with_rfc(snapshot))
    with_breakdown, without_breakdown = partition(stories, stories_with_breakdown(snapshot))
    with_coding, without_coding = partition(stories, stories_with_coding(snapshot))

    return StorySummary(
        total=len(stories),
        with_prd=len(with_prd),
        with_design=len(with_design),
        with_rfc=len(with_rfc),
        with_breakdown=len(with_breakdown),
        with_coding=len(with_coding),
        without_prd=_story_refs(without_prd),
        without_design=_story_refs(without_design),
        without_rfc=_story_refs(without_rfc),
        without_breakdown=_story_refs(without_breakdown),
        without_coding=_story_refs(without_coding),
    )


def summarize_designs(snapshot: ProjectSnapshot) -> DesignSummary:
    flows = snapshot.flows
    with_stories, without_stories = partition(flows, flows_with_stories(snapshot))
    with_rfc, without_rfc = partition(flows, flows_with_rfc(snapshot))

    return DesignSummary(
        total=len(flows),
        with_stories=len(with_stories),
        with_rfc=len(with_rfc),
        without_stories=_design_refs(without_stories),
        without_rfc=_design_refs(without_rfc),
    )


def summarize_rfcs(snapshot: ProjectSnapshot) -> RFCSummary:
    rfcs = snapshot.rfcs
    approved, not_approved = partition(rfcs, rfcs_approved(snapshot))
    with_breakdown, without_breakdown = partition(rfcs, rfcs_with_breakdown(snapshot))

    return RFCSummary(
        total=len(rfcs),
        approved=len(approved),
        with_breakdown=len(with_breakdown),
        without_breakdown=[ItemRef(id=rfc.id, title=rfc.title) for rfc in without_breakdown],
        not_approved=[RFCStatusRef(id=rfc.id, title=rfc.title, status=rfc.status) for rfc in not_approved],
    )


def summarize_epics(snapshot: ProjectSnapshot) -> BreakdownSummary:
    epics = snapshot.epics
    with_rfc, without_rfc = partition(epics, epics_with_rfc(snapshot))
    with_coding, without_coding = partition(epics, epics_with_coding(snapshot))

    return BreakdownSummary(
        total=len(epics),
        with_rfc=len(with_rfc),
        with_coding=len(with_coding),
        without_rfc=[ItemRef(id=epic.id, title=epic.title) for epic in without_rfc],
        without_coding=[ItemRef(id=epic.id, title=epic.title) for epic in without_coding],
    )


def collect_gaps(
    stories: StorySummary,
    designs: DesignSummary,
    rfcs: RFCSummary,
    epics: BreakdownSummary,
) -> list[TraceabilityGap]:
    """Flatten the ``without_*`` lists into gap records in a fixed order."""
    gaps: list[TraceabilityGap] = []

    def add(gap_type: GapType, refs: Iterable[ItemRef]) -> None:
        gaps.extend(TraceabilityGap(type=gap_type, item_id=ref.id, item_title=ref.title) for ref in refs)

    def add_designs(gap_type: GapType, refs: Iterable[DesignRef]) -> None:
        gaps.extend(TraceabilityGap(type=gap_type, item_id=ref.id, item_title=ref.flow_name) for ref in refs)

    add(GapType.STORY_MISSING_PRD, stories.without_prd)
    add(GapType.STORY_MISSING_DESIGN, stories.without_design)
    add(GapType.STORY_MISSING_RFC, stories.without_rfc)
    add(GapType.STORY_MISSING_BREAKDOWN, stories.without_breakdown)
    add(GapType.STORY_MISSING_CODING, stories.without_coding)
    add_designs(GapType.DESIGN_MISSING_STORIES, designs.without_stories)
    add_designs(GapType.DESIGN_MISSING_RFC, designs.without_rfc)
    add(GapType.RFC_MISSING_BREAKDOWN, rfcs.without_breakdown)
    gaps.extend(
        TraceabilityGap(type=GapType.RFC_NOT_APPROVED, item_id=ref.id, item_title=ref.title, status=ref.status)
        for ref in rfcs.not_approved
    )
    add(GapType.EPIC_MISSING_RFC, epics.without_rfc)
    add(GapType.EPIC_MISSING_CODING, epics.without_coding)
    return gaps


def derive_completeness(snapshot: ProjectSnapshot) -> ProjectCompleteness:
    """Compute the completeness report of one project snapshot."""
    prd = snapshot.prd
    stories = summarize_stories(snapshot)
    designs = summarize_designs(snapshot)
    rfcs = summarize_rfcs(snapshot)
    epics = summarize_epics(snapshot)

    return ProjectCompleteness(
        prd=PRDSummary(exists=prd is not None, status=prd.status if prd else None, id=prd.id if prd else None),
        stories=stories,
        designs=designs,
        rfc=rfcs,
        breakdowns=epics,
        gaps=collect_gaps(stories, designs, rfcs, epics),
    )
