"""
Data gathering for the traceability engine.

``load_project_snapshot`` issues one read per stage and hands the rows to
the pure derivation functions. The queries are independent reads on one
connection; they are not wrapped in a transaction, so a concurrent write
between two of them can make a report slightly stale.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.engine import Connection, Engine

from ..database import connect
from ..entities import tables
from ..entities.models import PRD, RFC, CodingSession, Epic, Task, TaskType, UserFlow
from ..errors import NotFoundError
from ..logging import log_traceability_operation
from .derivation import (
    EpicRecord,
    FlowRecord,
    PRDRecord,
    ProjectSnapshot,
    RFCRecord,
    StoryRecord,
    derive_completeness,
)
from .models import GapType, ProjectCompleteness, StoryTraceability, TraceabilityGap

logger = logging.getLogger(__name__)


class TraceabilityRepository:
    """Reads the artifacts of a project and derives their link coverage."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def get_project_completeness(self, project_id: str) -> ProjectCompleteness:
        snapshot = self.load_project_snapshot(project_id)
        completeness = derive_completeness(snapshot)
        log_traceability_operation(
            logger,
            "Project completeness computed",
            project_id=project_id,
            level=logging.DEBUG,
            stories=completeness.stories.total,
            gaps=len(completeness.gaps),
        )
        return completeness

    def load_project_snapshot(self, project_id: str) -> ProjectSnapshot:
        with connect(self._engine) as conn:
            prd = self._fetch_prd(conn, project_id)
            stories = self._fetch_stories(conn, project_id)
            story_ids = [story.id for story in stories]
            flows = self._fetch_flows(conn, project_id)
            flow_ids = [flow.id for flow in flows]
            rfcs = self._fetch_rfcs(conn, project_id)
            epics = self._fetch_epics(conn, project_id)
            epic_tasks = self._fetch_epic_tasks(conn, [epic.id for epic in epics])

            return ProjectSnapshot(
                prd=prd,
                stories=stories,
                flows=flows,
                rfcs=rfcs,
                epics=epics,
                story_flow_links=self._fetch_story_flow_links(conn, story_ids),
                flows_with_rfc=self._fetch_flows_with_rfc(conn, flow_ids),
                rfcs_with_epic=self._fetch_rfcs_with_epic(conn, [rfc.id for rfc in rfcs]),
                epic_tasks=epic_tasks,
                tasks_with_sessions=self._fetch_tasks_with_sessions(conn, set(story_ids) | set(epic_tasks)),
            )

    @staticmethod
    def _fetch_prd(conn: Connection, project_id: str) -> PRDRecord | None:
        prd = tables.prd_documents
        row = conn.execute(
            select(prd.c.id, prd.c.status).where(prd.c.project_id == project_id).limit(1)
        ).first()
        return PRDRecord(id=row.id, status=row.status) if row else None

    @staticmethod
    def _fetch_stories(conn: Connection, project_id: str) -> tuple[StoryRecord, ...]:
        t = tables.tasks
        rows = conn.execute(
            select(t.c.id, t.c.title, t.c.prd_id, t.c.epic_id)
            .where(t.c.project_id == project_id, t.c.type == TaskType.STORY.value)
            .order_by(t.c.created_at, t.c.id)
        ).all()
        return tuple(
            StoryRecord(id=row.id, title=row.title, prd_id=row.prd_id, epic_id=row.epic_id) for row in rows
        )

    @staticmethod
    def _fetch_flows(conn: Connection, project_id: str) -> tuple[FlowRecord, ...]:
        uf = tables.user_flows
        rows = conn.execute(
            select(uf.c.id, uf.c.flow_name)
            .where(uf.c.project_id == project_id)
            .order_by(uf.c.created_at, uf.c.id)
        ).all()
        return tuple(FlowRecord(id=row.id, flow_name=row.flow_name) for row in rows)

    @staticmethod
    def _fetch_rfcs(conn: Connection, project_id: str) -> tuple[RFCRecord, ...]:
        r = tables.rfc_documents
        rows = conn.execute(
            select(r.c.id, r.c.title, r.c.status, r.c.user_flow_id)
            .where(r.c.project_id == project_id)
            .order_by(r.c.created_at, r.c.id)
        ).all()
        return tuple(
            RFCRecord(id=row.id, title=row.title, status=row.status, user_flow_id=row.user_flow_id)
            for row in rows
        )

    @staticmethod
    def _fetch_epics(conn: Connection, project_id: str) -> tuple[EpicRecord, ...]:
        e = tables.epics
        rows = conn.execute(
            select(e.c.id, e.c.title, e.c.rfc_id)
            .where(e.c.project_id == project_id)
            .order_by(e.c.created_at, e.c.id)
        ).all()
        return tuple(EpicRecord(id=row.id, title=row.title, rfc_id=row.rfc_id) for row in rows)

    @staticmethod
    def _fetch_story_flow_links(conn: Connection, story_ids: list[str]) -> frozenset[tuple[str, str]]:
        if not story_ids:
            return frozenset()
        links = tables.story_user_flows
        rows = conn.execute(
            select(links.c.story_id, links.c.user_flow_id).where(links.c.story_id.in_(story_ids))
        ).all()
        return frozenset((row.story_id, row.user_flow_id) for row in rows)

    @staticmethod
    def _fetch_flows_with_rfc(conn: Connection, flow_ids: list[str]) -> frozenset[str]:
        if not flow_ids:
            return frozenset()
        r = tables.rfc_documents
        rows = conn.execute(
            select(r.c.user_flow_id).distinct().where(r.c.user_flow_id.in_(flow_ids))
        ).all()
        return frozenset(row.user_flow_id for row in rows)

    @staticmethod
    def _fetch_rfcs_with_epic(conn: Connection, rfc_ids: list[str]) -> frozenset[str]:
        if not rfc_ids:
            return frozenset()
        e = tables.epics
        rows = conn.execute(select(e.c.rfc_id).distinct().where(e.c.rfc_id.in_(rfc_ids))).all()
        return frozenset(row.rfc_id for row in rows)

    @staticmethod
    def _fetch_epic_tasks(conn: Connection, epic_ids: list[str]) -> dict[str, str]:
        if not epic_ids:
            return {}
        t = tables.tasks
        rows = conn.execute(select(t.c.id, t.c.epic_id).where(t.c.epic_id.in_(epic_ids))).all()
        return {row.id: row.epic_id for row in rows}

    @staticmethod
    def _fetch_tasks_with_sessions(conn: Connection, task_ids: set[str]) -> frozenset[str]:
        if not task_ids:
            return frozenset()
        cs = tables.coding_sessions
        rows = conn.execute(
            select(cs.c.story_id).distinct().where(cs.c.story_id.in_(sorted(task_ids)))
        ).all()
        return frozenset(row.story_id for row in rows)

    def get_story_traceability(self, story_id: str) -> StoryTraceability:
        """Walk the forward links of one story.

        Lookups run in chain order and each is conditional on the previous
        ones. The design-derived RFC wins over the epic-derived one; among
        several linked flows the earliest-created flow with an RFC wins.
        """
        gaps: list[TraceabilityGap] = []

        def gap(gap_type: GapType) -> None:
            gaps.append(TraceabilityGap(type=gap_type, item_id=story.id, item_title=story.title))

        with connect(self._engine) as conn:
            row = conn.execute(select(tables.tasks).where(tables.tasks.c.id == story_id)).first()
            if row is None:
                raise NotFoundError("Story", story_id)
            story = Task.from_row(row)

            prd = None
            if story.prd_id:
                prd_row = conn.execute(
                    select(tables.prd_documents).where(tables.prd_documents.c.id == story.prd_id)
                ).first()
                prd = PRD.from_row(prd_row) if prd_row else None
            else:
                gap(GapType.STORY_MISSING_PRD)

            designs = self._fetch_story_designs(conn, story.id)
            if not designs:
                gap(GapType.STORY_MISSING_DESIGN)

            rfc = self._find_design_rfc(conn, designs)

            epic = None
            breakdown_tasks: list[Task] = []
            if story.epic_id:
                epic_row = conn.execute(select(tables.epics).where(tables.epics.c.id == story.epic_id)).first()
                if epic_row:
                    epic = Epic.from_row(epic_row)
                    if rfc is None and epic.rfc_id:
                        rfc_row = conn.execute(
                            select(tables.rfc_documents).where(tables.rfc_documents.c.id == epic.rfc_id)
                        ).first()
                        rfc = RFC.from_row(rfc_row) if rfc_row else None
                    breakdown_tasks = self._fetch_breakdown_tasks(conn, epic.id)
            else:
                gap(GapType.STORY_MISSING_BREAKDOWN)

            if rfc is None:
                gap(GapType.STORY_MISSING_RFC)

            sessions = self._fetch_sessions(conn, story.id)
            if not sessions:
                gap(GapType.STORY_MISSING_CODING)

        log_traceability_operation(
            logger, "Story traceability computed", story_id=story_id, level=logging.DEBUG, gaps=len(gaps)
        )

        return StoryTraceability(
            story=story,
            prd=prd,
            designs=designs or None,
            rfc=rfc,
            epic=epic,
            breakdown_tasks=breakdown_tasks or None,
            coding_sessions=sessions or None,
            gaps=gaps,
        )

    @staticmethod
    def _fetch_story_designs(conn: Connection, story_id: str) -> list[UserFlow]:
        uf = tables.user_flows
        links = tables.story_user_flows
        rows = conn.execute(
            select(uf)
            .join(links, links.c.user_flow_id == uf.c.id)
            .where(links.c.story_id == story_id)
            .order_by(uf.c.created_at, uf.c.id)
        ).all()
        return [UserFlow.from_row(row) for row in rows]

    @staticmethod
    def _find_design_rfc(conn: Connection, designs: list[UserFlow]) -> RFC | None:
        r = tables.rfc_documents
        for design in designs:
            row = conn.execute(
                select(r).where(r.c.user_flow_id == design.id).order_by(r.c.created_at, r.c.id).limit(1)
            ).first()
            if row:
                return RFC.from_row(row)
        return None

    @staticmethod
    def _fetch_breakdown_tasks(conn: Connection, epic_id: str) -> list[Task]:
        t = tables.tasks
        rows = conn.execute(
            select(t)
            .where(t.c.epic_id == epic_id, t.c.type == TaskType.TASK.value)
            .order_by(t.c.breakdown_order, t.c.created_at, t.c.id)
        ).all()
        return [Task.from_row(row) for row in rows]

    @staticmethod
    def _fetch_sessions(conn: Connection, story_id: str) -> list[CodingSession]:
        cs = tables.coding_sessions
        rows = conn.execute(
            select(cs).where(cs.c.story_id == story_id).order_by(cs.c.created_at, cs.c.id)
        ).all()
        return [CodingSession.from_row(row) for row in rows]
