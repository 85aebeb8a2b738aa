"""
Repository classes for the pipeline artifacts.

One class per entity; every query is a parameterized SQLAlchemy Core
statement and every row is mapped onto the matching pydantic model.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy import Table, delete, insert, select, update
from sqlalchemy.engine import Engine

from ..database import connect, transaction
from ..errors import NotFoundError, ValidationInputError
from . import tables
from .models import (
    PRD,
    RFC,
    CodingSession,
    CodingSessionCreate,
    CodingSessionUpdate,
    EntityModel,
    Epic,
    EpicCreate,
    EpicUpdate,
    PRDCreate,
    PRDUpdate,
    Project,
    ProjectCreate,
    ProjectUpdate,
    RFCCreate,
    RFCUpdate,
    StoryUserFlow,
    Task,
    TaskCreate,
    TaskType,
    TaskUpdate,
    UserFlow,
    UserFlowCreate,
    UserFlowUpdate,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=EntityModel)


def column_values(data: BaseModel, *, only_set: bool = False) -> dict[str, Any]:
    """Dump a request model into column values, unwrapping enums."""
    values = data.model_dump(exclude_unset=only_set)
    return {key: value.value if isinstance(value, Enum) else value for key, value in values.items()}


class BaseRepository(Generic[ModelT]):
    """Shared CRUD plumbing for a single table."""

    table: Table
    model: type[ModelT]

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def find_by_id(self, item_id: str) -> ModelT | None:
        with connect(self._engine) as conn:
            row = conn.execute(select(self.table).where(self.table.c.id == item_id)).first()
        return self.model.from_row(row) if row else None

    def _fetch_all(self, statement) -> list[ModelT]:
        with connect(self._engine) as conn:
            rows = conn.execute(statement).all()
        return [self.model.from_row(row) for row in rows]

    def _insert(self, values: dict[str, Any]) -> ModelT:
        values.setdefault("id", tables.new_id())
        with transaction(self._engine) as conn:
            conn.execute(insert(self.table).values(**values))
            row = conn.execute(select(self.table).where(self.table.c.id == values["id"])).one()
        logger.debug(f"Inserted {self.table.name} row {values['id']}")
        return self.model.from_row(row)

    def update(self, item_id: str, data: BaseModel) -> ModelT | None:
        values = column_values(data, only_set=True)
        if not values:
            return self.find_by_id(item_id)

        for key, value in values.items():
            if value is None and not self.table.c[key].nullable:
                raise ValidationInputError(f"{key} cannot be null")

        if "updated_at" in self.table.c:
            values["updated_at"] = tables.utcnow()

        with transaction(self._engine) as conn:
            result = conn.execute(update(self.table).where(self.table.c.id == item_id).values(**values))
            if result.rowcount == 0:
                return None
            row = conn.execute(select(self.table).where(self.table.c.id == item_id)).one()
        return self.model.from_row(row)

    def delete(self, item_id: str) -> bool:
        with transaction(self._engine) as conn:
            result = conn.execute(delete(self.table).where(self.table.c.id == item_id))
        return result.rowcount > 0

    def _require_project(self, project_id: str) -> None:
        with connect(self._engine) as conn:
            exists = conn.execute(
                select(tables.projects.c.id).where(tables.projects.c.id == project_id)
            ).first()
        if not exists:
            raise NotFoundError("Project", project_id)


class ProjectRepository(BaseRepository[Project]):
    table = tables.projects
    model = Project

    def find_all(self) -> list[Project]:
        return self._fetch_all(select(self.table).order_by(self.table.c.created_at.desc()))

    def create(self, data: ProjectCreate) -> Project:
        return self._insert(column_values(data))

    def update(self, item_id: str, data: ProjectUpdate) -> Project | None:
        return super().update(item_id, data)


class PRDRepository(BaseRepository[PRD]):
    table = tables.prd_documents
    model = PRD

    def find_by_project_id(self, project_id: str) -> PRD | None:
        with connect(self._engine) as conn:
            row = conn.execute(
                select(self.table).where(self.table.c.project_id == project_id).limit(1)
            ).first()
        return PRD.from_row(row) if row else None

    def create(self, data: PRDCreate) -> PRD:
        self._require_project(data.project_id)
        if self.find_by_project_id(data.project_id):
            raise ValidationInputError(f"Project {data.project_id} already has a PRD")
        return self._insert(column_values(data))

    def update(self, item_id: str, data: PRDUpdate) -> PRD | None:
        return super().update(item_id, data)


class TaskRepository(BaseRepository[Task]):
    table = tables.tasks
    model = Task

    def find_by_project_id(self, project_id: str) -> list[Task]:
        return self._fetch_all(
            select(self.table)
            .where(self.table.c.project_id == project_id)
            .order_by(self.table.c.priority.desc(), self.table.c.created_at.desc())
        )

    def find_by_project_id_and_type(self, project_id: str, task_type: TaskType) -> list[Task]:
        return self._fetch_all(
            select(self.table)
            .where(self.table.c.project_id == project_id, self.table.c.type == task_type.value)
            .order_by(self.table.c.priority.desc(), self.table.c.created_at.desc())
        )

    def find_by_epic_id(self, epic_id: str, task_type: TaskType | None = None) -> list[Task]:
        statement = select(self.table).where(self.table.c.epic_id == epic_id)
        if task_type is not None:
            statement = statement.where(self.table.c.type == task_type.value)
        return self._fetch_all(
            statement.order_by(
                self.table.c.breakdown_order, self.table.c.created_at, self.table.c.id
            )
        )

    def create(self, data: TaskCreate) -> Task:
        self._require_project(data.project_id)
        return self._insert(column_values(data))

    def update(self, item_id: str, data: TaskUpdate) -> Task | None:
        return super().update(item_id, data)


class UserFlowRepository(BaseRepository[UserFlow]):
    table = tables.user_flows
    model = UserFlow

    def find_by_project_id(self, project_id: str) -> list[UserFlow]:
        return self._fetch_all(
            select(self.table)
            .where(self.table.c.project_id == project_id)
            .order_by(self.table.c.created_at, self.table.c.id)
        )

    def find_by_story_id(self, story_id: str) -> list[UserFlow]:
        """Flows linked to a story, earliest-created flow first."""
        links = tables.story_user_flows
        return self._fetch_all(
            select(self.table)
            .join(links, links.c.user_flow_id == self.table.c.id)
            .where(links.c.story_id == story_id)
            .order_by(self.table.c.created_at, self.table.c.id)
        )

    def create(self, data: UserFlowCreate) -> UserFlow:
        self._require_project(data.project_id)
        return self._insert(column_values(data))

    def update(self, item_id: str, data: UserFlowUpdate) -> UserFlow | None:
        return super().update(item_id, data)


class StoryUserFlowRepository(BaseRepository[StoryUserFlow]):
    table = tables.story_user_flows
    model = StoryUserFlow

    def create(self, story_id: str, user_flow_id: str) -> StoryUserFlow:
        """Link a story to a flow; linking an existing pair returns that link."""
        existing = self._find_pair(story_id, user_flow_id)
        if existing:
            return existing
        return self._insert({"story_id": story_id, "user_flow_id": user_flow_id})

    def _find_pair(self, story_id: str, user_flow_id: str) -> StoryUserFlow | None:
        with connect(self._engine) as conn:
            row = conn.execute(
                select(self.table).where(
                    self.table.c.story_id == story_id,
                    self.table.c.user_flow_id == user_flow_id,
                )
            ).first()
        return StoryUserFlow.from_row(row) if row else None

    def find_by_user_flow_id(self, user_flow_id: str) -> list[StoryUserFlow]:
        return self._fetch_all(
            select(self.table)
            .where(self.table.c.user_flow_id == user_flow_id)
            .order_by(self.table.c.created_at)
        )

    def delete_link(self, story_id: str, user_flow_id: str) -> bool:
        with transaction(self._engine) as conn:
            result = conn.execute(
                delete(self.table).where(
                    self.table.c.story_id == story_id,
                    self.table.c.user_flow_id == user_flow_id,
                )
            )
        return result.rowcount > 0

    def delete_by_story_id(self, story_id: str) -> int:
        with transaction(self._engine) as conn:
            result = conn.execute(delete(self.table).where(self.table.c.story_id == story_id))
        return result.rowcount

    def delete_by_user_flow_id(self, user_flow_id: str) -> int:
        with transaction(self._engine) as conn:
            result = conn.execute(delete(self.table).where(self.table.c.user_flow_id == user_flow_id))
        return result.rowcount


class RFCRepository(BaseRepository[RFC]):
    table = tables.rfc_documents
    model = RFC

    def find_by_project_id(self, project_id: str) -> list[RFC]:
        return self._fetch_all(
            select(self.table)
            .where(self.table.c.project_id == project_id)
            .order_by(self.table.c.created_at.desc())
        )

    def find_by_user_flow_id(self, user_flow_id: str) -> list[RFC]:
        """RFCs derived from a flow, earliest first."""
        return self._fetch_all(
            select(self.table)
            .where(self.table.c.user_flow_id == user_flow_id)
            .order_by(self.table.c.created_at, self.table.c.id)
        )

    def create(self, data: RFCCreate) -> RFC:
        self._require_project(data.project_id)
        return self._insert(column_values(data))

    def update(self, item_id: str, data: RFCUpdate) -> RFC | None:
        return super().update(item_id, data)


class EpicRepository(BaseRepository[Epic]):
    table = tables.epics
    model = Epic

    def find_by_project_id(self, project_id: str) -> list[Epic]:
        return self._fetch_all(
            select(self.table)
            .where(self.table.c.project_id == project_id)
            .order_by(self.table.c.order_index, self.table.c.created_at.desc())
        )

    def find_by_rfc_id(self, rfc_id: str) -> list[Epic]:
        return self._fetch_all(
            select(self.table)
            .where(self.table.c.rfc_id == rfc_id)
            .order_by(self.table.c.order_index, self.table.c.created_at.desc())
        )

    def create(self, data: EpicCreate) -> Epic:
        self._require_project(data.project_id)

        if data.rfc_id:
            with connect(self._engine) as conn:
                rfc = conn.execute(
                    select(tables.rfc_documents.c.id, tables.rfc_documents.c.project_id)
                    .where(tables.rfc_documents.c.id == data.rfc_id)
                ).first()
            if not rfc:
                raise NotFoundError("RFC", data.rfc_id)
            if rfc.project_id != data.project_id:
                raise ValidationInputError(
                    f"RFC {data.rfc_id} does not belong to project {data.project_id}"
                )

        return self._insert(column_values(data))

    def update(self, item_id: str, data: EpicUpdate) -> Epic | None:
        return super().update(item_id, data)


class CodingSessionRepository(BaseRepository[CodingSession]):
    table = tables.coding_sessions
    model = CodingSession

    def find_by_project_id(self, project_id: str) -> list[CodingSession]:
        return self._fetch_all(
            select(self.table)
            .where(self.table.c.project_id == project_id)
            .order_by(self.table.c.created_at.desc())
        )

    def find_by_story_id(self, story_id: str) -> list[CodingSession]:
        return self._fetch_all(
            select(self.table)
            .where(self.table.c.story_id == story_id)
            .order_by(self.table.c.created_at, self.table.c.id)
        )

    def create(self, data: CodingSessionCreate) -> CodingSession:
        self._require_project(data.project_id)
        return self._insert(column_values(data))

    def update(self, item_id: str, data: CodingSessionUpdate) -> CodingSession | None:
        return super().update(item_id, data)
