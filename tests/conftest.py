from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta

# Keep the app from reaching for PostgreSQL when it is imported
os.environ.setdefault("DEVFLOW_DB_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import insert, update

from devflow_api.config import DatabaseSettings, get_settings
from devflow_api.database import build_engine, get_engine, init_schema
from devflow_api.entities import tables
from devflow_api.entities.models import (
    CodingSessionCreate,
    EpicCreate,
    PRDCreate,
    ProjectCreate,
    RFCCreate,
    TaskCreate,
    TaskType,
    UserFlowCreate,
)
from devflow_api.entities.repositories import (
    CodingSessionRepository,
    EpicRepository,
    PRDRepository,
    ProjectRepository,
    RFCRepository,
    StoryUserFlowRepository,
    TaskRepository,
    UserFlowRepository,
)
from devflow_api.main import app


class PipelineSeeder:
    """Creates pipeline artifacts through the repositories.

    Rows are stamped with strictly increasing ``created_at`` values so tests
    that depend on creation order do not rely on clock resolution.
    """

    def __init__(self, engine) -> None:
        self.engine = engine
        self._clock = datetime(2024, 1, 1, tzinfo=UTC)

    def _stamp(self, repo_class, item):
        self._clock += timedelta(seconds=1)
        table = repo_class.table
        with self.engine.begin() as conn:
            conn.execute(update(table).where(table.c.id == item.id).values(created_at=self._clock))
        return repo_class(self.engine).find_by_id(item.id)

    def project(self, name: str = "Demo", base_path: str = "/tmp/demo"):
        return ProjectRepository(self.engine).create(ProjectCreate(name=name, base_path=base_path))

    def prd(self, project, vision: str = "Ship it", status: str = "draft"):
        return PRDRepository(self.engine).create(
            PRDCreate(project_id=project.id, vision=vision, status=status)
        )

    def story(self, project, title: str, prd=None, epic_id: str | None = None):
        story = TaskRepository(self.engine).create(
            TaskCreate(
                project_id=project.id,
                title=title,
                type=TaskType.STORY,
                prd_id=prd.id if prd else None,
                epic_id=epic_id,
            )
        )
        return self._stamp(TaskRepository, story)

    def task(self, project, title: str, epic, order: int):
        task = TaskRepository(self.engine).create(
            TaskCreate(project_id=project.id, title=title, epic_id=epic.id, breakdown_order=order)
        )
        return self._stamp(TaskRepository, task)

    def flow(self, project, name: str):
        flow = UserFlowRepository(self.engine).create(UserFlowCreate(project_id=project.id, flow_name=name))
        return self._stamp(UserFlowRepository, flow)

    def link(self, story, flow):
        return StoryUserFlowRepository(self.engine).create(story.id, flow.id)

    def rfc(self, project, title: str, status: str = "draft", flow=None):
        rfc = RFCRepository(self.engine).create(
            RFCCreate(project_id=project.id, title=title, status=status, user_flow_id=flow.id if flow else None)
        )
        return self._stamp(RFCRepository, rfc)

    def epic(self, project, title: str, rfc=None):
        epic = EpicRepository(self.engine).create(
            EpicCreate(project_id=project.id, title=title, rfc_id=rfc.id if rfc else None)
        )
        return self._stamp(EpicRepository, epic)

    def epic_with_dangling_rfc(self, project, title: str, rfc_id: str = "deleted-rfc"):
        """Insert an epic whose RFC reference points at nothing."""
        epic_id = tables.new_id()
        with self.engine.begin() as conn:
            conn.execute(
                insert(tables.epics).values(id=epic_id, project_id=project.id, title=title, rfc_id=rfc_id)
            )
        return EpicRepository(self.engine).find_by_id(epic_id)

    def session(self, project, story):
        return CodingSessionRepository(self.engine).create(
            CodingSessionCreate(project_id=project.id, story_id=story.id)
        )


@pytest.fixture
def engine():
    engine = build_engine(DatabaseSettings(url="sqlite://"))
    init_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def seed(engine) -> PipelineSeeder:
    return PipelineSeeder(engine)


@pytest.fixture
def client(engine):
    """Create a test client bound to the in-memory database."""
    app.dependency_overrides[get_engine] = lambda: engine
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
