"""
FastAPI router for the pipeline artifacts.

Thin CRUD over the entity repositories; the pipeline stage services that
generate content are not part of this backend, so artifacts are created
and linked here directly.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.engine import Engine

from ..database import get_engine
from ..errors import DatabaseError, NotFoundError, ValidationInputError
from ..schemas import DeleteResponse, LinkUserFlowRequest
from .models import (
    PRD,
    RFC,
    CodingSession,
    CodingSessionCreate,
    CodingSessionUpdate,
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
from .repositories import (
    CodingSessionRepository,
    EpicRepository,
    PRDRepository,
    ProjectRepository,
    RFCRepository,
    StoryUserFlowRepository,
    TaskRepository,
    UserFlowRepository,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["entities"])

EngineDep = Annotated[Engine, Depends(get_engine)]


@contextmanager
def http_errors() -> Iterator[None]:
    """Map store errors onto HTTP status codes."""
    try:
        yield
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ValidationInputError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except DatabaseError as exc:
        logger.error(f"Database error: {exc}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc


def found(item, entity: str):
    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{entity} not found")
    return item


def deleted(removed: bool, entity: str) -> DeleteResponse:
    found(True if removed else None, entity)
    return DeleteResponse(success=True, message=f"{entity} deleted")


# Projects

@router.post("/projects", response_model=Project, status_code=status.HTTP_201_CREATED)
def create_project(payload: ProjectCreate, engine: EngineDep) -> Project:
    with http_errors():
        project = ProjectRepository(engine).create(payload)
    logger.info("Project created", extra={"project_id": project.id})
    return project


@router.get("/projects", response_model=list[Project])
def list_projects(engine: EngineDep) -> list[Project]:
    with http_errors():
        return ProjectRepository(engine).find_all()


@router.get("/projects/{project_id}", response_model=Project)
def get_project(project_id: str, engine: EngineDep) -> Project:
    with http_errors():
        return found(ProjectRepository(engine).find_by_id(project_id), "Project")


@router.patch("/projects/{project_id}", response_model=Project)
def update_project(project_id: str, payload: ProjectUpdate, engine: EngineDep) -> Project:
    with http_errors():
        return found(ProjectRepository(engine).update(project_id, payload), "Project")


@router.delete("/projects/{project_id}", response_model=DeleteResponse)
def delete_project(project_id: str, engine: EngineDep) -> DeleteResponse:
    with http_errors():
        return deleted(ProjectRepository(engine).delete(project_id), "Project")


# PRD

@router.post("/prd", response_model=PRD, status_code=status.HTTP_201_CREATED)
def create_prd(payload: PRDCreate, engine: EngineDep) -> PRD:
    with http_errors():
        return PRDRepository(engine).create(payload)


@router.get("/projects/{project_id}/prd", response_model=PRD)
def get_project_prd(project_id: str, engine: EngineDep) -> PRD:
    with http_errors():
        return found(PRDRepository(engine).find_by_project_id(project_id), "PRD")


@router.patch("/prd/{prd_id}", response_model=PRD)
def update_prd(prd_id: str, payload: PRDUpdate, engine: EngineDep) -> PRD:
    with http_errors():
        return found(PRDRepository(engine).update(prd_id, payload), "PRD")


# Tasks and stories

@router.post("/tasks", response_model=Task, status_code=status.HTTP_201_CREATED)
def create_task(payload: TaskCreate, engine: EngineDep) -> Task:
    with http_errors():
        return TaskRepository(engine).create(payload)


@router.get("/projects/{project_id}/tasks", response_model=list[Task])
def list_tasks(project_id: str, engine: EngineDep, type: TaskType | None = None) -> list[Task]:
    repo = TaskRepository(engine)
    with http_errors():
        if type is None:
            return repo.find_by_project_id(project_id)
        return repo.find_by_project_id_and_type(project_id, type)


@router.get("/tasks/{task_id}", response_model=Task)
def get_task(task_id: str, engine: EngineDep) -> Task:
    with http_errors():
        return found(TaskRepository(engine).find_by_id(task_id), "Task")


@router.patch("/tasks/{task_id}", response_model=Task)
def update_task(task_id: str, payload: TaskUpdate, engine: EngineDep) -> Task:
    with http_errors():
        return found(TaskRepository(engine).update(task_id, payload), "Task")


@router.delete("/tasks/{task_id}", response_model=DeleteResponse)
def delete_task(task_id: str, engine: EngineDep) -> DeleteResponse:
    with http_errors():
        removed = TaskRepository(engine).delete(task_id)
        if removed:
            StoryUserFlowRepository(engine).delete_by_story_id(task_id)
        return deleted(removed, "Task")


@router.get("/epics/{epic_id}/tasks", response_model=list[Task])
def list_epic_tasks(epic_id: str, engine: EngineDep) -> list[Task]:
    with http_errors():
        return TaskRepository(engine).find_by_epic_id(epic_id, TaskType.TASK)


# Design

@router.post("/user-flows", response_model=UserFlow, status_code=status.HTTP_201_CREATED)
def create_user_flow(payload: UserFlowCreate, engine: EngineDep) -> UserFlow:
    with http_errors():
        return UserFlowRepository(engine).create(payload)


@router.get("/projects/{project_id}/user-flows", response_model=list[UserFlow])
def list_user_flows(project_id: str, engine: EngineDep) -> list[UserFlow]:
    with http_errors():
        return UserFlowRepository(engine).find_by_project_id(project_id)


@router.patch("/user-flows/{user_flow_id}", response_model=UserFlow)
def update_user_flow(user_flow_id: str, payload: UserFlowUpdate, engine: EngineDep) -> UserFlow:
    with http_errors():
        return found(UserFlowRepository(engine).update(user_flow_id, payload), "User flow")


@router.delete("/user-flows/{user_flow_id}", response_model=DeleteResponse)
def delete_user_flow(user_flow_id: str, engine: EngineDep) -> DeleteResponse:
    with http_errors():
        removed = UserFlowRepository(engine).delete(user_flow_id)
        if removed:
            StoryUserFlowRepository(engine).delete_by_user_flow_id(user_flow_id)
        return deleted(removed, "User flow")


@router.get("/user-flows/{user_flow_id}/rfcs", response_model=list[RFC])
def list_user_flow_rfcs(user_flow_id: str, engine: EngineDep) -> list[RFC]:
    """RFCs derived from a flow, earliest first."""
    with http_errors():
        return RFCRepository(engine).find_by_user_flow_id(user_flow_id)


@router.get("/stories/{story_id}/user-flows", response_model=list[UserFlow])
def list_story_user_flows(story_id: str, engine: EngineDep) -> list[UserFlow]:
    with http_errors():
        return UserFlowRepository(engine).find_by_story_id(story_id)


@router.post(
    "/stories/{story_id}/user-flows",
    response_model=StoryUserFlow,
    status_code=status.HTTP_201_CREATED,
)
def link_story_user_flow(story_id: str, payload: LinkUserFlowRequest, engine: EngineDep) -> StoryUserFlow:
    with http_errors():
        found(TaskRepository(engine).find_by_id(story_id), "Story")
        found(UserFlowRepository(engine).find_by_id(payload.user_flow_id), "User flow")
        return StoryUserFlowRepository(engine).create(story_id, payload.user_flow_id)


@router.delete("/stories/{story_id}/user-flows/{user_flow_id}", response_model=DeleteResponse)
def unlink_story_user_flow(story_id: str, user_flow_id: str, engine: EngineDep) -> DeleteResponse:
    with http_errors():
        return deleted(StoryUserFlowRepository(engine).delete_link(story_id, user_flow_id), "Story user flow link")


# RFC

@router.post("/rfcs", response_model=RFC, status_code=status.HTTP_201_CREATED)
def create_rfc(payload: RFCCreate, engine: EngineDep) -> RFC:
    with http_errors():
        return RFCRepository(engine).create(payload)


@router.get("/projects/{project_id}/rfcs", response_model=list[RFC])
def list_rfcs(project_id: str, engine: EngineDep) -> list[RFC]:
    with http_errors():
        return RFCRepository(engine).find_by_project_id(project_id)


@router.get("/rfcs/{rfc_id}", response_model=RFC)
def get_rfc(rfc_id: str, engine: EngineDep) -> RFC:
    with http_errors():
        return found(RFCRepository(engine).find_by_id(rfc_id), "RFC")


@router.get("/rfcs/{rfc_id}/epics", response_model=list[Epic])
def list_rfc_epics(rfc_id: str, engine: EngineDep) -> list[Epic]:
    with http_errors():
        return EpicRepository(engine).find_by_rfc_id(rfc_id)


@router.patch("/rfcs/{rfc_id}", response_model=RFC)
def update_rfc(rfc_id: str, payload: RFCUpdate, engine: EngineDep) -> RFC:
    with http_errors():
        return found(RFCRepository(engine).update(rfc_id, payload), "RFC")


# Breakdown

@router.post("/epics", response_model=Epic, status_code=status.HTTP_201_CREATED)
def create_epic(payload: EpicCreate, engine: EngineDep) -> Epic:
    with http_errors():
        return EpicRepository(engine).create(payload)


@router.get("/projects/{project_id}/epics", response_model=list[Epic])
def list_epics(project_id: str, engine: EngineDep) -> list[Epic]:
    with http_errors():
        return EpicRepository(engine).find_by_project_id(project_id)


@router.patch("/epics/{epic_id}", response_model=Epic)
def update_epic(epic_id: str, payload: EpicUpdate, engine: EngineDep) -> Epic:
    with http_errors():
        return found(EpicRepository(engine).update(epic_id, payload), "Epic")


# Coding

@router.post("/coding-sessions", response_model=CodingSession, status_code=status.HTTP_201_CREATED)
def create_coding_session(payload: CodingSessionCreate, engine: EngineDep) -> CodingSession:
    with http_errors():
        found(TaskRepository(engine).find_by_id(payload.story_id), "Story")
        return CodingSessionRepository(engine).create(payload)


@router.get("/stories/{story_id}/coding-sessions", response_model=list[CodingSession])
def list_coding_sessions(story_id: str, engine: EngineDep) -> list[CodingSession]:
    with http_errors():
        return CodingSessionRepository(engine).find_by_story_id(story_id)


@router.patch("/coding-sessions/{session_id}", response_model=CodingSession)
def update_coding_session(session_id: str, payload: CodingSessionUpdate, engine: EngineDep) -> CodingSession:
    with http_errors():
        return found(CodingSessionRepository(engine).update(session_id, payload), "Coding session")
