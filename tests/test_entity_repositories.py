"""Tests for the entity repositories."""

import pytest

from devflow_api.entities.models import (
    EpicCreate,
    PRDCreate,
    ProjectCreate,
    RFCStatus,
    RFCUpdate,
    TaskCreate,
    TaskStatus,
    TaskType,
    TaskUpdate,
)
from devflow_api.entities.repositories import (
    EpicRepository,
    PRDRepository,
    ProjectRepository,
    RFCRepository,
    StoryUserFlowRepository,
    TaskRepository,
    UserFlowRepository,
)
from devflow_api.errors import NotFoundError, ValidationInputError


class TestProjects:
    def test_create_and_find(self, engine):
        repo = ProjectRepository(engine)
        project = repo.create(ProjectCreate(name="Demo", base_path="/srv/demo", tech_stack="python"))

        found = repo.find_by_id(project.id)

        assert found == project
        assert len(project.id) == 36
        assert project.created_at is not None

    def test_delete(self, engine, seed):
        project = seed.project()
        repo = ProjectRepository(engine)

        assert repo.delete(project.id) is True
        assert repo.find_by_id(project.id) is None
        assert repo.delete(project.id) is False


class TestPartialUpdates:
    def test_only_sent_fields_are_written(self, engine, seed):
        project = seed.project()
        story = seed.story(project, "Original", prd=seed.prd(project))
        repo = TaskRepository(engine)

        updated = repo.update(story.id, TaskUpdate(status=TaskStatus.DONE))

        assert updated.status is TaskStatus.DONE
        assert updated.title == "Original"
        assert updated.prd_id == story.prd_id

    def test_explicit_null_clears_a_field(self, engine, seed):
        project = seed.project()
        story = seed.story(project, "Story", prd=seed.prd(project))

        updated = TaskRepository(engine).update(story.id, TaskUpdate(prd_id=None))

        assert updated.prd_id is None

    def test_empty_update_returns_current_row(self, engine, seed):
        rfc = seed.rfc(seed.project(), "RFC")

        assert RFCRepository(engine).update(rfc.id, RFCUpdate()) == rfc

    def test_null_for_required_column_is_rejected(self, engine, seed):
        story = seed.story(seed.project(), "Story")

        with pytest.raises(ValidationInputError) as exc_info:
            TaskRepository(engine).update(story.id, TaskUpdate(status=None))

        assert str(exc_info.value) == "status cannot be null"
        assert TaskRepository(engine).find_by_id(story.id).status is TaskStatus.TODO

    def test_update_of_missing_row_returns_none(self, engine):
        assert RFCRepository(engine).update("missing", RFCUpdate(status=RFCStatus.APPROVED)) is None

    def test_status_update(self, engine, seed):
        rfc = seed.rfc(seed.project(), "RFC")

        updated = RFCRepository(engine).update(rfc.id, RFCUpdate(status=RFCStatus.APPROVED))

        assert updated.status is RFCStatus.APPROVED
        assert updated.title == "RFC"


class TestPRD:
    def test_one_prd_per_project(self, engine, seed):
        project = seed.project()
        seed.prd(project)

        with pytest.raises(ValidationInputError):
            PRDRepository(engine).create(PRDCreate(project_id=project.id, vision="Again"))

    def test_unknown_project_is_rejected(self, engine):
        with pytest.raises(NotFoundError):
            PRDRepository(engine).create(PRDCreate(project_id="missing", vision="Vision"))


class TestTasks:
    def test_find_by_type(self, engine, seed):
        project = seed.project()
        story = seed.story(project, "Story")
        TaskRepository(engine).create(TaskCreate(project_id=project.id, title="Plain task"))

        stories = TaskRepository(engine).find_by_project_id_and_type(project.id, TaskType.STORY)

        assert [task.id for task in stories] == [story.id]

    def test_epic_tasks_follow_breakdown_order(self, engine, seed):
        project = seed.project()
        epic = seed.epic(project, "Epic")
        third = seed.task(project, "Third", epic, order=3)
        first = seed.task(project, "First", epic, order=1)
        second = seed.task(project, "Second", epic, order=2)

        tasks = TaskRepository(engine).find_by_epic_id(epic.id, TaskType.TASK)

        assert [task.id for task in tasks] == [first.id, second.id, third.id]

    def test_estimated_days_is_capped(self):
        with pytest.raises(ValueError):
            TaskCreate(project_id="p", title="Too big", estimated_days=4)


class TestStoryUserFlows:
    def test_linking_is_idempotent(self, engine, seed):
        project = seed.project()
        story = seed.story(project, "Story")
        flow = seed.flow(project, "Flow")
        repo = StoryUserFlowRepository(engine)

        first = repo.create(story.id, flow.id)
        second = repo.create(story.id, flow.id)

        assert first.id == second.id
        assert len(repo.find_by_user_flow_id(flow.id)) == 1

    def test_flows_for_story_in_creation_order(self, engine, seed):
        project = seed.project()
        story = seed.story(project, "Story")
        early = seed.flow(project, "Early")
        late = seed.flow(project, "Late")
        seed.link(story, late)
        seed.link(story, early)

        flows = UserFlowRepository(engine).find_by_story_id(story.id)

        assert [flow.id for flow in flows] == [early.id, late.id]

    def test_unlink(self, engine, seed):
        project = seed.project()
        story = seed.story(project, "Story")
        flow = seed.flow(project, "Flow")
        seed.link(story, flow)
        repo = StoryUserFlowRepository(engine)

        assert repo.delete_link(story.id, flow.id) is True
        assert repo.delete_link(story.id, flow.id) is False
        assert repo.find_by_user_flow_id(flow.id) == []

    def test_bulk_unlink(self, engine, seed):
        project = seed.project()
        story = seed.story(project, "Story")
        seed.link(story, seed.flow(project, "One"))
        seed.link(story, seed.flow(project, "Two"))

        assert StoryUserFlowRepository(engine).delete_by_story_id(story.id) == 2


class TestEpics:
    def test_rfc_must_exist(self, engine, seed):
        project = seed.project()

        with pytest.raises(NotFoundError) as exc_info:
            EpicRepository(engine).create(EpicCreate(project_id=project.id, title="Epic", rfc_id="missing"))

        assert str(exc_info.value) == "RFC not found"

    def test_rfc_must_belong_to_project(self, engine, seed):
        project = seed.project("Mine")
        foreign_rfc = seed.rfc(seed.project("Theirs"), "Foreign RFC")

        with pytest.raises(ValidationInputError):
            EpicRepository(engine).create(EpicCreate(project_id=project.id, title="Epic", rfc_id=foreign_rfc.id))

    def test_find_by_rfc(self, engine, seed):
        project = seed.project()
        rfc = seed.rfc(project, "RFC")
        epic = seed.epic(project, "Epic", rfc=rfc)
        seed.epic(project, "Other")

        assert [e.id for e in EpicRepository(engine).find_by_rfc_id(rfc.id)] == [epic.id]
