"""
Tests for the traceability router endpoints.

Exercises the response shapes, the ``{"error": ...}`` bodies and the status
codes of every route under ``/api/traceability``.
"""

from unittest.mock import Mock

from devflow_api.main import app
from devflow_api.traceability.router import get_traceability_service


class TestProjectTraceability:
    def test_empty_project(self, client, seed):
        project = seed.project()

        response = client.get(f"/api/traceability/project/{project.id}")

        assert response.status_code == 200
        data = response.json()
        assert data["project_id"] == project.id
        assert data["completeness"]["prd"]["exists"] is False
        assert data["completeness"]["overall"] == 0
        assert data["gaps"] == []
        assert data["recommendations"][0]["action"] == "Create PRD document"
        assert data["flow_status"]["coding"] == "not_started"

    def test_gaps_are_rendered_with_missing_text(self, client, seed):
        project = seed.project()
        story = seed.story(project, "Story")
        rfc = seed.rfc(project, "RFC", status="review")

        data = client.get(f"/api/traceability/project/{project.id}").json()
        gaps = data["gaps"]

        assert gaps[0] == {
            "type": "story_missing_prd",
            "item_id": story.id,
            "item_title": "Story",
            "missing": "PRD link",
        }
        not_approved = next(gap for gap in gaps if gap["type"] == "rfc_not_approved")
        assert not_approved["item_id"] == rfc.id
        assert not_approved["missing"] == "Approval (current status: review)"

    def test_completeness_counts(self, client, seed):
        project = seed.project()
        prd = seed.prd(project)
        seed.story(project, "Linked", prd=prd)
        seed.story(project, "Unlinked")

        stories = client.get(f"/api/traceability/project/{project.id}").json()["completeness"]["stories"]

        assert stories["total"] == 2
        assert stories["with_prd"] == 1
        assert [ref["title"] for ref in stories["without_prd"]] == ["Unlinked"]

    def test_service_failure_maps_to_500(self, client):
        failing = Mock()
        failing.get_project_dashboard.side_effect = RuntimeError("connection refused")
        app.dependency_overrides[get_traceability_service] = lambda: failing

        response = client.get("/api/traceability/project/p1")

        assert response.status_code == 500
        assert response.json() == {"error": "connection refused"}


class TestStoryTraceability:
    def test_unknown_story_is_500(self, client):
        response = client.get("/api/traceability/story/no-such-story")

        assert response.status_code == 500
        assert response.json() == {"error": "Story not found"}

    def test_bare_story_omits_absent_links(self, client, seed):
        story = seed.story(seed.project(), "Bare")

        response = client.get(f"/api/traceability/story/{story.id}")

        assert response.status_code == 200
        data = response.json()
        assert data["story"]["id"] == story.id
        for key in ("prd", "designs", "rfc", "epic", "breakdownTasks", "codingSessions"):
            assert key not in data
        assert data["gaps"] == [
            "Story is not linked to a PRD",
            "Story has no linked user flows (design)",
            "Story has no epic (breakdown)",
            "Story has no linked RFC",
            "Story has no coding sessions",
        ]
        assert [gap["type"] for gap in data["gap_details"]] == [
            "story_missing_prd",
            "story_missing_design",
            "story_missing_breakdown",
            "story_missing_rfc",
            "story_missing_coding",
        ]

    def test_full_chain_uses_camel_case_lists(self, client, seed):
        project = seed.project()
        prd = seed.prd(project)
        flow = seed.flow(project, "Flow")
        rfc = seed.rfc(project, "RFC", status="approved", flow=flow)
        epic = seed.epic(project, "Epic", rfc=rfc)
        task = seed.task(project, "Task", epic, order=1)
        story = seed.story(project, "Story", prd=prd, epic_id=epic.id)
        seed.link(story, flow)
        session = seed.session(project, story)

        data = client.get(f"/api/traceability/story/{story.id}").json()

        assert data["prd"]["id"] == prd.id
        assert [design["id"] for design in data["designs"]] == [flow.id]
        assert data["rfc"]["id"] == rfc.id
        assert data["epic"]["id"] == epic.id
        assert [t["id"] for t in data["breakdownTasks"]] == [task.id]
        assert [s["id"] for s in data["codingSessions"]] == [session.id]
        assert "breakdown_tasks" not in data
        assert data["gaps"] == []


class TestValidate:
    def test_missing_fields_are_400(self, client):
        response = client.post("/api/traceability/validate", json={"item_id": "x", "item_type": "story"})

        assert response.status_code == 400
        assert response.json() == {"error": "Missing required fields: item_id, item_type, next_step"}

    def test_empty_fields_are_400(self, client):
        response = client.post(
            "/api/traceability/validate",
            json={"item_id": "", "item_type": "story", "next_step": "design"},
        )

        assert response.status_code == 400

    def test_unknown_item_type_is_400(self, client):
        response = client.post(
            "/api/traceability/validate",
            json={"item_id": "x", "item_type": "widget", "next_step": "design"},
        )

        assert response.status_code == 400
        assert "error" in response.json()

    def test_numeric_item_id_is_looked_up_as_text(self, client):
        response = client.post(
            "/api/traceability/validate",
            json={"item_id": 42, "item_type": "story", "next_step": "design"},
        )

        assert response.status_code == 200
        assert response.json() == {"valid": False, "missing": ["Story not found"], "warnings": []}

    def test_numeric_item_type_is_400(self, client):
        response = client.post(
            "/api/traceability/validate",
            json={"item_id": "x", "item_type": 7, "next_step": "design"},
        )

        assert response.status_code == 400
        assert "error" in response.json()

    def test_blocked_story(self, client, seed):
        story = seed.story(seed.project(), "No PRD")

        response = client.post(
            "/api/traceability/validate",
            json={"item_id": story.id, "item_type": "story", "next_step": "design"},
        )

        assert response.status_code == 200
        assert response.json() == {
            "valid": False,
            "missing": ["Story must be linked to a PRD"],
            "warnings": [],
        }

    def test_unapproved_epic_rfc_is_a_warning(self, client, seed):
        project = seed.project()
        epic = seed.epic(project, "Epic", rfc=seed.rfc(project, "RFC"))

        response = client.post(
            "/api/traceability/validate",
            json={"item_id": epic.id, "item_type": "epic", "next_step": "coding"},
        )

        data = response.json()
        assert data["valid"] is True
        assert data["warnings"] == [
            "Epic's RFC is not approved (status: draft). Coding may proceed but RFC should be approved."
        ]


class TestMissingItems:
    def test_invalid_step_is_400(self, client):
        response = client.get("/api/traceability/missing/p1/deploy")

        assert response.status_code == 400
        assert response.json() == {
            "error": "Invalid step. Must be one of: prd, stories, design, rfc, breakdown, coding"
        }

    def test_missing_prd(self, client, seed):
        project = seed.project()

        response = client.get(f"/api/traceability/missing/{project.id}/prd")

        assert response.status_code == 200
        assert response.json() == {
            "project_id": project.id,
            "step": "prd",
            "missing": [{"id": "", "title": "PRD", "reason": "No PRD document exists for this project"}],
        }

    def test_coding_step(self, client, seed):
        project = seed.project()
        story = seed.story(project, "Story")

        missing = client.get(f"/api/traceability/missing/{project.id}/coding").json()["missing"]

        assert missing == [{"id": story.id, "title": "Story", "reason": "Story has no coding session"}]
