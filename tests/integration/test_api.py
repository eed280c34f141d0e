"""Integration tests for the HTTP API over an in-memory collection."""

import csv
import io
from typing import Any, Iterable, List

import pytest
from fastapi.testclient import TestClient

from complaint_workflow import InMemoryItemStore, WorkflowService, WorkItem
from complaint_workflow.api import create_app
from complaint_workflow.config import Settings


class BrokenStore(InMemoryItemStore):
    def load_all(self) -> List[WorkItem]:
        raise RuntimeError("disk on fire")


class CountingReadStore(InMemoryItemStore):
    def __init__(self, items: Iterable[WorkItem] = ()) -> None:
        super().__init__(items)
        self.reads = 0

    def load_all(self) -> List[WorkItem]:
        self.reads += 1
        return super().load_all()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        allowed_origins="http://localhost:5173",
        default_actor="mahi",
        service_name="workflow-api",
    )


@pytest.fixture
def client(settings: Settings, seeded_service: WorkflowService) -> TestClient:
    return TestClient(create_app(settings, seeded_service))


@pytest.fixture
def empty_client(settings: Settings, service: WorkflowService) -> TestClient:
    return TestClient(create_app(settings, service))


def _error(response: Any) -> str:
    return response.json()["error"]


# ---------------------------------------------------------------------------
# Health and reference data
# ---------------------------------------------------------------------------


class TestHealth:
    @pytest.mark.parametrize("path", ["/health", "/api/health"])
    def test_health(self, client: TestClient, path: str) -> None:
        response = client.get(path)
        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert body["service"] == "workflow-api"
        assert isinstance(body["time"], int)


class TestStatuses:
    def test_lists_sixteen(self, client: TestClient) -> None:
        body = client.get("/api/statuses").json()
        assert len(body) == 16
        by_value = {row["value"]: row for row in body}
        assert by_value["ch_complaint_closed"]["next"] == []
        assert by_value["ref_to_finance"]["next"] == ["ch_referral_complete"]
        assert by_value["pick_up"]["label"] == "Pick up"


# ---------------------------------------------------------------------------
# Item CRUD
# ---------------------------------------------------------------------------


class TestItems:
    def test_list(self, client: TestClient) -> None:
        body = client.get("/api/items").json()
        assert [row["id"] for row in body] == ["W-1", "W-2", "W-3", "W-4", "W-5"]
        assert body[3]["spentMs"] == 4000

    def test_create(self, empty_client: TestClient) -> None:
        response = empty_client.post("/api/items", json={"title": "Lost letter", "receivedDate": 5})
        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "complaint_unallocated"
        assert body["receivedDate"] == 5
        assert body["id"].startswith("W-")

    def test_create_duplicate(self, client: TestClient) -> None:
        response = client.post("/api/items", json={"id": "W-1"})
        assert response.status_code == 400
        assert _error(response) == "validation_error"

    def test_create_rejects_workflow_fields(self, empty_client: TestClient) -> None:
        response = empty_client.post("/api/items", json={"title": "x", "status": "pick_up"})
        assert response.status_code == 422

    def test_get(self, client: TestClient) -> None:
        assert client.get("/api/items/W-3").json()["startTime"] == 5000

    def test_get_missing(self, client: TestClient) -> None:
        response = client.get("/api/items/W-404")
        assert response.status_code == 404
        assert _error(response) == "not_found"
        assert "W-404" in response.json()["detail"]

    def test_update_details(self, client: TestClient) -> None:
        response = client.put("/api/items/W-2", json={"title": "Renamed"})
        assert response.status_code == 200
        assert response.json()["title"] == "Renamed"
        assert response.json()["status"] == "ch_review"

    def test_update_rejects_status(self, client: TestClient) -> None:
        assert client.put("/api/items/W-2", json={"status": "ch_complaint_closed"}).status_code == 422

    def test_delete(self, client: TestClient) -> None:
        assert client.delete("/api/items/W-2").status_code == 204
        assert client.get("/api/items/W-2").status_code == 404

    def test_delete_missing(self, client: TestClient) -> None:
        assert client.delete("/api/items/W-404").status_code == 404


# ---------------------------------------------------------------------------
# Workflow operations
# ---------------------------------------------------------------------------


class TestWorkflow:
    def test_allocate(self, client: TestClient) -> None:
        body = client.post("/api/items/W-1/allocate", json={"handler": "carol"}).json()
        assert (body["assignee"], body["status"]) == ("carol", "ch_review")

    def test_allocate_blank_handler(self, client: TestClient) -> None:
        response = client.post("/api/items/W-1/allocate", json={"handler": "  "})
        assert response.status_code == 400
        assert _error(response) == "validation_error"

    def test_pick_up_explicit_actor(self, client: TestClient, clock: Any) -> None:
        body = client.post("/api/items/W-2/pick-up", json={"actor": "bob"}).json()
        assert body["status"] == "pick_up"
        assert body["startTime"] == clock.now
        assert body["assignee"] == "bob"

    def test_pick_up_default_actor(self, client: TestClient) -> None:
        client.post("/api/items/W-1/allocate", json={"handler": "mahi"})
        body = client.post("/api/items/W-1/pick-up", json={}).json()
        assert body["assignee"] == "mahi"

    def test_pick_up_busy_actor(self, client: TestClient) -> None:
        response = client.post("/api/items/W-2/pick-up", json={"actor": "alice"})
        assert response.status_code == 409
        assert _error(response) == "actor_busy"
        assert "W-3" in response.json()["detail"]

    def test_move_closes_session(self, client: TestClient, clock: Any) -> None:
        clock.now = 7_500
        response = client.post("/api/items/W-3/move", json={"status": "ref_to_finance"})
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ref_to_finance"
        assert body["startTime"] is None
        assert body["endTime"] == 7_500
        assert body["spentMs"] == 2_500

    def test_move_invalid(self, client: TestClient) -> None:
        response = client.post("/api/items/W-2/move", json={"status": "ch_complaint_closed"})
        assert response.status_code == 400
        assert _error(response) == "invalid_transition"
        assert response.json()["detail"] == (
            "Invalid transition from CH Review to CH Complaint Closed."
        )

    def test_move_unknown_status(self, client: TestClient) -> None:
        response = client.post("/api/items/W-2/move", json={"status": "archived"})
        assert response.status_code == 400
        assert _error(response) == "unknown_status"

    def test_move_missing_item(self, client: TestClient) -> None:
        response = client.post("/api/items/W-404/move", json={"status": "ch_review"})
        assert response.status_code == 404

    def test_transition_dispatches_allocate(self, client: TestClient) -> None:
        body = client.post(
            "/api/items/W-1/transition", json={"status": "ch_review", "assignee": "dave"}
        ).json()
        assert body["assignee"] == "dave"

    def test_transition_to_pick_up_uses_default_actor(self, client: TestClient) -> None:
        client.post("/api/items/W-1/allocate", json={"handler": "mahi"})
        body = client.post("/api/items/W-1/transition", json={"status": "pick_up"}).json()
        assert (body["status"], body["assignee"]) == ("pick_up", "mahi")

    @pytest.mark.parametrize("item_id,status", [("W-2", "pick_up"), ("W-3", "ref_to_aps")])
    def test_transition_rejects_stray_assignee(
        self, client: TestClient, item_id: str, status: str
    ) -> None:
        before = client.get(f"/api/items/{item_id}").json()
        response = client.post(
            f"/api/items/{item_id}/transition",
            json={"status": status, "actor": "alice", "assignee": "bob"},
        )
        assert response.status_code == 400
        assert _error(response) == "validation_error"
        assert client.get(f"/api/items/{item_id}").json() == before

    def test_comment(self, client: TestClient, clock: Any) -> None:
        body = client.post(
            "/api/items/W-5/comments", json={"author": "bob", "text": " apology sent "}
        ).json()
        assert body["comments"] == [{"ts": clock.now, "author": "bob", "text": "apology sent"}]
        assert body["status"] == "ch_complaint_closed"

    def test_comment_default_author(self, client: TestClient) -> None:
        body = client.post("/api/items/W-1/comments", json={"text": "note"}).json()
        assert body["comments"][0]["author"] == "mahi"

    def test_comment_blank(self, client: TestClient) -> None:
        response = client.post("/api/items/W-1/comments", json={"text": "   "})
        assert response.status_code == 400

    def test_actions(self, client: TestClient) -> None:
        body = client.get("/api/items/W-2/actions", params={"actor": "alice"}).json()
        assert body["allowed"] == ["pick_up"]
        # alice already holds W-3
        assert [action["name"] for action in body["actions"]] == ["comment"]

    def test_actions_for_free_actor(self, client: TestClient) -> None:
        body = client.get("/api/items/W-2/actions", params={"actor": "bob"}).json()
        assert body["actions"][0] == {"name": "pick_up", "target": "pick_up", "label": "Pick up"}

    def test_actions_missing_item(self, client: TestClient) -> None:
        response = client.get("/api/items/W-404/actions")
        assert response.status_code == 404
        assert _error(response) == "not_found"

    def test_actions_read_collection_once(
        self, settings: Settings, seeded_items: List[WorkItem]
    ) -> None:
        store = CountingReadStore(seeded_items)
        client = TestClient(create_app(settings, WorkflowService(store)))
        assert client.get("/api/items/W-2/actions").status_code == 200
        assert store.reads == 1


# ---------------------------------------------------------------------------
# Projections
# ---------------------------------------------------------------------------


class TestProjections:
    def test_summary(self, client: TestClient) -> None:
        body = client.get("/api/summary").json()
        assert body["counts"]["pick_up"] == 1
        assert body["counts"]["ref_to_bo_uk"] == 0
        assert body["totals"] == {"total": 5, "pipeline": 4, "completed": 1}

    def test_manager_view_quick_filter(self, client: TestClient) -> None:
        body = client.get("/api/views/manager", params={"quick": "completed"}).json()
        assert [row["id"] for row in body] == ["W-5"]

    def test_handler_view(self, client: TestClient) -> None:
        body = client.get("/api/views/handler", params={"actor": "bob"}).json()
        assert [row["id"] for row in body] == ["W-1", "W-4", "W-5"]

    def test_referral_view(self, client: TestClient) -> None:
        body = client.get("/api/views/referrals").json()
        assert [row["id"] for row in body] == ["W-4"]

    def test_sorted_view(self, client: TestClient) -> None:
        body = client.get(
            "/api/views/manager", params={"sort": "title", "direction": "desc"}
        ).json()
        titles = [row["title"] for row in body]
        assert titles == sorted(titles, key=str.lower, reverse=True)

    def test_unknown_sort_key(self, client: TestClient) -> None:
        response = client.get("/api/views/manager", params={"sort": "colour"})
        assert response.status_code == 400

    def test_unknown_role(self, client: TestClient) -> None:
        assert client.get("/api/views/auditor").status_code == 422

    def test_export_csv(self, client: TestClient) -> None:
        response = client.get("/api/export.csv")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        rows = list(csv.DictReader(io.StringIO(response.text)))
        assert [row["id"] for row in rows] == ["W-1", "W-2", "W-3", "W-4", "W-5"]

    def test_export_referrals(self, client: TestClient) -> None:
        response = client.get("/api/export.csv", params={"role": "referrals"})
        rows = list(csv.DictReader(io.StringIO(response.text)))
        assert [row["id"] for row in rows] == ["W-4"]

    def test_view_text_filter(self, client: TestClient) -> None:
        body = client.get("/api/views/manager", params={"title": "FINANCE"}).json()
        assert [row["id"] for row in body] == ["W-4"]

    def test_view_time_spent_bounds(self, client: TestClient) -> None:
        # W-4 has 4s recorded, W-5 12s
        body = client.get(
            "/api/views/manager", params={"time_min_s": 1, "time_max_s": 5}
        ).json()
        assert [row["id"] for row in body] == ["W-4"]

    def test_view_filter_then_sort(self, client: TestClient) -> None:
        body = client.get(
            "/api/views/handler",
            params={"actor": "bob", "assignee": "bob", "sort": "timeSpent", "direction": "desc"},
        ).json()
        assert [row["id"] for row in body] == ["W-5", "W-4"]

    def test_export_applies_filters(self, client: TestClient) -> None:
        response = client.get("/api/export.csv", params={"time_min_s": 5})
        rows = list(csv.DictReader(io.StringIO(response.text)))
        assert [row["id"] for row in rows] == ["W-5"]

    def test_export_status_filter(self, client: TestClient) -> None:
        response = client.get("/api/export.csv", params={"status": "ch review"})
        rows = list(csv.DictReader(io.StringIO(response.text)))
        assert [row["id"] for row in rows] == ["W-2"]


# ---------------------------------------------------------------------------
# Errors and CORS
# ---------------------------------------------------------------------------


class TestServerErrors:
    def test_unhandled_is_500(self, settings: Settings) -> None:
        app = create_app(settings, WorkflowService(BrokenStore()))
        client = TestClient(app, raise_server_exceptions=False)
        response = client.get("/api/items")
        assert response.status_code == 500
        assert response.json()["error"] == "server_error"


class TestCors:
    def _preflight(self, client: TestClient, origin: str) -> Any:
        return client.options(
            "/api/items",
            headers={"Origin": origin, "Access-Control-Request-Method": "POST"},
        )

    def test_configured_origin(self, client: TestClient) -> None:
        response = self._preflight(client, "http://localhost:5173")
        assert response.headers["access-control-allow-origin"] == "http://localhost:5173"

    def test_amplify_origin(self, client: TestClient) -> None:
        origin = "https://main.d1abc.amplifyapp.com"
        response = self._preflight(client, origin)
        assert response.headers["access-control-allow-origin"] == origin

    def test_other_origin_rejected(self, client: TestClient) -> None:
        response = self._preflight(client, "https://evil.example.com")
        assert "access-control-allow-origin" not in response.headers
