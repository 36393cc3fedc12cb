"""
Tests for the REST API.
"""
import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from timetracker.api.app import create_app
from timetracker.data.seed import seed_sample_data


@pytest.fixture
def app(tmp_path):
    return create_app(tmp_path / "api.db")


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def seeded(app, client):
    seed_sample_data(app.extensions["storage"])
    return client


def create_user(client, username="amy", **extra):
    payload = {"username": username, "password": "pw", "name": username.title(), **extra}
    response = client.post("/api/users", json=payload)
    assert response.status_code == 201
    return response.get_json()


def create_project(client, owner_id, name="Website"):
    response = client.post("/api/projects", json={"name": name, "createdById": owner_id})
    assert response.status_code == 201
    project = response.get_json()
    scope = client.post(f"/api/projects/{project['id']}/scopes", json={"name": "Backend Development"})
    assert scope.status_code == 201
    return project, scope.get_json()


class TestHealthAndErrors:
    """Tests for health check and error mapping."""

    def test_health(self, client):
        assert client.get("/api/health").get_json() == {"status": "ok"}

    def test_validation_error_is_400(self, client):
        response = client.post("/api/users", json={"username": "amy"})
        assert response.status_code == 400
        body = response.get_json()
        assert body["error"] == "Invalid data"
        assert "password is required" in body["details"]

    def test_non_object_body(self, client):
        response = client.post("/api/users", json=["amy"])
        assert response.status_code == 400

    def test_unknown_route_is_json_404(self, client):
        response = client.get("/api/nothing")
        assert response.status_code == 404
        assert "error" in response.get_json()

    def test_duplicate_is_409(self, client):
        create_user(client)
        response = client.post("/api/users", json={"username": "amy", "password": "pw", "name": "A"})
        assert response.status_code == 409


class TestUsersAndProjects:
    """Tests for user and project endpoints."""

    def test_user_crud(self, client):
        user = create_user(client)
        assert "password_hash" not in user

        response = client.patch(f"/api/users/{user['id']}", json={"baseCostRate": 90})
        assert response.get_json()["base_cost_rate"] == 90

        assert client.delete(f"/api/users/{user['id']}").status_code == 204
        assert client.get(f"/api/users/{user['id']}").status_code == 404

    def test_project_crud(self, client):
        owner = create_user(client)
        project, _ = create_project(client, owner["id"])

        response = client.patch(f"/api/projects/{project['id']}", json={"status": "completed"})
        assert response.get_json()["status"] == "completed"
        assert [p["id"] for p in client.get("/api/projects?status=completed").get_json()] == [project["id"]]

        assert client.delete(f"/api/projects/{project['id']}").status_code == 204
        assert client.delete(f"/api/projects/{project['id']}").status_code == 404

    def test_project_with_unknown_creator(self, client):
        response = client.post("/api/projects", json={"name": "X", "createdById": "ghost"})
        assert response.status_code == 404

    def test_delete_scope_of_other_project(self, client):
        owner = create_user(client)
        a, scope_a = create_project(client, owner["id"], "A")
        b, _ = create_project(client, owner["id"], "B")
        response = client.delete(f"/api/projects/{b['id']}/scopes/{scope_a['id']}")
        assert response.status_code == 404

        response = client.delete(f"/api/projects/{a['id']}/scopes/{scope_a['id']}")
        assert response.status_code == 204
        assert client.get("/api/project-scopes").get_json() != []


class TestMembers:
    """Tests for project member endpoints."""

    def test_add_update_remove(self, client):
        owner = create_user(client, base_cost_rate=60, base_selling_rate=90)
        project, _ = create_project(client, owner["id"])
        url = f"/api/projects/{project['id']}/members"

        member = client.post(url, json={"userId": owner["id"]}).get_json()
        assert member["cost_rate"] == 60

        response = client.patch(f"{url}/{member['id']}", json={"costRate": 70})
        assert response.get_json()["cost_rate"] == 70

        assert client.get(url).get_json()[0]["user_name"] == "Amy"
        assert client.delete(f"{url}/{member['id']}").status_code == 204
        assert client.get(url).get_json() == []

    def test_member_of_other_project(self, client):
        owner = create_user(client)
        a, _ = create_project(client, owner["id"], "A")
        b, _ = create_project(client, owner["id"], "B")
        member = client.post(f"/api/projects/{a['id']}/members", json={"userId": owner["id"]}).get_json()
        response = client.patch(f"/api/projects/{b['id']}/members/{member['id']}", json={"costRate": 1})
        assert response.status_code == 404


class TestTimeEntries:
    """Tests for time entry endpoints."""

    def test_create_filter_update_delete(self, client):
        owner = create_user(client)
        project, scope = create_project(client, owner["id"])
        response = client.post("/api/time-entries", json={
            "userId": owner["id"], "projectId": project["id"], "scopeId": scope["id"],
            "minutes": 45, "description": "API work",
        })
        assert response.status_code == 201
        entry = response.get_json()
        assert entry["scope_name"] == "Backend Development"

        listed = client.get(f"/api/time-entries?userId={owner['id']}").get_json()
        assert [e["id"] for e in listed] == [entry["id"]]
        assert client.get("/api/time-entries?userId=someone-else").get_json() == []

        response = client.patch(f"/api/time-entries/{entry['id']}", json={"minutes": 50})
        assert response.get_json()["minutes"] == 50

        assert client.delete(f"/api/time-entries/{entry['id']}").status_code == 204
        assert client.delete(f"/api/time-entries/{entry['id']}").status_code == 404

    def test_end_before_stored_start_rejected(self, client):
        owner = create_user(client)
        project, scope = create_project(client, owner["id"])
        entry = client.post("/api/time-entries", json={
            "userId": owner["id"], "projectId": project["id"], "scopeId": scope["id"],
            "minutes": 60, "entryType": "timer",
            "startedAt": "2024-09-24T13:00:00Z", "endedAt": "2024-09-24T14:00:00Z",
        }).get_json()

        response = client.patch(f"/api/time-entries/{entry['id']}", json={"endedAt": "2020-01-01T00:00:00Z"})
        assert response.status_code == 400
        assert "ended_at must not be before started_at" in response.get_json()["details"]

        stored = client.get(f"/api/time-entries?userId={owner['id']}").get_json()[0]
        assert stored["ended_at"].startswith("2024-09-24T14:00")

        response = client.patch(f"/api/time-entries/{entry['id']}", json={"endedAt": "2024-09-24T15:00:00Z"})
        assert response.status_code == 200

    def test_invalid_minutes(self, client):
        owner = create_user(client)
        project, scope = create_project(client, owner["id"])
        response = client.post("/api/time-entries", json={
            "userId": owner["id"], "projectId": project["id"], "scopeId": scope["id"], "minutes": 0,
        })
        assert response.status_code == 400


class TestTemplatesAndSettings:
    """Tests for scope template and setting endpoints."""

    def test_bulk_update(self, client):
        a = client.post("/api/scope-templates", json={"name": "A"}).get_json()
        b = client.post("/api/scope-templates", json={"name": "B"}).get_json()
        response = client.patch("/api/scope-templates/bulk", json={"updates": [
            {"id": a["id"], "isActive": False},
            {"id": b["id"], "isActive": False},
        ]})
        assert response.status_code == 200
        assert all(not t["is_active"] for t in response.get_json())

    def test_bulk_requires_array(self, client):
        response = client.patch("/api/scope-templates/bulk", json={"updates": "all"})
        assert response.status_code == 400
        assert response.get_json()["details"] == ["updates must be an array"]

    def test_setting_put_and_get(self, client):
        admin = create_user(client, role="admin")
        response = client.put("/api/settings/default_currency",
                              json={"value": "EUR", "updatedBy": admin["id"]})
        assert response.status_code == 200
        assert client.get("/api/settings/default_currency").get_json()["value"] == "EUR"
        assert client.get("/api/settings/missing").status_code == 404


class TestAnalytics:
    """Tests for analytics endpoints over the sample data."""

    def test_project_rollup(self, seeded):
        projects = {p["project_name"]: p for p in seeded.get("/api/analytics/projects").get_json()}
        ecommerce = projects["E-commerce Platform"]
        # john 3h at 75/120, jane 5h at 65/100
        assert ecommerce["total_hours"] == 8
        assert ecommerce["cost"] == 550
        assert ecommerce["revenue"] == 860
        assert len(ecommerce["scopes"]) == 2
        assert len(ecommerce["team"]) == 2
        assert projects["Mobile App MVP"]["total_hours"] == 0

    def test_pdf_report(self, seeded):
        project = seeded.get("/api/projects?status=active").get_json()[0]
        response = seeded.get(f"/api/analytics/projects/{project['id']}/report.pdf?saleAmount=1000")
        assert response.status_code == 200
        assert response.mimetype == "application/pdf"
        assert response.data.startswith(b"%PDF")
        assert "E-commerce_Platform_Analytics_Report.pdf" in response.headers["Content-Disposition"]

    def test_pdf_bad_sale_amount(self, seeded):
        project = seeded.get("/api/projects").get_json()[0]
        response = seeded.get(f"/api/analytics/projects/{project['id']}/report.pdf?saleAmount=lots")
        assert response.status_code == 400

    def test_pdf_unknown_project(self, client):
        assert client.get("/api/analytics/projects/nope/report.pdf").status_code == 404
