"""
Tests for the SQLite storage layer and sample data.
"""
import pytest
import sys
from contextlib import closing
from pathlib import Path

from werkzeug.security import check_password_hash

sys.path.insert(0, str(Path(__file__).parent.parent))

from timetracker.data.db import connect
from timetracker.data.seed import seed_sample_data
from timetracker.data.storage import Storage, NotFoundError, IntegrityError


@pytest.fixture
def storage(tmp_path):
    return Storage(tmp_path / "test.db")


def password_matches(storage, username, password):
    with closing(connect(storage.db_path)) as conn:
        row = conn.execute("SELECT password_hash FROM users WHERE username = ?", (username,)).fetchone()
    return check_password_hash(row["password_hash"], password)


def make_user(storage, username="amy", **extra):
    return storage.create_user({"username": username, "password": "secret",
                                "name": username.title(), **extra})


def make_project(storage, owner, name="Website"):
    project = storage.create_project({"name": name, "created_by_id": owner["id"]})
    scope = storage.create_project_scope({"project_id": project["id"], "name": "Backend Development"})
    return project, scope


class TestUsers:
    """Tests for user CRUD."""

    def test_create_hashes_password_and_hides_it(self, storage):
        user = make_user(storage)
        assert "password_hash" not in user
        assert password_matches(storage, "amy", "secret") is True
        assert password_matches(storage, "amy", "wrong") is False
        assert storage.get_user_by_username("amy")["id"] == user["id"]

    def test_default_base_rates(self, storage):
        user = make_user(storage)
        assert user["base_cost_rate"] == 75
        assert user["base_selling_rate"] == 125
        assert user["role"] == "regular"

    def test_duplicate_username(self, storage):
        make_user(storage)
        with pytest.raises(IntegrityError):
            make_user(storage)

    def test_update_and_delete(self, storage):
        user = make_user(storage)
        updated = storage.update_user(user["id"], {"name": "Amy B", "password_hash": "x"})
        assert updated["name"] == "Amy B"
        assert password_matches(storage, "amy", "secret") is True

        assert storage.delete_user(user["id"]) is True
        assert storage.get_user(user["id"]) is None
        assert storage.delete_user(user["id"]) is False

    def test_update_missing_user(self, storage):
        assert storage.update_user("nope", {"name": "X"}) is None


class TestProjects:
    """Tests for project, scope and template CRUD."""

    def test_create_requires_existing_creator(self, storage):
        with pytest.raises(NotFoundError):
            storage.create_project({"name": "Orphan", "created_by_id": "missing"})

    def test_update_touches_updated_at(self, storage):
        owner = make_user(storage)
        project, _ = make_project(storage, owner)
        updated = storage.update_project(project["id"], {"status": "completed"})
        assert updated["status"] == "completed"
        assert updated["updated_at"] >= project["updated_at"]

    def test_filter_by_status(self, storage):
        owner = make_user(storage)
        make_project(storage, owner, "A")
        b, _ = make_project(storage, owner, "B")
        storage.update_project(b["id"], {"status": "paused"})
        assert [p["name"] for p in storage.get_projects(status="paused")] == ["B"]

    def test_delete_cascades(self, storage):
        owner = make_user(storage)
        project, scope = make_project(storage, owner)
        storage.add_project_member({"project_id": project["id"], "user_id": owner["id"]})
        storage.create_time_entry({"user_id": owner["id"], "project_id": project["id"],
                                   "scope_id": scope["id"], "minutes": 30})

        assert storage.delete_project(project["id"]) is True
        assert storage.get_project_scopes(project["id"]) == []
        assert storage.get_project_members(project["id"]) == []
        assert storage.get_time_entries() == []

    def test_apply_scope_templates_skips_inactive_and_existing(self, storage):
        owner = make_user(storage)
        project, _ = make_project(storage, owner)
        storage.create_scope_template({"name": "Backend Development"})
        storage.create_scope_template({"name": "UI/UX Design"})
        storage.create_scope_template({"name": "Retired", "is_active": False})

        created = storage.apply_scope_templates(project["id"])

        assert [s["name"] for s in created] == ["UI/UX Design"]
        names = sorted(s["name"] for s in storage.get_project_scopes(project["id"]))
        assert names == ["Backend Development", "UI/UX Design"]

    def test_bulk_template_update(self, storage):
        a = storage.create_scope_template({"name": "A"})
        b = storage.create_scope_template({"name": "B"})
        result = storage.bulk_update_scope_templates([
            {"id": a["id"], "is_active": False},
            {"id": b["id"], "is_active": False},
            {"id": "unknown", "is_active": False},
        ])
        assert len(result) == 2
        assert storage.get_scope_templates(active_only=True) == []

    def test_templates_newest_first(self, storage):
        storage.create_scope_template({"name": "First"})
        storage.create_scope_template({"name": "Second"})
        assert [t["name"] for t in storage.get_scope_templates()] == ["Second", "First"]


class TestMembers:
    """Tests for project member assignment."""

    def test_rates_default_to_user_base_rates(self, storage):
        owner = make_user(storage, base_cost_rate=60, base_selling_rate=110)
        project, _ = make_project(storage, owner)
        member = storage.add_project_member({"project_id": project["id"], "user_id": owner["id"]})
        assert member["cost_rate"] == 60
        assert member["selling_rate"] == 110

    def test_member_joined_with_user(self, storage):
        owner = make_user(storage)
        project, _ = make_project(storage, owner)
        storage.add_project_member({"project_id": project["id"], "user_id": owner["id"],
                                    "cost_rate": 50, "selling_rate": 90})
        [member] = storage.get_project_members(project["id"])
        assert member["user_name"] == "Amy"
        assert member["username"] == "amy"

    def test_duplicate_member(self, storage):
        owner = make_user(storage)
        project, _ = make_project(storage, owner)
        storage.add_project_member({"project_id": project["id"], "user_id": owner["id"]})
        with pytest.raises(IntegrityError):
            storage.add_project_member({"project_id": project["id"], "user_id": owner["id"]})

    def test_unknown_user(self, storage):
        owner = make_user(storage)
        project, _ = make_project(storage, owner)
        with pytest.raises(NotFoundError):
            storage.add_project_member({"project_id": project["id"], "user_id": "ghost"})


class TestTimeEntries:
    """Tests for time entry CRUD."""

    def test_entry_carries_names(self, storage):
        owner = make_user(storage)
        project, scope = make_project(storage, owner)
        entry = storage.create_time_entry({"user_id": owner["id"], "project_id": project["id"],
                                           "scope_id": scope["id"], "minutes": 45})
        assert entry["project_name"] == "Website"
        assert entry["scope_name"] == "Backend Development"
        assert entry["user_name"] == "Amy"
        assert entry["entry_type"] == "manual"

    def test_scope_from_other_project_rejected(self, storage):
        owner = make_user(storage)
        project, _ = make_project(storage, owner, "A")
        _, other_scope = make_project(storage, owner, "B")
        with pytest.raises(IntegrityError):
            storage.create_time_entry({"user_id": owner["id"], "project_id": project["id"],
                                       "scope_id": other_scope["id"], "minutes": 10})

    def test_filter_and_order(self, storage):
        amy = make_user(storage)
        bob = make_user(storage, "bob")
        project, scope = make_project(storage, amy)
        for user, minutes in [(amy, 10), (bob, 20), (amy, 30)]:
            storage.create_time_entry({"user_id": user["id"], "project_id": project["id"],
                                       "scope_id": scope["id"], "minutes": minutes})

        mine = storage.get_time_entries(user_id=amy["id"])
        assert [e["minutes"] for e in mine] == [30, 10]
        assert len(storage.get_time_entries(limit=2)) == 2

    def test_update_entry(self, storage):
        owner = make_user(storage)
        project, scope = make_project(storage, owner)
        entry = storage.create_time_entry({"user_id": owner["id"], "project_id": project["id"],
                                           "scope_id": scope["id"], "minutes": 45})
        updated = storage.update_time_entry(entry["id"], {"minutes": 60, "description": "Review"})
        assert updated["minutes"] == 60
        assert updated["description"] == "Review"
        assert storage.update_time_entry("missing", {"minutes": 1}) is None


class TestSettings:
    """Tests for app settings."""

    def test_default_currency_fallback(self, storage):
        assert storage.get_default_currency() == "USD"

    def test_upsert_by_key(self, storage):
        admin = make_user(storage, role="admin")
        storage.set_app_setting({"key": "default_currency", "value": "EUR", "updated_by": admin["id"]})
        storage.set_app_setting({"key": "default_currency", "value": "GBP", "updated_by": admin["id"]})
        assert len(storage.get_app_settings()) == 1
        assert storage.get_default_currency() == "GBP"

    def test_update_and_delete_by_key(self, storage):
        admin = make_user(storage, role="admin")
        storage.set_app_setting({"key": "default_currency", "value": "EUR", "updated_by": admin["id"]})
        assert storage.update_app_setting("default_currency", {"value": "JPY"})["value"] == "JPY"
        assert storage.delete_app_setting("default_currency") is True
        assert storage.get_app_setting("default_currency") is None


class TestSeed:
    """Tests for the sample data loader."""

    def test_seeds_empty_database(self, storage):
        summary = seed_sample_data(storage)
        assert summary["users"] == 3
        assert len(storage.get_users()) == 3
        assert len(storage.get_scope_templates()) == 5
        assert len(storage.get_time_entries()) == 2
        assert password_matches(storage, "admin", "admin123")
        assert {p["status"] for p in storage.get_projects()} == {"active", "paused"}

    def test_noop_when_users_exist(self, storage):
        make_user(storage)
        assert seed_sample_data(storage) == {}
        assert len(storage.get_projects()) == 0
