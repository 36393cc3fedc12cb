"""
Smoke tests for the Time Tracking page, driven through Streamlit's AppTest.
"""
import json
import pytest
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

from streamlit.testing.v1 import AppTest

sys.path.insert(0, str(Path(__file__).parent.parent))

from timetracker.config import config
from timetracker.data.seed import seed_sample_data
from timetracker.data.storage import Storage


TIME_TRACKING_PAGE = str(Path(__file__).parent.parent / "pages" / "1_Time_Tracking.py")


@pytest.fixture
def storage(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "data_dir", tmp_path)
    monkeypatch.setattr(config, "database_path", "")
    storage = Storage(config.db_path)
    seed_sample_data(storage)
    return storage


@pytest.fixture
def admin(storage):
    return storage.get_user_by_username("admin")


@pytest.fixture
def page(storage):
    at = AppTest.from_file(TIME_TRACKING_PAGE, default_timeout=30)
    at.run()
    assert not at.exception
    return at


def click(at, label):
    button = next(b for b in at.button if b.label.endswith(label))
    button.click()
    at.run()
    assert not at.exception
    return at


def labels(at):
    return [b.label for b in at.button]


def backdate_timer(user_id, seconds):
    """Move the running session's start back so it has tracked some time."""
    path = config.timer_state_dir / f"timer_{user_id}.json"
    state = json.loads(path.read_text(encoding="utf-8"))
    started = datetime.now(timezone.utc) - timedelta(seconds=seconds)
    state["started_at"] = started.isoformat()
    path.write_text(json.dumps(state), encoding="utf-8")


class TestTimerControls:
    """Tests for start / pause / resume from the page."""

    def test_start_uses_selected_project_and_scope(self, page, admin):
        click(page, "Start")

        assert not page.error
        assert any(label.endswith("Pause") for label in labels(page))
        assert page.selectbox(key="timer_project").disabled
        state = json.loads((config.timer_state_dir / f"timer_{admin['id']}.json").read_text())
        assert state["is_tracking"] is True
        assert state["project_id"] == page.selectbox(key="timer_project").value
        assert state["scope_id"] == page.selectbox(key="timer_scope").value

    def test_pause_and_resume(self, page, admin):
        click(page, "Start")
        backdate_timer(admin["id"], 90)

        click(page, "Pause")
        assert not page.error
        assert any(label.endswith("Resume") for label in labels(page))

        click(page, "Resume")
        assert not page.error
        assert any(label.endswith("Pause") for label in labels(page))

    def test_cancel_discards_session(self, page, admin, storage):
        click(page, "Start")
        click(page, "Cancel")

        assert any(label.endswith("Start") for label in labels(page))
        assert storage.get_time_entries(user_id=admin["id"]) == []


class TestCompleteFromPage:
    """Tests for logging a timer session as a time entry."""

    def test_start_then_complete_saves_entry(self, page, admin, storage):
        page.text_input(key="timer_description").set_value("Checkout flow")
        click(page, "Start")
        backdate_timer(admin["id"], 125)

        click(page, "Complete")

        assert not page.error
        [entry] = storage.get_time_entries(user_id=admin["id"])
        assert entry["entry_type"] == "timer"
        assert entry["minutes"] == 3
        assert entry["description"] == "Checkout flow"
        assert any(label.endswith("Start") for label in labels(page))

    def test_description_edited_while_running(self, page, admin, storage):
        page.text_input(key="timer_description").set_value("old text")
        click(page, "Start")
        backdate_timer(admin["id"], 60)

        page.text_input(key="timer_description").set_value("NEW text")
        page.run()
        click(page, "Complete")

        assert not page.error
        [entry] = storage.get_time_entries(user_id=admin["id"])
        assert entry["description"] == "NEW text"
