"""
Live timer: start / pause / resume / cancel / complete.

The timer state is persisted to a small JSON file per user after every
transition so that a running or paused session survives page reloads and
app restarts.
"""
from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Dict, Any, Union

from timetracker.config import config

logger = logging.getLogger(__name__)


class TimerError(Exception):
    """Raised when a timer transition is not allowed."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


def format_duration(seconds: Union[int, float]) -> str:
    """Format seconds as '1h 2m 3s'."""
    seconds = max(int(seconds), 0)
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    secs = seconds % 60
    return f"{hours}h {minutes}m {secs}s"


def manual_minutes(hours: Any, minutes: Any) -> int:
    """Total minutes from manual-entry form fields. Non-numeric input counts as 0."""
    def _to_int(value: Any) -> int:
        try:
            return int(str(value).strip())
        except (TypeError, ValueError):
            return 0
    return _to_int(hours) * 60 + _to_int(minutes)


@dataclass
class TimerState:
    """Serializable timer state."""
    is_tracking: bool = False
    project_id: str = ""
    scope_id: str = ""
    description: str = ""
    accumulated_seconds: int = 0
    started_at: Optional[str] = None
    paused_at: Optional[str] = None

    @property
    def has_selection(self) -> bool:
        return bool(self.project_id and self.scope_id)

    @property
    def is_paused(self) -> bool:
        return not self.is_tracking and (self.accumulated_seconds > 0 or bool(self.paused_at))

    @property
    def is_idle(self) -> bool:
        return not self.is_tracking and not self.is_paused

    @property
    def is_restorable(self) -> bool:
        return self.has_selection and (bool(self.started_at) or self.accumulated_seconds > 0)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimerState":
        return cls(
            is_tracking=bool(data.get("is_tracking", False)),
            project_id=data.get("project_id") or "",
            scope_id=data.get("scope_id") or "",
            description=data.get("description") or "",
            accumulated_seconds=int(data.get("accumulated_seconds") or 0),
            started_at=data.get("started_at"),
            paused_at=data.get("paused_at"),
        )


class TimerStore:
    """JSON file persistence for one user's timer."""

    def __init__(self, user_id: str, state_dir: Optional[Path] = None):
        self.user_id = user_id
        self.state_dir = Path(state_dir) if state_dir else config.timer_state_dir

    @property
    def path(self) -> Path:
        return self.state_dir / f"timer_{self.user_id}.json"

    def save(self, state: TimerState):
        self.state_dir.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(state.to_dict()), encoding="utf-8")

    def load(self) -> TimerState:
        """
        Restore saved state.

        Only a session with a project, a scope and either a start time or some
        accumulated time is restored. A corrupt file is removed.
        """
        if not self.path.exists():
            return TimerState()
        try:
            state = TimerState.from_dict(json.loads(self.path.read_text(encoding="utf-8")))
            _parse(state.started_at)
            _parse(state.paused_at)
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning("Discarding unreadable timer state %s: %s", self.path, e)
            self.clear()
            return TimerState()

        if not state.is_restorable:
            return TimerState()
        if state.is_tracking and not state.started_at:
            state.is_tracking = False
        return state

    def clear(self):
        self.path.unlink(missing_ok=True)


class Timer:
    """Timer state machine bound to a store."""

    def __init__(self, store: TimerStore, state: Optional[TimerState] = None):
        self.store = store
        self.state = state if state is not None else store.load()

    @classmethod
    def for_user(cls, user_id: str, state_dir: Optional[Path] = None) -> "Timer":
        return cls(TimerStore(user_id, state_dir))

    def _save(self):
        self.store.save(self.state)

    def select(self, project_id: str, scope_id: str = "", description: Optional[str] = None):
        """Change the project/scope selection. Changing project clears the scope."""
        if project_id != self.state.project_id:
            self.state.scope_id = ""
        self.state.project_id = project_id or ""
        if scope_id:
            self.state.scope_id = scope_id
        if description is not None:
            self.state.description = description
        self._save()

    def set_description(self, description: str):
        """Update the description without touching the project/scope lock."""
        if description != self.state.description:
            self.state.description = description or ""
            self._save()

    def session_seconds(self, now: Optional[datetime] = None) -> int:
        """Seconds in the currently running session (0 when not tracking)."""
        if not self.state.is_tracking or not self.state.started_at:
            return 0
        now = now or _now()
        delta = (now - _parse(self.state.started_at)).total_seconds()
        return max(int(math.floor(delta)), 0)

    def elapsed_seconds(self, now: Optional[datetime] = None) -> int:
        return self.state.accumulated_seconds + self.session_seconds(now)

    def start(self, now: Optional[datetime] = None):
        """Start or resume. Accumulated time from earlier sessions is kept."""
        if not self.state.has_selection:
            raise TimerError("Select a project and scope before starting the timer")
        if self.state.is_tracking:
            return
        now = now or _now()
        self.state.is_tracking = True
        self.state.started_at = now.isoformat()
        self.state.paused_at = None
        self._save()
        logger.debug("Timer started for %s/%s", self.state.project_id, self.state.scope_id)

    def pause(self, now: Optional[datetime] = None):
        if not self.state.is_tracking:
            return
        now = now or _now()
        self.state.accumulated_seconds = self.elapsed_seconds(now)
        self.state.is_tracking = False
        self.state.paused_at = now.isoformat()
        self._save()
        logger.debug("Timer paused at %s", format_duration(self.state.accumulated_seconds))

    def cancel(self):
        """Discard the session without saving an entry."""
        self.state = TimerState(project_id=self.state.project_id, scope_id=self.state.scope_id)
        self.store.clear()

    def reset(self):
        """Clear time and description after a completed entry, keeping the selection."""
        self.cancel()

    def complete(self, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Build the time-entry payload for the session.

        Minutes are rounded up so any tracked time counts as at least one
        minute. The caller saves the payload and then calls reset().
        """
        now = now or _now()
        elapsed = self.elapsed_seconds(now)
        minutes = math.ceil(elapsed / 60)

        if minutes <= 0 or not self.state.has_selection:
            raise TimerError(
                "Please ensure you have selected a project and scope, and tracked some time."
            )

        return {
            "user_id": user_id,
            "project_id": self.state.project_id,
            "scope_id": self.state.scope_id,
            "description": self.state.description or "",
            "minutes": minutes,
            "entry_type": "timer",
            "started_at": self.state.started_at,
            "ended_at": now.isoformat(),
        }
