"""
Storage layer: CRUD over the relational schema.

Every public method opens its own connection, so a Storage instance can be
shared between Streamlit reruns and Flask requests.
"""
from __future__ import annotations

import logging
import sqlite3
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union

from werkzeug.security import generate_password_hash

from timetracker.config import config, SETTING_DEFAULT_CURRENCY
from timetracker.data.db import connect, init_db, utc_now
from timetracker.data.schema import check_time_order

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Base class for storage failures."""


class NotFoundError(StorageError):
    """Raised when a referenced row does not exist."""


class IntegrityError(StorageError):
    """Raised when a write violates a uniqueness or reference constraint."""


# Columns that may be changed through update_* calls
UPDATABLE_COLUMNS = {
    "users": ["username", "name", "email", "role", "base_cost_rate", "base_selling_rate"],
    "projects": ["name", "description", "status"],
    "scope_templates": ["name", "description", "is_active"],
    "project_members": ["cost_rate", "selling_rate"],
    "time_entries": ["project_id", "scope_id", "description", "minutes",
                     "entry_type", "started_at", "ended_at"],
    "app_settings": ["value", "description", "updated_by"],
}

TIME_ENTRY_SELECT = """
SELECT
    te.id, te.user_id, te.project_id, te.scope_id, te.description,
    te.minutes, te.entry_type, te.started_at, te.ended_at, te.created_at,
    p.name AS project_name,
    ps.name AS scope_name,
    u.name AS user_name
FROM time_entries te
JOIN projects p ON p.id = te.project_id
JOIN project_scopes ps ON ps.id = te.scope_id
JOIN users u ON u.id = te.user_id
"""


def _new_id() -> str:
    return str(uuid.uuid4())


def _row_to_dict(row: Optional[sqlite3.Row]) -> Optional[Dict[str, Any]]:
    if row is None:
        return None
    data = dict(row)
    if "is_active" in data:
        data["is_active"] = bool(data["is_active"])
    return data


def _public_user(row: Optional[sqlite3.Row]) -> Optional[Dict[str, Any]]:
    data = _row_to_dict(row)
    if data is not None:
        data.pop("password_hash", None)
    return data


class Storage:
    """SQLite-backed store for users, projects, scopes, members, entries, settings."""

    def __init__(self, db_path: Optional[Union[str, Path]] = None):
        self.db_path = Path(db_path) if db_path else config.db_path
        init_db(self.db_path)

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        conn = connect(self.db_path)
        try:
            yield conn
            conn.commit()
        except sqlite3.IntegrityError as e:
            conn.rollback()
            logger.warning("Integrity error: %s", e)
            raise IntegrityError(str(e)) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _fetch_one(self, sql: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        with self._connection() as conn:
            return conn.execute(sql, params).fetchone()

    def _fetch_all(self, sql: str, params: tuple = ()) -> List[sqlite3.Row]:
        with self._connection() as conn:
            return conn.execute(sql, params).fetchall()

    def _update(self, table: str, row_id: str, updates: Mapping[str, Any],
                touch: Optional[str] = None, key_column: str = "id") -> bool:
        """Apply whitelisted column updates. Returns False if no row matched."""
        allowed = UPDATABLE_COLUMNS[table]
        values = {k: v for k, v in updates.items() if k in allowed}
        if touch:
            values[touch] = utc_now()

        with self._connection() as conn:
            if not values:
                row = conn.execute(
                    f"SELECT 1 FROM {table} WHERE {key_column} = ?", (row_id,)
                ).fetchone()
                return row is not None
            assignments = ", ".join(f"{col} = ?" for col in values)
            cursor = conn.execute(
                f"UPDATE {table} SET {assignments} WHERE {key_column} = ?",
                (*values.values(), row_id),
            )
            return cursor.rowcount > 0

    def _delete(self, table: str, row_id: str, key_column: str = "id") -> bool:
        with self._connection() as conn:
            cursor = conn.execute(f"DELETE FROM {table} WHERE {key_column} = ?", (row_id,))
            return cursor.rowcount > 0

    # =========================================================================
    # USERS
    # =========================================================================

    def get_users(self) -> List[Dict[str, Any]]:
        rows = self._fetch_all("SELECT * FROM users ORDER BY name")
        return [_public_user(r) for r in rows]

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        return _public_user(self._fetch_one("SELECT * FROM users WHERE id = ?", (user_id,)))

    def get_user_by_username(self, username: str) -> Optional[Dict[str, Any]]:
        return _public_user(
            self._fetch_one("SELECT * FROM users WHERE username = ?", (username,))
        )

    def create_user(self, user: Mapping[str, Any]) -> Dict[str, Any]:
        user_id = _new_id()
        with self._connection() as conn:
            conn.execute(
                """
                INSERT INTO users (id, username, password_hash, role, name, email,
                                   base_cost_rate, base_selling_rate, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    user["username"],
                    generate_password_hash(user["password"]),
                    user.get("role") or "regular",
                    user["name"],
                    user.get("email"),
                    user.get("base_cost_rate", config.default_cost_rate),
                    user.get("base_selling_rate", config.default_selling_rate),
                    utc_now(),
                ),
            )
        logger.info("Created user %s (%s)", user["username"], user_id)
        return self.get_user(user_id)

    def update_user(self, user_id: str, updates: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        if not self._update("users", user_id, updates):
            return None
        return self.get_user(user_id)

    def delete_user(self, user_id: str) -> bool:
        return self._delete("users", user_id)

    # =========================================================================
    # PROJECTS
    # =========================================================================

    def get_projects(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        if status:
            rows = self._fetch_all(
                "SELECT * FROM projects WHERE status = ? ORDER BY created_at DESC, rowid DESC",
                (status,),
            )
        else:
            rows = self._fetch_all("SELECT * FROM projects ORDER BY created_at DESC, rowid DESC")
        return [_row_to_dict(r) for r in rows]

    def get_project(self, project_id: str) -> Optional[Dict[str, Any]]:
        return _row_to_dict(self._fetch_one("SELECT * FROM projects WHERE id = ?", (project_id,)))

    def create_project(self, project: Mapping[str, Any]) -> Dict[str, Any]:
        if self.get_user(project["created_by_id"]) is None:
            raise NotFoundError(f"User {project['created_by_id']} not found")

        project_id = _new_id()
        now = utc_now()
        with self._connection() as conn:
            conn.execute(
                """
                INSERT INTO projects (id, name, description, status, created_by_id,
                                      created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    project_id,
                    project["name"],
                    project.get("description") or "",
                    project.get("status") or "active",
                    project["created_by_id"],
                    now,
                    now,
                ),
            )
        logger.info("Created project %s (%s)", project["name"], project_id)
        return self.get_project(project_id)

    def update_project(self, project_id: str, updates: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        if not self._update("projects", project_id, updates, touch="updated_at"):
            return None
        return self.get_project(project_id)

    def delete_project(self, project_id: str) -> bool:
        deleted = self._delete("projects", project_id)
        if deleted:
            logger.info("Deleted project %s", project_id)
        return deleted

    # =========================================================================
    # PROJECT SCOPES
    # =========================================================================

    def get_all_project_scopes(self) -> List[Dict[str, Any]]:
        rows = self._fetch_all("SELECT * FROM project_scopes ORDER BY created_at, rowid")
        return [_row_to_dict(r) for r in rows]

    def get_project_scopes(self, project_id: str) -> List[Dict[str, Any]]:
        rows = self._fetch_all(
            "SELECT * FROM project_scopes WHERE project_id = ? ORDER BY created_at, rowid",
            (project_id,),
        )
        return [_row_to_dict(r) for r in rows]

    def get_project_scope(self, scope_id: str) -> Optional[Dict[str, Any]]:
        return _row_to_dict(
            self._fetch_one("SELECT * FROM project_scopes WHERE id = ?", (scope_id,))
        )

    def create_project_scope(self, scope: Mapping[str, Any]) -> Dict[str, Any]:
        if self.get_project(scope["project_id"]) is None:
            raise NotFoundError(f"Project {scope['project_id']} not found")

        scope_id = _new_id()
        with self._connection() as conn:
            conn.execute(
                "INSERT INTO project_scopes (id, project_id, name, created_at) VALUES (?, ?, ?, ?)",
                (scope_id, scope["project_id"], scope["name"], utc_now()),
            )
        return self.get_project_scope(scope_id)

    def delete_project_scope(self, scope_id: str) -> bool:
        return self._delete("project_scopes", scope_id)

    def apply_scope_templates(self, project_id: str,
                              template_ids: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        """
        Create one scope per active template on a project.

        Templates whose name already exists as a scope on the project are skipped.
        """
        existing = {s["name"] for s in self.get_project_scopes(project_id)}
        created = []
        for template in self.get_scope_templates():
            if not template["is_active"]:
                continue
            if template_ids is not None and template["id"] not in template_ids:
                continue
            if template["name"] in existing:
                continue
            created.append(self.create_project_scope(
                {"project_id": project_id, "name": template["name"]}
            ))
            existing.add(template["name"])
        return created

    # =========================================================================
    # SCOPE TEMPLATES
    # =========================================================================

    def get_scope_templates(self, active_only: bool = False) -> List[Dict[str, Any]]:
        sql = "SELECT * FROM scope_templates"
        if active_only:
            sql += " WHERE is_active = 1"
        sql += " ORDER BY created_at DESC, rowid DESC"
        return [_row_to_dict(r) for r in self._fetch_all(sql)]

    def get_scope_template(self, template_id: str) -> Optional[Dict[str, Any]]:
        return _row_to_dict(
            self._fetch_one("SELECT * FROM scope_templates WHERE id = ?", (template_id,))
        )

    def create_scope_template(self, template: Mapping[str, Any]) -> Dict[str, Any]:
        template_id = _new_id()
        now = utc_now()
        with self._connection() as conn:
            conn.execute(
                """
                INSERT INTO scope_templates (id, name, description, is_active,
                                             created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    template_id,
                    template["name"],
                    template.get("description") or "",
                    int(template.get("is_active", True)),
                    now,
                    now,
                ),
            )
        return self.get_scope_template(template_id)

    def update_scope_template(self, template_id: str,
                              updates: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        updates = dict(updates)
        if "is_active" in updates:
            updates["is_active"] = int(bool(updates["is_active"]))
        if not self._update("scope_templates", template_id, updates, touch="updated_at"):
            return None
        return self.get_scope_template(template_id)

    def delete_scope_template(self, template_id: str) -> bool:
        return self._delete("scope_templates", template_id)

    def bulk_update_scope_templates(self, updates: List[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        """Toggle is_active on many templates at once. Unknown ids are skipped."""
        now = utc_now()
        with self._connection() as conn:
            for update in updates:
                conn.execute(
                    "UPDATE scope_templates SET is_active = ?, updated_at = ? WHERE id = ?",
                    (int(bool(update["is_active"])), now, update["id"]),
                )
        results = [self.get_scope_template(u["id"]) for u in updates]
        return [r for r in results if r is not None]

    # =========================================================================
    # PROJECT MEMBERS
    # =========================================================================

    def get_project_members(self, project_id: Optional[str] = None) -> List[Dict[str, Any]]:
        sql = """
            SELECT pm.*, u.name AS user_name, u.username, u.email, u.role,
                   u.base_cost_rate, u.base_selling_rate
            FROM project_members pm
            JOIN users u ON u.id = pm.user_id
        """
        params: tuple = ()
        if project_id:
            sql += " WHERE pm.project_id = ?"
            params = (project_id,)
        sql += " ORDER BY pm.assigned_at, pm.rowid"
        return [_row_to_dict(r) for r in self._fetch_all(sql, params)]

    def get_project_member(self, member_id: str) -> Optional[Dict[str, Any]]:
        return _row_to_dict(
            self._fetch_one("SELECT * FROM project_members WHERE id = ?", (member_id,))
        )

    def add_project_member(self, member: Mapping[str, Any]) -> Dict[str, Any]:
        """Assign a user to a project. Missing rates default to the user's base rates."""
        user = self.get_user(member["user_id"])
        if user is None:
            raise NotFoundError(f"User {member['user_id']} not found")
        if self.get_project(member["project_id"]) is None:
            raise NotFoundError(f"Project {member['project_id']} not found")

        cost_rate = member.get("cost_rate")
        if cost_rate is None:
            cost_rate = user.get("base_cost_rate") or 0
        selling_rate = member.get("selling_rate")
        if selling_rate is None:
            selling_rate = user.get("base_selling_rate") or 0

        member_id = _new_id()
        with self._connection() as conn:
            conn.execute(
                """
                INSERT INTO project_members (id, project_id, user_id, cost_rate,
                                             selling_rate, assigned_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (member_id, member["project_id"], member["user_id"],
                 cost_rate, selling_rate, utc_now()),
            )
        return self.get_project_member(member_id)

    def update_project_member(self, member_id: str,
                              updates: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        if not self._update("project_members", member_id, updates):
            return None
        return self.get_project_member(member_id)

    def remove_project_member(self, member_id: str) -> bool:
        return self._delete("project_members", member_id)

    # =========================================================================
    # TIME ENTRIES
    # =========================================================================

    def get_time_entries(self, user_id: Optional[str] = None,
                         project_id: Optional[str] = None,
                         limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Entries joined with project, scope and user names, newest first."""
        conditions = []
        params: List[Any] = []
        if user_id:
            conditions.append("te.user_id = ?")
            params.append(user_id)
        if project_id:
            conditions.append("te.project_id = ?")
            params.append(project_id)

        sql = TIME_ENTRY_SELECT
        if conditions:
            sql += " WHERE " + " AND ".join(conditions)
        sql += " ORDER BY te.created_at DESC, te.rowid DESC"
        if limit:
            sql += " LIMIT ?"
            params.append(int(limit))

        return [_row_to_dict(r) for r in self._fetch_all(sql, tuple(params))]

    def get_time_entry(self, entry_id: str) -> Optional[Dict[str, Any]]:
        return _row_to_dict(self._fetch_one(TIME_ENTRY_SELECT + " WHERE te.id = ?", (entry_id,)))

    def _check_entry_refs(self, project_id: str, scope_id: str):
        if self.get_project(project_id) is None:
            raise NotFoundError(f"Project {project_id} not found")
        scope = self.get_project_scope(scope_id)
        if scope is None:
            raise NotFoundError(f"Scope {scope_id} not found")
        if scope["project_id"] != project_id:
            raise IntegrityError(f"Scope {scope_id} does not belong to project {project_id}")

    def create_time_entry(self, entry: Mapping[str, Any]) -> Dict[str, Any]:
        if self.get_user(entry["user_id"]) is None:
            raise NotFoundError(f"User {entry['user_id']} not found")
        self._check_entry_refs(entry["project_id"], entry["scope_id"])

        entry_id = _new_id()
        with self._connection() as conn:
            conn.execute(
                """
                INSERT INTO time_entries (id, user_id, project_id, scope_id, description,
                                          minutes, entry_type, started_at, ended_at, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry_id,
                    entry["user_id"],
                    entry["project_id"],
                    entry["scope_id"],
                    entry.get("description") or "",
                    int(entry["minutes"]),
                    entry.get("entry_type") or "manual",
                    entry.get("started_at"),
                    entry.get("ended_at"),
                    utc_now(),
                ),
            )
        logger.info("Logged %s minutes (%s) for user %s on project %s",
                    entry["minutes"], entry.get("entry_type") or "manual",
                    entry["user_id"], entry["project_id"])
        return self.get_time_entry(entry_id)

    def update_time_entry(self, entry_id: str,
                          updates: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        current = self.get_time_entry(entry_id)
        if current is None:
            return None
        if "project_id" in updates or "scope_id" in updates:
            self._check_entry_refs(
                updates.get("project_id", current["project_id"]),
                updates.get("scope_id", current["scope_id"]),
            )
        if "started_at" in updates or "ended_at" in updates:
            check_time_order(updates.get("started_at", current["started_at"]),
                             updates.get("ended_at", current["ended_at"]))
        self._update("time_entries", entry_id, updates)
        return self.get_time_entry(entry_id)

    def delete_time_entry(self, entry_id: str) -> bool:
        return self._delete("time_entries", entry_id)

    # =========================================================================
    # APP SETTINGS
    # =========================================================================

    def get_app_settings(self) -> List[Dict[str, Any]]:
        return [_row_to_dict(r) for r in self._fetch_all("SELECT * FROM app_settings ORDER BY key")]

    def get_app_setting(self, key: str) -> Optional[Dict[str, Any]]:
        return _row_to_dict(self._fetch_one("SELECT * FROM app_settings WHERE key = ?", (key,)))

    def set_app_setting(self, setting: Mapping[str, Any]) -> Dict[str, Any]:
        """Insert or update a setting by key."""
        if self.get_user(setting["updated_by"]) is None:
            raise NotFoundError(f"User {setting['updated_by']} not found")

        now = utc_now()
        with self._connection() as conn:
            conn.execute(
                """
                INSERT INTO app_settings (id, key, value, description, updated_by, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    description = excluded.description,
                    updated_by = excluded.updated_by,
                    updated_at = excluded.updated_at
                """,
                (_new_id(), setting["key"], setting["value"],
                 setting.get("description") or "", setting["updated_by"], now),
            )
        return self.get_app_setting(setting["key"])

    def update_app_setting(self, key: str, updates: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        if not self._update("app_settings", key, updates, touch="updated_at", key_column="key"):
            return None
        return self.get_app_setting(key)

    def delete_app_setting(self, key: str) -> bool:
        return self._delete("app_settings", key, key_column="key")

    def get_default_currency(self) -> str:
        setting = self.get_app_setting(SETTING_DEFAULT_CURRENCY)
        if setting and setting.get("value"):
            return setting["value"]
        return config.default_currency
