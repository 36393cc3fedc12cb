"""
JSON REST API over the storage layer.

Usage:
    from timetracker.api.app import create_app
    app = create_app("data/timetracker.db")
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from flask import Flask, Response, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from timetracker.config import config
from timetracker.data import schema
from timetracker.data.frames import storage_frames
from timetracker.data.schema import SchemaValidationError
from timetracker.data.storage import Storage, NotFoundError, IntegrityError
from timetracker.exports import export_project_report_pdf
from timetracker.metrics.financials import (
    scope_financials, team_financials, project_financials, apply_sale_overrides,
)

logger = logging.getLogger(__name__)


def create_app(db_path: Optional[Union[str, Path]] = None) -> Flask:
    app = Flask(__name__)
    app.config.update(DATABASE=str(db_path or config.db_path))
    app.extensions["storage"] = Storage(app.config["DATABASE"])

    register_error_handlers(app)
    register_routes(app)
    return app


def get_storage() -> Storage:
    return current_app.extensions["storage"]


def _json_body() -> Dict[str, Any]:
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise SchemaValidationError(["request body must be a JSON object"])
    return body


def _not_found(what: str):
    return jsonify({"error": f"{what} not found"}), 404


def _no_content() -> Response:
    return Response(status=204)


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(SchemaValidationError)
    def handle_validation(error: SchemaValidationError):
        return jsonify({"error": "Invalid data", "details": error.errors}), 400

    @app.errorhandler(NotFoundError)
    def handle_not_found(error: NotFoundError):
        return jsonify({"error": str(error)}), 404

    @app.errorhandler(IntegrityError)
    def handle_integrity(error: IntegrityError):
        return jsonify({"error": "Conflicts with existing data", "details": [str(error)]}), 409

    @app.errorhandler(HTTPException)
    def handle_http(error: HTTPException):
        return jsonify({"error": error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected(error: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"error": "Internal server error"}), 500


def register_routes(app: Flask) -> None:
    @app.get("/api/health")
    def health():
        return jsonify({"status": "ok"})

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    @app.get("/api/users")
    def list_users():
        return jsonify(get_storage().get_users())

    @app.get("/api/users/<user_id>")
    def get_user(user_id: str):
        user = get_storage().get_user(user_id)
        if user is None:
            return _not_found("User")
        return jsonify(user)

    @app.post("/api/users")
    def create_user():
        data = schema.validate_user_insert(_json_body())
        return jsonify(get_storage().create_user(data)), 201

    @app.patch("/api/users/<user_id>")
    def update_user(user_id: str):
        updates = schema.validate_user_update(_json_body())
        user = get_storage().update_user(user_id, updates)
        if user is None:
            return _not_found("User")
        return jsonify(user)

    @app.delete("/api/users/<user_id>")
    def delete_user(user_id: str):
        if not get_storage().delete_user(user_id):
            return _not_found("User")
        return _no_content()

    # -------------------------------------------------------------------------
    # Projects
    # -------------------------------------------------------------------------

    @app.get("/api/projects")
    def list_projects():
        return jsonify(get_storage().get_projects(status=request.args.get("status") or None))

    @app.get("/api/projects/<project_id>")
    def get_project(project_id: str):
        project = get_storage().get_project(project_id)
        if project is None:
            return _not_found("Project")
        return jsonify(project)

    @app.post("/api/projects")
    def create_project():
        data = schema.validate_project_insert(_json_body())
        return jsonify(get_storage().create_project(data)), 201

    @app.patch("/api/projects/<project_id>")
    def update_project(project_id: str):
        updates = schema.validate_project_update(_json_body())
        project = get_storage().update_project(project_id, updates)
        if project is None:
            return _not_found("Project")
        return jsonify(project)

    @app.delete("/api/projects/<project_id>")
    def delete_project(project_id: str):
        if not get_storage().delete_project(project_id):
            return _not_found("Project")
        return _no_content()

    # -------------------------------------------------------------------------
    # Project scopes
    # -------------------------------------------------------------------------

    @app.get("/api/project-scopes")
    def list_all_scopes():
        return jsonify(get_storage().get_all_project_scopes())

    @app.get("/api/projects/<project_id>/scopes")
    def list_project_scopes(project_id: str):
        return jsonify(get_storage().get_project_scopes(project_id))

    @app.post("/api/projects/<project_id>/scopes")
    def create_project_scope(project_id: str):
        data = schema.validate_scope_insert({**_json_body(), "project_id": project_id})
        return jsonify(get_storage().create_project_scope(data)), 201

    @app.delete("/api/projects/<project_id>/scopes/<scope_id>")
    def delete_project_scope(project_id: str, scope_id: str):
        scope = get_storage().get_project_scope(scope_id)
        if scope is None or scope["project_id"] != project_id:
            return _not_found("Scope")
        get_storage().delete_project_scope(scope_id)
        return _no_content()

    # -------------------------------------------------------------------------
    # Scope templates
    # -------------------------------------------------------------------------

    @app.get("/api/scope-templates")
    def list_scope_templates():
        return jsonify(get_storage().get_scope_templates())

    @app.patch("/api/scope-templates/bulk")
    def bulk_update_scope_templates():
        updates = schema.validate_bulk_template_updates(_json_body().get("updates"))
        return jsonify(get_storage().bulk_update_scope_templates(updates))

    @app.get("/api/scope-templates/<template_id>")
    def get_scope_template(template_id: str):
        template = get_storage().get_scope_template(template_id)
        if template is None:
            return _not_found("Scope template")
        return jsonify(template)

    @app.post("/api/scope-templates")
    def create_scope_template():
        data = schema.validate_scope_template_insert(_json_body())
        return jsonify(get_storage().create_scope_template(data)), 201

    @app.patch("/api/scope-templates/<template_id>")
    def update_scope_template(template_id: str):
        updates = schema.validate_scope_template_update(_json_body())
        template = get_storage().update_scope_template(template_id, updates)
        if template is None:
            return _not_found("Scope template")
        return jsonify(template)

    @app.delete("/api/scope-templates/<template_id>")
    def delete_scope_template(template_id: str):
        if not get_storage().delete_scope_template(template_id):
            return _not_found("Scope template")
        return _no_content()

    # -------------------------------------------------------------------------
    # Project members
    # -------------------------------------------------------------------------

    @app.get("/api/projects/<project_id>/members")
    def list_project_members(project_id: str):
        return jsonify(get_storage().get_project_members(project_id))

    @app.post("/api/projects/<project_id>/members")
    def add_project_member(project_id: str):
        data = schema.validate_member_insert({**_json_body(), "project_id": project_id})
        return jsonify(get_storage().add_project_member(data)), 201

    @app.patch("/api/projects/<project_id>/members/<member_id>")
    def update_project_member(project_id: str, member_id: str):
        updates = schema.validate_member_update(_json_body())
        if not _is_member_of(project_id, member_id):
            return _not_found("Member")
        return jsonify(get_storage().update_project_member(member_id, updates))

    @app.delete("/api/projects/<project_id>/members/<member_id>")
    def remove_project_member(project_id: str, member_id: str):
        if not _is_member_of(project_id, member_id):
            return _not_found("Member")
        get_storage().remove_project_member(member_id)
        return _no_content()

    # -------------------------------------------------------------------------
    # Time entries
    # -------------------------------------------------------------------------

    @app.get("/api/time-entries")
    def list_time_entries():
        return jsonify(get_storage().get_time_entries(
            user_id=request.args.get("userId") or None,
            project_id=request.args.get("projectId") or None,
        ))

    @app.post("/api/time-entries")
    def create_time_entry():
        data = schema.validate_time_entry_insert(_json_body())
        return jsonify(get_storage().create_time_entry(data)), 201

    @app.patch("/api/time-entries/<entry_id>")
    def update_time_entry(entry_id: str):
        updates = schema.validate_time_entry_update(_json_body())
        entry = get_storage().update_time_entry(entry_id, updates)
        if entry is None:
            return _not_found("Time entry")
        return jsonify(entry)

    @app.delete("/api/time-entries/<entry_id>")
    def delete_time_entry(entry_id: str):
        if not get_storage().delete_time_entry(entry_id):
            return _not_found("Time entry")
        return _no_content()

    # -------------------------------------------------------------------------
    # App settings
    # -------------------------------------------------------------------------

    @app.get("/api/settings")
    def list_settings():
        return jsonify(get_storage().get_app_settings())

    @app.get("/api/settings/<key>")
    def get_setting(key: str):
        setting = get_storage().get_app_setting(key)
        if setting is None:
            return _not_found("Setting")
        return jsonify(setting)

    @app.put("/api/settings/<key>")
    def put_setting(key: str):
        data = schema.validate_setting({**_json_body(), "key": key})
        return jsonify(get_storage().set_app_setting(data))

    @app.patch("/api/settings/<key>")
    def patch_setting(key: str):
        updates = schema.validate_setting_update(_json_body())
        setting = get_storage().update_app_setting(key, updates)
        if setting is None:
            return _not_found("Setting")
        return jsonify(setting)

    @app.delete("/api/settings/<key>")
    def delete_setting(key: str):
        if not get_storage().delete_app_setting(key):
            return _not_found("Setting")
        return _no_content()

    # -------------------------------------------------------------------------
    # Analytics
    # -------------------------------------------------------------------------

    @app.get("/api/analytics/projects")
    def analytics_projects():
        projects, scope_fin, team_fin = _project_rollup()
        project_fin = project_financials(projects, scope_fin)
        payload = []
        for row in project_fin.to_dict(orient="records"):
            pid = row["project_id"]
            row["scopes"] = scope_fin[scope_fin["project_id"] == pid].to_dict(orient="records")
            row["team"] = team_fin[team_fin["project_id"] == pid].to_dict(orient="records")
            payload.append(row)
        return jsonify(payload)

    @app.get("/api/analytics/projects/<project_id>/report.pdf")
    def analytics_project_report(project_id: str):
        if get_storage().get_project(project_id) is None:
            return _not_found("Project")

        overrides = {}
        sale_amount = request.args.get("saleAmount")
        if sale_amount:
            try:
                overrides[project_id] = float(sale_amount)
            except ValueError:
                raise SchemaValidationError(["saleAmount must be a number"])

        projects, scope_fin, team_fin = _project_rollup(project_id)
        project_fin = apply_sale_overrides(project_financials(projects, scope_fin), overrides)
        pdf_bytes, filename = export_project_report_pdf(
            project_fin.iloc[0].to_dict(),
            scope_fin,
            team_fin,
            currency=get_storage().get_default_currency(),
        )
        return Response(
            pdf_bytes,
            mimetype="application/pdf",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )


def _is_member_of(project_id: str, member_id: str) -> bool:
    member = get_storage().get_project_member(member_id)
    return member is not None and member["project_id"] == project_id


def _project_rollup(project_id: Optional[str] = None):
    """Load frames from storage and compute scope and team rollups."""
    frames = storage_frames(get_storage(), project_id)
    projects = frames["projects"]
    scope_fin = scope_financials(projects, frames["scopes"], frames["entries"], frames["members"])
    team_fin = team_financials(projects, frames["entries"], frames["members"])
    return projects, scope_fin, team_fin
