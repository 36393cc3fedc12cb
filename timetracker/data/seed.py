"""
Sample data for a fresh database.
"""
import logging
from typing import Dict, Any

from timetracker.config import SETTING_DEFAULT_CURRENCY
from timetracker.data.storage import Storage

logger = logging.getLogger(__name__)


SAMPLE_USERS = [
    {"username": "admin", "password": "admin123", "name": "System Administrator",
     "email": "admin@timetracker.com", "role": "admin"},
    {"username": "john_dev", "password": "dev123", "name": "John Developer",
     "email": "john@example.com", "role": "regular"},
    {"username": "jane_designer", "password": "design123", "name": "Jane Designer",
     "email": "jane@example.com", "role": "regular"},
]

SAMPLE_TEMPLATES = [
    "Frontend Development",
    "Backend Development",
    "UI/UX Design",
    "Testing & QA",
    "Documentation",
]


def seed_sample_data(storage: Storage) -> Dict[str, Any]:
    """
    Populate an empty database with demo users, projects and entries.

    Returns a summary of created row counts. Does nothing if any user exists.
    """
    if storage.get_users():
        logger.info("Database already has users, skipping seed")
        return {}

    admin, john, jane = [storage.create_user(u) for u in SAMPLE_USERS]

    for name in SAMPLE_TEMPLATES:
        storage.create_scope_template({"name": name, "is_active": True})

    ecommerce = storage.create_project({
        "name": "E-commerce Platform",
        "description": "Modern e-commerce platform with React and Node.js",
        "status": "active",
        "created_by_id": admin["id"],
    })
    mobile = storage.create_project({
        "name": "Mobile App MVP",
        "description": "Cross-platform mobile application for task management",
        "status": "paused",
        "created_by_id": admin["id"],
    })

    frontend = storage.create_project_scope({"project_id": ecommerce["id"], "name": "Frontend Development"})
    backend = storage.create_project_scope({"project_id": ecommerce["id"], "name": "Backend API"})
    storage.create_project_scope({"project_id": mobile["id"], "name": "Mobile UI Design"})

    storage.add_project_member({"project_id": ecommerce["id"], "user_id": john["id"],
                                "cost_rate": 75, "selling_rate": 120})
    storage.add_project_member({"project_id": ecommerce["id"], "user_id": jane["id"],
                                "cost_rate": 65, "selling_rate": 100})
    storage.add_project_member({"project_id": mobile["id"], "user_id": jane["id"],
                                "cost_rate": 65, "selling_rate": 100})

    storage.create_time_entry({
        "user_id": john["id"],
        "project_id": ecommerce["id"],
        "scope_id": backend["id"],
        "description": "Backend API development",
        "minutes": 180,
        "entry_type": "timer",
        "started_at": "2024-09-24T13:00:00+00:00",
        "ended_at": "2024-09-24T16:00:00+00:00",
    })
    storage.create_time_entry({
        "user_id": jane["id"],
        "project_id": ecommerce["id"],
        "scope_id": frontend["id"],
        "description": "Frontend development work",
        "minutes": 300,
        "entry_type": "manual",
    })

    storage.set_app_setting({
        "key": SETTING_DEFAULT_CURRENCY,
        "value": "USD",
        "description": "Default currency for all financial calculations and reports",
        "updated_by": admin["id"],
    })

    summary = {
        "users": 3,
        "scope_templates": len(SAMPLE_TEMPLATES),
        "projects": 2,
        "project_scopes": 3,
        "project_members": 3,
        "time_entries": 2,
        "app_settings": 1,
    }
    logger.info("Seeded sample data: %s", summary)
    return summary
