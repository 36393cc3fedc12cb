"""
Payload validation for every stored entity.

Each validator takes a raw mapping (form values or a JSON body), drops
unknown keys, normalises camelCase aliases to column names, and returns a
clean dict ready for storage. Problems are collected and raised together.
"""
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from timetracker.config import USER_ROLES, PROJECT_STATUSES, ENTRY_TYPES


class SchemaValidationError(Exception):
    """Raised when a payload fails validation."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


# camelCase (original API) -> snake_case column
FIELD_ALIASES = {
    "projectId": "project_id",
    "userId": "user_id",
    "scopeId": "scope_id",
    "createdById": "created_by_id",
    "baseCostRate": "base_cost_rate",
    "baseSellingRate": "base_selling_rate",
    "costRate": "cost_rate",
    "sellingRate": "selling_rate",
    "entryType": "entry_type",
    "startedAt": "started_at",
    "endedAt": "ended_at",
    "isActive": "is_active",
    "updatedBy": "updated_by",
}


# =============================================================================
# FIELD HELPERS
# =============================================================================

def normalise_keys(payload: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Map alias keys to column names."""
    if payload is None:
        return {}
    return {FIELD_ALIASES.get(key, key): value for key, value in payload.items()}


def _clean_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value).strip()


def _parse_number(value: Any, name: str, errors: List[str],
                  positive: bool = False) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        errors.append(f"{name} must be a number")
        return None
    if positive and number <= 0:
        errors.append(f"{name} must be positive")
    elif number < 0:
        errors.append(f"{name} must not be negative")
    return number


def _parse_datetime(value: Any, name: str, errors: List[str]) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    try:
        text = str(value).replace("Z", "+00:00")
        return datetime.fromisoformat(text).isoformat()
    except ValueError:
        errors.append(f"{name} must be an ISO datetime")
        return None


def _parse_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _check_choice(value: Optional[str], name: str, choices: Iterable[str],
                  errors: List[str]):
    if value is not None and value not in choices:
        errors.append(f"{name} must be one of {', '.join(choices)}")


def _require(data: Mapping[str, Any], fields: Iterable[str], errors: List[str]):
    for name in fields:
        value = data.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            errors.append(f"{name} is required")


def _raise_if(errors: List[str]):
    if errors:
        raise SchemaValidationError(errors)


# =============================================================================
# USERS
# =============================================================================

def validate_user_insert(payload: Mapping[str, Any]) -> Dict[str, Any]:
    data = normalise_keys(payload)
    errors: List[str] = []
    _require(data, ["username", "password", "name"], errors)

    role = _clean_str(data.get("role")) or "regular"
    _check_choice(role, "role", USER_ROLES, errors)

    result = {
        "username": _clean_str(data.get("username")),
        "password": data.get("password"),
        "name": _clean_str(data.get("name")),
        "email": _clean_str(data.get("email")) or None,
        "role": role,
    }
    for rate_field in ("base_cost_rate", "base_selling_rate"):
        rate = _parse_number(data.get(rate_field), rate_field, errors, positive=True)
        if rate is not None:
            result[rate_field] = rate

    _raise_if(errors)
    return result


def validate_user_update(payload: Mapping[str, Any]) -> Dict[str, Any]:
    data = normalise_keys(payload)
    errors: List[str] = []
    result: Dict[str, Any] = {}

    for name in ("username", "name"):
        if name in data:
            value = _clean_str(data[name])
            if not value:
                errors.append(f"{name} must not be empty")
            result[name] = value
    if "email" in data:
        result["email"] = _clean_str(data["email"]) or None
    if "role" in data:
        role = _clean_str(data["role"])
        _check_choice(role, "role", USER_ROLES, errors)
        result["role"] = role
    for rate_field in ("base_cost_rate", "base_selling_rate"):
        if rate_field in data:
            rate = _parse_number(data[rate_field], rate_field, errors, positive=True)
            if rate is not None:
                result[rate_field] = rate

    _raise_if(errors)
    return result


# =============================================================================
# PROJECTS AND SCOPES
# =============================================================================

def validate_project_insert(payload: Mapping[str, Any]) -> Dict[str, Any]:
    data = normalise_keys(payload)
    errors: List[str] = []
    _require(data, ["name", "created_by_id"], errors)

    status = _clean_str(data.get("status")) or "active"
    _check_choice(status, "status", PROJECT_STATUSES, errors)

    _raise_if(errors)
    return {
        "name": _clean_str(data["name"]),
        "description": _clean_str(data.get("description")) or "",
        "status": status,
        "created_by_id": _clean_str(data["created_by_id"]),
    }


def validate_project_update(payload: Mapping[str, Any]) -> Dict[str, Any]:
    data = normalise_keys(payload)
    errors: List[str] = []
    result: Dict[str, Any] = {}

    if "name" in data:
        name = _clean_str(data["name"])
        if not name:
            errors.append("name must not be empty")
        result["name"] = name
    if "description" in data:
        result["description"] = _clean_str(data["description"]) or ""
    if "status" in data:
        status = _clean_str(data["status"])
        _check_choice(status, "status", PROJECT_STATUSES, errors)
        result["status"] = status

    _raise_if(errors)
    return result


def validate_scope_insert(payload: Mapping[str, Any]) -> Dict[str, Any]:
    data = normalise_keys(payload)
    errors: List[str] = []
    _require(data, ["project_id", "name"], errors)
    _raise_if(errors)
    return {
        "project_id": _clean_str(data["project_id"]),
        "name": _clean_str(data["name"]),
    }


def validate_scope_template_insert(payload: Mapping[str, Any]) -> Dict[str, Any]:
    data = normalise_keys(payload)
    errors: List[str] = []
    _require(data, ["name"], errors)
    _raise_if(errors)
    return {
        "name": _clean_str(data["name"]),
        "description": _clean_str(data.get("description")) or "",
        "is_active": _parse_bool(data.get("is_active", True)),
    }


def validate_scope_template_update(payload: Mapping[str, Any]) -> Dict[str, Any]:
    data = normalise_keys(payload)
    errors: List[str] = []
    result: Dict[str, Any] = {}

    if "name" in data:
        name = _clean_str(data["name"])
        if not name:
            errors.append("name must not be empty")
        result["name"] = name
    if "description" in data:
        result["description"] = _clean_str(data["description"]) or ""
    if "is_active" in data:
        result["is_active"] = _parse_bool(data["is_active"])

    _raise_if(errors)
    return result


def validate_bulk_template_updates(updates: Any) -> List[Dict[str, Any]]:
    """Validate a list of {id, is_active} toggles."""
    if not isinstance(updates, list):
        raise SchemaValidationError(["updates must be an array"])

    errors: List[str] = []
    result = []
    for i, item in enumerate(updates):
        if not isinstance(item, Mapping):
            errors.append(f"updates[{i}] must be an object")
            continue
        data = normalise_keys(item)
        if not data.get("id"):
            errors.append(f"updates[{i}].id is required")
            continue
        if "is_active" not in data:
            errors.append(f"updates[{i}].is_active is required")
            continue
        result.append({"id": str(data["id"]), "is_active": _parse_bool(data["is_active"])})

    _raise_if(errors)
    return result


# =============================================================================
# MEMBERS
# =============================================================================

def validate_member_insert(payload: Mapping[str, Any]) -> Dict[str, Any]:
    data = normalise_keys(payload)
    errors: List[str] = []
    _require(data, ["project_id", "user_id"], errors)

    result = {
        "project_id": _clean_str(data.get("project_id")),
        "user_id": _clean_str(data.get("user_id")),
    }
    for rate_field in ("cost_rate", "selling_rate"):
        rate = _parse_number(data.get(rate_field), rate_field, errors)
        if rate is not None:
            result[rate_field] = rate

    _raise_if(errors)
    return result


def validate_member_update(payload: Mapping[str, Any]) -> Dict[str, Any]:
    data = normalise_keys(payload)
    errors: List[str] = []
    result: Dict[str, Any] = {}

    for rate_field in ("cost_rate", "selling_rate"):
        if rate_field in data:
            rate = _parse_number(data[rate_field], rate_field, errors)
            if rate is not None:
                result[rate_field] = rate

    _raise_if(errors)
    return result


# =============================================================================
# TIME ENTRIES
# =============================================================================

def _parse_minutes(value: Any, errors: List[str]) -> Optional[int]:
    try:
        minutes = int(value)
    except (TypeError, ValueError):
        errors.append("minutes must be an integer")
        return None
    if isinstance(value, float) and not value.is_integer():
        errors.append("minutes must be an integer")
        return None
    if minutes <= 0:
        errors.append("minutes must be positive")
        return None
    return minutes


def _check_time_order(result: Dict[str, Any], errors: List[str]):
    started = result.get("started_at")
    ended = result.get("ended_at")
    if not (started and ended):
        return
    start_dt = datetime.fromisoformat(started)
    end_dt = datetime.fromisoformat(ended)
    if (start_dt.tzinfo is None) != (end_dt.tzinfo is None):
        start_dt = start_dt.replace(tzinfo=None)
        end_dt = end_dt.replace(tzinfo=None)
    if end_dt < start_dt:
        errors.append("ended_at must not be before started_at")


def check_time_order(started_at: Optional[str], ended_at: Optional[str]):
    """Raise if ended_at is before started_at. Used after merging partial updates."""
    errors: List[str] = []
    _check_time_order({"started_at": started_at, "ended_at": ended_at}, errors)
    _raise_if(errors)


def validate_time_entry_insert(payload: Mapping[str, Any]) -> Dict[str, Any]:
    data = normalise_keys(payload)
    errors: List[str] = []
    _require(data, ["user_id", "project_id", "scope_id", "minutes"], errors)

    entry_type = _clean_str(data.get("entry_type")) or "manual"
    _check_choice(entry_type, "entry_type", ENTRY_TYPES, errors)

    result = {
        "user_id": _clean_str(data.get("user_id")),
        "project_id": _clean_str(data.get("project_id")),
        "scope_id": _clean_str(data.get("scope_id")),
        "description": _clean_str(data.get("description")) or "",
        "minutes": None,
        "entry_type": entry_type,
        "started_at": _parse_datetime(data.get("started_at"), "started_at", errors),
        "ended_at": _parse_datetime(data.get("ended_at"), "ended_at", errors),
    }
    if data.get("minutes") is not None:
        result["minutes"] = _parse_minutes(data["minutes"], errors)

    if not errors:
        _check_time_order(result, errors)

    _raise_if(errors)
    return result


def validate_time_entry_update(payload: Mapping[str, Any]) -> Dict[str, Any]:
    data = normalise_keys(payload)
    errors: List[str] = []
    result: Dict[str, Any] = {}

    for name in ("project_id", "scope_id"):
        if name in data:
            value = _clean_str(data[name])
            if not value:
                errors.append(f"{name} must not be empty")
            result[name] = value
    if "description" in data:
        result["description"] = _clean_str(data["description"]) or ""
    if "minutes" in data:
        result["minutes"] = _parse_minutes(data["minutes"], errors)
    if "entry_type" in data:
        entry_type = _clean_str(data["entry_type"])
        _check_choice(entry_type, "entry_type", ENTRY_TYPES, errors)
        result["entry_type"] = entry_type
    for name in ("started_at", "ended_at"):
        if name in data:
            result[name] = _parse_datetime(data[name], name, errors)

    if not errors:
        _check_time_order(result, errors)

    _raise_if(errors)
    return result


# =============================================================================
# SETTINGS
# =============================================================================

def validate_setting(payload: Mapping[str, Any]) -> Dict[str, Any]:
    data = normalise_keys(payload)
    errors: List[str] = []
    _require(data, ["key", "value", "updated_by"], errors)
    _raise_if(errors)
    return {
        "key": _clean_str(data["key"]),
        "value": _clean_str(data["value"]),
        "description": _clean_str(data.get("description")) or "",
        "updated_by": _clean_str(data["updated_by"]),
    }


def validate_setting_update(payload: Mapping[str, Any]) -> Dict[str, Any]:
    data = normalise_keys(payload)
    errors: List[str] = []
    result: Dict[str, Any] = {}

    if "value" in data:
        value = _clean_str(data["value"])
        if not value:
            errors.append("value must not be empty")
        result["value"] = value
    for name in ("description", "updated_by"):
        if name in data:
            result[name] = _clean_str(data[name]) or ""

    _raise_if(errors)
    return result
