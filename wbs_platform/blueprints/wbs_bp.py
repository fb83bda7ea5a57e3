"""
WBS Blueprint.

Endpoints:
    GET    /api/v1/wbs?project_id=&flat=&parent_id=&level=&rollup=  — tree / flat list
    POST   /api/v1/wbs                                   — create node
    GET    /api/v1/wbs/<id>                              — node detail
    PATCH  /api/v1/wbs/<id>                              — partial update
    PATCH  /api/v1/wbs/<id>/progress                     — leaf progress
    PATCH  /api/v1/wbs/<id>/level                        — move up / down
    DELETE /api/v1/wbs/<id>                              — delete subtree
    GET    /api/v1/wbs/<id>/assignees                    — list assignees
    POST   /api/v1/wbs/<id>/assignees                    — assign one person
    PUT    /api/v1/wbs/<id>/assignees                    — replace assignee set
    DELETE /api/v1/wbs/<id>/assignees/<person_id>        — unassign
    GET    /api/v1/wbs/delayed?project_id=               — overdue leaves
    GET    /api/v1/wbs/stats?project_id=                 — per-assignee workload
    GET    /api/v1/wbs/schedule-stats?project_id=        — planned vs actual

Layer contract:
    - Malformed input is rejected here with 400 before the service runs.
    - No ORM calls and no db.session.commit() here; wbs_service owns the
      unit of work.
    - Service exceptions are mapped once by the errorhandlers below.
"""

import logging

from flask import Blueprint, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from wbs_platform.core.exceptions import (
    CascadeFailureError,
    ConcurrentModificationError,
    ConflictError,
    HierarchyCycleError,
    LevelMismatchError,
    NotALeafError,
    NotFoundError,
    ParentNotFoundError,
    ValidationError,
)
from wbs_platform.models import db
from wbs_platform.models.wbs import WbsLevel, WbsStatus
from wbs_platform.services import assignment_service, wbs_service
from wbs_platform.utils.errors import E, api_error
from wbs_platform.utils.helpers import parse_date_input, parse_flag

logger = logging.getLogger(__name__)

wbs_bp = Blueprint("wbs", __name__, url_prefix="/api/v1")

MAX_NAME_LENGTH = 300

# Optional text fields and their column limits (None = unbounded Text)
_OPTIONAL_TEXT_FIELDS = {
    "description": None,
    "deliverable_name": 300,
    "deliverable_link": 1000,
}


# ── Error handlers ────────────────────────────────────────────────────────────


@wbs_bp.errorhandler(ParentNotFoundError)
def _handle_parent_not_found(error: ParentNotFoundError):
    return api_error(E.PARENT_NOT_FOUND, str(error))


@wbs_bp.errorhandler(NotFoundError)
def _handle_not_found(error: NotFoundError):
    return api_error(E.NOT_FOUND, str(error))


@wbs_bp.errorhandler(LevelMismatchError)
def _handle_level_mismatch(error: LevelMismatchError):
    return api_error(E.LEVEL_MISMATCH, str(error), details=error.details)


@wbs_bp.errorhandler(NotALeafError)
def _handle_not_a_leaf(error: NotALeafError):
    return api_error(E.NOT_A_LEAF, str(error), details=error.details)


@wbs_bp.errorhandler(HierarchyCycleError)
def _handle_cycle(error: HierarchyCycleError):
    return api_error(E.HIERARCHY_CYCLE, str(error), details=error.details)


@wbs_bp.errorhandler(ValidationError)
def _handle_validation(error: ValidationError):
    return api_error(E.BUSINESS_RULE, str(error), details=error.details)


@wbs_bp.errorhandler(ConcurrentModificationError)
def _handle_concurrent(error: ConcurrentModificationError):
    return api_error(
        E.CONCURRENT_MODIFICATION, str(error),
        details={"project_id": error.project_id, "parent_id": error.parent_id,
                 "attempts": error.attempts},
    )


@wbs_bp.errorhandler(ConflictError)
def _handle_conflict(error: ConflictError):
    return api_error(E.CONFLICT_DUPLICATE, str(error))


@wbs_bp.errorhandler(CascadeFailureError)
def _handle_cascade(error: CascadeFailureError):
    return api_error(E.CASCADE_FAILURE, str(error), details={"node_id": error.node_id})


@wbs_bp.errorhandler(SQLAlchemyError)
def _handle_db(error: SQLAlchemyError):
    db.session.rollback()
    logger.exception("Database error in wbs_bp endpoint=%s", request.endpoint)
    return api_error(E.DATABASE, "Database error")


# ── Input helpers ─────────────────────────────────────────────────────────────


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _require_project_id():
    """Return (project_id, err_response) from the query string."""
    project_id = request.args.get("project_id", type=int)
    if project_id is None:
        return None, api_error(E.VALIDATION_REQUIRED, "project_id query parameter is required")
    return project_id, None


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _validate_fields(data: dict, errors: dict, *, creating: bool = False) -> None:
    """Shape checks shared by create and update; fills ``errors`` in place."""
    if creating or "name" in data:
        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            errors["name"] = "name is required."
        elif len(name.strip()) > MAX_NAME_LENGTH:
            errors["name"] = f"name must be <= {MAX_NAME_LENGTH} characters."

    for field, max_length in _OPTIONAL_TEXT_FIELDS.items():
        value = data.get(field)
        if value is None:
            continue
        if not isinstance(value, str):
            errors[field] = f"{field} must be a string."
        elif max_length is not None and len(value) > max_length:
            errors[field] = f"{field} must be <= {max_length} characters."

    if data.get("level") is not None:
        try:
            WbsLevel.coerce(data["level"])
        except ValueError as exc:
            errors["level"] = str(exc)

    if data.get("status") is not None:
        try:
            WbsStatus.coerce(data["status"])
        except ValueError as exc:
            errors["status"] = str(exc)

    if data.get("progress") is not None:
        progress = data["progress"]
        if not _is_int(progress) or not 0 <= progress <= 100:
            errors["progress"] = "progress must be an integer between 0 and 100."

    if data.get("weight") is not None and (not _is_int(data["weight"]) or data["weight"] < 0):
        errors["weight"] = "weight must be a non-negative integer."

    for field in ("start_date", "end_date"):
        if data.get(field):
            try:
                parse_date_input(data[field])
            except ValueError as exc:
                errors[field] = str(exc)

    if "assignee_ids" in data:
        ids = data["assignee_ids"]
        if ids is not None and (not isinstance(ids, list) or not all(_is_int(i) for i in ids)):
            errors["assignee_ids"] = "assignee_ids must be a list of integers."


def _validation_failed(errors: dict):
    return api_error(E.VALIDATION_INVALID, "Validation failed", details=errors)


# ── Tree / list ───────────────────────────────────────────────────────────────


@wbs_bp.route("/wbs", methods=["GET"])
def list_wbs():
    """Return a project's WBS.

    Query params:
        project_id (int, required)
        flat (bool): flat list instead of nested tree.
        parent_id (str): only direct children of this node.
        level (str|int): only nodes of this level.
        rollup (bool): tree mode; group dates span their children.
    """
    project_id, err = _require_project_id()
    if err:
        return err

    level = request.args.get("level")
    if level:
        try:
            WbsLevel.coerce(level)
        except ValueError as exc:
            return api_error(E.VALIDATION_INVALID, str(exc))

    items = wbs_service.get_tree(
        project_id,
        flat=parse_flag(request.args.get("flat")),
        parent_id=request.args.get("parent_id") or None,
        level=level or None,
        roll_up_dates=parse_flag(request.args.get("rollup")),
    )
    return jsonify({"items": items, "total": len(items)}), 200


@wbs_bp.route("/wbs", methods=["POST"])
def create_wbs():
    """Create a node.

    Body (JSON):
        project_id (int, required)
        name (str, required)
        parent_id (str, optional): omit for a LEVEL1 root.
        level (str|int, optional): defaults to the level the parent expects.
        description, start_date, end_date, weight, deliverable_name,
        deliverable_link, assignee_ids (optional)
    """
    data = _json_body()

    errors: dict[str, str] = {}
    if not _is_int(data.get("project_id")):
        errors["project_id"] = "project_id (integer) is required."
    parent_id = data.get("parent_id")
    if parent_id is not None and not isinstance(parent_id, str):
        errors["parent_id"] = "parent_id must be a string id."
    _validate_fields(data, errors, creating=True)
    for field in ("progress", "status"):
        if field in data:
            errors[field] = "New WBS items start PENDING at 0; update them after creation."
    if errors:
        return _validation_failed(errors)

    item = wbs_service.create_node(
        data["project_id"],
        parent_id or None,
        data.get("level"),
        data["name"],
        description=data.get("description"),
        start_date=data.get("start_date"),
        end_date=data.get("end_date"),
        weight=data.get("weight", 1),
        deliverable_name=data.get("deliverable_name"),
        deliverable_link=data.get("deliverable_link"),
        assignee_ids=data.get("assignee_ids"),
    )
    return jsonify(item), 201


@wbs_bp.route("/wbs/delayed", methods=["GET"])
def delayed_wbs():
    project_id, err = _require_project_id()
    if err:
        return err
    items = wbs_service.list_delayed(project_id)
    return jsonify({"items": items, "total": len(items)}), 200


@wbs_bp.route("/wbs/stats", methods=["GET"])
def wbs_stats():
    """Per-assignee workload plus project totals."""
    project_id, err = _require_project_id()
    if err:
        return err
    return jsonify(wbs_service.assignee_stats(project_id)), 200


@wbs_bp.route("/wbs/schedule-stats", methods=["GET"])
def wbs_schedule_stats():
    """Planned vs. actual progress weighted by LEVEL1 phases."""
    project_id, err = _require_project_id()
    if err:
        return err
    return jsonify(wbs_service.schedule_stats(project_id)), 200


# ── Single node ───────────────────────────────────────────────────────────────


@wbs_bp.route("/wbs/<node_id>", methods=["GET"])
def get_wbs(node_id: str):
    return jsonify(wbs_service.get_node(node_id)), 200


@wbs_bp.route("/wbs/<node_id>", methods=["PATCH"])
def update_wbs(node_id: str):
    """Partial update. ``progress`` is rejected with 422 on group nodes."""
    data = _json_body()
    if not data:
        return api_error(E.VALIDATION_REQUIRED, "Request body is required")

    errors: dict[str, str] = {}
    for locked in ("project_id", "parent_id", "level", "code", "sort_order"):
        if locked in data:
            errors[locked] = f"{locked} cannot be changed here; use /wbs/<id>/level to move items."
    _validate_fields(data, errors)
    if errors:
        return _validation_failed(errors)

    return jsonify(wbs_service.update_node(node_id, data)), 200


@wbs_bp.route("/wbs/<node_id>/progress", methods=["PATCH"])
def update_wbs_progress(node_id: str):
    """Body: progress (int 0-100, required), status (str, optional)."""
    data = _json_body()
    errors: dict[str, str] = {}
    if data.get("progress") is None:
        errors["progress"] = "progress is required."
    _validate_fields({k: data[k] for k in ("progress", "status") if k in data}, errors)
    if errors:
        return _validation_failed(errors)

    item = wbs_service.update_node_progress(node_id, data["progress"], data.get("status"))
    return jsonify(item), 200


@wbs_bp.route("/wbs/<node_id>/level", methods=["PATCH"])
def change_wbs_level(node_id: str):
    """Body: direction ("up" | "down")."""
    direction = _json_body().get("direction")
    if direction not in wbs_service.LEVEL_DIRECTIONS:
        return api_error(
            E.VALIDATION_INVALID, "direction must be 'up' or 'down'",
            details={"direction": direction},
        )
    return jsonify(wbs_service.change_level(node_id, direction)), 200


@wbs_bp.route("/wbs/<node_id>", methods=["DELETE"])
def delete_wbs(node_id: str):
    return jsonify(wbs_service.delete_node(node_id)), 200


# ── Assignees ─────────────────────────────────────────────────────────────────


@wbs_bp.route("/wbs/<node_id>/assignees", methods=["GET"])
def list_wbs_assignees(node_id: str):
    return jsonify({"assignees": assignment_service.list_assignees(node_id)}), 200


@wbs_bp.route("/wbs/<node_id>/assignees", methods=["POST"])
def add_wbs_assignee(node_id: str):
    """Body: person_id (int, required). Assigning twice is a no-op."""
    person_id = _json_body().get("person_id")
    if not _is_int(person_id):
        return api_error(E.VALIDATION_REQUIRED, "person_id (integer) is required")
    return jsonify(assignment_service.assign(node_id, person_id)), 201


@wbs_bp.route("/wbs/<node_id>/assignees", methods=["PUT"])
def replace_wbs_assignees(node_id: str):
    """Body: person_ids (list[int], required; empty list clears)."""
    person_ids = _json_body().get("person_ids")
    if not isinstance(person_ids, list) or not all(_is_int(p) for p in person_ids):
        return api_error(E.VALIDATION_INVALID, "person_ids must be a list of integers")
    assignees = assignment_service.replace_assignees(node_id, person_ids)
    return jsonify({"assignees": assignees}), 200


@wbs_bp.route("/wbs/<node_id>/assignees/<int:person_id>", methods=["DELETE"])
def remove_wbs_assignee(node_id: str, person_id: int):
    removed = assignment_service.unassign(node_id, person_id)
    return jsonify({"removed": removed}), 200
