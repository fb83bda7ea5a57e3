"""Standardised API error responses.

Usage
-----
    from wbs_platform.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "WBS item not found")
    return api_error(E.VALIDATION_REQUIRED, "project_id is required")
    return api_error(E.LEVEL_MISMATCH, str(exc), details=exc.details)
"""

from __future__ import annotations

from flask import jsonify


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants.

    Convention:
     • ERR_  prefix for standard application errors
     • ERR_WBS_ prefix for hierarchy-invariant violations
    """

    # Validation – HTTP 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    VALIDATION_CONSTRAINT = "ERR_VALIDATION_CONSTRAINT"

    # Business rule – HTTP 422
    BUSINESS_RULE = "ERR_BUSINESS_RULE"
    LEVEL_MISMATCH = "ERR_WBS_LEVEL_MISMATCH"
    NOT_A_LEAF = "ERR_WBS_NOT_A_LEAF"
    HIERARCHY_CYCLE = "ERR_WBS_HIERARCHY_CYCLE"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"
    PARENT_NOT_FOUND = "ERR_WBS_PARENT_NOT_FOUND"

    # Conflict / duplicate – HTTP 409
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    CONCURRENT_MODIFICATION = "ERR_WBS_CONCURRENT_MODIFICATION"

    # Server – HTTP 500
    DATABASE = "ERR_DATABASE"
    CASCADE_FAILURE = "ERR_WBS_CASCADE_FAILURE"
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.VALIDATION_CONSTRAINT: 400,
    E.BUSINESS_RULE: 422,
    E.LEVEL_MISMATCH: 422,
    E.NOT_A_LEAF: 422,
    E.HIERARCHY_CYCLE: 422,
    E.NOT_FOUND: 404,
    E.PARENT_NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.CONCURRENT_MODIFICATION: 409,
    E.DATABASE: 500,
    E.CASCADE_FAILURE: 500,
    E.INTERNAL: 500,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for developers / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload (expected level, conflicting code, etc.).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status
