"""Shared utility functions.

parse_date_input:  raises ValueError on bad input (blueprints map it to 400)
parse_flag:        query-string booleans ("true"/"1"/"yes")
commit_or_raise:   service-layer commit that rolls back before re-raising
"""
import logging
from datetime import date, datetime

from wbs_platform.models import db

logger = logging.getLogger(__name__)


def parse_date_input(value):
    """Parse a date string, raising ValueError on bad input.

    Supports: YYYY-MM-DD, YYYY-MM-DDTHH:MM:SS(.fff)(Z), DD.MM.YYYY, date
    and datetime objects. Empty input returns None.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    value = str(value).strip()
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    try:
        return datetime.strptime(value, "%d.%m.%Y").date()
    except ValueError as exc:
        raise ValueError(
            "Invalid date format. Use YYYY-MM-DD or DD.MM.YYYY."
        ) from exc


def parse_flag(value) -> bool:
    """Interpret a query-string flag."""
    return str(value or "").strip().lower() in ("1", "true", "yes")


def commit_or_raise(context: str = "commit"):
    """Commit the current session; on any failure roll back and re-raise.

    Services call this once per unit of work so that a failure anywhere in
    the chain leaves no partial writes behind.
    """
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Database error during %s, transaction rolled back", context)
        raise
