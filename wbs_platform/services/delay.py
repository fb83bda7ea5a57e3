"""
WBS — Delay Evaluator (pure).

An item is delayed when it has an end date, is not COMPLETED or CANCELLED,
and the calendar day of its end date is strictly before today. Time of day
is ignored on both sides. ``now`` is injectable everywhere for tests.
"""

from datetime import date, datetime

from wbs_platform.models.wbs import CLOSED_STATUSES, WbsStatus

DELAYED = "DELAYED"


def _calendar_day(value) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()


def _today(now=None) -> date:
    return _calendar_day(now) if now is not None else date.today()


def _is_closed(status) -> bool:
    if status is None:
        return False
    return WbsStatus.coerce(status) in CLOSED_STATUSES


def is_delayed(end_date, status, now=None) -> bool:
    """True when ``end_date`` is a past calendar day and the item is still open."""
    end = _calendar_day(end_date)
    if end is None or _is_closed(status):
        return False
    return end < _today(now)


def delay_days(end_date, status=None, now=None) -> int:
    """Whole calendar days between ``end_date`` and today; 0 when not delayed."""
    if not is_delayed(end_date, status, now):
        return 0
    return (_today(now) - _calendar_day(end_date)).days


def display_status(status, end_date, now=None) -> str:
    """Status label for listings: ``DELAYED`` overrides open statuses."""
    if is_delayed(end_date, status, now):
        return DELAYED
    return WbsStatus.coerce(status).value
