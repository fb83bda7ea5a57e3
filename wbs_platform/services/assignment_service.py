"""
WBS Assignment Ledger.

Business context:
    Each WBS item can have any number of responsible people and a person
    can be responsible for any number of items. The ledger holds at most one
    row per (wbs_item, person) pair; assigning twice is a no-op.

    No leaf/group restriction: assigning a group node is allowed and has no
    effect on progress aggregation.
"""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from wbs_platform.core.exceptions import NotFoundError
from wbs_platform.models import db
from wbs_platform.models.project import Person
from wbs_platform.models.wbs import WbsAssignee, WbsItem
from wbs_platform.utils.helpers import commit_or_raise

logger = logging.getLogger(__name__)


# ── Public service functions ──────────────────────────────────────────────────


def assign(wbs_item_id: str, person_id: int) -> dict:
    """Make ``person_id`` responsible for ``wbs_item_id`` (idempotent).

    Returns:
        Serialized WbsAssignee dict (existing row if the pair was present).

    Raises:
        NotFoundError: Unknown node or person.
    """
    _assert_item_exists(wbs_item_id)
    assert_people_exist([person_id])

    existing = _find_entry(wbs_item_id, person_id)
    if existing:
        return existing.to_dict()

    entry = WbsAssignee(wbs_item_id=wbs_item_id, person_id=person_id)
    db.session.add(entry)
    try:
        db.session.commit()
    except IntegrityError:
        # A concurrent request inserted the same pair first
        db.session.rollback()
        existing = _find_entry(wbs_item_id, person_id)
        if existing is None:
            raise
        return existing.to_dict()

    logger.info(
        "WBS assignee added",
        extra={"wbs_item_id": wbs_item_id, "person_id": person_id},
    )
    return entry.to_dict()


def unassign(wbs_item_id: str, person_id: int) -> bool:
    """Remove the (node, person) entry.

    Returns:
        True if an entry was removed, False if none existed.

    Raises:
        NotFoundError: Unknown node.
    """
    _assert_item_exists(wbs_item_id)

    entry = _find_entry(wbs_item_id, person_id)
    if entry is None:
        return False
    db.session.delete(entry)
    commit_or_raise("unassign")

    logger.info(
        "WBS assignee removed",
        extra={"wbs_item_id": wbs_item_id, "person_id": person_id},
    )
    return True


def list_assignees(wbs_item_id: str) -> list[dict]:
    """Return the people currently assigned to a node (order not significant)."""
    _assert_item_exists(wbs_item_id)
    stmt = (
        select(Person)
        .join(WbsAssignee, WbsAssignee.person_id == Person.id)
        .where(WbsAssignee.wbs_item_id == wbs_item_id)
    )
    return [p.to_summary() for p in db.session.execute(stmt).scalars().all()]


def replace_assignees(wbs_item_id: str, person_ids, *, commit: bool = True) -> list[dict]:
    """Atomically replace all assignees of a node with ``person_ids``.

    Duplicates in ``person_ids`` collapse to one entry. An empty list clears
    the node. With ``commit=False`` the change joins the caller's unit of
    work (used by node create/update).

    Raises:
        NotFoundError: Unknown node or any unknown person (nothing written).
    """
    _assert_item_exists(wbs_item_id)
    unique_ids = list(dict.fromkeys(int(pid) for pid in person_ids))
    assert_people_exist(unique_ids)

    current = db.session.execute(
        select(WbsAssignee).where(WbsAssignee.wbs_item_id == wbs_item_id)
    ).scalars().all()
    for entry in current:
        db.session.delete(entry)
    # Deletes must reach the DB before re-inserting the same pairs
    db.session.flush()
    db.session.add_all(
        WbsAssignee(wbs_item_id=wbs_item_id, person_id=pid) for pid in unique_ids
    )
    db.session.flush()
    db.session.expire(db.session.get(WbsItem, wbs_item_id), ["assignments"])

    if commit:
        commit_or_raise("replace_assignees")

    logger.info(
        "WBS assignees replaced",
        extra={"wbs_item_id": wbs_item_id, "assignee_count": len(unique_ids)},
    )
    return list_assignees(wbs_item_id)


# ── Private helpers ───────────────────────────────────────────────────────────


def _find_entry(wbs_item_id: str, person_id: int) -> WbsAssignee | None:
    stmt = select(WbsAssignee).where(
        WbsAssignee.wbs_item_id == wbs_item_id,
        WbsAssignee.person_id == person_id,
    )
    return db.session.execute(stmt).scalar_one_or_none()


def _assert_item_exists(wbs_item_id: str) -> None:
    stmt = select(WbsItem.id).where(WbsItem.id == wbs_item_id)
    if db.session.execute(stmt).scalar_one_or_none() is None:
        raise NotFoundError(resource="WbsItem", resource_id=wbs_item_id)


def assert_people_exist(person_ids: list[int]) -> None:
    if not person_ids:
        return
    stmt = select(Person.id).where(Person.id.in_(person_ids))
    found = set(db.session.execute(stmt).scalars().all())
    missing = [pid for pid in person_ids if pid not in found]
    if missing:
        raise NotFoundError(resource="Person", resource_id=missing[0])
