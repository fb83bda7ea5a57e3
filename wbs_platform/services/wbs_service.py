"""
WBS Hierarchy Service.

Business context:
    Every project owns a forest of WBS items four levels deep
    (phase → work package → activity group → unit task). Only LEVEL4-style
    leaves are progressed by hand; every group node carries the rounded mean
    of its direct children, kept current by progress_propagation.

    This module is the one place that mutates the tree. Each public function
    is one unit of work: validation first, then writes, then the ancestor
    walk, then a single commit. Any failure rolls the whole unit back.

Concurrency:
    Sibling code/order allocation is a read-then-insert. Two requests adding
    a child to the same parent can compute the same slot; the loser hits
    uq_wbs_project_code / uq_wbs_project_parent_order, rolls back and
    recomputes, up to WBS_CODE_MAX_RETRIES attempts.
"""

import logging
import math
from datetime import date

from flask import current_app
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import selectinload

from wbs_platform.core.exceptions import (
    CascadeFailureError,
    ConcurrentModificationError,
    NotALeafError,
    NotFoundError,
    ParentNotFoundError,
    ValidationError,
)
from wbs_platform.models import db
from wbs_platform.models.project import Project
from wbs_platform.models.wbs import WbsAssignee, WbsItem, WbsLevel, WbsStatus
from wbs_platform.services import assignment_service
from wbs_platform.services.code_generator import next_sibling_slot, renumber_subtree
from wbs_platform.services.delay import delay_days, display_status, is_delayed
from wbs_platform.services.progress_propagation import (
    aggregate_progress,
    propagate_progress,
    recalculate_project_progress,
)
from wbs_platform.services.wbs_rules import (
    assert_no_cycle,
    assert_subtree_fits,
    validate_level,
)
from wbs_platform.services.wbs_tree import (
    apply_rolled_up_dates,
    build_wbs_tree,
    collect_leaves,
)
from wbs_platform.utils.helpers import commit_or_raise, parse_date_input

logger = logging.getLogger(__name__)

DEFAULT_CODE_MAX_RETRIES = 3

# Plain attributes a PATCH may set directly
_EDITABLE_TEXT_FIELDS = ("name", "description", "deliverable_name", "deliverable_link")

LEVEL_DIRECTIONS = frozenset({"up", "down"})


# ── Default seed template ─────────────────────────────────────────────────────
# Five delivery phases, each broken down to unit tasks. Names only; codes,
# orders and levels are allocated by create_node.

DEFAULT_WBS_TEMPLATE: list[dict] = [
    {"name": "Analysis", "children": [
        {"name": "Requirements", "children": [
            {"name": "Stakeholder interviews", "children": [
                {"name": "Interview plan"},
                {"name": "Interview notes"},
            ]},
            {"name": "Requirements catalogue", "children": [
                {"name": "Functional requirements"},
                {"name": "Non-functional requirements"},
            ]},
        ]},
        {"name": "Current state review", "children": [
            {"name": "System inventory", "children": [
                {"name": "Application list"},
                {"name": "Interface list"},
            ]},
        ]},
    ]},
    {"name": "Design", "children": [
        {"name": "Architecture", "children": [
            {"name": "Target architecture", "children": [
                {"name": "Component diagram"},
                {"name": "Deployment view"},
            ]},
        ]},
        {"name": "Detailed design", "children": [
            {"name": "Screen and API design", "children": [
                {"name": "Screen specifications"},
                {"name": "API contracts"},
            ]},
            {"name": "Data design", "children": [
                {"name": "Logical data model"},
            ]},
        ]},
    ]},
    {"name": "Build", "children": [
        {"name": "Development", "children": [
            {"name": "Backend", "children": [
                {"name": "Core services"},
                {"name": "Integrations"},
            ]},
            {"name": "Frontend", "children": [
                {"name": "Screens"},
            ]},
        ]},
        {"name": "Data migration", "children": [
            {"name": "Migration tooling", "children": [
                {"name": "Extraction scripts"},
                {"name": "Load scripts"},
            ]},
        ]},
    ]},
    {"name": "Test", "children": [
        {"name": "Integration test", "children": [
            {"name": "Test execution", "children": [
                {"name": "Test scenarios"},
                {"name": "Defect fixing"},
            ]},
        ]},
        {"name": "Acceptance test", "children": [
            {"name": "User acceptance", "children": [
                {"name": "UAT sessions"},
                {"name": "Sign-off"},
            ]},
        ]},
    ]},
    {"name": "Transition", "children": [
        {"name": "Go-live", "children": [
            {"name": "Cutover", "children": [
                {"name": "Cutover plan"},
                {"name": "Production switch"},
            ]},
        ]},
        {"name": "Stabilisation", "children": [
            {"name": "Hypercare", "children": [
                {"name": "Support rota"},
                {"name": "Handover"},
            ]},
        ]},
    ]},
]


# ═════════════════════════════════════════════════════════════════════════════
# Create
# ═════════════════════════════════════════════════════════════════════════════


def create_node(
    project_id: int,
    parent_id: str | None,
    level,
    name: str,
    *,
    description: str | None = None,
    start_date=None,
    end_date=None,
    weight: int = 1,
    deliverable_name: str | None = None,
    deliverable_link: str | None = None,
    assignee_ids: list[int] | None = None,
) -> dict:
    """Insert a node under ``parent_id`` (a root when None).

    The level is validated against the parent before anything is written;
    when omitted it defaults to the level the parent expects. The new node
    gets the next free sibling order and the matching code, starts PENDING
    at 0% and the parent chain is re-aggregated to include it.

    Raises:
        NotFoundError: Unknown project.
        ParentNotFoundError: Parent missing or in another project.
        LevelMismatchError: Level is not exactly one below the parent.
        ValidationError: Blank name or inverted dates.
        ConcurrentModificationError: Slot allocation collided on every retry.
    """
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required", details={"field": "name"})
    start = _parse_date(start_date, "start_date")
    end = _parse_date(end_date, "end_date")
    _check_date_range(start, end)
    if assignee_ids:
        assignment_service.assert_people_exist(list(assignee_ids))

    max_retries = current_app.config.get("WBS_CODE_MAX_RETRIES", DEFAULT_CODE_MAX_RETRIES)
    code = None
    item = None
    for attempt in range(1, max_retries + 1):
        _get_project(project_id)
        parent = _get_parent(project_id, parent_id)
        resolved_level = validate_level(level, parent)
        code, order = next_sibling_slot(project_id, parent_id, parent.code if parent else None)

        candidate = WbsItem(
            project_id=project_id,
            parent_id=parent_id,
            code=code,
            name=name,
            description=description,
            level=resolved_level,
            status=WbsStatus.PENDING,
            progress=0,
            sort_order=order,
            start_date=start,
            end_date=end,
            weight=weight if weight is not None else 1,
            deliverable_name=deliverable_name,
            deliverable_link=deliverable_link,
        )
        db.session.add(candidate)
        try:
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            logger.warning(
                "WBS code collision, retrying",
                extra={"project_id": project_id, "parent_id": parent_id,
                       "code": code, "attempt": attempt},
            )
            continue
        item = candidate
        break

    if item is None:
        raise ConcurrentModificationError(
            project_id=project_id, parent_id=parent_id, attempts=max_retries, code=code,
        )

    try:
        if assignee_ids:
            assignment_service.replace_assignees(item.id, assignee_ids, commit=False)
        propagate_progress(parent_id)
    except Exception:
        db.session.rollback()
        raise
    commit_or_raise("create_node")

    logger.info(
        "WBS item created",
        extra={"project_id": project_id, "wbs_item_id": item.id,
               "code": item.code, "level": item.level_number},
    )
    return item.to_dict()


# ═════════════════════════════════════════════════════════════════════════════
# Read
# ═════════════════════════════════════════════════════════════════════════════


def get_node(node_id: str, now=None) -> dict:
    """Return one node with its parent summary and ordered direct children."""
    item = _get_item(node_id)
    children = (
        WbsItem.query
        .filter_by(parent_id=item.id)
        .order_by(WbsItem.sort_order)
        .all()
    )
    counts = _child_counts([c.id for c in children])

    data = item.to_dict(child_count=len(children))
    data["display_status"] = display_status(item.status, item.end_date, now)
    data["delay_days"] = delay_days(item.end_date, item.status, now)
    data["project"] = item.project.to_summary()
    data["parent"] = _summary(item.parent) if item.parent_id else None
    data["children"] = [
        c.to_dict(include_assignees=False, child_count=counts.get(c.id, 0)) for c in children
    ]
    return data


def get_tree(
    project_id: int,
    *,
    flat: bool = False,
    parent_id: str | None = None,
    level=None,
    roll_up_dates: bool = False,
) -> list[dict]:
    """Return a project's WBS as a forest (default) or as a flat list.

    Args:
        parent_id: Only direct children of this node.
        level: Only nodes of this level (flat listing filter).
        roll_up_dates: Tree mode only; group dates span their children.
    """
    _get_project(project_id)

    query = (
        WbsItem.query
        .options(selectinload(WbsItem.assignments))
        .filter_by(project_id=project_id)
    )
    if parent_id is not None:
        query = query.filter_by(parent_id=parent_id)
    if level is not None:
        try:
            query = query.filter_by(level=WbsLevel.coerce(level))
        except ValueError as exc:
            raise ValidationError(str(exc), details={"field": "level"}) from exc
    items = query.order_by(WbsItem.level, WbsItem.sort_order, WbsItem.code).all()

    counts = _child_counts([i.id for i in items])
    rows = [i.to_dict(child_count=counts.get(i.id, 0)) for i in items]
    if flat:
        return rows

    forest = build_wbs_tree(rows)
    if roll_up_dates:
        forest = apply_rolled_up_dates(forest)
    return forest


def list_delayed(project_id: int, now=None) -> list[dict]:
    """Leaf items that are past their end date and still open, most overdue first."""
    _get_project(project_id)
    items = (
        WbsItem.query
        .options(selectinload(WbsItem.assignments))
        .filter_by(project_id=project_id)
        .filter(WbsItem.end_date.isnot(None))
        .all()
    )
    parent_ids = _parent_ids(project_id)

    result = []
    for item in items:
        if item.id in parent_ids or not is_delayed(item.end_date, item.status, now):
            continue
        row = item.to_dict(child_count=0)
        row["delay_days"] = delay_days(item.end_date, item.status, now)
        row["display_status"] = display_status(item.status, item.end_date, now)
        result.append(row)

    result.sort(key=lambda r: (-r["delay_days"], r["code"]))
    return result


# ═════════════════════════════════════════════════════════════════════════════
# Update
# ═════════════════════════════════════════════════════════════════════════════


def update_node(node_id: str, data: dict) -> dict:
    """Apply a partial update to one node.

    ``progress`` is accepted on leaves only. Setting ``progress`` or
    ``status`` re-aggregates the ancestor chain; for a group node the
    node itself is recomputed first, so a manual status survives only when
    it is CANCELLED or ON_HOLD.

    Raises:
        NotFoundError: Unknown node.
        NotALeafError: ``progress`` on a node with children (nothing written).
        ValidationError: Bad progress, status, weight or dates.
    """
    item = _get_item(node_id)
    child_count = item.children.count()

    if data.get("progress") is not None:
        if child_count:
            raise NotALeafError(node_id=item.id, child_count=child_count)
        _check_progress(data["progress"])

    status = None
    if data.get("status") is not None:
        try:
            status = WbsStatus.coerce(data["status"])
        except ValueError as exc:
            raise ValidationError(str(exc), details={"field": "status"}) from exc

    start = _parse_date(data["start_date"], "start_date") if "start_date" in data else item.start_date
    end = _parse_date(data["end_date"], "end_date") if "end_date" in data else item.end_date
    _check_date_range(start, end)

    if "name" in data and not (data["name"] or "").strip():
        raise ValidationError("name cannot be empty", details={"field": "name"})
    if data.get("assignee_ids"):
        assignment_service.assert_people_exist(list(data["assignee_ids"]))

    # ── writes ──
    try:
        for field in _EDITABLE_TEXT_FIELDS:
            if field in data:
                value = data[field]
                setattr(item, field, value.strip() if field == "name" else value)
        item.start_date = start
        item.end_date = end
        if data.get("weight") is not None:
            item.weight = int(data["weight"])
        if data.get("progress") is not None:
            item.progress = int(data["progress"])
        if status is not None:
            item.status = status
        if "assignee_ids" in data:
            assignment_service.replace_assignees(
                item.id, data["assignee_ids"] or [], commit=False,
            )
        db.session.flush()

        if data.get("progress") is not None or status is not None:
            propagate_progress(item.id if child_count else item.parent_id)
    except Exception:
        db.session.rollback()
        raise
    commit_or_raise("update_node")

    logger.info(
        "WBS item updated",
        extra={"wbs_item_id": item.id, "fields": sorted(data.keys())},
    )
    return item.to_dict(child_count=child_count)


def update_node_progress(node_id: str, progress: int, status=None) -> dict:
    """Set a leaf's progress (and optionally status) and re-aggregate ancestors."""
    data = {"progress": progress}
    if status is not None:
        data["status"] = status
    return update_node(node_id, data)


# ═════════════════════════════════════════════════════════════════════════════
# Delete
# ═════════════════════════════════════════════════════════════════════════════


def delete_node(node_id: str) -> dict:
    """Delete a node, its whole subtree and their assignments in one transaction.

    The former parent chain is re-aggregated inside the same transaction.
    Remaining siblings keep their codes and orders.

    Returns:
        dict with the deleted id, how many descendants went with it and the
        former parent.

    Raises:
        NotFoundError: Unknown node.
        CascadeFailureError: Any database failure; nothing was deleted.
    """
    item = _get_item(node_id)
    parent_id = item.parent_id
    subtree = _collect_subtree(item)
    ids = [node.id for node, _ in subtree]

    try:
        entries = WbsAssignee.query.filter(WbsAssignee.wbs_item_id.in_(ids)).all()
        for entry in entries:
            db.session.delete(entry)
        # Deepest first so no row is ever left pointing at a deleted parent
        for node, _depth in sorted(subtree, key=lambda pair: -pair[1]):
            db.session.delete(node)
        db.session.flush()
        propagate_progress(parent_id)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("WBS cascade delete failed", extra={"wbs_item_id": node_id})
        raise CascadeFailureError(node_id=node_id, reason=str(exc)) from exc
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        "WBS item deleted",
        extra={"wbs_item_id": node_id, "deleted_count": len(ids), "parent_id": parent_id},
    )
    return {"deleted_id": node_id, "children_deleted": len(ids) - 1, "parent_id": parent_id}


# ═════════════════════════════════════════════════════════════════════════════
# Level moves
# ═════════════════════════════════════════════════════════════════════════════


def change_level(node_id: str, direction: str) -> dict:
    """Promote (``up``) or demote (``down``) a node with its whole subtree.

    up:   the node becomes the last child of its grandparent (a root when
          it was LEVEL2).
    down: the node becomes the last child of its previous sibling.

    The node receives a fresh sibling slot under its new parent, every
    descendant shifts level by the same amount and is recoded from the new
    code. Both the old and the new parent chains are re-aggregated.

    Raises:
        NotFoundError: Unknown node.
        ValidationError: Unknown direction, LEVEL1 up, or no previous sibling.
        LevelMismatchError: The subtree would end up below LEVEL4.
        HierarchyCycleError: Corrupt ancestry detected.
        ConcurrentModificationError: The new slot was taken concurrently.
    """
    if direction not in LEVEL_DIRECTIONS:
        raise ValidationError(
            f"direction must be one of {sorted(LEVEL_DIRECTIONS)}",
            details={"field": "direction"},
        )
    item = _get_item(node_id)
    current_level = WbsLevel.coerce(item.level)
    old_parent_id = item.parent_id

    if direction == "up":
        new_level = current_level.parent()
        if new_level is None or item.parent_id is None:
            raise ValidationError(f"{current_level.value} items cannot move up")
        new_parent = item.parent.parent if item.parent.parent_id else None
    else:
        new_level = current_level.child()
        if new_level is None:
            raise ValidationError(f"{current_level.value} items cannot move down")
        new_parent = _previous_sibling(item)
        if new_parent is None:
            raise ValidationError(
                "The first item among its siblings cannot move down",
                details={"node_id": item.id},
            )

    new_parent_id = new_parent.id if new_parent is not None else None
    subtree = _collect_subtree(item)
    subtree_depth = max(depth for _, depth in subtree)

    assert_no_cycle(item.id, new_parent_id, _load_parent_id)
    assert_subtree_fits(item.id, new_level, subtree_depth)
    validate_level(new_level, new_parent)

    shift = new_level.number - current_level.number
    code, order = next_sibling_slot(
        item.project_id, new_parent_id, new_parent.code if new_parent else None,
    )
    try:
        item.parent_id = new_parent_id
        item.level = new_level
        item.code = code
        item.sort_order = order
        for node, depth in subtree:
            if depth:
                node.level = WbsLevel.from_number(WbsLevel.coerce(node.level).number + shift)
        db.session.flush()
        renumber_subtree(item)
        db.session.flush()

        propagate_progress(old_parent_id)
        propagate_progress(new_parent_id)
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConcurrentModificationError(
            project_id=item.project_id, parent_id=new_parent_id, attempts=1, code=code,
        ) from exc
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        "WBS item level changed",
        extra={"wbs_item_id": node_id, "direction": direction,
               "level": new_level.value, "code": code},
    )
    return get_node(node_id)


# ═════════════════════════════════════════════════════════════════════════════
# Statistics
# ═════════════════════════════════════════════════════════════════════════════


def assignee_stats(project_id: int, now=None) -> dict:
    """Per-person workload over a project's WBS.

    Every assigned item counts for each of its assignees; leaves without
    anyone assigned are grouped in an ``unassigned`` bucket. Rows are sorted
    by average progress, highest first. Project totals cover each assigned
    item once plus the unassigned leaves.
    """
    _get_project(project_id)
    items = (
        WbsItem.query
        .options(selectinload(WbsItem.assignments))
        .filter_by(project_id=project_id)
        .all()
    )
    parent_ids = _parent_ids(project_id)

    buckets: dict = {}
    unassigned = []
    for item in items:
        if item.assignments:
            for entry in item.assignments:
                bucket = buckets.setdefault(entry.person_id, {"person": entry.person, "items": []})
                bucket["items"].append(item)
        elif item.id not in parent_ids:
            unassigned.append(item)

    rows = []
    for person_id, bucket in buckets.items():
        person = bucket["person"]
        row = {"id": person_id, "name": person.name, "email": person.email,
               "avatar": person.avatar}
        row.update(_workload(bucket["items"], now))
        rows.append(row)
    rows.sort(key=lambda r: (-r["avg_progress"], r["name"]))

    if unassigned:
        row = {"id": "unassigned", "name": "Unassigned", "email": None, "avatar": None}
        row.update(_workload(unassigned, now))
        rows.append(row)

    assigned = [i for i in items if i.assignments]
    return {"assignees": rows, "total": _workload(assigned + unassigned, now)}


def schedule_stats(project_id: int, now=None) -> dict:
    """Planned vs. actual progress of a project, weighted by LEVEL1 phases.

    For every LEVEL1 phase with dates, the planned share is the elapsed
    fraction of its date span; the actual share is the mean progress of its
    leaves. Both are scaled by the phase weight.
    """
    _get_project(project_id)
    today = _today(now)
    rows = [i.to_dict(include_assignees=False, child_count=0)
            for i in WbsItem.query.filter_by(project_id=project_id).all()]
    forest = build_wbs_tree(rows)
    leaves = collect_leaves(forest)

    total_leaves = len(leaves)
    completed = sum(1 for leaf in leaves if leaf["status"] == WbsStatus.COMPLETED.value)
    in_progress = sum(1 for leaf in leaves if leaf["status"] == WbsStatus.IN_PROGRESS.value)
    delayed = sum(1 for leaf in leaves if is_delayed(leaf["end_date"], leaf["status"], now))

    planned = 0.0
    actual = 0.0
    total_weight = 0
    for phase in forest:
        weight = phase["weight"] or 0
        total_weight += weight
        phase_leaves = collect_leaves([phase])
        mean = sum(leaf["progress"] for leaf in phase_leaves) / len(phase_leaves)
        actual += weight * mean / 100
        planned += weight * _elapsed_percent(phase["start_date"], phase["end_date"], today) / 100

    planned = _round1(planned)
    actual = _round1(actual)
    if planned > 0:
        achievement = _round_half_up(actual / planned * 100)
    else:
        achievement = 100 if actual > 0 else 0

    return {
        "total_tasks": total_leaves,
        "completed_tasks": completed,
        "in_progress_tasks": in_progress,
        "delayed_tasks": delayed,
        "planned_progress": planned,
        "actual_progress": actual,
        "delay_rate": _round1(planned - actual),
        "achievement_rate": achievement,
        "total_weight": total_weight,
    }


# ═════════════════════════════════════════════════════════════════════════════
# Seeding / maintenance
# ═════════════════════════════════════════════════════════════════════════════


def seed_wbs_template(project_id: int, template: list[dict] | None = None) -> dict:
    """Create a standard WBS for an empty project.

    Raises:
        NotFoundError: Unknown project.
        ValidationError: The project already has WBS items.

    Returns:
        dict with the number of items created per level.
    """
    _get_project(project_id)
    if WbsItem.query.filter_by(project_id=project_id).count():
        raise ValidationError(
            f"Project {project_id} already has a WBS; delete it before seeding",
            details={"project_id": project_id},
        )

    created = {level.value: 0 for level in WbsLevel}
    stack = [(entry, None) for entry in reversed(template or DEFAULT_WBS_TEMPLATE)]
    while stack:
        entry, parent_id = stack.pop()
        node = create_node(
            project_id,
            parent_id,
            entry.get("level"),
            entry["name"],
            description=entry.get("description"),
            start_date=entry.get("start_date"),
            end_date=entry.get("end_date"),
            weight=entry.get("weight", 1),
        )
        created[node["level"]] += 1
        for child in reversed(entry.get("children") or []):
            stack.append((child, node["id"]))

    # One bottom-up pass over the whole seeded tree
    recalculate_project(project_id)

    logger.info("WBS template seeded", extra={"project_id": project_id, "created_counts": created})
    return created


def recalculate_project(project_id: int) -> dict:
    """Recompute every group node of a project bottom-up and commit."""
    _get_project(project_id)
    try:
        updated = recalculate_project_progress(project_id)
    except Exception:
        db.session.rollback()
        raise
    commit_or_raise("recalculate_project")
    logger.info("WBS progress recalculated", extra={"project_id": project_id, "updated": updated})
    return updated


# ── Private helpers ───────────────────────────────────────────────────────────


def _get_project(project_id: int) -> Project:
    project = db.session.get(Project, project_id)
    if project is None:
        raise NotFoundError(resource="Project", resource_id=project_id)
    return project


def _get_item(node_id: str) -> WbsItem:
    item = db.session.get(WbsItem, node_id)
    if item is None:
        raise NotFoundError(resource="WbsItem", resource_id=node_id)
    return item


def _get_parent(project_id: int, parent_id: str | None) -> WbsItem | None:
    if parent_id is None:
        return None
    parent = db.session.get(WbsItem, parent_id)
    if parent is None or parent.project_id != project_id:
        raise ParentNotFoundError(parent_id=parent_id, project_id=project_id)
    return parent


def _load_parent_id(node_id: str) -> str | None:
    return db.session.execute(
        select(WbsItem.parent_id).where(WbsItem.id == node_id)
    ).scalar_one_or_none()


def _previous_sibling(item: WbsItem) -> WbsItem | None:
    query = WbsItem.query.filter(
        WbsItem.project_id == item.project_id,
        WbsItem.sort_order < item.sort_order,
    )
    if item.parent_id is None:
        query = query.filter(WbsItem.parent_id.is_(None))
    else:
        query = query.filter(WbsItem.parent_id == item.parent_id)
    return query.order_by(WbsItem.sort_order.desc()).first()


def _collect_subtree(root: WbsItem) -> list[tuple[WbsItem, int]]:
    """``(node, depth)`` pairs for ``root`` (depth 0) and all its descendants."""
    result = [(root, 0)]
    frontier = [root.id]
    depth = 0
    while frontier:
        depth += 1
        children = WbsItem.query.filter(WbsItem.parent_id.in_(frontier)).all()
        result.extend((child, depth) for child in children)
        frontier = [child.id for child in children]
    return result


def _child_counts(ids: list[str]) -> dict:
    if not ids:
        return {}
    stmt = (
        select(WbsItem.parent_id, func.count(WbsItem.id))
        .where(WbsItem.parent_id.in_(ids))
        .group_by(WbsItem.parent_id)
    )
    return dict(db.session.execute(stmt).all())


def _parent_ids(project_id: int) -> set:
    stmt = (
        select(WbsItem.parent_id)
        .where(WbsItem.project_id == project_id, WbsItem.parent_id.isnot(None))
        .distinct()
    )
    return set(db.session.execute(stmt).scalars().all())


def _summary(item: WbsItem | None) -> dict | None:
    if item is None:
        return None
    return {
        "id": item.id,
        "code": item.code,
        "name": item.name,
        "level": WbsLevel.coerce(item.level).value,
    }


def _check_progress(value) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 100:
        raise ValidationError(
            "progress must be an integer between 0 and 100",
            details={"field": "progress", "value": value},
        )


def _parse_date(value, field: str):
    try:
        return parse_date_input(value)
    except ValueError as exc:
        raise ValidationError(str(exc), details={"field": field}) from exc


def _check_date_range(start, end) -> None:
    if start and end and end < start:
        raise ValidationError(
            "end_date cannot be before start_date",
            details={"start_date": start.isoformat(), "end_date": end.isoformat()},
        )


def _workload(items: list[WbsItem], now=None) -> dict:
    statuses = [WbsStatus.coerce(i.status) for i in items]
    total = len(items)
    completed = statuses.count(WbsStatus.COMPLETED)
    in_progress = statuses.count(WbsStatus.IN_PROGRESS)
    return {
        "total": total,
        "completed": completed,
        "in_progress": in_progress,
        "pending": total - completed - in_progress,
        "delayed": sum(1 for i in items if is_delayed(i.end_date, i.status, now)),
        "avg_progress": aggregate_progress(i.progress for i in items) or 0,
        "completion_rate": _round_half_up(completed / total * 100) if total else 0,
    }


def _today(now=None) -> date:
    if now is None:
        return date.today()
    return parse_date_input(now)


def _elapsed_percent(start, end, today: date) -> float:
    start = parse_date_input(start)
    end = parse_date_input(end)
    if start is None or end is None:
        return 0.0
    if today <= start:
        return 0.0
    if today >= end:
        return 100.0
    return (today - start).days / (end - start).days * 100


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _round1(value: float) -> float:
    return math.floor(value * 10 + 0.5) / 10
