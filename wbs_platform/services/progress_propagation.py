"""
WBS — Progress Propagation Engine

Propagates progress changes from a mutated node upward through the tree:
  mutated node → parent → grandparent → ... → LEVEL1 root

At every ancestor:
  progress = round(mean(direct children progress))   (half rounds up)
  status   = COMPLETED at 100, IN_PROGRESS in (0, 100), PENDING at 0

Key Rules:
  - An ancestor with no children (e.g. after its last child was deleted)
    keeps its own progress/status; the walk still continues upward.
  - CANCELLED / ON_HOLD are manual overrides: aggregation updates progress
    but never overwrites those statuses.
  - Children are re-read at every step (no caching across the walk).
  - The walk runs inside the caller's transaction; callers commit once.

Usage:
    from wbs_platform.services.progress_propagation import (
        aggregate_progress,
        derive_status,
        walk_ancestors,
        propagate_progress,
        recalculate_project_progress,
    )
"""

import logging
import math

from sqlalchemy import select

from wbs_platform.core.exceptions import HierarchyCycleError
from wbs_platform.models import db
from wbs_platform.models.wbs import STICKY_STATUSES, WbsItem, WbsLevel, WbsStatus

logger = logging.getLogger(__name__)


# ── Pure rules ──────────────────────────────────────────────────────────────

def aggregate_progress(values) -> int | None:
    """Rounded arithmetic mean of child progress values, or None if empty."""
    values = list(values)
    if not values:
        return None
    mean = sum(values) / len(values)
    return int(math.floor(mean + 0.5))


def derive_status(progress: int, prior_status) -> WbsStatus:
    """Status implied by an aggregated progress, honouring manual overrides."""
    prior = WbsStatus.coerce(prior_status) if prior_status is not None else None
    if prior in STICKY_STATUSES:
        return prior
    if progress >= 100:
        return WbsStatus.COMPLETED
    if progress > 0:
        return WbsStatus.IN_PROGRESS
    return WbsStatus.PENDING


# ── Ancestor walk (persistence injected) ────────────────────────────────────

def walk_ancestors(start_parent_id, load_node, load_children, save) -> list:
    """Recompute every ancestor from ``start_parent_id`` up to its root.

    Args:
        start_parent_id: Parent of the mutated node (None → nothing to do).
        load_node: ``id -> node | None``; node exposes id, parent_id,
                   progress, status.
        load_children: ``node -> list[child]``; called fresh at every step.
        save: ``(node, progress, status) -> None``; persists one ancestor.

    Returns:
        The ids visited, nearest ancestor first.
    """
    visited = []
    current_id = start_parent_id
    while current_id is not None:
        if current_id in visited:
            raise HierarchyCycleError(node_id=current_id, parent_id=visited[-1])
        node = load_node(current_id)
        if node is None:
            break
        visited.append(current_id)

        children = load_children(node)
        progress = aggregate_progress(c.progress for c in children)
        if progress is not None:
            save(node, progress, derive_status(progress, node.status))

        current_id = node.parent_id
    return visited


# ── DB-bound entry points ───────────────────────────────────────────────────

def _load_children(node: WbsItem) -> list[WbsItem]:
    stmt = select(WbsItem).where(WbsItem.parent_id == node.id)
    return db.session.execute(stmt).scalars().all()


def _save(node: WbsItem, progress: int, status: WbsStatus) -> None:
    if node.progress != progress or WbsStatus.coerce(node.status) != status:
        node.progress = progress
        node.status = status
        # Flush so the next level's child query sees the new value
        db.session.flush()


def propagate_progress(parent_id: str | None) -> list[str]:
    """Walk from ``parent_id`` to the root, updating aggregated progress.

    Does not commit; runs inside the caller's unit of work.

    Returns:
        Ids of the ancestors visited, nearest first.
    """
    if parent_id is None:
        return []
    visited = walk_ancestors(
        parent_id,
        load_node=lambda node_id: db.session.get(WbsItem, node_id),
        load_children=_load_children,
        save=_save,
    )
    logger.debug("Progress propagated through %d ancestors from %s", len(visited), parent_id)
    return visited


def recalculate_project_progress(project_id: int) -> dict:
    """Full bottom-up recalculation of every group node in a project.

    Useful after bulk seeding or data corrections. Processes LEVEL3 → LEVEL1
    so every group sees already-recomputed children. Does not commit.

    Returns:
        dict with the number of group nodes updated per level.
    """
    updated = {}
    for level in (WbsLevel.LEVEL3, WbsLevel.LEVEL2, WbsLevel.LEVEL1):
        nodes = (
            WbsItem.query
            .filter_by(project_id=project_id, level=level)
            .all()
        )
        count = 0
        for node in nodes:
            children = _load_children(node)
            progress = aggregate_progress(c.progress for c in children)
            if progress is None:
                continue
            _save(node, progress, derive_status(progress, node.status))
            count += 1
        updated[level.value] = count
    return updated
