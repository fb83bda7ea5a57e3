"""
WBS — Structural rules (level validator, cycle guard).

Key Rules:
  - parent is None     → level must be LEVEL1
  - parent is present  → level must be parent.level + 1 (no skipping, no reuse)
  - a node may never become its own ancestor
  - a moved subtree must still fit above LEVEL4

All checks run before any write and raise from core.exceptions.
The functions take plain values or loader callables so they can be tested
without a database.
"""

from wbs_platform.core.exceptions import (
    HierarchyCycleError,
    LevelMismatchError,
    ValidationError,
)
from wbs_platform.models.wbs import MAX_LEVEL, WbsLevel


def validate_level(level, parent) -> WbsLevel:
    """Accept ``level`` under ``parent`` or raise LevelMismatchError.

    ``level`` may be omitted (None); the expected level is then returned.
    """
    try:
        given = WbsLevel.coerce(level) if level is not None else None
    except ValueError as exc:
        raise ValidationError(str(exc), details={"field": "level"}) from exc

    if parent is None:
        expected = WbsLevel.LEVEL1
    else:
        expected = WbsLevel.coerce(parent.level).child()
        if expected is None:
            raise LevelMismatchError(
                expected_level="none",
                given_level=given.value if given else None,
                parent_id=parent.id,
                message=f"Parent {parent.id} is {MAX_LEVEL.value} and cannot have children",
            )

    if given is None:
        return expected
    if given != expected:
        raise LevelMismatchError(
            expected_level=expected.value,
            given_level=given.value,
            parent_id=parent.id if parent is not None else None,
        )
    return given


def assert_no_cycle(node_id: str, new_parent_id: str | None, load_parent_id) -> None:
    """Raise HierarchyCycleError if ``node_id`` is ``new_parent_id`` or one of its ancestors.

    Args:
        node_id: The node being moved.
        new_parent_id: The proposed parent (None = becomes a root, always safe).
        load_parent_id: Callable ``id -> parent_id | None`` reading the current tree.
    """
    seen = set()
    current = new_parent_id
    while current is not None:
        if current == node_id or current in seen:
            raise HierarchyCycleError(node_id=node_id, parent_id=new_parent_id)
        seen.add(current)
        current = load_parent_id(current)


def assert_subtree_fits(node_id: str, new_level: WbsLevel, subtree_depth: int) -> None:
    """Reject a move that would push descendants below the deepest level.

    ``subtree_depth`` is 0 for a leaf, 1 for a node with only leaf children, etc.
    """
    if new_level.number + subtree_depth > MAX_LEVEL.number:
        raise LevelMismatchError(
            expected_level=MAX_LEVEL.value,
            given_level=new_level.value,
            parent_id=None,
            message=(
                f"Moving WBS item {node_id} to {new_level.value} would push its "
                f"{subtree_depth}-deep subtree below {MAX_LEVEL.value}"
            ),
        )
