"""
WBS — Hierarchical Code Generator

Allocates the code and sibling order of a new node:

  - Root nodes:   {order+1}               (e.g. 1, 2, 3)
  - Child nodes:  {parent_code}.{order+1} (e.g. 2.1, 2.3.4)

Order is the zero-based sibling index. Codes are project-wide unique
(uq_wbs_project_code); allocation is made race-safe by the caller retrying
the insert with a fresh slot after an IntegrityError (see
wbs_service.create_node).
"""

from sqlalchemy import func, select

from wbs_platform.models import db
from wbs_platform.models.wbs import WbsItem


def format_code(parent_code: str | None, order: int) -> str:
    """Code for the sibling at zero-based ``order``."""
    if parent_code:
        return f"{parent_code}.{order + 1}"
    return str(order + 1)


def next_sibling_order(project_id: int, parent_id: str | None) -> int:
    """Next free zero-based order under ``parent_id`` (roots when None).

    Equals the sibling count while orders are contiguous; after a sibling
    was deleted it still lands past the highest order in use.
    """
    stmt = select(func.max(WbsItem.sort_order)).where(WbsItem.project_id == project_id)
    if parent_id is None:
        stmt = stmt.where(WbsItem.parent_id.is_(None))
    else:
        stmt = stmt.where(WbsItem.parent_id == parent_id)
    highest = db.session.execute(stmt).scalar()
    return 0 if highest is None else highest + 1


def next_sibling_slot(project_id: int, parent_id: str | None, parent_code: str | None) -> tuple[str, int]:
    """Return ``(code, order)`` for a new sibling under ``parent_id``."""
    order = next_sibling_order(project_id, parent_id)
    return format_code(parent_code, order), order


def renumber_subtree(node: WbsItem) -> int:
    """Rewrite descendant codes from ``node.code``, children in sibling order.

    Used after a node moved to a new parent and received a new code.
    Returns the number of descendants touched.
    """
    touched = 0
    stack = [node]
    while stack:
        current = stack.pop()
        children = (
            WbsItem.query
            .filter_by(parent_id=current.id)
            .order_by(WbsItem.sort_order)
            .all()
        )
        for child in children:
            child.code = format_code(current.code, child.sort_order)
            touched += 1
            stack.append(child)
    return touched
