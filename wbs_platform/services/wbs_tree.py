"""
WBS — Tree assembly (pure, no I/O).

build_wbs_tree turns a flat list of serialized nodes (any level mix, any
order) into a forest sorted by sort_order at every level. Nodes whose
parent_id is missing from the input are treated as roots.

The helpers below also work on the assembled forest:
  - apply_rolled_up_dates: group nodes show min child start / max child end
  - collect_leaves:        depth-first list of leaf nodes
"""

from datetime import date


def build_wbs_tree(items: list[dict]) -> list[dict]:
    """Assemble a forest from flat node dicts.

    Input dicts are not mutated: each node is shallow-copied with a fresh
    ``children`` list. Sorting is stable, so siblings that share a
    sort_order keep their input order.
    """
    by_id: dict = {}
    for item in items:
        node = dict(item)
        node["children"] = []
        by_id[item["id"]] = node

    roots: list[dict] = []
    for item in items:
        node = by_id[item["id"]]
        parent = by_id.get(item.get("parent_id"))
        if parent is not None and parent is not node:
            parent["children"].append(node)
        else:
            roots.append(node)

    _sort_forest(roots)
    return roots


def _sort_forest(roots: list[dict]) -> None:
    # Iterative so deep or malformed inputs never hit the recursion limit.
    stack = [roots]
    while stack:
        nodes = stack.pop()
        nodes.sort(key=lambda n: n.get("sort_order") or 0)
        for node in nodes:
            if node["children"]:
                stack.append(node["children"])


def collect_leaves(forest: list[dict]) -> list[dict]:
    """Return every node without children, depth-first in sibling order."""
    leaves = []
    stack = list(reversed(forest))
    while stack:
        node = stack.pop()
        children = node.get("children") or []
        if not children:
            leaves.append(node)
        else:
            stack.extend(reversed(children))
    return leaves


def _as_date(value):
    if value is None or isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def apply_rolled_up_dates(forest: list[dict]) -> list[dict]:
    """Return a copy of ``forest`` where every group node spans its children.

    A group's start_date becomes the earliest start among its (rolled-up)
    children and its end_date the latest end; when no child has a date the
    node keeps its own.
    """
    result = []
    for node in forest:
        children = apply_rolled_up_dates(node.get("children") or [])
        updated = dict(node)
        updated["children"] = children
        if children:
            starts = [_as_date(c["start_date"]) for c in children if c.get("start_date")]
            ends = [_as_date(c["end_date"]) for c in children if c.get("end_date")]
            if starts:
                updated["start_date"] = min(starts).isoformat()
            if ends:
                updated["end_date"] = max(ends).isoformat()
        result.append(updated)
    return result
