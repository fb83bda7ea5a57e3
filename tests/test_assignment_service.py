"""
Tests: WBS Assignment Ledger.

All test data is created via ORM helpers and wbs_service.create_node.
"""

import pytest

from wbs_platform.core.exceptions import NotFoundError
from wbs_platform.models import db as _db
from wbs_platform.models.project import Person
from wbs_platform.models.wbs import WbsAssignee, WbsItem
from wbs_platform.services import assignment_service


def _make_person(name: str) -> Person:
    p = Person(name=name, email=f"{name.lower()}@example.com")
    _db.session.add(p)
    _db.session.commit()
    return p


def _entry_count(node_id: str) -> int:
    return WbsAssignee.query.filter_by(wbs_item_id=node_id).count()


def test_assign_creates_entry(make_node, person):
    node = make_node("Phase")
    result = assignment_service.assign(node["id"], person.id)

    assert result["wbs_item_id"] == node["id"]
    assert result["person_id"] == person.id
    assert _entry_count(node["id"]) == 1


def test_assign_twice_is_a_no_op(make_node, person):
    node = make_node("Phase")
    first = assignment_service.assign(node["id"], person.id)
    second = assignment_service.assign(node["id"], person.id)

    assert first["id"] == second["id"]
    assert _entry_count(node["id"]) == 1


def test_group_nodes_can_be_assigned(make_node, person):
    root = make_node("Phase")
    make_node("Package", parent=root)
    assignment_service.assign(root["id"], person.id)

    assert [p["id"] for p in assignment_service.list_assignees(root["id"])] == [person.id]
    # assignment never touches progress
    assert _db.session.get(WbsItem, root["id"]).progress == 0


def test_assign_unknown_node_raises(person):
    with pytest.raises(NotFoundError):
        assignment_service.assign("no-such-node", person.id)


def test_assign_unknown_person_raises(make_node):
    node = make_node("Phase")
    with pytest.raises(NotFoundError) as exc:
        assignment_service.assign(node["id"], 9999)
    assert exc.value.resource == "Person"


def test_unassign_reports_whether_entry_existed(make_node, person):
    node = make_node("Phase")
    assignment_service.assign(node["id"], person.id)

    assert assignment_service.unassign(node["id"], person.id) is True
    assert assignment_service.unassign(node["id"], person.id) is False
    assert _entry_count(node["id"]) == 0


def test_replace_assignees_swaps_the_whole_set(make_node):
    node = make_node("Phase")
    alice, bob, carol = (_make_person(n) for n in ("Alice", "Bob", "Carol"))
    assignment_service.assign(node["id"], alice.id)
    assignment_service.assign(node["id"], bob.id)

    result = assignment_service.replace_assignees(node["id"], [bob.id, carol.id, carol.id])

    assert sorted(p["id"] for p in result) == sorted([bob.id, carol.id])
    assert _entry_count(node["id"]) == 2


def test_replace_with_empty_list_clears(make_node, person):
    node = make_node("Phase")
    assignment_service.assign(node["id"], person.id)

    assert assignment_service.replace_assignees(node["id"], []) == []
    assert _entry_count(node["id"]) == 0


def test_replace_with_unknown_person_changes_nothing(make_node, person):
    node = make_node("Phase")
    assignment_service.assign(node["id"], person.id)

    with pytest.raises(NotFoundError):
        assignment_service.replace_assignees(node["id"], [person.id, 4242])

    _db.session.rollback()
    assert [p["id"] for p in assignment_service.list_assignees(node["id"])] == [person.id]


def test_serialized_node_lists_assignees(make_node, person):
    node = make_node("Phase", assignee_ids=[person.id])
    assert node["assignees"] == [person.to_summary()]
