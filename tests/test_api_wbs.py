"""
Tests: WBS API contract (/api/v1/wbs).

Exercises status codes and error envelopes end to end through the
blueprint. Service behaviour itself is covered in test_wbs_service.
"""

from wbs_platform.models import db as _db
from wbs_platform.models.wbs import WbsItem, WbsStatus


def _create(client, project_id, name="Item", **body):
    body.update({"project_id": project_id, "name": name})
    return client.post("/api/v1/wbs", json=body)


def _chain(client, project_id):
    """Create LEVEL1 → LEVEL4 and return the four node dicts."""
    nodes = []
    parent_id = None
    for name in ("Phase", "Package", "Activity", "Task"):
        res = _create(client, project_id, name, parent_id=parent_id)
        assert res.status_code == 201, res.get_json()
        nodes.append(res.get_json())
        parent_id = nodes[-1]["id"]
    return nodes


# ── Create ────────────────────────────────────────────────────────────────────


def test_create_root_returns_201(client, project):
    res = _create(client, project.id, "Analysis", level="LEVEL1")
    assert res.status_code == 201
    data = res.get_json()
    assert data["code"] == "1"
    assert data["level"] == "LEVEL1"
    assert data["status"] == "PENDING"


def test_create_missing_name_is_400(client, project):
    res = client.post("/api/v1/wbs", json={"project_id": project.id})
    assert res.status_code == 400
    body = res.get_json()
    assert body["code"] == "ERR_VALIDATION_INVALID"
    assert "name" in body["details"]


def test_create_bad_level_is_400(client, project):
    res = _create(client, project.id, level="LEVEL7")
    assert res.status_code == 400
    assert "level" in res.get_json()["details"]


def test_create_with_progress_is_400(client, project):
    res = _create(client, project.id, progress=50)
    assert res.status_code == 400


def test_create_level_mismatch_is_422(client, project):
    root = _create(client, project.id, "Phase").get_json()
    res = _create(client, project.id, "Too deep", parent_id=root["id"], level="LEVEL3")

    assert res.status_code == 422
    body = res.get_json()
    assert body["code"] == "ERR_WBS_LEVEL_MISMATCH"
    assert body["details"]["expected_level"] == "LEVEL2"
    assert WbsItem.query.count() == 1


def test_create_unknown_parent_is_404(client, project):
    res = _create(client, project.id, parent_id="nope")
    assert res.status_code == 404
    assert res.get_json()["code"] == "ERR_WBS_PARENT_NOT_FOUND"


def test_create_unknown_project_is_404(client):
    res = _create(client, 999)
    assert res.status_code == 404
    assert res.get_json()["code"] == "ERR_NOT_FOUND"


# ── Read ──────────────────────────────────────────────────────────────────────


def test_tree_and_flat_listing(client, project):
    _chain(client, project.id)

    res = client.get(f"/api/v1/wbs?project_id={project.id}")
    assert res.status_code == 200
    tree = res.get_json()["items"]
    assert len(tree) == 1
    assert tree[0]["children"][0]["children"][0]["children"][0]["code"] == "1.1.1.1"

    res = client.get(f"/api/v1/wbs?project_id={project.id}&flat=true")
    flat = res.get_json()
    assert flat["total"] == 4
    assert [r["level"] for r in flat["items"]] == ["LEVEL1", "LEVEL2", "LEVEL3", "LEVEL4"]


def test_listing_requires_project_id(client):
    res = client.get("/api/v1/wbs")
    assert res.status_code == 400
    assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"


def test_get_unknown_node_is_404(client):
    assert client.get("/api/v1/wbs/unknown").status_code == 404


# ── Update ────────────────────────────────────────────────────────────────────


def test_progress_patch_propagates_to_root(client, project):
    root, _pkg, _act, task = _chain(client, project.id)

    res = client.patch(f"/api/v1/wbs/{task['id']}/progress", json={"progress": 100})
    assert res.status_code == 200
    assert res.get_json()["progress"] == 100

    root_data = client.get(f"/api/v1/wbs/{root['id']}").get_json()
    assert root_data["progress"] == 100
    assert root_data["status"] == "COMPLETED"


def test_progress_patch_on_group_is_422(client, project):
    root, *_ = _chain(client, project.id)
    res = client.patch(f"/api/v1/wbs/{root['id']}/progress", json={"progress": 10})
    assert res.status_code == 422
    assert res.get_json()["code"] == "ERR_WBS_NOT_A_LEAF"


def test_progress_out_of_range_is_400(client, project):
    *_, task = _chain(client, project.id)
    for bad in (-1, 101, "50", True):
        res = client.patch(f"/api/v1/wbs/{task['id']}/progress", json={"progress": bad})
        assert res.status_code == 400, bad


def test_patch_rejects_structural_fields(client, project):
    root = _create(client, project.id, "Phase").get_json()
    res = client.patch(f"/api/v1/wbs/{root['id']}", json={"level": "LEVEL2"})
    assert res.status_code == 400


def test_patch_updates_fields(client, project):
    root = _create(client, project.id, "Phase").get_json()
    res = client.patch(
        f"/api/v1/wbs/{root['id']}",
        json={"name": "Design", "end_date": "2026-05-01", "status": "ON_HOLD"},
    )
    assert res.status_code == 200
    data = res.get_json()
    assert data["name"] == "Design"
    assert data["end_date"] == "2026-05-01"
    assert data["status"] == "ON_HOLD"


def test_patch_bad_date_is_400(client, project):
    root = _create(client, project.id, "Phase").get_json()
    res = client.patch(f"/api/v1/wbs/{root['id']}", json={"start_date": "tomorrow"})
    assert res.status_code == 400
    assert "start_date" in res.get_json()["details"]


def test_non_string_text_fields_are_400(client, project):
    res = _create(client, project.id, "Phase", description={"x": 1})
    assert res.status_code == 400
    assert "description" in res.get_json()["details"]
    assert WbsItem.query.count() == 0

    root = _create(client, project.id, "Phase").get_json()
    for field, bad in (("description", {"a": 1}), ("deliverable_link", ["x"]),
                       ("deliverable_name", 7)):
        res = client.patch(f"/api/v1/wbs/{root['id']}", json={field: bad})
        assert res.status_code == 400, field
        assert field in res.get_json()["details"]


def test_overlong_deliverable_fields_are_400(client, project):
    res = _create(client, project.id, "Phase", deliverable_name="n" * 301)
    assert res.status_code == 400
    assert "deliverable_name" in res.get_json()["details"]

    root = _create(client, project.id, "Phase").get_json()
    res = client.patch(f"/api/v1/wbs/{root['id']}", json={"deliverable_link": "h" * 1001})
    assert res.status_code == 400
    assert "deliverable_link" in res.get_json()["details"]

    res = client.patch(
        f"/api/v1/wbs/{root['id']}",
        json={"description": "d" * 5000, "deliverable_link": None},
    )
    assert res.status_code == 200
    assert res.get_json()["description"] == "d" * 5000


# ── Level moves ───────────────────────────────────────────────────────────────


def test_level_endpoint_moves_node(client, project):
    root = _create(client, project.id, "Phase").get_json()
    _create(client, project.id, "A", parent_id=root["id"])
    b = _create(client, project.id, "B", parent_id=root["id"]).get_json()

    res = client.patch(f"/api/v1/wbs/{b['id']}/level", json={"direction": "down"})
    assert res.status_code == 200
    assert res.get_json()["code"] == "1.1.1"


def test_level_endpoint_bad_direction_is_400(client, project):
    root = _create(client, project.id, "Phase").get_json()
    res = client.patch(f"/api/v1/wbs/{root['id']}/level", json={"direction": "left"})
    assert res.status_code == 400


def test_level_up_on_root_is_422(client, project):
    root = _create(client, project.id, "Phase").get_json()
    res = client.patch(f"/api/v1/wbs/{root['id']}/level", json={"direction": "up"})
    assert res.status_code == 422
    assert res.get_json()["code"] == "ERR_BUSINESS_RULE"


# ── Delete ────────────────────────────────────────────────────────────────────


def test_delete_subtree(client, project):
    root, pkg, _act, _task = _chain(client, project.id)

    res = client.delete(f"/api/v1/wbs/{pkg['id']}")
    assert res.status_code == 200
    assert res.get_json()["children_deleted"] == 2
    assert WbsItem.query.count() == 1

    root_item = _db.session.get(WbsItem, root["id"])
    assert root_item.status == WbsStatus.PENDING


def test_delete_unknown_is_404(client):
    assert client.delete("/api/v1/wbs/unknown").status_code == 404


# ── Assignees ─────────────────────────────────────────────────────────────────


def test_assignee_endpoints(client, project, person):
    root = _create(client, project.id, "Phase").get_json()
    base = f"/api/v1/wbs/{root['id']}/assignees"

    assert client.post(base, json={"person_id": person.id}).status_code == 201
    assert client.post(base, json={"person_id": person.id}).status_code == 201
    listed = client.get(base).get_json()["assignees"]
    assert [p["id"] for p in listed] == [person.id]

    res = client.put(base, json={"person_ids": []})
    assert res.status_code == 200
    assert res.get_json()["assignees"] == []

    res = client.delete(f"{base}/{person.id}")
    assert res.get_json() == {"removed": False}


def test_assign_unknown_person_is_404(client, project):
    root = _create(client, project.id, "Phase").get_json()
    res = client.post(f"/api/v1/wbs/{root['id']}/assignees", json={"person_id": 404})
    assert res.status_code == 404


def test_assign_requires_person_id(client, project):
    root = _create(client, project.id, "Phase").get_json()
    res = client.post(f"/api/v1/wbs/{root['id']}/assignees", json={})
    assert res.status_code == 400


# ── Reports ───────────────────────────────────────────────────────────────────


def test_delayed_stats_and_schedule_endpoints(client, project, person):
    root = _create(client, project.id, "Phase").get_json()
    _create(
        client, project.id, "Overdue", parent_id=root["id"],
        end_date="2020-01-01", assignee_ids=[person.id],
    )

    delayed = client.get(f"/api/v1/wbs/delayed?project_id={project.id}").get_json()
    assert delayed["total"] == 1
    assert delayed["items"][0]["delay_days"] > 0

    stats = client.get(f"/api/v1/wbs/stats?project_id={project.id}").get_json()
    assert stats["assignees"][0]["id"] == person.id
    assert stats["total"]["delayed"] == 1

    schedule = client.get(f"/api/v1/wbs/schedule-stats?project_id={project.id}").get_json()
    assert schedule["total_tasks"] == 1
    assert schedule["delayed_tasks"] == 1


def test_report_endpoints_require_project_id(client):
    for path in ("/api/v1/wbs/delayed", "/api/v1/wbs/stats", "/api/v1/wbs/schedule-stats"):
        assert client.get(path).status_code == 400


# ── Health / app shell ────────────────────────────────────────────────────────


def test_health_endpoints(client):
    assert client.get("/api/v1/health/ready").get_json() == {"status": "ok"}
    live = client.get("/api/v1/health/live")
    assert live.status_code == 200
    assert live.get_json()["checks"]["database"]["status"] == "ok"


def test_unknown_route_is_json_404(client):
    res = client.get("/api/v1/nothing-here")
    assert res.status_code == 404
    assert res.get_json()["error"] == "Not found"


def test_responses_carry_request_headers(client):
    res = client.get("/api/v1/health/ready", headers={"X-Request-ID": "abc123"})
    assert res.headers["X-Request-ID"] == "abc123"
    assert "X-Request-Duration-Ms" in res.headers
