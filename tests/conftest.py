"""
Shared pytest fixtures for the WBS Platform test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - project / person: Pre-created collaborator rows
    - make_node: node factory going through wbs_service.create_node
"""

import pytest

from wbs_platform import create_app
from wbs_platform.models import db as _db
from wbs_platform.models.project import Person, Project


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Convenience fixtures ─────────────────────────────────────────────────


def make_project(code: str = "PRJ-1", name: str = "Test Project") -> Project:
    p = Project(code=code, name=name)
    _db.session.add(p)
    _db.session.commit()
    return p


def make_person(name: str = "Alice", email: str | None = None) -> Person:
    p = Person(name=name, email=email or f"{name.lower()}@example.com")
    _db.session.add(p)
    _db.session.commit()
    return p


@pytest.fixture()
def project():
    return make_project()


@pytest.fixture()
def person():
    return make_person()


@pytest.fixture()
def make_node(project):
    """Create a node in ``project`` through the service; returns its dict."""
    from wbs_platform.services import wbs_service

    def _make(name="Item", parent=None, level=None, **fields):
        parent_id = parent["id"] if isinstance(parent, dict) else parent
        return wbs_service.create_node(project.id, parent_id, level, name, **fields)

    return _make
