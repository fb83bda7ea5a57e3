"""Project and Person — the collaborators a WBS tree hangs off.

Only the columns the hierarchy engine reads are modelled here; the rest of
the project-management surface lives outside this service.
"""

from datetime import datetime, timezone

from wbs_platform.models import db


def _utcnow():
    return datetime.now(timezone.utc)


class Project(db.Model):
    """Owner of one WBS forest."""

    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(50), nullable=False, unique=True)
    name = db.Column(db.String(200), nullable=False)
    status = db.Column(db.String(30), nullable=False, default="active")
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=_utcnow, onupdate=_utcnow,
    )

    wbs_items = db.relationship(
        "WbsItem", backref="project", lazy="dynamic",
        cascade="all, delete-orphan",
    )

    def to_summary(self):
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
        }

    def __repr__(self):
        return f"<Project {self.id}: {self.code}>"


class Person(db.Model):
    """Someone who can be made responsible for a WBS item."""

    __tablename__ = "people"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(255), nullable=True, unique=True)
    avatar = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_summary(self):
        return {"id": self.id, "name": self.name, "email": self.email, "avatar": self.avatar}

    def __repr__(self):
        return f"<Person {self.id}: {self.name}>"
