"""
WBS Hierarchy Models

WbsItem (LEVEL1-LEVEL4 self-referential tree) and WbsAssignee
(node <-> person responsibility ledger).

Level meaning (project methodology):
  LEVEL1 = Phase (analysis, design, build, test, transition)
  LEVEL2 = Work package
  LEVEL3 = Activity group
  LEVEL4 = Unit task (the actual work item)
"""

import uuid
from datetime import datetime, timezone
from enum import Enum

from wbs_platform.models import db


__all__ = [
    "WbsLevel",
    "WbsStatus",
    "WbsItem",
    "WbsAssignee",
]


# ── Helpers ──────────────────────────────────────────────────────────────────

def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


# ═════════════════════════════════════════════════════════════════════════════
# Enums
# ═════════════════════════════════════════════════════════════════════════════

class WbsLevel(str, Enum):
    """Closed set of tree depths. LEVEL1 is the root level."""

    LEVEL1 = "LEVEL1"
    LEVEL2 = "LEVEL2"
    LEVEL3 = "LEVEL3"
    LEVEL4 = "LEVEL4"

    @property
    def number(self) -> int:
        return _LEVEL_NUMBERS[self]

    @classmethod
    def from_number(cls, number: int) -> "WbsLevel":
        for level, n in _LEVEL_NUMBERS.items():
            if n == number:
                return level
        raise ValueError(f"WBS level must be 1-4, got {number}")

    @classmethod
    def coerce(cls, value) -> "WbsLevel":
        """Accept a member, its name ("LEVEL2") or its number (2 / "2")."""
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise ValueError(f"Invalid WBS level: {value!r}")
        if isinstance(value, int):
            return cls.from_number(value)
        text = str(value).strip().upper()
        if text.isdigit():
            return cls.from_number(int(text))
        try:
            return cls(text)
        except ValueError:
            raise ValueError(
                f"Invalid WBS level: {value!r}. Use LEVEL1, LEVEL2, LEVEL3 or LEVEL4"
            ) from None

    def child(self) -> "WbsLevel | None":
        """Level directly below, or None for LEVEL4."""
        if self.number == len(_LEVEL_NUMBERS):
            return None
        return WbsLevel.from_number(self.number + 1)

    def parent(self) -> "WbsLevel | None":
        """Level directly above, or None for LEVEL1."""
        if self.number == 1:
            return None
        return WbsLevel.from_number(self.number - 1)


_LEVEL_NUMBERS = {
    WbsLevel.LEVEL1: 1,
    WbsLevel.LEVEL2: 2,
    WbsLevel.LEVEL3: 3,
    WbsLevel.LEVEL4: 4,
}

MAX_LEVEL = WbsLevel.LEVEL4


class WbsStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    ON_HOLD = "ON_HOLD"

    @classmethod
    def coerce(cls, value) -> "WbsStatus":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(
                f"Invalid WBS status: {value!r}. Use one of "
                + ", ".join(s.value for s in cls)
            ) from None


# Manually forced states that progress aggregation never overwrites
STICKY_STATUSES = frozenset({WbsStatus.CANCELLED, WbsStatus.ON_HOLD})

# Terminal states that are never considered delayed
CLOSED_STATUSES = frozenset({WbsStatus.COMPLETED, WbsStatus.CANCELLED})


# ═════════════════════════════════════════════════════════════════════════════
# 1. WbsItem — LEVEL1-LEVEL4 project task tree
# ═════════════════════════════════════════════════════════════════════════════

class WbsItem(db.Model):
    """
    One node of a project's work breakdown structure. Self-referential tree.

    Codes encode ancestry ("2.3.1" is the first child of "2.3"); sort_order
    is the zero-based sibling index. Group nodes (with children) carry an
    aggregated progress; only leaves are updated directly.
    """

    __tablename__ = "wbs_items"
    __table_args__ = (
        db.UniqueConstraint("project_id", "code", name="uq_wbs_project_code"),
        db.UniqueConstraint(
            "project_id", "parent_id", "sort_order", name="uq_wbs_project_parent_order",
        ),
        db.CheckConstraint("progress >= 0 AND progress <= 100", name="ck_wbs_progress_range"),
        db.Index("idx_wbs_project_parent", "project_id", "parent_id"),
        db.Index("idx_wbs_project_level", "project_id", "level"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    parent_id = db.Column(
        db.String(36), db.ForeignKey("wbs_items.id", ondelete="CASCADE"),
        nullable=True, comment="NULL for LEVEL1 roots",
    )
    code = db.Column(
        db.String(50), nullable=False,
        comment="Unique within project. Root: 2, child: 2.3, grandchild: 2.3.1",
    )
    name = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, nullable=True)
    level = db.Column(
        db.Enum(WbsLevel, native_enum=False, length=10, validate_strings=True),
        nullable=False,
    )
    status = db.Column(
        db.Enum(WbsStatus, native_enum=False, length=20, validate_strings=True),
        nullable=False, default=WbsStatus.PENDING,
    )
    progress = db.Column(db.Integer, nullable=False, default=0)
    sort_order = db.Column(
        db.Integer, nullable=False, default=0,
        comment="Zero-based sibling index",
    )
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)
    weight = db.Column(db.Integer, nullable=False, default=1)

    deliverable_name = db.Column(db.String(300), nullable=True)
    deliverable_link = db.Column(db.String(1000), nullable=True)

    # Timestamps
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=_utcnow, onupdate=_utcnow,
    )

    # ── Relationships ────────────────────────────────────────────────────
    children = db.relationship(
        "WbsItem",
        backref=db.backref("parent", remote_side="WbsItem.id"),
        lazy="dynamic",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    assignments = db.relationship(
        "WbsAssignee", backref="wbs_item", lazy="select",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def level_number(self) -> int:
        return WbsLevel.coerce(self.level).number

    def to_dict(self, include_assignees=True, child_count=None):
        """Serialize one node. ``child_count`` avoids a COUNT query when known."""
        if child_count is None:
            child_count = self.children.count()
        d = {
            "id": self.id,
            "project_id": self.project_id,
            "parent_id": self.parent_id,
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "level": WbsLevel.coerce(self.level).value,
            "level_number": self.level_number,
            "status": WbsStatus.coerce(self.status).value,
            "progress": self.progress,
            "sort_order": self.sort_order,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "weight": self.weight,
            "deliverable_name": self.deliverable_name,
            "deliverable_link": self.deliverable_link,
            "has_children": child_count > 0,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_assignees:
            d["assignees"] = [a.person.to_summary() for a in self.assignments if a.person]
        return d

    def __repr__(self):
        return f"<WbsItem {self.level} {self.code}: {self.name}>"


# ═════════════════════════════════════════════════════════════════════════════
# 2. WbsAssignee — many-to-many node <-> person
# ═════════════════════════════════════════════════════════════════════════════

class WbsAssignee(db.Model):
    """Responsibility entry. At most one row per (wbs_item, person) pair."""

    __tablename__ = "wbs_assignees"
    __table_args__ = (
        db.UniqueConstraint("wbs_item_id", "person_id", name="uq_wbs_assignee_pair"),
    )

    id = db.Column(db.Integer, primary_key=True)
    wbs_item_id = db.Column(
        db.String(36), db.ForeignKey("wbs_items.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    person_id = db.Column(
        db.Integer, db.ForeignKey("people.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    person = db.relationship("Person", lazy="joined")

    def to_dict(self):
        return {
            "id": self.id,
            "wbs_item_id": self.wbs_item_id,
            "person_id": self.person_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<WbsAssignee {self.wbs_item_id} -> {self.person_id}>"
