"""create_wbs_tables

Create projects, people, wbs_items and wbs_assignees.

Revision ID: 7c1e4a9b2d30
Revises:
Create Date: 2026-10-19 09:30:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "7c1e4a9b2d30"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "projects" not in existing_tables:
        op.create_table(
            "projects",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("code", sa.String(length=50), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("status", sa.String(length=30), nullable=False, server_default="active"),
            sa.Column("start_date", sa.Date(), nullable=True),
            sa.Column("end_date", sa.Date(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("code"),
        )

    if "people" not in existing_tables:
        op.create_table(
            "people",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=True),
            sa.Column("avatar", sa.String(length=500), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("email"),
        )

    if "wbs_items" not in existing_tables:
        op.create_table(
            "wbs_items",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("parent_id", sa.String(length=36), nullable=True),
            sa.Column("code", sa.String(length=50), nullable=False),
            sa.Column("name", sa.String(length=300), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("level", sa.String(length=10), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="PENDING"),
            sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("start_date", sa.Date(), nullable=True),
            sa.Column("end_date", sa.Date(), nullable=True),
            sa.Column("weight", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("deliverable_name", sa.String(length=300), nullable=True),
            sa.Column("deliverable_link", sa.String(length=1000), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["parent_id"], ["wbs_items.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("project_id", "code", name="uq_wbs_project_code"),
            sa.UniqueConstraint(
                "project_id", "parent_id", "sort_order", name="uq_wbs_project_parent_order",
            ),
            sa.CheckConstraint("progress >= 0 AND progress <= 100", name="ck_wbs_progress_range"),
        )
        op.create_index("ix_wbs_items_project_id", "wbs_items", ["project_id"])
        op.create_index("idx_wbs_project_parent", "wbs_items", ["project_id", "parent_id"])
        op.create_index("idx_wbs_project_level", "wbs_items", ["project_id", "level"])

    if "wbs_assignees" not in existing_tables:
        op.create_table(
            "wbs_assignees",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("wbs_item_id", sa.String(length=36), nullable=False),
            sa.Column("person_id", sa.Integer(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["wbs_item_id"], ["wbs_items.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["person_id"], ["people.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("wbs_item_id", "person_id", name="uq_wbs_assignee_pair"),
        )
        op.create_index("ix_wbs_assignees_wbs_item_id", "wbs_assignees", ["wbs_item_id"])
        op.create_index("ix_wbs_assignees_person_id", "wbs_assignees", ["person_id"])


def downgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "wbs_assignees" in existing_tables:
        op.drop_index("ix_wbs_assignees_person_id", table_name="wbs_assignees")
        op.drop_index("ix_wbs_assignees_wbs_item_id", table_name="wbs_assignees")
        op.drop_table("wbs_assignees")

    if "wbs_items" in existing_tables:
        op.drop_index("idx_wbs_project_level", table_name="wbs_items")
        op.drop_index("idx_wbs_project_parent", table_name="wbs_items")
        op.drop_index("ix_wbs_items_project_id", table_name="wbs_items")
        op.drop_table("wbs_items")

    for table in ("people", "projects"):
        if table in existing_tables:
            op.drop_table(table)
