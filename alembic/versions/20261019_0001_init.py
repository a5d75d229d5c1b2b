"""init schema (items + tags)

Revision ID: 20261019_0001
Revises: None
Create Date: 2026-10-19 00:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def _table_exists(table_name: str) -> bool:
    bind = op.get_bind()
    insp = inspect(bind)
    return table_name in insp.get_table_names()


def upgrade() -> None:
    if not _table_exists("items"):
        op.create_table(
            "items",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
            sa.Column("title", sa.String(length=200), nullable=False),
            sa.Column("body", sa.Text(), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
        )
        op.create_index("ix_items_title", "items", ["title"], unique=False)
        op.create_index("ix_items_status", "items", ["status"], unique=False)
        op.create_index("ix_items_created_at", "items", ["created_at"], unique=False)
        op.create_index("ix_items_updated_at", "items", ["updated_at"], unique=False)

    if not _table_exists("tags"):
        op.create_table(
            "tags",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
            sa.Column("name_original", sa.String(length=100), nullable=False),
            sa.Column("name_lower", sa.String(length=100), nullable=False),
        )
        op.create_index("ix_tags_name_lower", "tags", ["name_lower"], unique=True)

    if not _table_exists("item_tags"):
        op.create_table(
            "item_tags",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
            sa.Column("item_id", sa.Integer(), sa.ForeignKey("items.id"), nullable=False),
            sa.Column("tag_id", sa.Integer(), sa.ForeignKey("tags.id"), nullable=False),
            sa.UniqueConstraint("item_id", "tag_id", name="uq_item_tags_item_tag"),
        )
        op.create_index("ix_item_tags_item_id", "item_tags", ["item_id"], unique=False)
        op.create_index("ix_item_tags_tag_id", "item_tags", ["tag_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_item_tags_tag_id", table_name="item_tags")
    op.drop_index("ix_item_tags_item_id", table_name="item_tags")
    op.drop_table("item_tags")

    op.drop_index("ix_tags_name_lower", table_name="tags")
    op.drop_table("tags")

    op.drop_index("ix_items_updated_at", table_name="items")
    op.drop_index("ix_items_created_at", table_name="items")
    op.drop_index("ix_items_status", table_name="items")
    op.drop_index("ix_items_title", table_name="items")
    op.drop_table("items")
