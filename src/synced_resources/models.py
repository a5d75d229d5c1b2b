# basedpyright: reportAssignmentType=false
# basedpyright: reportIncompatibleVariableOverride=false

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Column, Text, UniqueConstraint
from sqlmodel import Field, SQLModel

from synced_resources.sync_utils import utc_now


class TimestampedRow(SQLModel):
    created_at: datetime = Field(default_factory=utc_now, index=True)
    # The only "last modified" signal the delta sync looks at.
    updated_at: datetime = Field(default_factory=utc_now, index=True)


class Item(TimestampedRow, table=True):
    __tablename__ = "items"  # pyright: ignore[reportAssignmentType,reportIncompatibleVariableOverride]

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(default="", max_length=200, index=True)
    body: str = Field(default="", sa_column=Column(Text, nullable=False))
    # open / done / archived (checked in items_service)
    status: str = Field(default="open", max_length=20, index=True)


class Tag(SQLModel, table=True):
    __tablename__ = "tags"  # pyright: ignore[reportAssignmentType,reportIncompatibleVariableOverride]

    id: Optional[int] = Field(default=None, primary_key=True)
    # Preserve user input as-is for display; use name_lower for matching.
    name_original: str = Field(min_length=1, max_length=100)
    name_lower: str = Field(min_length=1, max_length=100, index=True, unique=True)


class ItemTag(SQLModel, table=True):
    __tablename__ = "item_tags"  # pyright: ignore[reportAssignmentType,reportIncompatibleVariableOverride]
    __table_args__ = (UniqueConstraint("item_id", "tag_id", name="uq_item_tags_item_tag"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    item_id: int = Field(index=True, foreign_key="items.id")
    tag_id: int = Field(index=True, foreign_key="tags.id")
