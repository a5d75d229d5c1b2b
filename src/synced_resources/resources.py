from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Column
from sqlmodel import SQLModel

from synced_resources.domain.view_presenter import DEFAULT_LIST_OPTIONS, ListOptions

# (statement, tag names) -> statement
TagsFilter = Callable[[Any, list[str]], Any]
RecordTags = Callable[[Any], Iterable[str]]
Serializer = Callable[[Any], dict[str, Any]]

# Signed 64-bit: the widest integer column any supported driver binds.
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


def fits_int64(value: object) -> bool:
    if isinstance(value, int) and not isinstance(value, bool):
        return INT64_MIN <= value <= INT64_MAX
    return True


def underscore(name: str) -> str:
    return re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", name).lower()


def pluralize(word: str) -> str:
    if re.search(r"[^aeiou]y$", word):
        return word[:-1] + "ies"
    if re.search(r"(s|x|z|ch|sh)$", word):
        return word + "es"
    return word + "s"


def singularize(word: str) -> str:
    if word.endswith("ies"):
        return word[:-3] + "y"
    if re.search(r"(s|x|z|ch|sh)es$", word):
        return word[:-2]
    if word.endswith("s") and not word.endswith("ss"):
        return word[:-1]
    return word


@dataclass(frozen=True)
class ResourceDescriptor:
    """Static description of one synced collection.

    Built once at import time; a bad column name fails there rather than on
    the first request.
    """

    model: type[SQLModel]
    list_options: ListOptions = DEFAULT_LIST_OPTIONS
    primary_key: str = "id"
    # None disables delta filtering for this resource.
    update_timestamp_field: str | None = "updated_at"
    instance_name: str = ""
    collection_name: str = ""
    tags_filter: TagsFilter | None = None
    record_tags: RecordTags | None = None
    serializer: Serializer | None = None

    def __post_init__(self) -> None:
        columns = self.table.columns
        if self.primary_key not in columns:
            raise ValueError(f"{self.model.__name__} has no column {self.primary_key!r}")
        if self.update_timestamp_field is not None and self.update_timestamp_field not in columns:
            raise ValueError(f"{self.model.__name__} has no column {self.update_timestamp_field!r}")

        if not self.instance_name:
            object.__setattr__(self, "instance_name", underscore(self.model.__name__))
        if not self.collection_name:
            object.__setattr__(self, "collection_name", pluralize(self.instance_name))

    @property
    def table(self) -> Any:
        return getattr(self.model, "__table__")

    @property
    def pk(self) -> Any:
        return getattr(self.model, self.primary_key)

    @property
    def updated_at(self) -> Any:
        if self.update_timestamp_field is None:
            return None
        return getattr(self.model, self.update_timestamp_field)

    def has_update_timestamp(self) -> bool:
        return self.update_timestamp_field is not None

    def column(self, name: str) -> Any | None:
        """Model attribute for ``name`` when it is a real column, else None."""
        if name not in self.table.columns:
            return None
        return getattr(self.model, name)

    def coerce_id(self, raw: object) -> object | None:
        column: Column[Any] = self.table.columns[self.primary_key]
        try:
            python_type = column.type.python_type
        except NotImplementedError:
            python_type = str
        try:
            coerced = raw if isinstance(raw, python_type) else python_type(str(raw).strip())
        except (TypeError, ValueError):
            return None
        return coerced if fits_int64(coerced) else None

    def id_of(self, record: Any) -> Any:
        return getattr(record, self.primary_key)

    def updated_at_of(self, record: Any) -> Any:
        if self.update_timestamp_field is None:
            return None
        return getattr(record, self.update_timestamp_field, None)

    def serialize(self, record: Any) -> dict[str, Any]:
        if self.serializer is not None:
            return self.serializer(record)
        return record.model_dump()
