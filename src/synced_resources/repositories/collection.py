"""Query scopes over a resource collection.

``QueryCollection`` wraps a SQLModel ``select`` and an ``AsyncSession``;
``ListCollection`` does the same work in memory for records already loaded.
Both are immutable: every scope returns a new collection, and nothing touches
the database until ``count``/``pluck_ids``/``all`` is awaited.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from sqlalchemy import case, false, func, or_
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from synced_resources.domain.delta import needs_sync, unique_in_order
from synced_resources.domain.view_presenter import SortDirection, ViewPresenter
from synced_resources.resources import ResourceDescriptor, fits_int64

logger = logging.getLogger(__name__)

_TRUE_STRINGS = frozenset({"1", "true", "t", "yes", "y", "on"})


@runtime_checkable
class ResourceCollection(Protocol):
    resource: ResourceDescriptor

    def has_update_timestamp(self) -> bool: ...

    async def count(self) -> int: ...

    async def pluck_ids(self) -> list[Any]: ...

    async def all(self) -> list[Any]: ...

    def filter_ids(self, ids: Iterable[object]) -> "ResourceCollection": ...

    def filter_by_params(self, criteria: object) -> "ResourceCollection": ...

    def filter_tags(self, tags_filter: object) -> "ResourceCollection": ...

    def view_filter(self, view: ViewPresenter) -> "ResourceCollection": ...

    def view_order(self, view: ViewPresenter) -> "ResourceCollection": ...

    def view_range(self, view: ViewPresenter) -> "ResourceCollection": ...

    def view_order_range(self, view: ViewPresenter) -> "ResourceCollection": ...

    def restrict_to_delta(
        self, original_ids: Sequence[Any], cutoffs: Mapping[Any, datetime]
    ) -> "ResourceCollection": ...


def normalize_tags(tags_filter: object) -> list[str]:
    if isinstance(tags_filter, str):
        raw: Iterable[object] = tags_filter.split(",")
    elif isinstance(tags_filter, Mapping):
        raw = tags_filter.values()
    elif isinstance(tags_filter, (list, tuple, set)):
        raw = tags_filter
    else:
        return []
    return list(dict.fromkeys(str(t).strip().lower() for t in raw if str(t).strip()))


def coerce_value(resource: ResourceDescriptor, name: str, raw: object) -> object:
    """Best-effort conversion of a query-string value to the column type."""
    column = resource.table.columns[name]
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return raw
    if isinstance(raw, python_type):
        return raw
    if python_type is bool:
        return str(raw).strip().lower() in _TRUE_STRINGS
    if python_type is datetime:
        try:
            return datetime.fromisoformat(str(raw).strip())
        except ValueError:
            return raw
    try:
        return python_type(raw)
    except (TypeError, ValueError):
        return raw


class ViewScopes:
    """View-driven scopes shared by both collection kinds."""

    resource: ResourceDescriptor

    def filter_ids(self, ids: Iterable[object]) -> Any:
        raise NotImplementedError

    def filter_by_params(self, criteria: object) -> Any:
        raise NotImplementedError

    def filter_tags(self, tags_filter: object) -> Any:
        raise NotImplementedError

    def view_order(self, view: ViewPresenter) -> Any:
        raise NotImplementedError

    def view_range(self, view: ViewPresenter) -> Any:
        raise NotImplementedError

    def has_update_timestamp(self) -> bool:
        return self.resource.has_update_timestamp()

    def view_filter(self, view: ViewPresenter) -> Any:
        composed: Any = self

        ids = view.ids
        if ids is not None:
            composed = composed.filter_ids(ids)

        if view.filter:
            composed = composed.filter_by_params(view.filter)

        if view.tags_applied:
            composed = composed.filter_tags(view.tags_filter)

        return composed

    def view_order_range(self, view: ViewPresenter) -> Any:
        return self.view_order(view).view_range(view)

    def _filter_columns(self, criteria: object) -> list[tuple[str, object]]:
        if not isinstance(criteria, Mapping):
            logger.debug("ignoring non-mapping filter %r", criteria)
            return []
        out: list[tuple[str, object]] = []
        for key, value in criteria.items():
            name = str(key)
            if self.resource.column(name) is None:
                logger.debug("ignoring filter on unknown column %r", name)
                continue
            if isinstance(value, Mapping):
                logger.debug("ignoring nested filter value for %r", name)
                continue
            out.append((name, value))
        return out


class QueryCollection(ViewScopes):
    def __init__(
        self,
        session: AsyncSession,
        resource: ResourceDescriptor,
        statement: Any | None = None,
        *,
        id_order: Sequence[Any] | None = None,
    ) -> None:
        self.session = session
        self.resource = resource
        self.statement = statement if statement is not None else select(resource.model)
        self._id_order = list(id_order) if id_order is not None else None

    def _with(self, statement: Any, *, id_order: Sequence[Any] | None = None) -> QueryCollection:
        return QueryCollection(self.session, self.resource, statement, id_order=id_order)

    def filter_ids(self, ids: Iterable[object]) -> QueryCollection:
        coerced = [c for c in (self.resource.coerce_id(x) for x in ids) if c is not None]
        return self._with(self.statement.where(self.resource.pk.in_(coerced)))

    def filter_by_params(self, criteria: object) -> QueryCollection:
        stmt = self.statement
        for name, value in self._filter_columns(criteria):
            column = self.resource.column(name)
            # Integers no driver can bind can never match a stored value.
            if isinstance(value, (list, tuple)):
                accepted = [coerce_value(self.resource, name, v) for v in value]
                stmt = stmt.where(column.in_([v for v in accepted if fits_int64(v)]))
            else:
                expected = coerce_value(self.resource, name, value)
                stmt = stmt.where(column == expected if fits_int64(expected) else false())
        return self._with(stmt)

    def filter_tags(self, tags_filter: object) -> QueryCollection:
        tags = normalize_tags(tags_filter)
        if not tags:
            return self
        if self.resource.tags_filter is None:
            logger.debug("%s has no tag filter; ignoring tags_filter", self.resource.collection_name)
            return self
        return self._with(self.resource.tags_filter(self.statement, tags))

    def view_order(self, view: ViewPresenter) -> QueryCollection:
        pk = self.resource.pk
        descending = view.direction is SortDirection.DESC
        order_by = view.order_by
        column = self.resource.column(order_by) if order_by else None

        stmt = self.statement
        if order_by == self.resource.primary_key:
            stmt = stmt.order_by(pk.desc() if descending else pk.asc())
        else:
            if column is not None:
                stmt = stmt.order_by(column.desc() if descending else column.asc())
            # Stable pages: primary key is always the final tiebreaker.
            stmt = stmt.order_by(pk.asc())
        # Collapse join fan-out (e.g. several matching tags) to one row per record.
        return self._with(stmt.group_by(pk))

    def view_range(self, view: ViewPresenter) -> QueryCollection:
        return self._with(self.statement.offset(view.start).limit(view.length))

    def restrict_to_delta(
        self, original_ids: Sequence[Any], cutoffs: Mapping[Any, datetime]
    ) -> QueryCollection:
        resource = self.resource
        pk = resource.pk
        updated_at = resource.updated_at

        stmt = select(resource.model).where(pk.in_(list(original_ids)))
        # Only ids on this page matter; the rest of the token never reaches SQL.
        page_ids = set(original_ids)
        known = {record_id: cutoff for record_id, cutoff in cutoffs.items() if record_id in page_ids}
        if known:
            column = resource.table.columns[resource.update_timestamp_field]
            if not getattr(column.type, "timezone", False):
                known = {record_id: cutoff.replace(tzinfo=None) for record_id, cutoff in known.items()}
            # One flat CASE keeps the expression shallow however many ids are known.
            cutoff_for = case(known, value=pk)
            stmt = stmt.where(or_(pk.not_in(list(known)), updated_at > cutoff_for))
        return self._with(stmt, id_order=original_ids)

    async def count(self) -> int:
        ids = (
            self.statement.order_by(None)
            .limit(None)
            .offset(None)
            .with_only_columns(self.resource.pk)
            .distinct()
            .subquery()
        )
        total = (await self.session.exec(select(func.count()).select_from(ids))).one()
        return int(total)

    async def pluck_ids(self) -> list[Any]:
        ids = (await self.session.exec(self.statement.with_only_columns(self.resource.pk))).all()
        return unique_in_order(list(ids))

    async def all(self) -> list[Any]:
        rows = list((await self.session.exec(self.statement)).all())
        return _unique_records(self.resource, rows, self._id_order)


class ListCollection(ViewScopes):
    def __init__(self, resource: ResourceDescriptor, records: Iterable[Any]) -> None:
        self.resource = resource
        self.records = _unique_records(resource, list(records), None)

    def _with(self, records: Iterable[Any]) -> ListCollection:
        return ListCollection(self.resource, records)

    def filter_ids(self, ids: Iterable[object]) -> ListCollection:
        wanted = {c for c in (self.resource.coerce_id(x) for x in ids) if c is not None}
        return self._with(r for r in self.records if self.resource.id_of(r) in wanted)

    def filter_by_params(self, criteria: object) -> ListCollection:
        records = self.records
        for name, value in self._filter_columns(criteria):
            if isinstance(value, (list, tuple)):
                accepted = [coerce_value(self.resource, name, v) for v in value]
                records = [r for r in records if getattr(r, name) in accepted]
            else:
                expected = coerce_value(self.resource, name, value)
                records = [r for r in records if getattr(r, name) == expected]
        return self._with(records)

    def filter_tags(self, tags_filter: object) -> ListCollection:
        tags = set(normalize_tags(tags_filter))
        if not tags:
            return self
        record_tags = self.resource.record_tags
        if record_tags is None:
            logger.debug("%s has no tag accessor; ignoring tags_filter", self.resource.collection_name)
            return self
        return self._with(
            r for r in self.records if tags & {str(t).strip().lower() for t in record_tags(r)}
        )

    def view_order(self, view: ViewPresenter) -> ListCollection:
        id_of = self.resource.id_of
        descending = view.direction is SortDirection.DESC
        order_by = view.order_by

        records = sorted(self.records, key=id_of)
        if order_by and self.resource.column(order_by) is not None:
            if order_by == self.resource.primary_key:
                records = sorted(records, key=id_of, reverse=descending)
            else:
                # Stable sort keeps the primary-key order among ties.
                records = sorted(records, key=lambda r: _sort_key(getattr(r, order_by)), reverse=descending)
        return self._with(records)

    def view_range(self, view: ViewPresenter) -> ListCollection:
        return self._with(self.records[view.start : view.start + view.length])

    def restrict_to_delta(
        self, original_ids: Sequence[Any], cutoffs: Mapping[Any, datetime]
    ) -> ListCollection:
        position = {record_id: i for i, record_id in enumerate(original_ids)}
        kept = [
            r
            for r in self.records
            if self.resource.id_of(r) in position
            and needs_sync(self.resource.id_of(r), self.resource.updated_at_of(r), cutoffs)
        ]
        kept.sort(key=lambda r: position[self.resource.id_of(r)])
        return self._with(kept)

    async def count(self) -> int:
        return len(self.records)

    async def pluck_ids(self) -> list[Any]:
        return [self.resource.id_of(r) for r in self.records]

    async def all(self) -> list[Any]:
        return list(self.records)


def _unique_records(
    resource: ResourceDescriptor, records: list[Any], id_order: Sequence[Any] | None
) -> list[Any]:
    by_id: dict[Any, Any] = {}
    for record in records:
        by_id.setdefault(resource.id_of(record), record)
    if id_order is None:
        return list(by_id.values())
    return [by_id[record_id] for record_id in id_order if record_id in by_id]


def _sort_key(value: Any) -> tuple[bool, Any]:
    # None sorts before any value and never gets compared to one.
    return (value is not None, value if value is not None else 0)
