"""Turn a collection (or a single record) into a response payload.

Ranged responses (the client sent ``s``, even an empty one)::

    {"total": 20, "indices": {10: 11, ...}, "requested_at": 5, "objects": [...]}

Unranged responses wrap the record(s) under the resource name::

    {"items": [...]}   /   {"item": {...}}

Both shapes may carry extra keys from an additional-data provider.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from synced_resources.domain.delta import unique_in_order
from synced_resources.domain.sync_token import SyncConfig
from synced_resources.domain.view_presenter import ViewPresenter
from synced_resources.repositories.collection import ListCollection, ResourceCollection
from synced_resources.resources import ResourceDescriptor
from synced_resources.services import delta_resolver
from synced_resources.sync_utils import utc_now

logger = logging.getLogger(__name__)


class AdditionalDataProvider(Protocol):
    def __call__(self, records: Sequence[Any]) -> Awaitable[Mapping[str, Any]]: ...


@dataclass(frozen=True)
class ComposeOptions:
    # Raw sync token; None means "not a sync request" and yields the unranged shape.
    s: str | None = None
    additional_data: bool = False
    top_level_key: str | None = None

    @property
    def ranged(self) -> bool:
        return self.s is not None


@dataclass
class _Working:
    collection: Any
    records: list[Any] | None
    payload: dict[str, Any]


class ResultComposer:
    def __init__(
        self,
        resource: ResourceDescriptor,
        view: ViewPresenter,
        sync_config: SyncConfig,
        *,
        additional_data: AdditionalDataProvider | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.resource = resource
        self.view = view
        self.sync_config = sync_config
        self.additional_data = additional_data
        self.clock = clock

    async def compose(self, object_or_objects: Any, options: ComposeOptions | None = None) -> dict[str, Any]:
        options = options or ComposeOptions()
        is_collection = isinstance(object_or_objects, (ResourceCollection, list, tuple))

        if options.ranged and is_collection:
            collection = object_or_objects
            if not isinstance(collection, ResourceCollection):
                collection = ListCollection(self.resource, collection)
            working = _Working(collection, None, {})
            working = self._compose_requested_at(working)
            working = await self._compose_range_total(working)
            working = await self._compose_indices(working)
            working = await self._compose_delta(working, options)
            working = await self._compose_ranged_outer_layer(working)
        else:
            working = await self._compose_outer_layer(object_or_objects, is_collection, options)

        return await self._compose_additional_data(working, options)

    def _compose_requested_at(self, working: _Working) -> _Working:
        working.payload["requested_at"] = self.sync_config.time_to_synced_at(self.clock())
        return working

    async def _compose_range_total(self, working: _Working) -> _Working:
        # Count before paging; the page is what every later step works on.
        working.payload["total"] = await working.collection.count()
        working.collection = working.collection.view_order_range(self.view)
        return working

    async def _compose_indices(self, working: _Working) -> _Working:
        offset = self.view.start
        ids = unique_in_order(await working.collection.pluck_ids())
        working.payload["indices"] = {offset + i: record_id for i, record_id in enumerate(ids)}
        return working

    async def _compose_delta(self, working: _Working, options: ComposeOptions) -> _Working:
        sync_token = self.sync_config.decode(options.s)
        working.collection = await delta_resolver.resolve(working.collection, sync_token)
        return working

    async def _compose_ranged_outer_layer(self, working: _Working) -> _Working:
        working.records = await working.collection.all()
        working.payload["objects"] = [self.resource.serialize(r) for r in working.records]
        return working

    async def _compose_outer_layer(
        self, object_or_objects: Any, is_collection: bool, options: ComposeOptions
    ) -> _Working:
        if not is_collection:
            key = options.top_level_key or self.resource.instance_name
            records = [object_or_objects]
            return _Working(None, records, {key: self.resource.serialize(object_or_objects)})

        if isinstance(object_or_objects, ResourceCollection):
            records = await object_or_objects.all()
        else:
            records = list(object_or_objects)
        # top_level_key only renames single records.
        serialized = [self.resource.serialize(r) for r in records]
        return _Working(None, records, {self.resource.collection_name: serialized})

    async def _compose_additional_data(self, working: _Working, options: ComposeOptions) -> dict[str, Any]:
        provider = self.additional_data
        if not options.additional_data or provider is None:
            return working.payload

        extra = await provider(working.records or [])
        logger.debug("merging additional data keys %s", sorted(extra))
        return {**working.payload, **extra}

