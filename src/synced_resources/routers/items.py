from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlmodel.ext.asyncio.session import AsyncSession
from starlette.responses import Response

from synced_resources.db import get_session
from synced_resources.domain.sync_token import SyncConfig
from synced_resources.domain.view_presenter import ListOptions, ViewPresenter, parse_query_params
from synced_resources.models import Item
from synced_resources.repositories.collection import QueryCollection
from synced_resources.resources import ResourceDescriptor, fits_int64
from synced_resources.responders import (
    Action,
    ResponseStrategy,
    default_response_strategy,
    resolve_format,
    respond_with_resources,
)
from synced_resources.schemas import ItemCreateRequest, ItemPatchRequest
from synced_resources.services import items_service
from synced_resources.services.result_composer import (
    AdditionalDataProvider,
    ComposeOptions,
    ResultComposer,
)

ITEM_LIST_OPTIONS = ListOptions(
    allowed={
        "order_by": ("id", "title", "status", "created_at", "updated_at"),
        "direction": ("asc", "desc"),
    },
    default={"order_by": "id", "direction": "asc", "entry_name": "item"},
    max_length=500,
)

ITEMS = ResourceDescriptor(
    model=Item,
    list_options=ITEM_LIST_OPTIONS,
    tags_filter=items_service.tags_filter_statement,
    serializer=items_service.serialize_item,
)


def _sync_config(request: Request) -> SyncConfig:
    return request.app.state.sync_config


def _view(request: Request) -> ViewPresenter:
    return ViewPresenter(parse_query_params(request.query_params.multi_items()), ITEMS.list_options)


def _tags_provider(session: AsyncSession) -> AdditionalDataProvider:
    async def additional_data(records: Sequence[Item]) -> Mapping[str, Any]:
        ids = [int(r.id) for r in records if r.id is not None]
        return {"tags": await items_service.tags_by_item(session, ids)}

    return additional_data


async def _require_item(session: AsyncSession, item_id: int) -> Item:
    item = await items_service.get_item(session, item_id) if fits_int64(item_id) else None
    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="item not found")
    return item


def build_items_router(strategy: ResponseStrategy = default_response_strategy) -> APIRouter:
    """Items endpoints; every response goes through ``strategy``."""

    router = APIRouter(prefix="/items", tags=["items"])

    @router.get("")
    async def list_items(request: Request, session: AsyncSession = Depends(get_session)) -> Response:
        view = _view(request)
        collection = QueryCollection(session, ITEMS).view_filter(view)
        options = ComposeOptions(s=view.sync_token, additional_data=True)
        if not options.ranged:
            collection = collection.view_order(view)

        composer = ResultComposer(
            ITEMS, view, _sync_config(request), additional_data=_tags_provider(session)
        )
        payload = await composer.compose(collection, options)
        return respond_with_resources(
            payload, action=Action.INDEX, fmt=resolve_format(request), strategy=strategy
        )

    @router.get("/{item_id}")
    async def show_item(
        item_id: int, request: Request, session: AsyncSession = Depends(get_session)
    ) -> Response:
        item = await _require_item(session, item_id)
        composer = ResultComposer(
            ITEMS, _view(request), _sync_config(request), additional_data=_tags_provider(session)
        )
        payload = await composer.compose(item, ComposeOptions(additional_data=True))
        return respond_with_resources(
            payload, action=Action.SHOW, fmt=resolve_format(request), strategy=strategy
        )

    @router.post("")
    async def create_item(
        payload: ItemCreateRequest, request: Request, session: AsyncSession = Depends(get_session)
    ) -> Response:
        outcome = await items_service.create_item(session, payload)
        body = None
        if outcome.succeeded:
            composer = ResultComposer(ITEMS, _view(request), _sync_config(request))
            body = await composer.compose(outcome.record)
        return respond_with_resources(
            body, action=Action.CREATE, outcome=outcome, fmt=resolve_format(request), strategy=strategy
        )

    @router.patch("/{item_id}")
    async def update_item(
        item_id: int,
        payload: ItemPatchRequest,
        request: Request,
        session: AsyncSession = Depends(get_session),
    ) -> Response:
        item = await _require_item(session, item_id)
        outcome = await items_service.update_item(session, item, payload)
        body = None
        if outcome.succeeded:
            composer = ResultComposer(ITEMS, _view(request), _sync_config(request))
            body = await composer.compose(outcome.record)
        return respond_with_resources(
            body, action=Action.UPDATE, outcome=outcome, fmt=resolve_format(request), strategy=strategy
        )

    @router.delete("/{item_id}")
    async def destroy_item(
        item_id: int, request: Request, session: AsyncSession = Depends(get_session)
    ) -> Response:
        item = await _require_item(session, item_id)
        outcome = await items_service.destroy_item(session, item)
        return respond_with_resources(
            None, action=Action.DESTROY, outcome=outcome, fmt=resolve_format(request), strategy=strategy
        )

    return router


router = build_items_router()
