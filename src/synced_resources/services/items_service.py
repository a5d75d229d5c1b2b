from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, cast

from sqlalchemy.sql.elements import ColumnElement
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from synced_resources.models import Item, ItemTag, Tag
from synced_resources.responders import Outcome
from synced_resources.schemas import ItemCreateRequest, ItemOut, ItemPatchRequest
from synced_resources.sync_utils import as_utc, utc_now

logger = logging.getLogger(__name__)

ITEM_STATUSES = ("open", "done", "archived")
TITLE_MAX = 200
BODY_MAX = 10000
TAG_MAX = 100


def _col(attr: object) -> ColumnElement[Any]:
    return cast(ColumnElement[Any], attr)


def _normalize_tag(tag: str) -> tuple[str, str] | None:
    raw = (tag or "").strip()
    if not raw:
        return None
    return raw.lower(), raw


def validate_item(*, title: str, body: str, status: str, tags: Sequence[str] = ()) -> dict[str, list[str]]:
    """Per-field error messages; empty when the record is valid."""

    errors: dict[str, list[str]] = {}

    def add(name: str, message: str) -> None:
        errors.setdefault(name, []).append(message)

    if not title.strip():
        add("title", "can't be blank")
    if len(title) > TITLE_MAX:
        add("title", f"is too long (maximum is {TITLE_MAX} characters)")
    if len(body) > BODY_MAX:
        add("body", f"is too long (maximum is {BODY_MAX} characters)")
    if status not in ITEM_STATUSES:
        add("status", "is not included in the list")
    if any(len(t.strip()) > TAG_MAX for t in tags):
        add("tags", f"is too long (maximum is {TAG_MAX} characters)")
    return errors


def serialize_item(item: Item) -> dict[str, Any]:
    out = ItemOut(
        id=cast(int, item.id),
        title=item.title,
        body=item.body,
        status=item.status,
        created_at=as_utc(item.created_at),
        updated_at=as_utc(item.updated_at),
    )
    return out.model_dump(mode="json")


def tags_filter_statement(statement: Any, tags: list[str]) -> Any:
    """Keep items carrying any of ``tags`` (already lower-cased)."""
    return (
        statement.join(ItemTag, _col(ItemTag.item_id) == _col(Item.id))
        .join(Tag, _col(Tag.id) == _col(ItemTag.tag_id))
        .where(_col(Tag.name_lower).in_(tags))
    )


async def get_item(session: AsyncSession, item_id: int) -> Item | None:
    return await session.get(Item, item_id)


async def _upsert_tags(session: AsyncSession, tags: Sequence[str]) -> dict[str, int]:
    """Return mapping name_lower -> tag id for desired tags."""

    desired: dict[str, str] = {}
    for t in tags:
        norm = _normalize_tag(t)
        if norm is None:
            continue
        lower, original = norm
        desired.setdefault(lower, original)

    if not desired:
        return {}

    existing = list((await session.exec(select(Tag).where(_col(Tag.name_lower).in_(list(desired))))).all())
    by_lower: dict[str, Tag] = {t.name_lower: t for t in existing}
    for lower, original in desired.items():
        if lower in by_lower:
            continue
        tag_row = Tag(name_original=original, name_lower=lower)
        session.add(tag_row)
        by_lower[lower] = tag_row

    await session.flush()
    return {lower: cast(int, t.id) for lower, t in by_lower.items()}


async def set_item_tags(session: AsyncSession, *, item_id: int, tags: Sequence[str]) -> None:
    desired_tag_ids = set((await _upsert_tags(session, tags)).values())

    existing = list((await session.exec(select(ItemTag).where(ItemTag.item_id == item_id))).all())
    by_tag_id: dict[int, ItemTag] = {it.tag_id: it for it in existing}

    for tag_id in desired_tag_ids - set(by_tag_id):
        session.add(ItemTag(item_id=item_id, tag_id=tag_id))
    for tag_id, link in by_tag_id.items():
        if tag_id not in desired_tag_ids:
            await session.delete(link)
    await session.flush()


async def tags_by_item(session: AsyncSession, item_ids: Sequence[int]) -> dict[int, list[str]]:
    out: dict[int, list[str]] = {int(i): [] for i in item_ids}
    if not out:
        return out

    stmt = (
        select(ItemTag.item_id, Tag.name_original)
        .join(Tag, _col(Tag.id) == _col(ItemTag.tag_id))
        .where(_col(ItemTag.item_id).in_(list(out)))
        .order_by(_col(Tag.name_lower).asc())
    )
    for item_id, name in (await session.exec(stmt)).all():
        out[int(item_id)].append(name)
    return out


async def create_item(session: AsyncSession, req: ItemCreateRequest) -> Outcome:
    errors = validate_item(title=req.title, body=req.body, status=req.status, tags=req.tags)
    if errors:
        return Outcome(errors=errors)

    now = utc_now()
    item = Item(title=req.title.strip(), body=req.body, status=req.status, created_at=now, updated_at=now)
    session.add(item)
    await session.flush()
    await set_item_tags(session, item_id=cast(int, item.id), tags=req.tags)
    await session.commit()
    await session.refresh(item)
    logger.info("item created id=%s", item.id)
    return Outcome(record=item)


async def update_item(session: AsyncSession, item: Item, req: ItemPatchRequest) -> Outcome:
    title = req.title if req.title is not None else item.title
    body = req.body if req.body is not None else item.body
    status = req.status if req.status is not None else item.status
    errors = validate_item(title=title, body=body, status=status, tags=req.tags or ())
    if errors:
        return Outcome(errors=errors)

    item.title = title.strip()
    item.body = body
    item.status = status
    item.updated_at = utc_now()
    session.add(item)
    if req.tags is not None:
        await set_item_tags(session, item_id=cast(int, item.id), tags=req.tags)
    await session.commit()
    await session.refresh(item)
    return Outcome(record=item)


async def destroy_item(session: AsyncSession, item: Item) -> Outcome:
    links = (await session.exec(select(ItemTag).where(ItemTag.item_id == item.id))).all()
    for link in links:
        await session.delete(link)
    await session.delete(item)
    await session.commit()
    logger.info("item destroyed id=%s", item.id)
    return Outcome(record=item)
