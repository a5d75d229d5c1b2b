from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime

from synced_resources.sync_utils import as_utc, synced_at_to_time


def build_cutoffs(
    sync_token: Mapping[str, int],
    coerce_id: Callable[[str], object | None],
) -> dict[object, datetime]:
    """Map record id -> instant the client last saw it.

    ``sync_token`` values are absolute epoch milliseconds (already rebased by
    the codec). Ids that cannot be converted to the primary key type can never
    match a record and are dropped.
    """
    cutoffs: dict[object, datetime] = {}
    for raw_id, synced_at in sync_token.items():
        record_id = coerce_id(raw_id)
        if record_id is None:
            continue
        cutoffs[record_id] = synced_at_to_time(synced_at)
    return cutoffs


def needs_sync(record_id: object, updated_at: datetime | None, cutoffs: Mapping[object, datetime]) -> bool:
    """True unless the client already holds this version of the record.

    Unknown ids always sync; known ids sync only when updated strictly after
    the client's synced_at (a tie means the client is up to date).
    """
    cutoff = cutoffs.get(record_id)
    if cutoff is None:
        return True
    if updated_at is None:
        return False
    return as_utc(updated_at) > cutoff


def unique_in_order(ids: list[object]) -> list[object]:
    # First occurrence wins; join fan-out can repeat ids.
    return list(dict.fromkeys(ids))
