from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from synced_resources.domain.delta import build_cutoffs

logger = logging.getLogger(__name__)


async def resolve(collection: Any, sync_token: Mapping[str, int] | None) -> Any:
    """Narrow ``collection`` to the records the client does not hold yet.

    A record survives when the client never saw its id, or when it was updated
    strictly after the client's synced_at for that id. The result never adds
    records and keeps the original order. Without a token, or for a resource
    without an update timestamp, the collection comes back untouched.
    """
    if sync_token is None or not collection.has_update_timestamp():
        return collection

    resource = collection.resource
    original_ids = await collection.pluck_ids()
    cutoffs = build_cutoffs(sync_token, resource.coerce_id)
    logger.debug(
        "delta resolve %s: %d candidates, %d known ids",
        resource.collection_name,
        len(original_ids),
        len(cutoffs),
    )
    return collection.restrict_to_delta(original_ids, cutoffs)
