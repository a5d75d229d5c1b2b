from __future__ import annotations

from datetime import datetime, timedelta, timezone

from synced_resources.domain.delta import build_cutoffs, needs_sync, unique_in_order
from synced_resources.sync_utils import datetime_to_ms

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _coerce_int(raw: str) -> int | None:
    try:
        return int(raw)
    except ValueError:
        return None


def test_build_cutoffs_converts_ids_and_drops_bad_ones() -> None:
    token = {"1": datetime_to_ms(T0), "x": datetime_to_ms(T0), "2": datetime_to_ms(T0) + 1}
    cutoffs = build_cutoffs(token, _coerce_int)
    assert cutoffs == {1: T0, 2: T0 + timedelta(milliseconds=1)}


def test_unknown_ids_always_sync() -> None:
    assert needs_sync(3, T0, {1: T0}) is True
    assert needs_sync(3, None, {}) is True


def test_known_ids_sync_only_when_strictly_newer() -> None:
    cutoffs = {1: T0}
    assert needs_sync(1, T0 - timedelta(seconds=1), cutoffs) is False
    assert needs_sync(1, T0, cutoffs) is False
    assert needs_sync(1, T0 + timedelta(milliseconds=1), cutoffs) is True


def test_naive_updated_at_is_treated_as_utc() -> None:
    cutoffs = {1: T0}
    naive_later = (T0 + timedelta(minutes=1)).replace(tzinfo=None)
    assert needs_sync(1, naive_later, cutoffs) is True


def test_known_id_without_timestamp_does_not_sync() -> None:
    assert needs_sync(1, None, {1: T0}) is False


def test_unique_in_order_first_occurrence_wins() -> None:
    assert unique_in_order([3, 1, 3, 2, 1]) == [3, 1, 2]
