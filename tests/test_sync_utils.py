from __future__ import annotations

from datetime import datetime, timedelta, timezone

from synced_resources.sync_utils import (
    DEFAULT_BASE_TIME_MS,
    as_utc,
    datetime_to_ms,
    synced_at_to_time,
    time_to_synced_at,
)

BASE = datetime(2017, 1, 1, tzinfo=timezone.utc)


def test_default_base_time_is_2017() -> None:
    assert datetime_to_ms(BASE) == DEFAULT_BASE_TIME_MS


def test_time_to_synced_at_is_relative_to_base_time() -> None:
    instant = BASE + timedelta(seconds=5, milliseconds=250)
    assert time_to_synced_at(instant, base_time=DEFAULT_BASE_TIME_MS) == 5250
    assert time_to_synced_at(BASE, base_time=DEFAULT_BASE_TIME_MS) == 0


def test_time_to_synced_at_drops_sub_millisecond_precision() -> None:
    instant = BASE + timedelta(microseconds=1999)
    assert time_to_synced_at(instant, base_time=DEFAULT_BASE_TIME_MS) == 1


def test_time_to_synced_at_defaults_to_now() -> None:
    before = time_to_synced_at(base_time=DEFAULT_BASE_TIME_MS)
    assert before > 0


def test_synced_at_round_trip() -> None:
    instant = datetime(2024, 5, 6, 7, 8, 9, 123000, tzinfo=timezone.utc)
    encoded = time_to_synced_at(instant, base_time=DEFAULT_BASE_TIME_MS)
    assert synced_at_to_time(encoded, DEFAULT_BASE_TIME_MS) == instant


def test_synced_at_to_time_defaults_to_absolute_epoch_ms() -> None:
    assert synced_at_to_time(DEFAULT_BASE_TIME_MS) == BASE


def test_as_utc_treats_naive_as_utc() -> None:
    naive = datetime(2020, 1, 1, 12, 0, 0)
    assert as_utc(naive) == datetime(2020, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    plus_two = timezone(timedelta(hours=2))
    assert as_utc(datetime(2020, 1, 1, 14, 0, 0, tzinfo=plus_two)).hour == 12
