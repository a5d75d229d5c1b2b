from __future__ import annotations

import pytest

from synced_resources.domain.sync_token import (
    Base64JsonSyncTokenCodec,
    JsonSyncTokenCodec,
    SyncConfig,
    codec_for_format,
)
from synced_resources.sync_utils import DEFAULT_BASE_TIME_MS, MAX_EPOCH_MS, synced_at_to_time


@pytest.mark.parametrize(
    "token",
    [
        None,
        "",
        "omgwtfbbq",
        "/#@$#,_T~B,0",
        "1439524794175,_T~B,",
        "[1, 2, 3]",
        '{"1": "abc"}',
        '{"1": 1.5}',
        '{"1": true}',
        '{"1": 10, "2": -99999999999999}',
        '{"1": 100000000000000000000}',
        "null",
    ],
)
def test_malformed_tokens_decode_to_empty_map(token: str | None) -> None:
    assert SyncConfig().decode(token) == {}


def test_decode_rebases_values_and_stringifies_keys() -> None:
    cfg = SyncConfig()
    assert cfg.decode('{"11": 5, "12": 0}') == {
        "11": DEFAULT_BASE_TIME_MS + 5,
        "12": DEFAULT_BASE_TIME_MS,
    }


def test_decode_uses_configured_base_time() -> None:
    cfg = SyncConfig(base_time=1000)
    assert cfg.decode('{"a": 1}') == {"a": 1001}


def test_encode_then_decode_returns_absolute_times() -> None:
    cfg = SyncConfig()
    token = cfg.encode({11: 100, 12: 200})
    assert token == '{"11":100,"12":200}'
    assert cfg.decode(token) == {
        "11": DEFAULT_BASE_TIME_MS + 100,
        "12": DEFAULT_BASE_TIME_MS + 200,
    }


def test_base64_codec() -> None:
    cfg = SyncConfig(codec=Base64JsonSyncTokenCodec())
    token = cfg.encode({"7": 42})
    assert "=" not in token
    assert cfg.decode(token) == {"7": DEFAULT_BASE_TIME_MS + 42}
    # Plain JSON is not valid base64 input.
    assert cfg.decode('{"7": 42}') == {}
    assert cfg.decode("!!!") == {}


def test_codec_for_format() -> None:
    assert isinstance(codec_for_format("json"), JsonSyncTokenCodec)
    assert isinstance(codec_for_format("base64"), Base64JsonSyncTokenCodec)
    with pytest.raises(ValueError):
        codec_for_format("msgpack")


def test_values_beyond_the_last_representable_instant_are_rejected() -> None:
    cfg = SyncConfig()
    latest = MAX_EPOCH_MS - DEFAULT_BASE_TIME_MS

    decoded = cfg.decode(f'{{"1": {latest}}}')
    assert decoded == {"1": MAX_EPOCH_MS}
    assert synced_at_to_time(decoded["1"]).year == 9999

    assert cfg.decode(f'{{"1": {latest + 1}}}') == {}
    assert cfg.decode(f'{{"1": 5, "2": {10**20}}}') == {}
