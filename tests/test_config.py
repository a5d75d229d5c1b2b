from __future__ import annotations

import pytest
from pydantic import ValidationError

from synced_resources.config import Settings, build_sync_config
from synced_resources.domain.sync_token import Base64JsonSyncTokenCodec
from synced_resources.db import normalize_database_url_for_alembic, normalize_database_url_for_async
from synced_resources.sync_utils import DEFAULT_BASE_TIME_MS


def test_defaults_build_json_sync_config() -> None:
    cfg = build_sync_config(Settings(_env_file=None))  # type: ignore[call-arg]
    assert cfg.base_time == DEFAULT_BASE_TIME_MS
    assert cfg.decode('{"1": 0}') == {"1": DEFAULT_BASE_TIME_MS}


def test_base64_format_and_custom_epoch() -> None:
    s = Settings(_env_file=None, sync_token_format="base64", sync_base_time_ms=0)  # type: ignore[call-arg]
    cfg = build_sync_config(s)
    assert isinstance(cfg.codec, Base64JsonSyncTokenCodec)
    assert cfg.decode(cfg.encode({"9": 7})) == {"9": 7}


@pytest.mark.parametrize(
    "overrides",
    [
        {"sync_base_time_ms": -1},
        {"sync_token_format": "msgpack"},
        {"environment": "production", "cors_allow_origins": "*"},
    ],
)
def test_invalid_settings_are_rejected(overrides: dict[str, object]) -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **overrides)  # type: ignore[call-arg,arg-type]


def test_production_with_explicit_origins() -> None:
    s = Settings(  # type: ignore[call-arg]
        _env_file=None,
        environment="production",
        cors_allow_origins="https://a.example, https://b.example",
    )
    assert s.cors_origins_list() == ["https://a.example", "https://b.example"]
    assert s.security_warnings() == ["SYNC_BASE_TIME_MS is using the built-in default epoch"]


def test_database_url_normalization() -> None:
    assert normalize_database_url_for_async("sqlite:///./x.db") == "sqlite+aiosqlite:///./x.db"
    assert normalize_database_url_for_async("postgres://u@h/db") == "postgresql+psycopg://u@h/db"
    assert normalize_database_url_for_alembic("sqlite+aiosqlite:///./x.db") == "sqlite:///./x.db"
    assert (
        normalize_database_url_for_alembic("postgresql+psycopg2://u@h/db")
        == "postgresql+psycopg://u@h/db"
    )
