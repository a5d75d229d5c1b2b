"""Sync token codecs.

A sync token is the client's ``{id: synced_at}`` map in transport form. The
server only ever decodes it; ``encode`` exists for clients and tests.

Decoding never fails: anything that is not a well-formed token decodes to an
empty map, which makes the request behave like a full resync.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Protocol

from synced_resources.sync_utils import DEFAULT_BASE_TIME_MS, MAX_EPOCH_MS, time_to_synced_at

logger = logging.getLogger(__name__)

SyncTokenFormat = Literal["json", "base64"]


class SyncTokenCodec(Protocol):
    def encode(self, synced_at_map: Mapping[object, int]) -> str: ...

    def decode(self, encoded: str | None, base_time: int) -> dict[str, int]: ...


def _rebase(parsed: object, base_time: int) -> dict[str, int] | None:
    if not isinstance(parsed, dict):
        return None

    out: dict[str, int] = {}
    for key, value in parsed.items():
        # bool is an int subclass; a JSON true/false is still a wrong type.
        if isinstance(value, bool) or not isinstance(value, int):
            return None
        absolute = value + base_time
        if absolute < 0 or absolute > MAX_EPOCH_MS:
            return None
        out[str(key)] = absolute
    return out


class JsonSyncTokenCodec:
    """Token is a JSON object literal: ``{"11": 123456, "12": 123789}``."""

    def encode(self, synced_at_map: Mapping[object, int]) -> str:
        return json.dumps({str(k): int(v) for k, v in synced_at_map.items()}, separators=(",", ":"))

    def _loads(self, encoded: str) -> object:
        return json.loads(encoded)

    def decode(self, encoded: str | None, base_time: int) -> dict[str, int]:
        if not encoded:
            return {}
        try:
            parsed = self._loads(encoded)
        except (ValueError, TypeError):
            logger.debug("sync token is not parseable; falling back to full resync")
            return {}

        rebased = _rebase(parsed, base_time)
        if rebased is None:
            logger.debug("sync token has unexpected shape; falling back to full resync")
            return {}
        return rebased


class Base64JsonSyncTokenCodec(JsonSyncTokenCodec):
    """JSON token wrapped in URL-safe base64 (padding optional)."""

    def encode(self, synced_at_map: Mapping[object, int]) -> str:
        raw = super().encode(synced_at_map).encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")

    def _loads(self, encoded: str) -> object:
        padded = encoded.strip() + "=" * (-len(encoded.strip()) % 4)
        try:
            raw = base64.urlsafe_b64decode(padded.encode("ascii"))
        except (binascii.Error, UnicodeEncodeError) as exc:
            raise ValueError("invalid base64 sync token") from exc
        return json.loads(raw.decode("utf-8"))


_CODECS: dict[str, type[JsonSyncTokenCodec]] = {
    "json": JsonSyncTokenCodec,
    "base64": Base64JsonSyncTokenCodec,
}


def codec_for_format(token_format: str) -> SyncTokenCodec:
    try:
        return _CODECS[token_format]()
    except KeyError:
        raise ValueError(f"unknown sync token format: {token_format!r}") from None


@dataclass(frozen=True)
class SyncConfig:
    """Process-wide sync settings, built once at startup and passed around."""

    base_time: int = DEFAULT_BASE_TIME_MS
    codec: SyncTokenCodec = field(default_factory=JsonSyncTokenCodec)

    def decode(self, encoded: str | None) -> dict[str, int]:
        return self.codec.decode(encoded, self.base_time)

    def encode(self, synced_at_map: Mapping[object, int]) -> str:
        return self.codec.encode(synced_at_map)

    def time_to_synced_at(self, instant: datetime | None = None) -> int:
        return time_to_synced_at(instant, base_time=self.base_time)
