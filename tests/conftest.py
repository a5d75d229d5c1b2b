from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest

from synced_resources.db import dispose_engine_cache


@pytest.fixture
def anyio_backend() -> str:
    # The async stack (aiosqlite / SQLAlchemy asyncio) is asyncio-only.
    return "asyncio"


@pytest.fixture(autouse=True)
async def _dispose_engine_cache_per_test(  # pyright: ignore[reportUnusedFunction]
    anyio_backend: object,  # noqa: ARG001
) -> AsyncGenerator[None, None]:
    # Dispose cached AsyncEngines (aiosqlite worker threads) while the
    # per-test event loop is still alive.
    _ = anyio_backend
    yield
    await dispose_engine_cache()
