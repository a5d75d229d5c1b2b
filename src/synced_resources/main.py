from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from synced_resources.config import build_sync_config, settings
from synced_resources.db import dispose_engine_cache
from synced_resources.error_handlers import register_error_handlers
from synced_resources.routers import items
from synced_resources.schemas import HealthResponse

REQUEST_ID_HEADER = "X-Request-Id"


class RequestIdMiddleware:
    """Tag every HTTP request with an id and echo it on the response.

    A non-blank inbound ``X-Request-Id`` is reused; otherwise a uuid4 is
    generated. Error bodies read it back from ``request.state.request_id``.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = Headers(scope=scope).get(REQUEST_ID_HEADER, "").strip() or str(uuid.uuid4())
        scope.setdefault("state", {})["request_id"] = request_id

        async def send_with_request_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                MutableHeaders(scope=message)[REQUEST_ID_HEADER] = request_id
            await send(message)

        await self.app(scope, receive, send_with_request_id)


@asynccontextmanager
async def _lifespan(_app: FastAPI):
    yield
    # Ensure sqlite/aiosqlite worker threads don't keep the process alive.
    await dispose_engine_cache()


logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))

logger = logging.getLogger(__name__)
for msg in settings.security_warnings():
    logger.warning("SECURITY WARNING: %s", msg)


app = FastAPI(title=settings.app_name, lifespan=_lifespan)
# Read-only after startup; routes read it from request.app.state.
app.state.sync_config = build_sync_config(settings)

app.add_middleware(RequestIdMiddleware)
register_error_handlers(app)

origins = settings.cors_origins_list()
if origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse()


app.include_router(items.router, prefix=settings.api_prefix)
