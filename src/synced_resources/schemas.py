from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Error body for everything outside record validation.

    Record validation failures of create/update keep the ``{"errors": {...}}``
    shape sync clients already understand.
    """

    error: str
    message: str
    request_id: str | None = None
    details: object | None = None


class HealthResponse(BaseModel):
    ok: bool = True


class ItemOut(BaseModel):
    id: int
    title: str
    body: str
    status: str
    created_at: datetime
    updated_at: datetime


# Length/content rules are checked in items_service so failures surface as
# per-field record errors instead of request validation errors.
class ItemCreateRequest(BaseModel):
    title: str = ""
    body: str = ""
    status: str = "open"
    tags: list[str] = Field(default_factory=list)


class ItemPatchRequest(BaseModel):
    title: Optional[str] = None
    body: Optional[str] = None
    status: Optional[str] = None
    tags: Optional[list[str]] = None
