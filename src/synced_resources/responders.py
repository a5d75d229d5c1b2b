"""Map composed payloads and mutation outcomes onto HTTP responses.

Each route passes its ``ResponseStrategy`` explicitly; the default one knows
the read/create/update/destroy conventions:

- read actions render the payload (200)
- failed mutations render ``{"errors": {...}}`` (422)
- successful mutations render the payload (201 for create), ``{}`` for destroy
- a mutation that reports neither success nor failure is a programming error
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.responses import Response

from synced_resources.resources import singularize

ResponseFormat = Literal["json", "xml"]

_XML_MEDIA_TYPES = ("application/xml", "text/xml")
_XML_TAG = re.compile(r"^[A-Za-z_][\w.-]*$")


class Action(str, Enum):
    INDEX = "index"
    SHOW = "show"
    CREATE = "create"
    UPDATE = "update"
    DESTROY = "destroy"

    @property
    def mutating(self) -> bool:
        return self in (Action.CREATE, Action.UPDATE, Action.DESTROY)


class UnreachableOutcomeError(RuntimeError):
    """A mutation finished without a record and without errors."""


@dataclass(frozen=True)
class Outcome:
    """Result of a create/update/destroy: exactly one of the two is set."""

    record: Any | None = None
    errors: Mapping[str, list[str]] | None = None

    @property
    def succeeded(self) -> bool:
        return self.record is not None and not self.errors

    @property
    def failed(self) -> bool:
        return bool(self.errors)


@dataclass(frozen=True)
class ResponseContext:
    action: Action
    payload: Mapping[str, Any] = field(default_factory=dict)
    outcome: Outcome | None = None
    fmt: ResponseFormat = "json"


ResponseStrategy = Callable[[ResponseContext], Response]


def resolve_format(request: Request) -> ResponseFormat:
    """``?format=xml`` wins; otherwise an XML ``Accept`` header; otherwise JSON."""
    explicit = (request.query_params.get("format") or "").strip().lower()
    if explicit in ("json", "xml"):
        return explicit  # type: ignore[return-value]
    accept = request.headers.get("accept", "").lower()
    if any(media in accept for media in _XML_MEDIA_TYPES) and "application/json" not in accept:
        return "xml"
    return "json"


def render(payload: Any, *, fmt: ResponseFormat, status_code: int = status.HTTP_200_OK) -> Response:
    content = jsonable_encoder(payload)
    if fmt == "xml":
        return Response(content=to_xml(content), status_code=status_code, media_type="application/xml")
    return JSONResponse(content=content, status_code=status_code)


def default_response_strategy(ctx: ResponseContext) -> Response:
    if not ctx.action.mutating:
        return render(ctx.payload, fmt=ctx.fmt)

    outcome = ctx.outcome
    if outcome is None or (not outcome.failed and not outcome.succeeded):
        raise UnreachableOutcomeError(f"{ctx.action.value} finished with neither a record nor errors")

    if outcome.failed:
        return render(
            {"errors": dict(outcome.errors or {})},
            fmt=ctx.fmt,
            status_code=422,
        )

    if ctx.action is Action.DESTROY:
        return render({}, fmt=ctx.fmt)
    if ctx.action is Action.CREATE:
        return render(ctx.payload, fmt=ctx.fmt, status_code=status.HTTP_201_CREATED)
    return render(ctx.payload, fmt=ctx.fmt)


def respond_with_resources(
    payload: Mapping[str, Any] | None,
    *,
    action: Action,
    outcome: Outcome | None = None,
    fmt: ResponseFormat = "json",
    strategy: ResponseStrategy = default_response_strategy,
) -> Response:
    ctx = ResponseContext(action=action, payload=payload or {}, outcome=outcome, fmt=fmt)
    return strategy(ctx)


def to_xml(content: Any, root: str = "data") -> bytes:
    """Serialize JSON-ready data to XML.

    Lists become ``type="array"`` elements whose children are named after the
    singular key; keys that are not valid tag names (e.g. index ordinals)
    become ``<entry key="...">``.
    """
    element = ET.Element(root)
    _fill(element, content, root)
    return ET.tostring(element, encoding="utf-8", xml_declaration=True)


def _child(parent: ET.Element, key: object) -> ET.Element:
    name = str(key)
    if _XML_TAG.match(name) and not name.lower().startswith("xml"):
        return ET.SubElement(parent, name)
    return ET.SubElement(parent, "entry", {"key": name})


def _fill(element: ET.Element, value: Any, name: str) -> None:
    if isinstance(value, Mapping):
        for key, child_value in value.items():
            _fill(_child(element, key), child_value, str(key))
    elif isinstance(value, (list, tuple)):
        element.set("type", "array")
        child_name = singularize(name) if name != singularize(name) else "item"
        for child_value in value:
            _fill(ET.SubElement(element, child_name), child_value, child_name)
    elif value is None:
        element.set("nil", "true")
    elif isinstance(value, bool):
        element.set("type", "boolean")
        element.text = "true" if value else "false"
    elif isinstance(value, int):
        element.set("type", "integer")
        element.text = str(value)
    elif isinstance(value, float):
        element.set("type", "float")
        element.text = repr(value)
    else:
        element.text = str(value)
