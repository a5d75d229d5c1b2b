"""View params handling: allow-lists, defaults and typed accessors.

Each resource declares one :class:`ListOptions` at import time::

    ITEM_LIST_OPTIONS = ListOptions(
        allowed={
            "order_by": ("updated_at", "title"),
            "direction": ("asc", "desc"),
        },
        default={"order_by": "updated_at", "direction": "asc", "length": 20},
    )

and each request builds a :class:`ViewPresenter` from its query params::

    view = ViewPresenter(parse_query_params(request.query_params.multi_items()), ITEM_LIST_OPTIONS)
    view.start      # => 10
    view.length     # => 20
    view.direction  # => SortDirection.ASC

Invalid or disallowed values never raise; they fall back to the defaults.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

DEFAULT_PAGE_LENGTH = 5

_FRAMING_KEYS = frozenset({"action", "controller"})
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
_BRACKETED_KEY = re.compile(r"^([^\[\]]+)((?:\[[^\[\]]*\])*)$")


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class ListOptions:
    allowed: Mapping[str, tuple[Any, ...]] = field(default_factory=dict)
    default: Mapping[str, Any] = field(default_factory=dict)
    max_length: int | None = None

    def __post_init__(self) -> None:
        allowed = {k: tuple(v) for k, v in self.allowed.items()}
        for key, values in allowed.items():
            if not values:
                raise ValueError(f"allow-list for {key!r} is empty")
        for key, value in self.default.items():
            if key in allowed and value not in allowed[key]:
                raise ValueError(f"default {key}={value!r} is not in its allow-list {allowed[key]!r}")
        if self.max_length is not None and self.max_length <= 0:
            raise ValueError("max_length must be positive")

        object.__setattr__(self, "allowed", MappingProxyType(allowed))
        object.__setattr__(self, "default", MappingProxyType(dict(self.default)))


DEFAULT_LIST_OPTIONS = ListOptions(
    allowed={"view": ("list",)},
    default={"view": "list", "entry_name": "item"},
)


def to_int(value: object) -> int:
    """Leading integer of ``value``; 0 when there is none."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if value is None:
        return 0
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else 0


def _is_allowed(value: object, allowed: tuple[Any, ...]) -> bool:
    try:
        return value in allowed
    except TypeError:
        return False


class ViewPresenter:
    def __init__(
        self,
        params: Mapping[str, Any] | None = None,
        options: ListOptions = DEFAULT_LIST_OPTIONS,
    ) -> None:
        self._options = options

        parsed: dict[str, Any] = {}
        for source in (options.default, params or {}):
            for key, value in source.items():
                key = str(key)
                allowed = options.allowed.get(key)
                if allowed is None or _is_allowed(value, allowed):
                    parsed[key] = value
                # Otherwise the running value (default or earlier param) stays.

        for key in _FRAMING_KEYS:
            parsed.pop(key, None)

        self._params: Mapping[str, Any] = MappingProxyType(parsed)

    def __repr__(self) -> str:
        return f"ViewPresenter({dict(self._params)!r})"

    def __str__(self) -> str:
        return self.current

    @property
    def params(self) -> Mapping[str, Any]:
        return self._params

    @property
    def options(self) -> ListOptions:
        return self._options

    @property
    def allowed(self) -> Mapping[str, tuple[Any, ...]]:
        return self._options.allowed

    @property
    def all(self) -> tuple[Any, ...]:
        return self._options.allowed.get("view", ())

    @property
    def current(self) -> str:
        view = self._params.get("view")
        if isinstance(view, (list, tuple)):
            return "".join(str(v) for v in view)
        return "" if view is None else str(view)

    def is_current(self, view: object) -> bool:
        return self.current == str(view)

    @property
    def page(self) -> Any:
        page = self._params.get("page")
        return page if to_int(page) > 0 else self._options.default.get("page")

    @property
    def start(self) -> int:
        start = to_int(self._params.get("start"))
        return start if start > 0 else 0

    @property
    def length(self) -> int:
        length = to_int(self._params.get("length"))
        if length <= 0:
            length = to_int(self._options.default.get("length"))
        if length <= 0:
            length = DEFAULT_PAGE_LENGTH

        max_length = self._options.max_length
        if max_length is not None and length > max_length:
            return max_length
        return length

    @property
    def order_by(self) -> str | None:
        order_by = self._params.get("order_by")
        return None if order_by is None else str(order_by)

    @property
    def group_by(self) -> str | None:
        group_by = self._params.get("group_by")
        return None if group_by is None else str(group_by)

    @property
    def direction(self) -> SortDirection | None:
        direction = self._params.get("direction")
        if direction is None:
            return None
        try:
            return SortDirection(str(direction).strip().lower())
        except ValueError:
            return None

    @property
    def filter(self) -> Any:
        return self._params.get("filter")

    @property
    def tags_filter(self) -> Any:
        return self._params.get("tags_filter")

    @property
    def tags_applied(self) -> bool:
        return bool(self.tags_filter)

    @property
    def sync_token(self) -> str | None:
        s = self._params.get("s")
        if s is None or isinstance(s, str):
            return s
        return str(s)

    @property
    def ids(self) -> list[str] | None:
        ids = self._params.get("ids")
        if ids is None:
            return None
        if isinstance(ids, (list, tuple)):
            raw = [str(x) for x in ids]
        else:
            raw = str(ids).split(",")
        return [x.strip() for x in raw if x.strip()]


def parse_query_params(items: Iterable[tuple[str, str]]) -> dict[str, Any]:
    """Nest bracketed query keys.

    ``filter[status]=open`` -> ``{"filter": {"status": "open"}}``;
    ``tags_filter[]=a&tags_filter[]=b`` -> ``{"tags_filter": ["a", "b"]}``.
    A repeated scalar key keeps its last value.
    """

    out: dict[str, Any] = {}
    for raw_key, value in items:
        match = _BRACKETED_KEY.match(raw_key)
        if match is None:
            out[raw_key] = value
            continue

        head, brackets = match.group(1), match.group(2)
        path = [head] + re.findall(r"\[([^\[\]]*)\]", brackets)

        node: dict[str, Any] = out
        for i, part in enumerate(path):
            is_last = i == len(path) - 1
            next_is_append = not is_last and path[i + 1] == ""

            if is_last:
                node[part] = value
                break
            if next_is_append:
                existing = node.get(part)
                if not isinstance(existing, list):
                    existing = []
                    node[part] = existing
                existing.append(value)
                break

            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
    return out
