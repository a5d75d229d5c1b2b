from __future__ import annotations

import pytest

from synced_resources.domain.view_presenter import (
    DEFAULT_PAGE_LENGTH,
    ListOptions,
    SortDirection,
    ViewPresenter,
    parse_query_params,
    to_int,
)

LIST_OPTIONS = ListOptions(
    allowed={
        "view": ("list", "expanded", "thumbnail"),
        "order_by": ("date", "space", "file_type"),
        "direction": ("asc", "desc"),
    },
    default={
        "view": "list",
        "order_by": "date",
        "direction": "desc",
        "page": "1",
    },
)


def test_empty_options_present_the_list_view() -> None:
    view = ViewPresenter()
    assert str(view) == "list"
    assert view.all == ("list",)


def test_defaults_apply_without_params() -> None:
    view = ViewPresenter({}, LIST_OPTIONS)
    assert view.current == "list"
    assert str(view) == "list"
    assert view.page == "1"
    assert view.order_by == "date"
    assert view.direction is SortDirection.DESC


def test_disallowed_params_fall_back_to_defaults() -> None:
    view = ViewPresenter(
        {"view": "x", "order_by": "x", "direction": "x", "page": "x"},
        LIST_OPTIONS,
    )
    assert str(view) == "list"
    assert view.order_by == "date"
    assert view.direction is SortDirection.DESC
    assert view.page == "1"


def test_allowed_params_override_defaults() -> None:
    view = ViewPresenter({"view": "thumbnail", "direction": "asc", "page": "3"}, LIST_OPTIONS)
    assert view.current == "thumbnail"
    assert view.direction is SortDirection.ASC
    assert view.page == "3"


def test_all_lists_allowed_views() -> None:
    allowed = ("list", "expanded", "thumbnail")
    view = ViewPresenter({}, ListOptions(allowed={"view": allowed}))
    assert view.all == allowed


def test_is_current() -> None:
    view = ViewPresenter({"view": "list"})
    assert view.is_current("list") is True
    assert view.is_current("x") is False


def test_framing_keys_are_dropped() -> None:
    view = ViewPresenter({"action": "index", "controller": "items", "q": "1"})
    assert "action" not in view.params
    assert "controller" not in view.params
    assert view.params["q"] == "1"


def test_allowed_field_without_valid_value_stays_absent() -> None:
    options = ListOptions(allowed={"order_by": ("title",)})
    view = ViewPresenter({"order_by": "nope"}, options)
    assert view.order_by is None
    assert view.direction is None


@pytest.mark.parametrize(
    ("params", "expected_start", "expected_length"),
    [
        ({}, 0, DEFAULT_PAGE_LENGTH),
        ({"start": "10", "length": "10"}, 10, 10),
        ({"start": "-3", "length": "0"}, 0, DEFAULT_PAGE_LENGTH),
        ({"start": "abc", "length": "-1"}, 0, DEFAULT_PAGE_LENGTH),
        ({"start": "7xyz", "length": "12abc"}, 7, 12),
    ],
)
def test_start_and_length(params: dict[str, str], expected_start: int, expected_length: int) -> None:
    view = ViewPresenter(params)
    assert view.start == expected_start
    assert view.length == expected_length


def test_length_uses_default_and_max() -> None:
    options = ListOptions(default={"length": 20}, max_length=50)
    assert ViewPresenter({}, options).length == 20
    assert ViewPresenter({"length": "500"}, options).length == 50


def test_sync_token_presence() -> None:
    assert ViewPresenter({}).sync_token is None
    assert ViewPresenter({"s": ""}).sync_token == ""
    assert ViewPresenter({"s": '{"1":2}'}).sync_token == '{"1":2}'


def test_ids_accept_csv_and_lists() -> None:
    assert ViewPresenter({}).ids is None
    assert ViewPresenter({"ids": "1, 2,,3"}).ids == ["1", "2", "3"]
    assert ViewPresenter({"ids": ["4", 5]}).ids == ["4", "5"]


def test_tags_applied() -> None:
    assert ViewPresenter({}).tags_applied is False
    assert ViewPresenter({"tags_filter": ""}).tags_applied is False
    assert ViewPresenter({"tags_filter": "a,b"}).tags_applied is True


def test_list_options_reject_bad_declarations() -> None:
    with pytest.raises(ValueError):
        ListOptions(allowed={"view": ()})
    with pytest.raises(ValueError):
        ListOptions(allowed={"view": ("list",)}, default={"view": "grid"})
    with pytest.raises(ValueError):
        ListOptions(max_length=0)


def test_to_int() -> None:
    assert to_int(None) == 0
    assert to_int(True) == 0
    assert to_int(" 42 ") == 42
    assert to_int("3.9") == 3
    assert to_int("x") == 0


def test_parse_query_params_nests_brackets() -> None:
    parsed = parse_query_params(
        [
            ("start", "10"),
            ("filter[status]", "open"),
            ("tags_filter[]", "a"),
            ("tags_filter[]", "b"),
            ("start", "20"),
        ]
    )
    assert parsed == {
        "start": "20",
        "filter": {"status": "open"},
        "tags_filter": ["a", "b"],
    }
