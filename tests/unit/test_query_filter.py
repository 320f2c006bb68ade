from __future__ import annotations

import pytest

from dynaconn_py import (
    AmbiguityWarning,
    Equals,
    Filter,
    InputError,
    InSet,
    InvalidLimitError,
    InvalidOffsetError,
    Operator,
    OrderKey,
    Range,
    ValidationError,
    parse_condition,
)
from dynaconn_py.query import parse_order


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("x", Equals("x")),
        (None, Equals(None)),
        ({"gt": 5}, Operator(">", 5)),
        ({"lte": 5}, Operator("<=", 5)),
        ({"eq": "a"}, Operator("=", "a")),
        ({"neq": 1}, Operator("<>", 1)),
        ({"between": [1, 3]}, Range(1, 3)),
        ({"inq": ["a", "b"]}, InSet(("a", "b"))),
        ([1, 2], InSet((1, 2), implicit=True)),
    ],
)
def test_parse_condition_variants(raw: object, expected: object) -> None:
    assert parse_condition("attr", raw) == expected


def test_parse_condition_unknown_operator_falls_back_to_equality() -> None:
    with pytest.warns(AmbiguityWarning, match="unsupported operator 'like'"):
        assert parse_condition("name", {"like": "a%"}) == Operator("=", "a%")


def test_parse_condition_applies_only_the_first_operator() -> None:
    with pytest.warns(AmbiguityWarning, match="only the first operator"):
        assert parse_condition("n", {"gt": 1, "lt": 5}) == Operator(">", 1)


def test_parse_condition_rejects_empty_operator_mapping() -> None:
    with pytest.raises(ValidationError, match="empty operator mapping"):
        parse_condition("n", {})


def test_parse_order_strings_and_lists() -> None:
    assert parse_order("name DESC, age") == (OrderKey("name", True), OrderKey("age", False))
    assert parse_order(["created asc"]) == (OrderKey("created", False),)
    assert parse_order(None) == ()


def test_filter_from_mapping_reads_all_keys() -> None:
    filt = Filter.from_mapping(
        {
            "where": {"a": 1, "b": {"gt": 2}},
            "order": "a DESC",
            "limit": 10,
            "skip": 5,
            "minResults": 50,
            "include": "owner",
        }
    )

    assert filt.where == (("a", Equals(1)), ("b", Operator(">", 2)))
    assert filt.order == (OrderKey("a", True),)
    assert filt.limit == 10
    assert filt.offset == 5
    assert filt.min_results == 50
    assert filt.include == "owner"
    assert filt.condition("b") == Operator(">", 2)
    assert filt.condition("c") is None
    assert Filter.from_mapping(filt) is filt


def test_filter_zero_limit_and_min_results_mean_unset() -> None:
    filt = Filter.from_mapping({"limit": 0, "minResults": 0, "offset": 2.0})
    assert filt.limit is None
    assert filt.min_results is None
    assert filt.offset == 2


@pytest.mark.parametrize(
    ("raw", "error", "match"),
    [
        ({"limit": "10"}, InvalidLimitError, "Limit must be a number"),
        ({"limit": -1}, InvalidLimitError, "Limit must be >= 0"),
        ({"limit": True}, InvalidLimitError, "Limit must be a number"),
        ({"offset": "x"}, InvalidOffsetError, "Offset must be a number"),
        ({"skip": 1.5}, InvalidOffsetError, "Skip must be a whole number"),
        ({"minResults": "many"}, InputError, "minResults must be a number"),
        ({"where": ["a"]}, ValidationError, "where must be a mapping"),
    ],
)
def test_filter_rejects_bad_input(raw: dict, error: type[Exception], match: str) -> None:
    with pytest.raises(error, match=match):
        Filter.from_mapping(raw)
