"""Unit tests for ordering, pagination, count and cardinality modifiers."""

from __future__ import annotations

import logging

import pytest

from pgrestql.errors import ConfigurationError
from pgrestql.query.builder import QueryBuilder
from pgrestql.schema.modifiers import LimitOffset, RowRange
from pgrestql.schema.operators import Cardinality, CountMode


def test_filter_then_order_query_string(users: QueryBuilder):
    req = users.eq("active", True).order("name").build()
    assert req.query_string() == "active=eq.true&order=name.asc"


def test_order_keeps_insertion_order_and_repeats(users: QueryBuilder):
    req = users.order("b").order("a", ascending=False).order("b").build()
    assert req.param("order") == "b.asc,a.desc,b.asc"


def test_order_nulls_placement(users: QueryBuilder):
    req = users.order("x", nulls="first").order("y", ascending=False, nulls="last").build()
    assert req.param("order") == "x.asc.nullsfirst,y.desc.nullslast"


def test_order_invalid_nulls(users: QueryBuilder):
    with pytest.raises(ConfigurationError):
        users.order("x", nulls="middle")


def test_limit_and_offset_params(users: QueryBuilder):
    req = users.offset(20).limit(10).build()
    assert req.params == (("limit", "10"), ("offset", "20"))
    assert req.header("Range") is None


def test_range_header_and_derived_limit(users: QueryBuilder):
    query = users.range(20, 29)
    req = query.build()
    assert req.header("Range-Unit") == "items"
    assert req.header("Range") == "20-29"
    assert req.param("limit") is None
    page = query.state.pagination
    assert isinstance(page, RowRange)
    assert (page.limit, page.offset) == (10, 20)


@pytest.mark.parametrize(
    "build",
    [
        lambda q: q.limit(5).range(0, 9),
        lambda q: q.range(0, 9).limit(5),
        lambda q: q.offset(5).range(0, 9),
        lambda q: q.range(0, 9).offset(5),
    ],
)
def test_limit_and_range_are_exclusive(users: QueryBuilder, build):
    with pytest.raises(ConfigurationError):
        build(users)


def test_invalid_bounds():
    with pytest.raises(ConfigurationError):
        LimitOffset(limit=-1)
    with pytest.raises(ConfigurationError):
        LimitOffset(offset=-5)
    with pytest.raises(ConfigurationError):
        RowRange(start=5, end=4)
    with pytest.raises(ConfigurationError):
        RowRange(start=-1, end=4)


def test_paginate_to_limit_and_offset(users: QueryBuilder):
    req = users.paginate(3, 10).build()
    assert req.params == (("limit", "10"), ("offset", "20"))
    assert users.paginate(1, 25).state.pagination == LimitOffset(limit=25, offset=0)


@pytest.mark.parametrize(
    ("page", "page_size", "field"),
    [(0, 10, "page"), (1, 0, "page_size"), ("2", 10, "page"), (1, True, "page_size")],
)
def test_paginate_rejects_bad_pages(users: QueryBuilder, page, page_size, field):
    with pytest.raises(ConfigurationError) as exc_info:
        users.paginate(page, page_size)
    assert exc_info.value.field == field


def test_paginate_and_range_are_exclusive(users: QueryBuilder):
    with pytest.raises(ConfigurationError):
        users.range(0, 9).paginate(1, 10)
    with pytest.raises(ConfigurationError):
        users.paginate(1, 10).range(0, 9)


def test_count_modes(users: QueryBuilder):
    assert users.count().build().header("Prefer") == "count=exact"
    assert users.count("planned").build().header("Prefer") == "count=planned"
    assert users.build().header("Prefer") is None


def test_estimated_count_sent_as_planned(users: QueryBuilder, caplog):
    with caplog.at_level(logging.WARNING, logger="pgrestql.compile.modifiers"):
        req = users.count(CountMode.ESTIMATED).build()
    assert req.header("Prefer") == "count=planned"
    assert req.context.count is CountMode.ESTIMATED
    assert "estimated" in caplog.text


def test_unknown_count_mode(users: QueryBuilder):
    with pytest.raises(ConfigurationError):
        users.count("approximate")


def test_cardinality_accept_headers(users: QueryBuilder):
    assert users.build().header("Accept") == "application/json"
    single = users.single().build()
    assert single.header("Accept") == "application/vnd.pgrst.object+json"
    assert single.context.cardinality is Cardinality.SINGLE
    maybe = users.maybe_single().build()
    assert maybe.header("Accept") == "application/vnd.pgrst.object+json"
    assert maybe.context.cardinality is Cardinality.MAYBE_SINGLE


@pytest.mark.parametrize(
    "build",
    [
        lambda q: q.single().limit(5),
        lambda q: q.limit(5).single(),
        lambda q: q.maybe_single().range(0, 1),
        lambda q: q.range(10, 20).maybe_single(),
    ],
)
def test_single_conflicts_with_multi_row_pagination(users: QueryBuilder, build):
    with pytest.raises(ConfigurationError):
        build(users)


def test_single_allows_one_row_pagination(users: QueryBuilder):
    assert users.single().limit(1).build().param("limit") == "1"
    assert users.range(3, 3).maybe_single().build().header("Range") == "3-3"


def test_head_request(users: QueryBuilder):
    req = users.count().head().build()
    assert req.method == "HEAD"
    assert req.context.head is True
    assert req.header("Prefer") == "count=exact"


def test_head_rejected_for_mutations(users: QueryBuilder):
    with pytest.raises(ConfigurationError):
        users.insert({"name": "a"}).head()
