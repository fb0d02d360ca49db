"""Unit tests for FilterEncoder, filter nodes and the OperatorRegistry."""

from __future__ import annotations

import datetime
from decimal import Decimal
from uuid import UUID

import pytest

from pgrestql.compile.context import CompilationContext
from pgrestql.compile.filters import FilterEncoder
from pgrestql.compile.registry import OperatorRegistry
from pgrestql.errors import ConfigurationError
from pgrestql.query.filters import all_of, any_of, where
from pgrestql.schema.column_path import ColumnPath
from pgrestql.schema.filters import FilterCondition, RawLogicalFilter
from pgrestql.schema.operators import FilterOperator, LogicalOp

ENC = FilterEncoder()


# ---------------------------------------------------------------------------
# Scalar operators
# ---------------------------------------------------------------------------


def test_eq_boolean():
    assert ENC.encode("active", "eq", True) == "active=eq.true"


def test_comparison_operators():
    assert ENC.encode("age", "gt", 18) == "age=gt.18"
    assert ENC.encode("age", FilterOperator.LTE, 65) == "age=lte.65"
    assert ENC.encode("status", "neq", "draft") == "status=neq.draft"


def test_negation_prefix():
    assert ENC.encode("age", "gt", 18, negate=True) == "age=not.gt.18"


def test_encode_pair_and_inline():
    assert ENC.encode_pair("age", "gte", 21) == ("age", "gte.21")
    assert ENC.encode_inline("age", "gte", 21) == "age.gte.21"


def test_inline_value_with_reserved_characters_is_quoted():
    assert ENC.encode_inline("name", "eq", "Smith, John") == 'name.eq."Smith, John"'


def test_value_formatting():
    assert ENC.encode("x", "eq", None) == "x=eq.null"
    assert ENC.encode("x", "eq", 1.5) == "x=eq.1.5"
    assert ENC.encode("x", "eq", Decimal("10.50")) == "x=eq.10.50"
    assert ENC.encode("x", "gte", datetime.datetime(2024, 1, 2, 3, 4, 5)) == (
        "x=gte.2024-01-02T03:04:05"
    )
    assert ENC.encode("x", "eq", datetime.date(2024, 1, 2)) == "x=eq.2024-01-02"
    uid = UUID("12345678-1234-5678-1234-567812345678")
    assert ENC.encode("id", "eq", uid) == "id=eq.12345678-1234-5678-1234-567812345678"


def test_like_translates_star_wildcard():
    assert ENC.encode("name", "like", "*ann*") == "name=like.%ann%"
    assert ENC.encode("name", "ilike", "ann%") == "name=ilike.ann%"


def test_regex_operators():
    assert ENC.encode("code", "match", "^A[0-9]+$") == "code=match.^A[0-9]+$"
    assert ENC.encode("code", "imatch", "^a") == "code=imatch.^a"


def test_encoding_is_deterministic():
    first = ENC.encode("tags", "cs", ["b", "a"])
    second = ENC.encode("tags", "cs", ["b", "a"])
    assert first == second == "tags=cs.{b,a}"


def test_unknown_operator_rejected():
    with pytest.raises(ConfigurationError) as exc_info:
        ENC.encode("age", "between", 1)
    assert exc_info.value.field == "operator"


# ---------------------------------------------------------------------------
# in / is
# ---------------------------------------------------------------------------


def test_in_list():
    assert ENC.encode("id", "in", [1, 2, 3]) == "id=in.(1,2,3)"


def test_in_empty_list_raises():
    with pytest.raises(ConfigurationError) as exc_info:
        ENC.encode("id", "in", [])
    assert exc_info.value.field == "in"


def test_in_quotes_reserved_items():
    token = ENC.encode("name", "in", ["a b", "c,d", 'say "hi"', "plain", "f(x)"])
    assert token == 'name=in.("a b","c,d","say \\"hi\\"",plain,"f(x)")'


def test_not_in():
    assert ENC.encode("id", "in", [1, 2], negate=True) == "id=not.in.(1,2)"


def test_is_accepts_only_null_and_booleans():
    assert ENC.encode("deleted_at", "is", None) == "deleted_at=is.null"
    assert ENC.encode("verified", "is", False) == "verified=is.false"
    assert ENC.encode("verified", "is", "true") == "verified=is.true"
    with pytest.raises(ConfigurationError):
        ENC.encode("verified", "is", "maybe")
    with pytest.raises(ConfigurationError):
        ENC.encode("verified", "is", 0)


# ---------------------------------------------------------------------------
# Array, range and full-text
# ---------------------------------------------------------------------------


def test_contains_array_and_json():
    assert ENC.encode("tags", "cs", ["a", "b c"]) == 'tags=cs.{a,"b c"}'
    assert ENC.encode("meta", "cs", {"plan": "pro"}) == 'meta=cs.{"plan":"pro"}'
    assert ENC.encode("tags", "contained_by", ["a"]) == "tags=cd.{a}"


def test_overlaps_list_and_range_literal():
    assert ENC.encode("tags", "ov", ["x", "y"]) == "tags=ov.{x,y}"
    assert ENC.encode("period", "overlaps", "[2020-01-01,2020-12-31]") == (
        "period=ov.[2020-01-01,2020-12-31]"
    )


def test_range_operators():
    assert ENC.encode("during", "sl", (1, 10)) == "during=sl.(1,10)"
    assert ENC.encode("during", "sr", "[5,8)") == "during=sr.[5,8)"
    assert ENC.encode("during", "nxr", "[1,2]") == "during=nxr.[1,2]"
    assert ENC.encode("during", "nxl", "[1,2]") == "during=nxl.[1,2]"
    assert ENC.encode("during", "range_adjacent", "[1,2)") == "during=adj.[1,2)"


def test_range_pair_must_have_two_items():
    with pytest.raises(ConfigurationError):
        ENC.encode("during", "sl", (1, 2, 3))


def test_full_text_with_config():
    assert ENC.encode("body", "fts", "cat", config="english") == "body=fts(english).cat"
    assert ENC.encode("body", "wfts", "fat rat") == "body=wfts.fat rat"
    assert ENC.encode("body", "plfts", "cat", negate=True) == "body=not.plfts.cat"


def test_config_rejected_for_non_full_text_operator():
    with pytest.raises(ConfigurationError):
        ENC.encode("body", "eq", "cat", config="english")


# ---------------------------------------------------------------------------
# Filter nodes and groups
# ---------------------------------------------------------------------------


def test_group_renders_nested_inline():
    node = any_of(
        where("age", "lt", 18),
        all_of(where("age", "gt", 65), where("retired", "is", True)),
    )
    assert ENC.encode_node(node) == ("or", "(age.lt.18,and(age.gt.65,retired.is.true))")


def test_negated_groups():
    top = any_of(where("a", "eq", 1), where("b", "eq", 2), negate=True)
    assert ENC.encode_node(top) == ("not.or", "(a.eq.1,b.eq.2)")

    nested = all_of(where("a", "eq", 1), any_of(where("b", "eq", 2), where("c", "eq", 3), negate=True))
    assert ENC.encode_node(nested) == ("and", "(a.eq.1,not.or(b.eq.2,c.eq.3))")


def test_group_child_with_not_prefix():
    node = any_of(where("status", "not.eq", "done"), where("id", "in", [1, 2]))
    assert ENC.encode_node(node) == ("or", "(status.not.eq.done,id.in.(1,2))")


def test_group_quotes_range_and_json_values():
    node = any_of(where("during", "sl", "[1,5)"), where("x", "eq", 1))
    assert ENC.encode_node(node) == ("or", '(during.sl."[1,5)",x.eq.1)')
    assert ENC.encode_inline("span", "adj", (1, 5)) == 'span.adj."(1,5)"'
    assert ENC.encode_inline("meta", "cs", {"a": 1, "b": 2}) == 'meta.cs."{\\"a\\":1,\\"b\\":2}"'
    assert ENC.encode_inline("period", "cd", "[2024-01-01,2024-02-01)") == (
        'period.cd."[2024-01-01,2024-02-01)"'
    )


def test_group_keeps_lists_and_array_literals_bare():
    assert ENC.encode_inline("tags", "cs", ["a", "b"]) == "tags.cs.{a,b}"
    assert ENC.encode_inline("tags", "ov", ("a", "b")) == "tags.ov.{a,b}"
    assert ENC.encode_inline("name", "like", "*a,b*") == 'name.like."%a,b%"'
    assert ENC.encode_inline("note", "eq", 'say "hi"') == 'note.eq."say \\"hi\\""'


def test_top_level_range_value_is_not_quoted():
    assert ENC.encode("during", "sl", "[1,5)") == "during=sl.[1,5)"


def test_raw_logical_filter_is_wrapped_once():
    raw = RawLogicalFilter(op=LogicalOp.OR, expression="age.lt.25,age.gt.65")
    assert ENC.encode_node(raw) == ("or", "(age.lt.25,age.gt.65)")

    already = RawLogicalFilter(op=LogicalOp.OR, expression="(age.lt.25,age.gt.65)")
    assert ENC.encode_node(already) == ("or", "(age.lt.25,age.gt.65)")

    siblings = RawLogicalFilter(op=LogicalOp.AND, expression="(a.eq.1),(b.eq.2)")
    assert siblings.wrapped == "((a.eq.1),(b.eq.2))"


def test_scoped_group_and_prefix():
    raw = RawLogicalFilter(op=LogicalOp.OR, expression="a.eq.1,b.eq.2", scope=("posts",))
    assert ENC.encode_node(raw) == ("posts.or", "(a.eq.1,b.eq.2)")
    cond = where("published", "eq", True)
    assert ENC.encode_node(cond, CompilationContext(), ("posts",)) == ("posts.published", "eq.true")


def test_condition_column_transform():
    ctx = CompilationContext(transform_columns=True)
    assert ENC.encode_node(where("createdAt", "gt", 1), ctx) == ("created_at", "gt.1")
    group = any_of(where("firstName", "eq", "a"), where("lastName", "eq", "b"))
    assert ENC.encode_node(group, ctx) == ("or", "(first_name.eq.a,last_name.eq.b)")


def test_empty_group_rejected():
    with pytest.raises(ConfigurationError):
        any_of()


def test_condition_shape_validated_at_construction():
    with pytest.raises(ConfigurationError):
        FilterCondition(column="id", operator=FilterOperator.IN, value="1,2")
    with pytest.raises(ConfigurationError):
        FilterCondition(column="id", operator=FilterOperator.IN, value=[])
    with pytest.raises(ConfigurationError):
        FilterCondition(column="bad column", operator=FilterOperator.EQ, value=1)


def test_condition_value_is_copied():
    values = [1, 2]
    cond = where("id", "in", values)
    values.append(3)
    assert cond.value == (1, 2)


# ---------------------------------------------------------------------------
# ColumnPath
# ---------------------------------------------------------------------------


class TestColumnPath:
    def test_qualified(self):
        path = ColumnPath.parse("author.name")
        assert path.qualifiers == ("author",)
        assert path.column == "name"
        assert path.qualified

    def test_json_path_and_cast(self):
        path = ColumnPath.parse("data->address->>city")
        assert path.column == "data"
        assert path.json_path == "->address->>city"
        cast = ColumnPath.parse("price::text")
        assert cast.cast == "::text"
        assert str(cast) == "price::text"

    def test_rename_only_touches_column(self):
        path = ColumnPath.parse("authorInfo.firstName")
        assert str(path.rename(str.upper)) == "authorInfo.FIRSTNAME"

    def test_malformed(self):
        with pytest.raises(ConfigurationError):
            ColumnPath.parse("")
        with pytest.raises(ConfigurationError):
            ColumnPath.parse("1abc")


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestOperatorRegistry:
    def test_default_covers_every_operator(self):
        registry = OperatorRegistry.default()
        assert registry.registered_operators() == sorted(op.value for op in FilterOperator)

    def test_override_is_local_to_one_registry(self):
        registry = OperatorRegistry.default()

        @registry.register(FilterOperator.EQ)
        def _upper(value):
            return str(value).upper()

        assert FilterEncoder(registry).encode("name", "eq", "ann") == "name=eq.ANN"
        assert FilterEncoder().encode("name", "eq", "ann") == "name=eq.ann"

    def test_missing_encoder(self):
        encoder = FilterEncoder(OperatorRegistry({}))
        with pytest.raises(ConfigurationError):
            encoder.encode("name", "eq", "ann")
