"""Unit tests for insert / upsert / update / delete compilation."""

from __future__ import annotations

import pytest

from pgrestql.compile.builder import RequestAssembler
from pgrestql.compile.context import CompilationContext
from pgrestql.errors import ConfigurationError
from pgrestql.query.builder import QueryBuilder


def test_insert_single_row(users: QueryBuilder):
    req = users.insert({"name": "Ann", "age": 30}).build()
    assert req.method == "POST"
    assert req.path == "/users"
    assert req.body == {"name": "Ann", "age": 30}
    assert req.content() == b'{"name":"Ann","age":30}'
    assert req.header("Content-Type") == "application/json"
    assert req.header("Prefer") == "return=representation"
    assert req.params == ()


def test_insert_minimal_return(users: QueryBuilder):
    req = users.insert({"name": "Ann"}, returning="minimal").build()
    assert req.header("Prefer") == "return=minimal"


def test_insert_with_select_shapes_returned_rows(users: QueryBuilder):
    req = users.insert({"name": "Ann"}).select("id").build()
    assert req.param("select") == "id"


def test_bulk_insert_with_differing_keys_lists_columns(users: QueryBuilder):
    req = users.insert([{"name": "a"}, {"name": "b", "age": 3}, {"email": "c@x"}]).build()
    assert req.body == [{"name": "a"}, {"name": "b", "age": 3}, {"email": "c@x"}]
    assert req.param("columns") == "name,age,email"


def test_bulk_insert_with_uniform_keys(users: QueryBuilder):
    req = users.insert([{"name": "a", "age": 1}, {"age": 2, "name": "b"}]).build()
    assert req.param("columns") is None


def test_missing_columns_take_defaults(users: QueryBuilder):
    req = users.insert([{"name": "a"}, {"age": 2}], default_to_null=False).build()
    assert req.header("Prefer") == "return=representation,missing=default"


def test_payload_is_copied(users: QueryBuilder):
    row = {"name": "Ann", "tags": ["a"]}
    query = users.insert(row)
    row["name"] = "Bob"
    row["tags"].append("b")
    assert query.build().body == {"name": "Ann", "tags": ["a"]}


@pytest.mark.parametrize("payload", [[], [{}], {}, "name=Ann", [1], [{"": 1}]])
def test_invalid_insert_payloads(users: QueryBuilder, payload):
    with pytest.raises(ConfigurationError):
        users.insert(payload)


def test_filters_rejected_on_insert_in_either_order(users: QueryBuilder):
    with pytest.raises(ConfigurationError):
        users.eq("id", 1).insert({"name": "Ann"})
    with pytest.raises(ConfigurationError):
        users.insert({"name": "Ann"}).eq("id", 1)
    with pytest.raises(ConfigurationError):
        users.upsert({"id": 1}).gt("id", 0)


def test_only_one_mutation_per_query(users: QueryBuilder):
    with pytest.raises(ConfigurationError):
        users.eq("id", 1).update({"a": 1}).delete()


def test_invalid_returning(users: QueryBuilder):
    with pytest.raises(ConfigurationError):
        users.insert({"a": 1}, returning="everything")


# ---------------------------------------------------------------------------
# Upsert
# ---------------------------------------------------------------------------


def test_upsert_merge_duplicates(users: QueryBuilder):
    req = users.upsert({"email": "a@x", "name": "Ann"}, on_conflict=["email"]).build()
    assert req.method == "POST"
    assert "resolution=merge-duplicates" in req.header("Prefer").split(",")
    assert req.header("Prefer") == "resolution=merge-duplicates,return=representation"
    assert req.param("on_conflict") == "email"


def test_upsert_ignore_duplicates(users: QueryBuilder):
    req = users.upsert({"email": "a@x"}, ignore_duplicates=True, returning="minimal").build()
    assert req.header("Prefer") == "resolution=ignore-duplicates,return=minimal"
    assert req.param("on_conflict") is None


def test_conflict_target_keeps_declared_order(users: QueryBuilder):
    as_list = users.upsert({"a": 1}, on_conflict=["org_id", "email"]).build()
    as_string = users.upsert({"a": 1}, on_conflict="org_id, email").build()
    assert as_list.param("on_conflict") == "org_id,email"
    assert as_string.param("on_conflict") == "org_id,email"


def test_conflict_target_validated(users: QueryBuilder):
    with pytest.raises(ConfigurationError):
        users.upsert({"a": 1}, on_conflict="")
    with pytest.raises(ConfigurationError):
        users.upsert({"a": 1}, on_conflict=["email;drop"])


def test_upsert_parameter_order(users: QueryBuilder):
    req = users.upsert([{"id": 1}, {"id": 2, "name": "b"}], on_conflict="id").select("id").build()
    assert [key for key, _ in req.params] == ["select", "on_conflict", "columns"]


# ---------------------------------------------------------------------------
# Update / delete
# ---------------------------------------------------------------------------


def test_update_uses_filters_as_target(users: QueryBuilder):
    req = users.eq("id", 7).update({"name": "Ann"}).build()
    assert req.method == "PATCH"
    assert req.params == (("id", "eq.7"),)
    assert req.body == {"name": "Ann"}
    assert req.header("Prefer") == "return=representation"


@pytest.mark.parametrize("payload", [{}, [{"name": "a"}]])
def test_invalid_update_payloads(users: QueryBuilder, payload):
    with pytest.raises(ConfigurationError):
        users.eq("id", 1).update(payload)


def test_delete(users: QueryBuilder):
    req = users.in_("id", [1, 2]).delete(returning="minimal").build()
    assert req.method == "DELETE"
    assert req.params == (("id", "in.(1,2)"),)
    assert req.body is None
    assert req.content() is None
    assert req.header("Content-Type") is None
    assert req.header("Prefer") == "return=minimal"


def test_mutation_uses_content_profile(users: QueryBuilder):
    req = users.schema("audit").insert({"a": 1}).build()
    assert req.header("Content-Profile") == "audit"
    assert req.header("Accept-Profile") is None


def test_column_transform_on_payload(users: QueryBuilder):
    assembler = RequestAssembler(CompilationContext(transform_columns=True))
    query = users.upsert(
        [{"firstName": "a", "meta": {"lastSeen": 1}}, {"firstName": "b", "userAge": 3}],
        on_conflict="emailAddress",
    )
    req = assembler.build(query.state)
    assert req.body == [
        {"first_name": "a", "meta": {"last_seen": 1}},
        {"first_name": "b", "user_age": 3},
    ]
    assert req.param("columns") == "first_name,meta,user_age"
    assert req.param("on_conflict") == "email_address"
