"""End-to-end tests for PostgrestClient over httpx.MockTransport."""
from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from pgrestql.client import PostgrestClient
from pgrestql.errors import ConfigurationError
from pgrestql.schema.response import ErrorKind


def _json(status: int, body, **headers: str) -> httpx.Response:
    return httpx.Response(status, json=body, headers=headers)


def test_read_request_on_the_wire(make_client):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return _json(200, [{"id": 1, "name": "Ann"}], **{"Content-Range": "0-0/1"})

    async def run():
        async with make_client(handler) as client:
            return await (
                client.from_("users")
                .select("id", "name")
                .eq("active", True)
                .order("name")
                .count()
                .execute()
            )

    result = asyncio.run(run())
    assert result.ok
    assert result.data == [{"id": 1, "name": "Ann"}]
    assert result.count.total == 1

    (request,) = seen
    assert request.method == "GET"
    assert request.url.host == "gateway.test"
    assert request.url.path == "/users"
    assert list(request.url.params.multi_items()) == [
        ("select", "id,name"),
        ("active", "eq.true"),
        ("order", "name.asc"),
    ]
    assert request.headers["apikey"] == "anon-key"
    assert request.headers["authorization"] == "Bearer token"
    assert request.headers["accept"] == "application/json"
    assert request.headers["prefer"] == "count=exact"


def test_insert_sends_json_body(make_client):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return _json(201, [{"id": 9, "name": "Ann"}])

    async def run():
        async with make_client(handler) as client:
            return await client.from_("users").insert({"name": "Ann"}).execute()

    result = asyncio.run(run())
    assert result.status == 201
    assert result.data == [{"id": 9, "name": "Ann"}]
    request = seen[0]
    assert request.method == "POST"
    assert json.loads(request.content) == {"name": "Ann"}
    assert request.headers["content-type"] == "application/json"
    assert request.headers["prefer"] == "return=representation"


def test_rpc_call(make_client):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return _json(200, 42)

    async def run():
        async with make_client(handler) as client:
            return await client.rpc("add", {"a": 40, "b": 2}).execute()

    result = asyncio.run(run())
    assert result.data == 42
    assert seen[0].url.path == "/rpc/add"
    assert json.loads(seen[0].content) == {"a": 40, "b": 2}


def test_schema_view_shares_connection(make_client):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return _json(200, [])

    async def run():
        client = make_client(handler)
        audit = client.schema("audit")
        assert not audit.is_open
        async with client:
            assert audit.is_open
            await audit.from_("events").execute()
            await client.from_("users").execute()
        assert not audit.is_open

    asyncio.run(run())
    assert seen[0].headers["accept-profile"] == "audit"
    assert "accept-profile" not in seen[1].headers


def test_maybe_single_without_match(make_client):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["accept"] == "application/vnd.pgrst.object+json"
        return _json(
            406,
            {
                "code": "PGRST116",
                "details": "The result contains 0 rows",
                "hint": None,
                "message": "JSON object requested, multiple (or no) rows returned",
            },
        )

    async def run():
        async with make_client(handler) as client:
            query = client.from_("users").eq("id", 404)
            return await query.maybe_single().execute(), await query.single().execute()

    maybe, single = asyncio.run(run())
    assert maybe.data is None and maybe.error is None
    assert single.error.kind is ErrorKind.CARDINALITY


def test_execute_paginated_reports_page_position(make_client):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        rows = [{"id": i} for i in range(20, 30)]
        return _json(200, rows, **{"Content-Range": "20-29/45"})

    async def run():
        async with make_client(handler) as client:
            return await client.from_("users").select("id").paginate(3, 10).execute_paginated()

    result = asyncio.run(run())
    assert len(result.data) == 10
    page = result.pagination
    assert (page.page, page.page_size, page.offset) == (3, 10, 20)
    assert (page.total_items, page.total_pages) == (45, 5)
    assert page.has_next_page and page.has_previous_page
    assert seen[0].headers["prefer"] == "count=exact"
    assert seen[0].url.params["offset"] == "20"


def test_execute_paginated_last_page_without_total(make_client):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["prefer"] == "count=planned"
        return _json(200, [{"id": 1}], **{"Content-Range": "0-0/*"})

    async def run():
        async with make_client(handler) as client:
            return await client.from_("users").count("planned").limit(5).execute_paginated()

    page = asyncio.run(run()).pagination
    assert page.page == 1
    assert page.total_items is None and page.total_pages is None
    assert not page.has_next_page and not page.has_previous_page


def test_execute_paginated_error_has_no_pagination(make_client):
    def handler(request: httpx.Request) -> httpx.Response:
        return _json(401, {"message": "JWT expired"})

    async def run():
        async with make_client(handler) as client:
            return await client.from_("users").paginate(2, 10).execute_paginated()

    result = asyncio.run(run())
    assert result.error.kind is ErrorKind.AUTHENTICATION
    assert result.pagination is None


def test_execute_paginated_needs_a_page_size(make_client):
    async def run():
        async with make_client(lambda request: _json(200, [])) as client:
            await client.from_("users").range(0, 9).execute_paginated()

    with pytest.raises(ConfigurationError) as exc_info:
        asyncio.run(run())
    assert exc_info.value.field == "pagination"


def test_role_header_on_the_wire(make_client):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return _json(200, [])

    async def run():
        async with make_client(handler) as client:
            await client.from_("reports").with_role("analyst").execute()

    asyncio.run(run())
    assert seen[0].headers["x-postgrest-role"] == "analyst"


def test_server_error_is_returned_not_raised(make_client):
    def handler(request: httpx.Request) -> httpx.Response:
        return _json(409, {"code": "23505", "message": "duplicate key value", "details": None, "hint": None})

    async def run():
        async with make_client(handler) as client:
            return await client.from_("users").insert({"email": "a@x"}).execute()

    result = asyncio.run(run())
    assert result.error.kind is ErrorKind.CONFLICT
    assert result.error.code == "23505"
    assert result.status == 409


def test_transport_error_becomes_envelope(make_client):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async def run():
        async with make_client(handler) as client:
            return await client.from_("users").execute()

    result = asyncio.run(run())
    assert result.error.kind is ErrorKind.TRANSPORT
    assert result.error.status is None
    assert result.status is None
    assert "connection refused" in result.error.message


def test_transform_columns_round_trip(make_client):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return _json(200, [{"first_name": "Ann", "created_at": "2024-01-01"}])

    async def run():
        async with make_client(handler, transform_columns=True) as client:
            return await client.from_("users").select("firstName", "createdAt").eq("firstName", "Ann").execute()

    result = asyncio.run(run())
    assert result.data == [{"firstName": "Ann", "createdAt": "2024-01-01"}]
    assert list(seen[0].url.params.multi_items()) == [
        ("select", "first_name,created_at"),
        ("first_name", "eq.Ann"),
    ]


def test_send_requires_open_client(make_client):
    client = make_client(lambda request: _json(200, []))
    with pytest.raises(ConfigurationError):
        asyncio.run(client.from_("users").execute())


def test_lifecycle_is_idempotent(make_client):
    async def run():
        client = make_client(lambda request: _json(200, []))
        await client.open()
        await client.open()
        assert client.is_open
        await client.aclose()
        await client.aclose()
        assert not client.is_open

    asyncio.run(run())


def test_clients_are_independent(config):
    first = PostgrestClient(config, transport=httpx.MockTransport(lambda r: _json(200, [])))
    second = PostgrestClient(
        config.model_copy(update={"api_key": "other"}),
        transport=httpx.MockTransport(lambda r: _json(200, [])),
    )
    assert first.from_("users").build().header("apikey") == "anon-key"
    assert second.from_("users").build().header("apikey") == "other"
