"""Shared pytest fixtures for pgrestql unit tests."""
from __future__ import annotations

from collections.abc import Callable

import httpx
import pytest

from pgrestql.client import PostgrestClient
from pgrestql.compile.builder import RequestAssembler
from pgrestql.config import ClientConfig
from pgrestql.query.builder import QueryBuilder
from pgrestql.schema.state import QueryState

BASE_URL = "http://gateway.test"


@pytest.fixture
def assembler() -> RequestAssembler:
    """Compiler with an empty context: no credentials, no column transform."""
    return RequestAssembler()


@pytest.fixture
def users() -> QueryBuilder:
    """Unbound builder over the ``users`` table."""
    return QueryBuilder(QueryState(table="users"))


@pytest.fixture
def config() -> ClientConfig:
    return ClientConfig(url=BASE_URL, api_key="anon-key", authorization="Bearer token")


@pytest.fixture
def make_client(config: ClientConfig) -> Callable[..., PostgrestClient]:
    """Factory for a client whose requests are answered by ``handler``."""

    def factory(
        handler: Callable[[httpx.Request], httpx.Response],
        **overrides: object,
    ) -> PostgrestClient:
        cfg = config.model_copy(update=overrides) if overrides else config
        return PostgrestClient(cfg, transport=httpx.MockTransport(handler))

    return factory
