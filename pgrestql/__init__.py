"""pgrestql: a PostgREST query compiler and response normalizer.

Build requests, don't concatenate them.

Public API
----------
``PostgrestClient``
    Explicit-lifecycle async client: ``from_(table)`` and ``rpc(fn)`` return
    immutable builders whose ``execute()`` performs one HTTP round trip and
    returns a ``ResponseEnvelope``.

``compile_request``
    Compile a ``QueryState`` to a ``RequestDescriptor`` without a client.

Re-exported types
-----------------
``ClientConfig``, ``QueryBuilder``, ``RpcBuilder``, ``RequestDescriptor``,
``ResponseEnvelope``, ``PaginatedEnvelope``, ``ErrorKind``, the filter
helpers ``where`` / ``any_of`` / ``all_of``, and all error classes.

Extensibility
-------------
Operator value encodings can be overridden per client::

    from pgrestql.compile.registry import OperatorRegistry

    registry = OperatorRegistry.default()

    @registry.register(FilterOperator.EQ)
    def _eq(value):
        ...

    client = PostgrestClient(config, registry=registry)
"""

from __future__ import annotations

from pgrestql.errors import (
    AuthenticationError,
    CardinalityError,
    ConfigurationError,
    ConflictError,
    ExecutionError,
    GatewayError,
    NotFoundError,
    PermissionDeniedError,
    PgrestqlError,
    RateLimitError,
    ServerError,
    TransportError,
    ValidationError,
)
from pgrestql.schema.operators import (
    AggregateFunction,
    Cardinality,
    CountMode,
    FilterOperator,
    Returning,
)
from pgrestql.schema.request import RawResponse, RequestDescriptor, ResponseContext
from pgrestql.schema.response import (
    CountInfo,
    ErrorDescriptor,
    ErrorKind,
    PageInfo,
    PaginatedEnvelope,
    ResponseEnvelope,
)
from pgrestql.schema.state import QueryState
from pgrestql.compile.builder import RequestAssembler
from pgrestql.compile.context import CompilationContext
from pgrestql.compile.filters import FilterEncoder
from pgrestql.compile.registry import OperatorRegistry
from pgrestql.normalize.normalizer import ResponseNormalizer
from pgrestql.query.builder import EmbedBuilder, QueryBuilder
from pgrestql.query.filters import all_of, any_of, where
from pgrestql.query.rpc import RpcBuilder
from pgrestql.config import ClientConfig
from pgrestql.client import PostgrestClient


def compile_request(
    state: QueryState,
    config: ClientConfig | None = None,
    registry: OperatorRegistry | None = None,
) -> RequestDescriptor:
    """Compile ``state`` to a request descriptor.

    Args:
        state: The query state, usually taken from ``builder.state``.
        config: Supplies credentials, default headers, schema and naming.
            Without it no credential headers are emitted.
        registry: Operator value encoders.

    Returns:
        The immutable :class:`RequestDescriptor`.

    Raises:
        ConfigurationError: If the state cannot be compiled.
    """
    context = CompilationContext.from_config(config) if config else CompilationContext()
    return RequestAssembler(context, registry).build(state)


__all__ = [
    # Primary API
    "PostgrestClient",
    "compile_request",
    # Builders
    "QueryBuilder",
    "RpcBuilder",
    "EmbedBuilder",
    "where",
    "any_of",
    "all_of",
    # Types
    "ClientConfig",
    "QueryState",
    "RequestDescriptor",
    "RawResponse",
    "ResponseContext",
    "ResponseEnvelope",
    "PaginatedEnvelope",
    "PageInfo",
    "CountInfo",
    "ErrorDescriptor",
    "ErrorKind",
    "AggregateFunction",
    "Cardinality",
    "CountMode",
    "FilterOperator",
    "Returning",
    # Compilers
    "RequestAssembler",
    "CompilationContext",
    "FilterEncoder",
    "OperatorRegistry",
    "ResponseNormalizer",
    # Errors
    "PgrestqlError",
    "ConfigurationError",
    "ExecutionError",
    "CardinalityError",
    "ConflictError",
    "ValidationError",
    "NotFoundError",
    "AuthenticationError",
    "PermissionDeniedError",
    "RateLimitError",
    "ServerError",
    "TransportError",
    "GatewayError",
]
