"""Async client: the single point where I/O happens.

``PostgrestClient`` owns one :class:`httpx.AsyncClient` for its lifetime and
has an explicit lifecycle::

    async with PostgrestClient(ClientConfig(url="http://localhost:3000")) as client:
        result = await client.from_("users").select("id", "name").eq("active", True).execute()
        if result.error is not None:
            ...

Several clients can coexist; nothing is shared between them.  The client
never retries: a failed request is returned as an envelope with
``error.kind == ErrorKind.TRANSPORT`` (no response) or the classified server
error, and retry policy is left to the caller.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from pgrestql.compile.builder import RequestAssembler
from pgrestql.compile.context import CompilationContext
from pgrestql.compile.registry import OperatorRegistry
from pgrestql.config import ClientConfig
from pgrestql.errors import ConfigurationError
from pgrestql.normalize.normalizer import ResponseNormalizer
from pgrestql.query.builder import QueryBuilder
from pgrestql.query.rpc import RpcBuilder
from pgrestql.schema.column_path import validate_identifier
from pgrestql.schema.request import RawResponse, RequestDescriptor
from pgrestql.schema.response import ResponseEnvelope
from pgrestql.schema.state import QueryState, RpcSpec

logger = logging.getLogger(__name__)


class PostgrestClient:
    """Compiles builders against one gateway and executes them.

    Args:
        config: Connection settings.  Defaults to ``ClientConfig()`` (read
            from ``PGRESTQL_*`` environment variables).
        transport: Optional httpx transport, e.g. ``httpx.MockTransport``
            in tests.
        registry: Operator value encoders used by the compiler.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        registry: OperatorRegistry | None = None,
    ) -> None:
        self.config = config or ClientConfig()
        self._transport = transport
        self._registry = registry
        self._assembler = RequestAssembler(CompilationContext.from_config(self.config), registry)
        self._normalizer = ResponseNormalizer()
        self._http: httpx.AsyncClient | None = None
        self._root: PostgrestClient = self

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self._root._http is not None

    async def open(self) -> PostgrestClient:
        """Create the underlying HTTP client.  Calling it twice is a no-op."""
        root = self._root
        if root._http is None:
            root._http = httpx.AsyncClient(
                timeout=root.config.timeout,
                transport=root._transport,
            )
            logger.debug("Opened client for %s", root.config.url)
        return self

    async def aclose(self) -> None:
        """Close the underlying HTTP client.  Safe to call more than once."""
        root = self._root
        if root._http is not None:
            http, root._http = root._http, None
            await http.aclose()
            logger.debug("Closed client for %s", root.config.url)

    async def __aenter__(self) -> PostgrestClient:
        return await self.open()

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Builders
    # ------------------------------------------------------------------

    def from_(self, table: str) -> QueryBuilder:
        """Start a query against ``table``."""
        return QueryBuilder(QueryState(table=table), self._assembler, self)

    def rpc(
        self,
        function: str,
        args: dict[str, Any] | None = None,
        *,
        read_only: bool = False,
    ) -> RpcBuilder:
        """Start a call to the stored function ``function``."""
        spec = RpcSpec(function=function, args=args or {}, read_only=read_only)
        return RpcBuilder(QueryState(rpc=spec), self._assembler, self)

    def schema(self, name: str) -> PostgrestClient:
        """Return a view of this client targeting schema ``name``.

        The view shares this client's connection and lifecycle.
        """
        validate_identifier(name, "schema")
        view = PostgrestClient(
            self.config.model_copy(update={"schema_name": name}),
            transport=self._transport,
            registry=self._registry,
        )
        view._root = self._root
        return view

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def send(self, descriptor: RequestDescriptor) -> ResponseEnvelope:
        """Execute one compiled request and normalize the response.

        ``httpx.TransportError`` (connection failures, timeouts) becomes a
        ``TransportError`` envelope; cancellation propagates to the caller.

        Raises:
            ConfigurationError: If the client has not been opened.
        """
        http = self._root._http
        if http is None:
            raise ConfigurationError(
                "The client is not open; use 'async with' or await open() first.",
                "client",
            )
        url = descriptor.url(self.config.url)
        logger.debug("%s %s", descriptor.method, url)
        try:
            response = await http.request(
                descriptor.method,
                url,
                headers=list(descriptor.headers),
                content=descriptor.content(),
            )
        except httpx.TransportError as exc:
            logger.warning("%s %s failed: %s", descriptor.method, url, exc)
            return self._normalizer.transport_failure(exc, descriptor.context)
        return self._normalizer.normalize(to_raw_response(response), descriptor.context)


def to_raw_response(response: httpx.Response) -> RawResponse:
    return RawResponse(
        status=response.status_code,
        headers=tuple(response.headers.multi_items()),
        text=response.text,
    )
