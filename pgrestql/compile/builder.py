"""QueryState -> RequestDescriptor compilation.

``RequestAssembler`` is the top-level orchestrator.  It wires together the
focused compilers and merges their output into one immutable
:class:`~pgrestql.schema.request.RequestDescriptor`.

Compiler hierarchy
------------------
RequestAssembler
  ├── FilterEncoder       (filters.py)
  ├── SelectionCompiler   (selection.py)
  ├── ModifierCompiler    (modifiers.py)
  ├── MutationAssembler   (mutation.py)
  └── RpcAssembler        (mutation.py)

Output order
------------
Query parameters: ``select``, top-level filters, embed-scoped parameters
(depth-first), ``order``, ``limit``, ``offset``, ``on_conflict``,
``columns``, raw parameters.  RPC arguments sent in the query string come
before all of these.

Headers: default headers, ``apikey``, ``Authorization``,
``X-PostgREST-Role``, ``Accept``,
``Accept-Profile`` / ``Content-Profile``, ``Content-Type``, ``Prefer``,
``Range-Unit`` / ``Range``.
"""

from __future__ import annotations

import logging

from pgrestql.compile.context import CompilationContext
from pgrestql.compile.filters import FilterEncoder
from pgrestql.compile.modifiers import ModifierCompiler
from pgrestql.compile.mutation import MutationAssembler, RpcAssembler
from pgrestql.compile.registry import OperatorRegistry
from pgrestql.compile.selection import SelectionCompiler
from pgrestql.schema.request import RequestDescriptor, ResponseContext
from pgrestql.schema.state import QueryState

logger = logging.getLogger(__name__)

_READ_METHODS = frozenset({"GET", "HEAD"})


class RequestAssembler:
    """Compiles a :class:`QueryState` into a :class:`RequestDescriptor`.

    Args:
        context: Client-level settings.  Defaults to an empty context (no
            credentials, no column transform).
        registry: Operator value encoders passed to the filter encoder.
    """

    def __init__(
        self,
        context: CompilationContext | None = None,
        registry: OperatorRegistry | None = None,
    ) -> None:
        self._ctx = context or CompilationContext()
        self._filters = FilterEncoder(registry)
        self._modifiers = ModifierCompiler()
        self._selection = SelectionCompiler(self._filters, self._modifiers)
        self._mutation = MutationAssembler()
        self._rpc = RpcAssembler()

    @property
    def context(self) -> CompilationContext:
        return self._ctx

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def build(self, state: QueryState) -> RequestDescriptor:
        """Compile ``state``; the state itself is left untouched."""
        ctx = self._ctx.with_transform(state.transform_columns)
        method, path, body, rpc_params = self._target(state, ctx)
        params = rpc_params + self._params(state, ctx)
        headers = self._headers(state, ctx, method, body is not None)
        descriptor = RequestDescriptor(
            method=method,
            path=path,
            params=tuple(params),
            headers=tuple(headers),
            body=body,
            context=ResponseContext(
                cardinality=state.cardinality,
                count=state.count,
                head=method == "HEAD",
                transform_columns=ctx.transform_columns,
            ),
        )
        logger.debug(
            "Compiled %s %s (%d params, %d headers)",
            descriptor.method,
            descriptor.path,
            len(descriptor.params),
            len(descriptor.headers),
        )
        return descriptor

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _target(
        self, state: QueryState, ctx: CompilationContext
    ) -> tuple[str, str, object, list[tuple[str, str]]]:
        if state.rpc is not None:
            rpc = state.rpc
            return (
                self._rpc.method(rpc, state.head),
                self._rpc.path(rpc),
                self._rpc.body(rpc, state.head, ctx),
                self._rpc.params(rpc, state.head, ctx),
            )
        if state.mutation is not None:
            mutation = state.mutation
            return (
                self._mutation.method(mutation),
                f"/{state.table}",
                self._mutation.body(mutation, ctx),
                [],
            )
        return ("HEAD" if state.head else "GET", f"/{state.table}", None, [])

    def _params(self, state: QueryState, ctx: CompilationContext) -> list[tuple[str, str]]:
        params: list[tuple[str, str]] = []
        select = self._selection.select_value(state.select, state.embeds, ctx)
        if select is not None:
            params.append(("select", select))
        for node in state.filters:
            params.append(self._filters.encode_node(node, ctx))
        params.extend(self._selection.embed_params(state.embeds, ctx))
        order = self._modifiers.order_value(state.order, ctx)
        if order is not None:
            params.append(("order", order))
        params.extend(self._modifiers.pagination_params(state.pagination))
        if state.mutation is not None:
            params.extend(self._mutation.params(state.mutation, ctx))
        params.extend(state.raw_params)
        return params

    def _headers(
        self,
        state: QueryState,
        ctx: CompilationContext,
        method: str,
        has_body: bool,
    ) -> list[tuple[str, str]]:
        headers = list(ctx.headers)
        if ctx.api_key:
            headers.append(("apikey", ctx.api_key))
        if ctx.authorization:
            headers.append(("Authorization", ctx.authorization))
        if state.role:
            headers.append(("X-PostgREST-Role", state.role))
        headers.append(("Accept", self._modifiers.accept(state.cardinality)))
        schema = state.schema_name or ctx.schema_name
        if schema:
            profile = "Accept-Profile" if method in _READ_METHODS else "Content-Profile"
            headers.append((profile, schema))
        if has_body:
            headers.append(("Content-Type", "application/json"))
        prefer = self._prefer(state)
        if prefer:
            headers.append(("Prefer", ",".join(prefer)))
        headers.extend(self._modifiers.range_headers(state.pagination))
        return headers

    def _prefer(self, state: QueryState) -> list[str]:
        tokens: list[str] = []
        if state.mutation is not None:
            tokens.extend(self._mutation.prefer(state.mutation))
        count = self._modifiers.count_token(state.count)
        if count is not None:
            tokens.append(count)
        if state.mutation is not None:
            missing = self._mutation.missing(state.mutation)
            if missing is not None:
                tokens.append(missing)
        return tokens
