"""Fluent, immutable query builders.

Every method returns a new builder wrapping a new
:class:`~pgrestql.schema.state.QueryState`; the receiver is never changed, so
a partially built query can be branched freely::

    base = client.from_("users").select("id", "name").eq("active", True)
    admins = base.eq("role", "admin")
    recent = base.order("created_at", ascending=False).limit(10)

Nothing is sent until :meth:`QueryBuilder.execute` is awaited; ``build()``
compiles the state without any I/O.
"""
from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any, Literal, TypeVar

from pydantic import BaseModel

from pgrestql.compile.builder import RequestAssembler
from pgrestql.compile.selection import check_unique_embeds
from pgrestql.errors import ConfigurationError
from pgrestql.normalize.normalizer import paginate_envelope
from pgrestql.query.filters import FilterMixin
from pgrestql.schema.filters import FilterNode
from pgrestql.schema.modifiers import LimitOffset, OrderSpec, RowRange
from pgrestql.schema.operators import (
    AggregateFunction,
    Cardinality,
    CountMode,
    MutationKind,
    Returning,
)
from pgrestql.schema.request import RequestDescriptor
from pgrestql.schema.response import PaginatedEnvelope, ResponseEnvelope
from pgrestql.schema.selection import (
    AggregateItem,
    AliasedItem,
    EmbedSpec,
    SelectItem,
    parse_select_items,
)
from pgrestql.schema.state import MutationSpec, QueryState

if TYPE_CHECKING:
    from pgrestql.client import PostgrestClient

_B = TypeVar("_B", bound="_BaseBuilder")
_M = TypeVar("_M", bound=BaseModel)

EmbedCallback = Callable[["EmbedBuilder"], "EmbedBuilder"]


def _revalidate(model: _M, **changes: Any) -> _M:
    data = {name: getattr(model, name) for name in type(model).model_fields}
    data.update(changes)
    return type(model).model_validate(data)


def _add_items(
    current: tuple[SelectItem, ...], new: Iterable[SelectItem]
) -> tuple[SelectItem, ...]:
    items = list(current)
    for item in new:
        if item not in items:
            items.append(item)
    return tuple(items)


def _order_spec(column: str, ascending: bool, nulls: Literal["first", "last"] | None) -> OrderSpec:
    if nulls not in (None, "first", "last"):
        raise ConfigurationError("nulls must be 'first', 'last' or None.", "nulls", nulls)
    return OrderSpec(column=column, ascending=ascending, nulls=nulls)


def _build_embed(
    resource: str,
    columns: tuple[str, ...],
    alias: str | None,
    hint: str | None,
    inner: bool,
    build: EmbedCallback | None,
) -> EmbedSpec:
    builder = EmbedBuilder(EmbedSpec(resource=resource, alias=alias, hint=hint, inner=inner))
    if columns:
        builder = builder.select(*columns)
    if build is not None:
        builder = build(builder)
        if not isinstance(builder, EmbedBuilder):
            raise ConfigurationError(
                "The embed callback must return the EmbedBuilder it was given.",
                "embed",
                resource,
            )
    return builder.spec


def _append_embed(embeds: tuple[EmbedSpec, ...], embed: EmbedSpec) -> tuple[EmbedSpec, ...]:
    result = (*embeds, embed)
    check_unique_embeds(result)
    return result


# ---------------------------------------------------------------------------
# Embedded resources
# ---------------------------------------------------------------------------


class EmbedBuilder(FilterMixin):
    """Builds the sub-state of one embedded resource.

    Column names given to the filter and order methods are relative to the
    embedded resource; they are emitted with the embed's path as prefix.
    """

    def __init__(self, spec: EmbedSpec) -> None:
        self._spec = spec

    @property
    def spec(self) -> EmbedSpec:
        return self._spec

    def _evolve(self, **changes: Any) -> EmbedBuilder:
        return EmbedBuilder(_revalidate(self._spec, **changes))

    def _with_filter(self, node: FilterNode) -> EmbedBuilder:
        return self._evolve(filters=(*self._spec.filters, node))

    def _scoped_embeds(self) -> tuple[EmbedSpec, ...]:
        return self._spec.embeds

    def select(self, *columns: str) -> EmbedBuilder:
        return self._evolve(select=_add_items(self._spec.select, parse_select_items(*columns)))

    def select_as(self, alias: str, column: str) -> EmbedBuilder:
        return self._evolve(
            select=_add_items(self._spec.select, [AliasedItem(alias=alias, column=column)])
        )

    def embed(
        self,
        resource: str,
        *columns: str,
        alias: str | None = None,
        hint: str | None = None,
        inner: bool = False,
        build: EmbedCallback | None = None,
    ) -> EmbedBuilder:
        """Embed a resource related to this one (see :meth:`QueryBuilder.embed`)."""
        nested = _build_embed(resource, columns, alias, hint, inner, build)
        return self._evolve(embeds=_append_embed(self._spec.embeds, nested))

    def order(
        self,
        column: str,
        ascending: bool = True,
        nulls: Literal["first", "last"] | None = None,
    ) -> EmbedBuilder:
        spec = _order_spec(column, ascending, nulls)
        return self._evolve(order=(*self._spec.order, spec))

    def limit(self, count: int) -> EmbedBuilder:
        return self._evolve(limit=count)

    def offset(self, count: int) -> EmbedBuilder:
        return self._evolve(offset=count)

    def range(self, start: int, end: int) -> EmbedBuilder:
        """Inclusive row range of the embedded rows, as limit/offset."""
        bounds = RowRange(start=start, end=end)
        return self._evolve(limit=bounds.limit, offset=bounds.offset)


# ---------------------------------------------------------------------------
# Shared read behaviour
# ---------------------------------------------------------------------------


class _BaseBuilder(FilterMixin):
    """State handling and read modifiers shared by table and RPC builders.

    Args:
        state: The accumulated query state.
        assembler: Compiler used by :meth:`build`.
        client: Client used by :meth:`execute`; ``None`` for unbound builders.
    """

    def __init__(
        self,
        state: QueryState,
        assembler: RequestAssembler | None = None,
        client: PostgrestClient | None = None,
    ) -> None:
        self._state = state
        self._assembler = assembler or RequestAssembler()
        self._client = client

    @property
    def state(self) -> QueryState:
        return self._state

    def _evolve(self: _B, **changes: Any) -> _B:
        return type(self)(self._state.evolve(**changes), self._assembler, self._client)

    def _with_filter(self: _B, node: FilterNode) -> _B:
        return self._evolve(filters=(*self._state.filters, node))

    def _scoped_embeds(self) -> tuple[EmbedSpec, ...]:
        return self._state.embeds

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select(self: _B, *columns: str) -> _B:
        """Add columns to ``select=``.  Repeated columns are emitted once.

        Each argument may be a column, ``alias:column``, ``column AS alias``,
        a comma-separated list of those, or a verbatim expression.
        """
        if not columns:
            columns = ("*",)
        return self._evolve(select=_add_items(self._state.select, parse_select_items(*columns)))

    def select_as(self: _B, alias: str, column: str) -> _B:
        return self._evolve(
            select=_add_items(self._state.select, [AliasedItem(alias=alias, column=column)])
        )

    def aggregate(
        self: _B,
        function: AggregateFunction | str,
        column: str | None = None,
        *,
        alias: str | None = None,
    ) -> _B:
        """Add an aggregate to ``select=``, e.g. ``total:amount.sum()``.

        Plain columns selected alongside aggregates become the grouping
        columns on the gateway.  Only ``count`` may omit ``column``.
        """
        try:
            fn = AggregateFunction(function)
        except ValueError:
            raise ConfigurationError(
                f"Unknown aggregate function: '{function}'.", "aggregate", function
            ) from None
        item = AggregateItem(function=fn, column=column, alias=alias)
        return self._evolve(select=_add_items(self._state.select, [item]))

    def select_count(self: _B, column: str | None = None, *, alias: str | None = None) -> _B:
        return self.aggregate(AggregateFunction.COUNT, column, alias=alias)

    def select_sum(self: _B, column: str, *, alias: str | None = None) -> _B:
        return self.aggregate(AggregateFunction.SUM, column, alias=alias)

    def select_avg(self: _B, column: str, *, alias: str | None = None) -> _B:
        return self.aggregate(AggregateFunction.AVG, column, alias=alias)

    def select_min(self: _B, column: str, *, alias: str | None = None) -> _B:
        return self.aggregate(AggregateFunction.MIN, column, alias=alias)

    def select_max(self: _B, column: str, *, alias: str | None = None) -> _B:
        return self.aggregate(AggregateFunction.MAX, column, alias=alias)

    def embed(
        self: _B,
        resource: str,
        *columns: str,
        alias: str | None = None,
        hint: str | None = None,
        inner: bool = False,
        build: EmbedCallback | None = None,
    ) -> _B:
        """Embed a related resource.

        Args:
            resource: Related table or view.
            *columns: Columns of the embedded resource (``*`` when omitted).
            alias: Key under which the embedded rows appear.
            hint: Foreign key or column disambiguating the relationship.
            inner: Drop parent rows with no matching embedded row.
            build: Callback receiving an :class:`EmbedBuilder` for nested
                embeds, filters, order and limits.

        Example::

            client.from_("authors").select("id").embed(
                "posts", "title",
                build=lambda p: p.eq("published", True).order("created_at", ascending=False),
            )
        """
        embed = _build_embed(resource, columns, alias, hint, inner, build)
        return self._evolve(embeds=_append_embed(self._state.embeds, embed))

    # ------------------------------------------------------------------
    # Ordering and pagination
    # ------------------------------------------------------------------

    def order(
        self: _B,
        column: str,
        ascending: bool = True,
        nulls: Literal["first", "last"] | None = None,
        referenced_table: str | None = None,
    ) -> _B:
        """Append an order spec; specs render in call order."""
        spec = _order_spec(column, ascending, nulls)
        if referenced_table is not None:
            return self._update_embed(
                referenced_table, lambda e: _revalidate(e, order=(*e.order, spec))
            )
        return self._evolve(order=(*self._state.order, spec))

    def limit(self: _B, count: int, referenced_table: str | None = None) -> _B:
        if referenced_table is not None:
            return self._update_embed(referenced_table, lambda e: _revalidate(e, limit=count))
        page = self._state.pagination
        if isinstance(page, RowRange):
            raise ConfigurationError("limit() cannot be combined with range().", "limit", count)
        offset = page.offset if isinstance(page, LimitOffset) else None
        return self._evolve(pagination=LimitOffset(limit=count, offset=offset))

    def offset(self: _B, count: int, referenced_table: str | None = None) -> _B:
        if referenced_table is not None:
            return self._update_embed(referenced_table, lambda e: _revalidate(e, offset=count))
        page = self._state.pagination
        if isinstance(page, RowRange):
            raise ConfigurationError("offset() cannot be combined with range().", "offset", count)
        limit = page.limit if isinstance(page, LimitOffset) else None
        return self._evolve(pagination=LimitOffset(limit=limit, offset=count))

    def range(self: _B, start: int, end: int, referenced_table: str | None = None) -> _B:
        """Request rows ``start`` to ``end`` inclusive via the ``Range`` header.

        ``range(20, 29)`` is equivalent to ``limit 10, offset 20``.  On an
        embedded resource the range is sent as its limit and offset.
        """
        bounds = RowRange(start=start, end=end)
        if referenced_table is not None:
            return self._update_embed(
                referenced_table,
                lambda e: _revalidate(e, limit=bounds.limit, offset=bounds.offset),
            )
        if isinstance(self._state.pagination, LimitOffset):
            raise ConfigurationError(
                "range() cannot be combined with limit() or offset().",
                "range",
                (start, end),
            )
        return self._evolve(pagination=bounds)

    def paginate(self: _B, page: int, page_size: int) -> _B:
        """Fetch page ``page`` (1-based) of ``page_size`` rows as limit/offset."""
        for name, value in (("page", page), ("page_size", page_size)):
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigurationError(f"{name} must be an integer >= 1.", name, value)
        if isinstance(self._state.pagination, RowRange):
            raise ConfigurationError("paginate() cannot be combined with range().", "page", page)
        return self._evolve(
            pagination=LimitOffset(limit=page_size, offset=(page - 1) * page_size)
        )

    def _update_embed(
        self: _B, referenced_table: str, fn: Callable[[EmbedSpec], EmbedSpec]
    ) -> _B:
        path = referenced_table.split(".")
        return self._evolve(embeds=_replace_embed(self._state.embeds, path, fn, referenced_table))

    # ------------------------------------------------------------------
    # Count and cardinality
    # ------------------------------------------------------------------

    def count(self: _B, mode: CountMode | str = CountMode.EXACT) -> _B:
        """Ask the gateway for the total row count (``Prefer: count=...``)."""
        try:
            count = CountMode(mode)
        except ValueError:
            raise ConfigurationError(f"Unknown count mode: '{mode}'.", "count", mode) from None
        return self._evolve(count=count)

    def single(self: _B) -> _B:
        """Expect exactly one row; zero or several is a ``CardinalityError``."""
        return self._evolve(cardinality=Cardinality.SINGLE)

    def maybe_single(self: _B) -> _B:
        """Expect zero or one row; zero rows yields ``data=None`` without error."""
        return self._evolve(cardinality=Cardinality.MAYBE_SINGLE)

    def head(self: _B) -> _B:
        """Send a ``HEAD`` request; only headers (and the count) come back."""
        return self._evolve(head=True)

    # ------------------------------------------------------------------
    # Escape hatches
    # ------------------------------------------------------------------

    def param(self: _B, key: str, value: Any) -> _B:
        """Append a query parameter verbatim, after all compiled parameters."""
        if not isinstance(key, str) or not key:
            raise ConfigurationError("Parameter names must be non-empty strings.", "param", key)
        return self._evolve(raw_params=(*self._state.raw_params, (key, str(value))))

    def with_role(self: _B, role: str) -> _B:
        """Run this query as ``role`` (``X-PostgREST-Role``)."""
        return self._evolve(role=role)

    def transform_columns(self: _B, enabled: bool = True) -> _B:
        """Override the client's camelCase/snake_case transform for this query."""
        return self._evolve(transform_columns=enabled)

    # ------------------------------------------------------------------
    # Terminal operations
    # ------------------------------------------------------------------

    def build(self) -> RequestDescriptor:
        """Compile the current state.  No I/O is performed."""
        return self._assembler.build(self._state)

    async def execute(self) -> ResponseEnvelope:
        """Send the request and return the normalized response.

        Raises:
            ConfigurationError: If the builder is not bound to a client.
        """
        if self._client is None:
            raise ConfigurationError(
                "This builder is not bound to a client; use build() or create it "
                "with PostgrestClient.",
                "client",
            )
        return await self._client.send(self.build())

    async def execute_paginated(self) -> PaginatedEnvelope:
        """Execute a limited read and report its page position.

        An exact count is requested unless another count mode was chosen, so
        the total number of pages is known.

        Raises:
            ConfigurationError: If no ``limit``/``paginate()`` was set, or the
                builder is not bound to a client.
        """
        page = self._state.pagination
        if not isinstance(page, LimitOffset) or page.limit is None:
            raise ConfigurationError(
                "execute_paginated() needs paginate() or limit() first.", "pagination"
            )
        if page.limit < 1:
            raise ConfigurationError("The page size must be at least 1.", "limit", page.limit)
        builder = self if self._state.count is not CountMode.NONE else self.count()
        envelope = await builder.execute()
        return paginate_envelope(envelope, page.limit, page.offset or 0)


def _replace_embed(
    embeds: tuple[EmbedSpec, ...],
    path: Sequence[str],
    fn: Callable[[EmbedSpec], EmbedSpec],
    referenced_table: str,
) -> tuple[EmbedSpec, ...]:
    head, rest = path[0], path[1:]
    for i, embed in enumerate(embeds):
        if embed.key != head:
            continue
        if rest:
            updated = _revalidate(
                embed, embeds=_replace_embed(embed.embeds, rest, fn, referenced_table)
            )
        else:
            updated = fn(embed)
        return (*embeds[:i], updated, *embeds[i + 1:])
    raise ConfigurationError(
        f"No embedded resource '{referenced_table}'; call embed() first.",
        "referenced_table",
        referenced_table,
    )


# ---------------------------------------------------------------------------
# Table queries
# ---------------------------------------------------------------------------


class QueryBuilder(_BaseBuilder):
    """Builder for reads and writes against one table or view."""

    def schema(self, name: str) -> QueryBuilder:
        """Target a non-default schema (``Accept-Profile`` / ``Content-Profile``)."""
        return self._evolve(schema_name=name)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def insert(
        self,
        payload: Mapping[str, Any] | Sequence[Mapping[str, Any]],
        *,
        returning: Returning | str = Returning.REPRESENTATION,
        default_to_null: bool = True,
    ) -> QueryBuilder:
        """Insert one row (mapping) or many (list of mappings) with ``POST``."""
        return self._mutate(
            kind=MutationKind.INSERT,
            payload=_payload(payload),
            returning=_returning(returning),
            default_to_null=default_to_null,
        )

    def upsert(
        self,
        payload: Mapping[str, Any] | Sequence[Mapping[str, Any]],
        *,
        on_conflict: str | Sequence[str] | None = None,
        ignore_duplicates: bool = False,
        returning: Returning | str = Returning.REPRESENTATION,
        default_to_null: bool = True,
    ) -> QueryBuilder:
        """Insert, or resolve conflicts on ``on_conflict`` by merging or ignoring.

        ``on_conflict`` may be a list of columns or a comma-separated string;
        both are emitted joined by commas in the declared order.
        """
        return self._mutate(
            kind=MutationKind.UPSERT,
            payload=_payload(payload),
            on_conflict=_conflict_target(on_conflict),
            ignore_duplicates=ignore_duplicates,
            returning=_returning(returning),
            default_to_null=default_to_null,
        )

    def update(
        self,
        payload: Mapping[str, Any],
        *,
        returning: Returning | str = Returning.REPRESENTATION,
    ) -> QueryBuilder:
        """``PATCH`` the rows matched by the filters with ``payload``."""
        if not isinstance(payload, Mapping):
            raise ConfigurationError("update() expects a mapping.", "payload", payload)
        return self._mutate(
            kind=MutationKind.UPDATE,
            payload=dict(payload),
            returning=_returning(returning),
        )

    def delete(self, *, returning: Returning | str = Returning.REPRESENTATION) -> QueryBuilder:
        """``DELETE`` the rows matched by the filters."""
        return self._mutate(kind=MutationKind.DELETE, returning=_returning(returning))

    def _mutate(self, **spec: Any) -> QueryBuilder:
        if self._state.mutation is not None:
            raise ConfigurationError(
                f"This query already performs {self._state.mutation.kind.value}().",
                "mutation",
                spec["kind"].value,
            )
        return self._evolve(mutation=MutationSpec(**spec))


def _payload(payload: Any) -> Any:
    if isinstance(payload, Mapping):
        return dict(payload)
    if isinstance(payload, (str, bytes)) or not isinstance(payload, Sequence):
        raise ConfigurationError(
            "Expected a mapping or a list of mappings.", "payload", payload
        )
    return [dict(row) if isinstance(row, Mapping) else row for row in payload]


def _returning(value: Returning | str) -> Returning:
    try:
        return Returning(value)
    except ValueError:
        raise ConfigurationError(
            f"returning must be 'representation' or 'minimal', not '{value}'.",
            "returning",
            value,
        ) from None


def _conflict_target(value: str | Sequence[str] | None) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        columns = [part.strip() for part in value.split(",")]
    else:
        columns = list(value)
    if not columns or any(not column for column in columns):
        raise ConfigurationError(
            "on_conflict must name at least one column.", "on_conflict", value
        )
    return tuple(columns)
