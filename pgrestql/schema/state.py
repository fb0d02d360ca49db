"""QueryState: the immutable accumulator behind every builder.

Builders never edit a state; each fluent call produces a new one through
:meth:`QueryState.evolve`, which re-runs validation so the cross-field
invariants below hold no matter which order the calls were made in.

Invariants enforced at construction:

* a state targets exactly one of a table or an RPC function;
* ``single`` / ``maybe_single`` cannot be combined with an explicit limit
  greater than one, or with a range wider than one row;
* insert and upsert cannot carry filters;
* ``head`` is only valid for reads.
"""
from __future__ import annotations

import copy
from typing import Annotated, Any, Union

from pydantic import Field, StrictBool, StrictStr, field_validator, model_validator

from pgrestql.errors import ConfigurationError
from pgrestql.schema.base import FrozenModel
from pgrestql.schema.column_path import validate_identifier
from pgrestql.schema.filters import FilterNode
from pgrestql.schema.modifiers import LimitOffset, OrderSpec, RowRange
from pgrestql.schema.operators import Cardinality, CountMode, MutationKind, Returning
from pgrestql.schema.selection import EmbedSpec, SelectItem

Pagination = Annotated[Union[LimitOffset, RowRange], Field(discriminator="kind")]


class MutationSpec(FrozenModel):
    """Write operation attached to a table query.

    Attributes:
        kind: insert / update / upsert / delete.
        payload: A row mapping, or a tuple of row mappings for bulk insert
            and upsert.  ``None`` for delete.
        returning: ``Prefer: return=`` value.
        on_conflict: Upsert conflict target, in declared order.
        ignore_duplicates: Upsert with ``resolution=ignore-duplicates``
            instead of ``merge-duplicates``.
        default_to_null: When False, columns missing from a bulk row take
            their database default (``Prefer: missing=default``).
    """

    kind: MutationKind
    payload: Any = None
    returning: Returning = Returning.REPRESENTATION
    on_conflict: tuple[StrictStr, ...] = ()
    ignore_duplicates: StrictBool = False
    default_to_null: StrictBool = True

    @field_validator("payload", mode="before")
    @classmethod
    def _copy_payload(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return tuple(copy.deepcopy(row) for row in value)
        return copy.deepcopy(value)

    @model_validator(mode="after")
    def _check_payload(self) -> MutationSpec:
        kind = self.kind
        if kind is MutationKind.DELETE:
            if self.payload is not None:
                raise ConfigurationError("delete() does not take a payload.", "payload", self.payload)
        elif kind is MutationKind.UPDATE:
            if not isinstance(self.payload, dict) or not self.payload:
                raise ConfigurationError(
                    "update() expects a non-empty mapping of column values.",
                    "payload",
                    self.payload,
                )
        else:
            _check_rows(kind.value, self.payload)
        if self.on_conflict and kind is not MutationKind.UPSERT:
            raise ConfigurationError(
                "A conflict target is only valid for upsert().", "on_conflict", self.on_conflict
            )
        for column in self.on_conflict:
            validate_identifier(column, "on_conflict")
        return self

    @property
    def rows(self) -> tuple[dict[str, Any], ...]:
        """The payload as a tuple of rows (empty for delete)."""
        if self.payload is None:
            return ()
        if isinstance(self.payload, dict):
            return (self.payload,)
        return self.payload

    @property
    def is_bulk(self) -> bool:
        return isinstance(self.payload, tuple)


class RpcSpec(FrozenModel):
    """A stored-function call.

    Attributes:
        function: Function name, exposed at ``/rpc/{function}``.
        args: Named arguments.
        read_only: Compile to ``GET`` with the arguments in the query string.
    """

    function: StrictStr
    args: dict[str, Any] = Field(default_factory=dict)
    read_only: StrictBool = False

    @field_validator("args", mode="before")
    @classmethod
    def _copy_args(cls, value: Any) -> Any:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ConfigurationError("RPC arguments must be a mapping.", "args", value)
        return copy.deepcopy(value)

    @model_validator(mode="after")
    def _check_function(self) -> RpcSpec:
        validate_identifier(self.function, "function")
        for name in self.args:
            validate_identifier(name, "args")
        return self


class QueryState(FrozenModel):
    """Everything a builder has accumulated so far.

    Attributes:
        table: Target table or view (empty for RPC states).
        schema_name: Non-default schema, sent as ``Accept-Profile`` /
            ``Content-Profile``.
        select: Top-level select items, in call order.
        embeds: Embedded resources, in call order.
        filters: Root filter nodes, joined by an implicit AND.
        order: Order specs, in call order.
        pagination: ``LimitOffset`` or ``RowRange``.
        count: Requested count mode.
        cardinality: Expected row cardinality.
        head: Issue a ``HEAD`` request (count only).
        role: Database role requested through ``X-PostgREST-Role``.
        mutation: Write operation, if any.
        rpc: Function call, if this is an RPC state.
        raw_params: Extra query parameters appended verbatim.
        transform_columns: Per-query override of the client's camelCase /
            snake_case column transform.
    """

    table: StrictStr = ""
    schema_name: StrictStr | None = None
    select: tuple[SelectItem, ...] = ()
    embeds: tuple[EmbedSpec, ...] = ()
    filters: tuple[FilterNode, ...] = ()
    order: tuple[OrderSpec, ...] = ()
    pagination: Pagination | None = None
    count: CountMode = CountMode.NONE
    cardinality: Cardinality = Cardinality.MANY
    head: StrictBool = False
    role: StrictStr | None = None
    mutation: MutationSpec | None = None
    rpc: RpcSpec | None = None
    raw_params: tuple[tuple[str, str], ...] = ()
    transform_columns: StrictBool | None = None

    @model_validator(mode="after")
    def _check_invariants(self) -> QueryState:
        if self.rpc is None:
            validate_identifier(self.table, "table")
        elif self.table:
            raise ConfigurationError(
                "A state targets either a table or a function, not both.", "table", self.table
            )
        if self.rpc is not None and self.mutation is not None:
            raise ConfigurationError("RPC calls cannot carry a mutation.", "mutation", self.mutation.kind)
        if self.schema_name is not None:
            validate_identifier(self.schema_name, "schema")
        if self.role is not None:
            validate_identifier(self.role, "role")
        self._check_cardinality()
        self._check_mutation()
        return self

    def _check_cardinality(self) -> None:
        if self.cardinality is Cardinality.MANY:
            return
        page = self.pagination
        if isinstance(page, LimitOffset) and page.limit is not None and page.limit > 1:
            raise ConfigurationError(
                f"{self.cardinality.value}() cannot be combined with limit({page.limit}).",
                "limit",
                page.limit,
            )
        if isinstance(page, RowRange) and page.limit > 1:
            raise ConfigurationError(
                f"{self.cardinality.value}() cannot be combined with a range of {page.limit} rows.",
                "range",
                (page.start, page.end),
            )

    def _check_mutation(self) -> None:
        mutation = self.mutation
        if mutation is None:
            return
        if self.head:
            raise ConfigurationError("head() is only valid for reads.", "head", mutation.kind.value)
        if mutation.kind in (MutationKind.INSERT, MutationKind.UPSERT) and self.filters:
            raise ConfigurationError(
                f"{mutation.kind.value}() does not accept filters.",
                "filters",
                len(self.filters),
            )

    # ------------------------------------------------------------------
    # Derivation
    # ------------------------------------------------------------------

    def evolve(self, **changes: Any) -> QueryState:
        """Return a validated copy with ``changes`` applied."""
        data = {name: getattr(self, name) for name in type(self).model_fields}
        data.update(changes)
        return type(self).model_validate(data)

    @property
    def is_read(self) -> bool:
        return self.mutation is None


def _check_rows(operation: str, payload: Any) -> None:
    if isinstance(payload, dict):
        rows: tuple[Any, ...] = (payload,)
    elif isinstance(payload, tuple):
        rows = payload
    else:
        raise ConfigurationError(
            f"{operation}() expects a mapping or a list of mappings.", "payload", payload
        )
    if not rows:
        raise ConfigurationError(f"{operation}() requires at least one row.", "payload", [])
    for row in rows:
        if not isinstance(row, dict) or not row:
            raise ConfigurationError(
                f"Every {operation}() row must be a non-empty mapping.", "payload", row
            )
        for key in row:
            if not isinstance(key, str) or not key:
                raise ConfigurationError("Row keys must be non-empty strings.", "payload", key)
