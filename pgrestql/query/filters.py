"""Fluent filter methods shared by every builder.

Builders mix in :class:`FilterMixin` and implement ``_with_filter``; each
method validates its arguments, builds one immutable filter node and returns
a new builder.

The module-level helpers :func:`where`, :func:`any_of` and :func:`all_of`
build nodes for ``or_()`` / ``and_()`` without a builder::

    query.or_(where("age", "lt", 18), all_of(where("age", "gt", 65), where("retired", "is", True)))
    # or=(age.lt.18,and(age.gt.65,retired.is.true))
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, TypeVar

from pgrestql.errors import ConfigurationError
from pgrestql.schema.column_path import validate_identifier
from pgrestql.schema.filters import FilterCondition, FilterGroup, FilterNode, RawLogicalFilter
from pgrestql.schema.operators import FilterOperator, LogicalOp, parse_operator
from pgrestql.schema.selection import EmbedSpec

_B = TypeVar("_B", bound="FilterMixin")


# ---------------------------------------------------------------------------
# Node helpers
# ---------------------------------------------------------------------------


def where(
    column: str,
    operator: str | FilterOperator,
    value: Any = None,
    *,
    negate: bool = False,
    config: str | None = None,
) -> FilterCondition:
    """Build a single condition.  ``operator`` may carry a ``not.`` prefix."""
    if isinstance(operator, str) and operator.startswith("not."):
        operator = operator[len("not."):]
        negate = not negate
    op = parse_operator(operator)
    if op is None:
        raise ConfigurationError(f"Unknown filter operator: '{operator}'.", "operator", operator)
    return FilterCondition(column=column, operator=op, value=value, negate=negate, config=config)


def any_of(*clauses: FilterNode, negate: bool = False) -> FilterGroup:
    """``or(...)`` over ``clauses``."""
    return FilterGroup(op=LogicalOp.OR, clauses=clauses, negate=negate)


def all_of(*clauses: FilterNode, negate: bool = False) -> FilterGroup:
    """``and(...)`` over ``clauses``."""
    return FilterGroup(op=LogicalOp.AND, clauses=clauses, negate=negate)


def _scope(referenced_table: str | None) -> tuple[str, ...]:
    if referenced_table is None:
        return ()
    return tuple(
        validate_identifier(part, "referenced_table") for part in referenced_table.split(".")
    )


def _logical(
    op: LogicalOp,
    filters: tuple[str | FilterNode, ...],
    negate: bool,
    referenced_table: str | None,
) -> FilterNode:
    scope = _scope(referenced_table)
    if len(filters) == 1 and isinstance(filters[0], str):
        return RawLogicalFilter(op=op, expression=filters[0], negate=negate, scope=scope)
    if any(isinstance(f, str) for f in filters):
        raise ConfigurationError(
            f"{op.value}_() takes either one expression string or filter nodes, not both.",
            op.value,
            filters,
        )
    return FilterGroup(op=op, clauses=filters, negate=negate, scope=scope)


# ---------------------------------------------------------------------------
# Mixin
# ---------------------------------------------------------------------------


class FilterMixin:
    """Horizontal-filter methods.  Every call returns a new builder."""

    def _with_filter(self: _B, node: FilterNode) -> _B:
        raise NotImplementedError

    def _scoped_embeds(self) -> tuple[EmbedSpec, ...]:
        """Embeds a ``referenced_table`` path is resolved against."""
        raise NotImplementedError

    def _with_group(self: _B, node: FilterGroup | RawLogicalFilter) -> _B:
        level = self._scoped_embeds()
        for key in node.scope:
            match = next((embed for embed in level if embed.key == key), None)
            if match is None:
                referenced_table = ".".join(node.scope)
                raise ConfigurationError(
                    f"No embedded resource '{referenced_table}'; call embed() first.",
                    "referenced_table",
                    referenced_table,
                )
            level = match.embeds
        return self._with_filter(node)

    # Generic ------------------------------------------------------------

    def filter(
        self: _B,
        column: str,
        operator: str | FilterOperator,
        value: Any = None,
        *,
        config: str | None = None,
    ) -> _B:
        """Add ``column=operator.value``; ``operator`` may start with ``not.``."""
        return self._with_filter(where(column, operator, value, config=config))

    def not_(self: _B, column: str, operator: str | FilterOperator, value: Any = None) -> _B:
        """Add the negation of ``column=operator.value``."""
        return self._with_filter(where(column, operator, value, negate=True))

    def match_all(self: _B, values: Mapping[str, Any]) -> _B:
        """Add one ``eq`` filter per ``{column: value}`` entry."""
        if not values:
            raise ConfigurationError("match_all() requires at least one column.", "match_all", values)
        builder = self
        for column, value in values.items():
            builder = builder.eq(column, value)
        return builder

    # Comparison ---------------------------------------------------------

    def eq(self: _B, column: str, value: Any) -> _B:
        return self.filter(column, FilterOperator.EQ, value)

    def neq(self: _B, column: str, value: Any) -> _B:
        return self.filter(column, FilterOperator.NEQ, value)

    def gt(self: _B, column: str, value: Any) -> _B:
        return self.filter(column, FilterOperator.GT, value)

    def gte(self: _B, column: str, value: Any) -> _B:
        return self.filter(column, FilterOperator.GTE, value)

    def lt(self: _B, column: str, value: Any) -> _B:
        return self.filter(column, FilterOperator.LT, value)

    def lte(self: _B, column: str, value: Any) -> _B:
        return self.filter(column, FilterOperator.LTE, value)

    def between(self: _B, column: str, low: Any, high: Any) -> _B:
        """``low <= column <= high`` as a ``gte`` plus an ``lte`` filter."""
        return self.gte(column, low).lte(column, high)

    def not_between(self: _B, column: str, low: Any, high: Any) -> _B:
        """``column < low OR column > high``."""
        return self._with_filter(
            any_of(where(column, FilterOperator.LT, low), where(column, FilterOperator.GT, high))
        )

    # Pattern and regex --------------------------------------------------

    def like(self: _B, column: str, pattern: str) -> _B:
        """Case-sensitive pattern; ``*`` and ``%`` both act as wildcards."""
        return self.filter(column, FilterOperator.LIKE, pattern)

    def ilike(self: _B, column: str, pattern: str) -> _B:
        return self.filter(column, FilterOperator.ILIKE, pattern)

    def match(self: _B, column: str, pattern: str) -> _B:
        """POSIX regular expression match (``~``)."""
        return self.filter(column, FilterOperator.MATCH, pattern)

    def imatch(self: _B, column: str, pattern: str) -> _B:
        return self.filter(column, FilterOperator.IMATCH, pattern)

    # Membership and null ------------------------------------------------

    def in_(self: _B, column: str, values: Iterable[Any]) -> _B:
        """``column=in.(v1,v2,...)``.  An empty list is rejected."""
        if isinstance(values, (str, bytes)) or not isinstance(values, Iterable):
            raise ConfigurationError("in_() expects a list of values.", "in", values)
        return self.filter(column, FilterOperator.IN, list(values))

    def is_(self: _B, column: str, value: bool | None) -> _B:
        """``column=is.null|true|false``."""
        return self.filter(column, FilterOperator.IS, value)

    # Array and range ----------------------------------------------------

    def contains(self: _B, column: str, value: Any) -> _B:
        return self.filter(column, FilterOperator.CONTAINS, value)

    def contained_by(self: _B, column: str, value: Any) -> _B:
        return self.filter(column, FilterOperator.CONTAINED_BY, value)

    def overlaps(self: _B, column: str, value: Any) -> _B:
        return self.filter(column, FilterOperator.OVERLAPS, value)

    def range_lt(self: _B, column: str, value: Any) -> _B:
        return self.filter(column, FilterOperator.STRICTLY_LEFT, value)

    def range_gt(self: _B, column: str, value: Any) -> _B:
        return self.filter(column, FilterOperator.STRICTLY_RIGHT, value)

    def range_gte(self: _B, column: str, value: Any) -> _B:
        return self.filter(column, FilterOperator.NOT_EXTENDS_LEFT, value)

    def range_lte(self: _B, column: str, value: Any) -> _B:
        return self.filter(column, FilterOperator.NOT_EXTENDS_RIGHT, value)

    def range_adjacent(self: _B, column: str, value: Any) -> _B:
        return self.filter(column, FilterOperator.ADJACENT, value)

    # Full-text ----------------------------------------------------------

    def fts(self: _B, column: str, query: str, config: str | None = None) -> _B:
        return self.filter(column, FilterOperator.FTS, query, config=config)

    def plfts(self: _B, column: str, query: str, config: str | None = None) -> _B:
        return self.filter(column, FilterOperator.PLFTS, query, config=config)

    def phfts(self: _B, column: str, query: str, config: str | None = None) -> _B:
        return self.filter(column, FilterOperator.PHFTS, query, config=config)

    def wfts(self: _B, column: str, query: str, config: str | None = None) -> _B:
        return self.filter(column, FilterOperator.WFTS, query, config=config)

    # Logical ------------------------------------------------------------

    def or_(
        self: _B,
        *filters: str | FilterNode,
        negate: bool = False,
        referenced_table: str | None = None,
    ) -> _B:
        """Add an ``or`` group.

        Accepts either one PostgREST expression string
        (``"age.lt.25,age.gt.65"``, parentheses optional) or filter nodes
        built with :func:`where`, :func:`any_of` and :func:`all_of`.
        ``referenced_table`` scopes the group to an embedded resource.
        """
        if not filters:
            raise ConfigurationError("or_() requires at least one condition.", "or", [])
        return self._with_group(_logical(LogicalOp.OR, filters, negate, referenced_table))

    def and_(
        self: _B,
        *filters: str | FilterNode,
        negate: bool = False,
        referenced_table: str | None = None,
    ) -> _B:
        """Add an explicit ``and`` group (see :meth:`or_`)."""
        if not filters:
            raise ConfigurationError("and_() requires at least one condition.", "and", [])
        return self._with_group(_logical(LogicalOp.AND, filters, negate, referenced_table))
