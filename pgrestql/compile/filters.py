"""Filter operator encoder.

Turns ``(column, operator, value)`` triples, and the filter trees built from
them, into PostgREST query-string tokens::

    FilterEncoder().encode("id", "in", [1, 2, 3])       # 'id=in.(1,2,3)'
    FilterEncoder().encode("name", "ilike", "*ann*")    # 'name=ilike.%ann%'
    FilterEncoder().encode("body", "fts", "cat", config="english")
                                                        # 'body=fts(english).cat'

Group nodes render as one parameter whose value nests the children inline::

    or=(age.lt.18,and(age.gt.65,retired.is.true))

The encoder holds no state beyond its registry; encoding the same input twice
yields identical text.
"""
from __future__ import annotations

import re
from typing import Any

from pgrestql.compile.context import CompilationContext
from pgrestql.compile.registry import OperatorRegistry
from pgrestql.errors import ConfigurationError
from pgrestql.schema.column_path import ColumnPath, validate_identifier
from pgrestql.schema.filters import FilterCondition, FilterGroup, FilterNode, RawLogicalFilter
from pgrestql.schema.operators import (
    ARRAY_OPERATORS,
    FULL_TEXT_OPERATORS,
    FilterOperator,
    parse_operator,
)

_GROUP_RESERVED_RE = re.compile(r'[,()"]')

_DEFAULT_CONTEXT = CompilationContext()


class FilterEncoder:
    """Encodes filter conditions and filter trees.

    Args:
        registry: Operator value encoders.  Defaults to a fresh copy of the
            built-in registry.
    """

    def __init__(self, registry: OperatorRegistry | None = None) -> None:
        self._registry = registry or OperatorRegistry.default()

    # ------------------------------------------------------------------
    # Single conditions
    # ------------------------------------------------------------------

    def token(
        self,
        operator: str | FilterOperator,
        value: Any,
        negate: bool = False,
        config: str | None = None,
    ) -> str:
        """Render ``[not.]op[(config)].value``."""
        op = _resolve_operator(operator)
        return f"{_head(op, negate, config)}.{self.render_value(op, value)}"

    def render_value(self, operator: str | FilterOperator, value: Any) -> str:
        """Render the value part of a token with the operator's encoder."""
        op = _resolve_operator(operator)
        encoder = self._registry.get(op)
        if encoder is None:
            raise ConfigurationError(
                f"No encoder registered for operator '{op.value}'.", "operator", op.value
            )
        return encoder(value)

    def encode_pair(
        self,
        column: str,
        operator: str | FilterOperator,
        value: Any,
        negate: bool = False,
        config: str | None = None,
    ) -> tuple[str, str]:
        """Return the ``(column, token)`` query parameter."""
        ColumnPath.parse(column)
        return column, self.token(operator, value, negate, config)

    def encode(
        self,
        column: str,
        operator: str | FilterOperator,
        value: Any,
        negate: bool = False,
        config: str | None = None,
    ) -> str:
        """Return ``column=token``."""
        key, token = self.encode_pair(column, operator, value, negate, config)
        return f"{key}={token}"

    def encode_inline(
        self,
        column: str,
        operator: str | FilterOperator,
        value: Any,
        negate: bool = False,
        config: str | None = None,
    ) -> str:
        """Return ``column.token``, the form used inside ``or(...)``/``and(...)``."""
        ColumnPath.parse(column)
        op = _resolve_operator(operator)
        rendered = self.render_value(op, value)
        if _needs_group_quotes(op, value, rendered):
            rendered = _quote(rendered)
        return f"{column}.{_head(op, negate, config)}.{rendered}"

    # ------------------------------------------------------------------
    # Filter trees
    # ------------------------------------------------------------------

    def encode_node(
        self,
        node: FilterNode,
        context: CompilationContext = _DEFAULT_CONTEXT,
        prefix: tuple[str, ...] = (),
    ) -> tuple[str, str]:
        """Render a root filter node as one query parameter.

        Args:
            node: The root node.
            context: Supplies the column-name transform.
            prefix: Embedded-resource path the node is scoped to.
        """
        if isinstance(node, FilterCondition):
            key = _qualify(prefix, context.column(node.column))
            return key, self.token(node.operator, node.value, node.negate, node.config)
        op = f"not.{node.op.value}" if node.negate else node.op.value
        key = _qualify(prefix + node.scope, op)
        if isinstance(node, RawLogicalFilter):
            return key, node.wrapped
        return key, self._group_body(node, context)

    def _group_body(self, group: FilterGroup, context: CompilationContext) -> str:
        return "(" + ",".join(self._inline_node(c, context) for c in group.clauses) + ")"

    def _inline_node(self, node: FilterNode, context: CompilationContext) -> str:
        if isinstance(node, FilterCondition):
            return self.encode_inline(
                context.column(node.column), node.operator, node.value, node.negate, node.config
            )
        op = f"not.{node.op.value}" if node.negate else node.op.value
        if isinstance(node, RawLogicalFilter):
            return f"{op}{node.wrapped}"
        return f"{op}{self._group_body(node, context)}"


def _resolve_operator(operator: str | FilterOperator) -> FilterOperator:
    op = parse_operator(operator)
    if op is None:
        raise ConfigurationError(f"Unknown filter operator: '{operator}'.", "operator", operator)
    return op


def _head(op: FilterOperator, negate: bool, config: str | None) -> str:
    head = op.value
    if config is not None:
        if op not in FULL_TEXT_OPERATORS:
            raise ConfigurationError(
                f"A text-search config is only valid for full-text operators, not '{op.value}'.",
                "config",
                config,
            )
        head = f"{head}({validate_identifier(config, 'config')})"
    if negate:
        head = f"not.{head}"
    return head


def _needs_group_quotes(op: FilterOperator, value: Any, rendered: str) -> bool:
    # ``in.(...)`` lists and ``{...}`` array literals are group-safe as rendered.
    if op is FilterOperator.IN:
        return False
    if op in ARRAY_OPERATORS and isinstance(value, (list, tuple, set, frozenset)):
        return False
    return bool(_GROUP_RESERVED_RE.search(rendered))


def _quote(rendered: str) -> str:
    escaped = rendered.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _qualify(prefix: tuple[str, ...], name: str) -> str:
    return ".".join((*prefix, name))
