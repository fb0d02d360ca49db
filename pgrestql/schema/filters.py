"""Filter tree models.

A query's horizontal filters are a list of root nodes joined by an implicit
AND.  Each node is one of three closed, tagged variants:

* :class:`FilterCondition`: ``column`` ``operator`` ``value``.
* :class:`FilterGroup`: an ``and`` / ``or`` over child nodes (arbitrary depth).
* :class:`RawLogicalFilter`: a caller-written logical expression such as
  ``"age.lt.25,age.gt.65"`` passed through verbatim.

Shape errors are detected when the node is constructed and raised as
:class:`~pgrestql.errors.ConfigurationError`, so a malformed filter can never
reach the compiler.
"""
from __future__ import annotations

import copy
from typing import Annotated, Any, Literal, Union

from pydantic import Field, StrictBool, StrictStr, field_validator, model_validator

from pgrestql.errors import ConfigurationError
from pgrestql.schema.base import FrozenModel
from pgrestql.schema.column_path import ColumnPath
from pgrestql.schema.operators import (
    FULL_TEXT_OPERATORS,
    FilterOperator,
    LogicalOp,
)

#: Values accepted by the ``is`` operator.
IS_VALUES: dict[Any, str] = {None: "null", True: "true", False: "false"}
_IS_STRINGS = frozenset({"null", "true", "false"})


class FilterCondition(FrozenModel):
    """A single ``column=op.value`` predicate.

    Attributes:
        column: Column path (may be JSON-path or embed qualified).
        operator: The PostgREST operator.
        value: Scalar, list, range literal or ``None``.
        negate: Prefix the operator with ``not.``.
        config: Text-search configuration for the full-text operators.
    """

    kind: Literal["condition"] = "condition"
    column: StrictStr
    operator: FilterOperator
    value: Any = None
    negate: StrictBool = False
    config: StrictStr | None = None

    @field_validator("value", mode="before")
    @classmethod
    def _freeze_value(cls, value: Any) -> Any:
        return freeze_value(value)

    @model_validator(mode="after")
    def _check_shape(self) -> FilterCondition:
        ColumnPath.parse(self.column)
        op = self.operator
        if op is FilterOperator.IN:
            if isinstance(self.value, (str, bytes)) or not _is_sequence(self.value):
                raise ConfigurationError(
                    "in() expects a list of values.", "in", self.value
                )
            if len(self.value) == 0:
                raise ConfigurationError(
                    "in() requires at least one value; an empty list is ambiguous "
                    "to the gateway.",
                    "in",
                    self.value,
                )
        elif op is FilterOperator.IS:
            if not _is_valid_is_value(self.value):
                raise ConfigurationError(
                    "is() only accepts None, True or False.", "is", self.value
                )
        if self.config is not None and op not in FULL_TEXT_OPERATORS:
            raise ConfigurationError(
                f"A text-search config is only valid for full-text operators, not '{op.value}'.",
                "config",
                self.config,
            )
        return self

    @property
    def path(self) -> ColumnPath:
        return ColumnPath.parse(self.column)


class FilterGroup(FrozenModel):
    """An ``and(...)`` / ``or(...)`` over child nodes.

    Attributes:
        op: The connective.
        clauses: Child nodes, rendered in order.
        negate: Render as ``not.or(...)``.
        scope: Embedded-resource path the group applies to (``()`` for the
            top-level resource).
    """

    kind: Literal["group"] = "group"
    op: LogicalOp
    clauses: tuple[FilterNode, ...]
    negate: StrictBool = False
    scope: tuple[StrictStr, ...] = ()

    @model_validator(mode="after")
    def _check_clauses(self) -> FilterGroup:
        if not self.clauses:
            raise ConfigurationError(
                f"{self.op.value}() requires at least one condition.", self.op.value, []
            )
        return self


class RawLogicalFilter(FrozenModel):
    """A verbatim logical expression, e.g. ``or=(age.lt.25,age.gt.65)``.

    The expression is the caller's responsibility; only the enclosing
    parentheses are added when missing.
    """

    kind: Literal["raw"] = "raw"
    op: LogicalOp
    expression: StrictStr
    negate: StrictBool = False
    scope: tuple[StrictStr, ...] = ()

    @model_validator(mode="after")
    def _check_expression(self) -> RawLogicalFilter:
        if not self.expression.strip():
            raise ConfigurationError(
                f"{self.op.value}() requires a non-empty expression.",
                self.op.value,
                self.expression,
            )
        return self

    @property
    def wrapped(self) -> str:
        """The expression enclosed in exactly one pair of parentheses."""
        expr = self.expression.strip()
        if _is_wrapped(expr):
            return expr
        return f"({expr})"


FilterNode = Annotated[
    Union[FilterCondition, FilterGroup, RawLogicalFilter],
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def freeze_value(value: Any) -> Any:
    """Copy caller-owned containers so later mutation cannot leak in.

    Lists become tuples; sets become tuples in a stable order; mappings are
    deep-copied.
    """
    if isinstance(value, (list, tuple)):
        return tuple(freeze_value(v) for v in value)
    if isinstance(value, (set, frozenset)):
        return tuple(sorted((freeze_value(v) for v in value), key=repr))
    if isinstance(value, dict):
        return copy.deepcopy(value)
    return value


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset))


def _is_valid_is_value(value: Any) -> bool:
    if value is None or value is True or value is False:
        return True
    return isinstance(value, str) and value in _IS_STRINGS


def _is_wrapped(expr: str) -> bool:
    """True when the outer parentheses of ``expr`` enclose all of it."""
    if not (expr.startswith("(") and expr.endswith(")")):
        return False
    depth = 0
    in_quotes = False
    for i, ch in enumerate(expr):
        if ch == '"':
            in_quotes = not in_quotes
        elif in_quotes:
            continue
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0 and i != len(expr) - 1:
                return False
    return depth == 0


FilterGroup.model_rebuild()
