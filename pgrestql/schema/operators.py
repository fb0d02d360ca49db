"""Enums and operator families for the query state.

The operator values are the literal PostgREST tokens, so a
``FilterOperator`` member can be written straight into a query string.
"""

from __future__ import annotations

from enum import Enum

# ---------------------------------------------------------------------------
# Filter operators
# ---------------------------------------------------------------------------


class FilterOperator(str, Enum):
    """Closed set of horizontal-filter operators."""

    EQ = "eq"
    NEQ = "neq"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    LIKE = "like"
    ILIKE = "ilike"
    MATCH = "match"
    IMATCH = "imatch"
    IN = "in"
    CONTAINS = "cs"
    CONTAINED_BY = "cd"
    OVERLAPS = "ov"
    STRICTLY_LEFT = "sl"
    STRICTLY_RIGHT = "sr"
    NOT_EXTENDS_RIGHT = "nxr"
    NOT_EXTENDS_LEFT = "nxl"
    ADJACENT = "adj"
    IS = "is"
    FTS = "fts"
    PLFTS = "plfts"
    PHFTS = "phfts"
    WFTS = "wfts"


class LogicalOp(str, Enum):
    """Connectives for filter groups."""

    AND = "and"
    OR = "or"


COMPARISON_OPERATORS: frozenset[FilterOperator] = frozenset(
    {
        FilterOperator.EQ,
        FilterOperator.NEQ,
        FilterOperator.GT,
        FilterOperator.GTE,
        FilterOperator.LT,
        FilterOperator.LTE,
    }
)

PATTERN_OPERATORS: frozenset[FilterOperator] = frozenset(
    {FilterOperator.LIKE, FilterOperator.ILIKE}
)

REGEX_OPERATORS: frozenset[FilterOperator] = frozenset(
    {FilterOperator.MATCH, FilterOperator.IMATCH}
)

ARRAY_OPERATORS: frozenset[FilterOperator] = frozenset(
    {FilterOperator.CONTAINS, FilterOperator.CONTAINED_BY, FilterOperator.OVERLAPS}
)

RANGE_OPERATORS: frozenset[FilterOperator] = frozenset(
    {
        FilterOperator.STRICTLY_LEFT,
        FilterOperator.STRICTLY_RIGHT,
        FilterOperator.NOT_EXTENDS_RIGHT,
        FilterOperator.NOT_EXTENDS_LEFT,
        FilterOperator.ADJACENT,
    }
)

FULL_TEXT_OPERATORS: frozenset[FilterOperator] = frozenset(
    {
        FilterOperator.FTS,
        FilterOperator.PLFTS,
        FilterOperator.PHFTS,
        FilterOperator.WFTS,
    }
)

# Friendly spellings accepted by ``filter()`` / ``not_()`` in addition to the
# raw tokens.
OPERATOR_ALIASES: dict[str, FilterOperator] = {
    "contains": FilterOperator.CONTAINS,
    "contained_by": FilterOperator.CONTAINED_BY,
    "containedBy": FilterOperator.CONTAINED_BY,
    "overlaps": FilterOperator.OVERLAPS,
    "range_lt": FilterOperator.STRICTLY_LEFT,
    "range_gt": FilterOperator.STRICTLY_RIGHT,
    "range_gte": FilterOperator.NOT_EXTENDS_LEFT,
    "range_lte": FilterOperator.NOT_EXTENDS_RIGHT,
    "range_adjacent": FilterOperator.ADJACENT,
}


def parse_operator(op: str | FilterOperator) -> FilterOperator | None:
    """Resolve ``op`` to a :class:`FilterOperator`, or ``None`` if unknown."""
    if isinstance(op, FilterOperator):
        return op
    alias = OPERATOR_ALIASES.get(op)
    if alias is not None:
        return alias
    try:
        return FilterOperator(op)
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Modifier enums
# ---------------------------------------------------------------------------


class CountMode(str, Enum):
    """How the gateway should compute the total row count."""

    NONE = "none"
    EXACT = "exact"
    ESTIMATED = "estimated"
    PLANNED = "planned"


class Cardinality(str, Enum):
    """How many rows the caller expects back."""

    MANY = "many"
    SINGLE = "single"
    MAYBE_SINGLE = "maybe_single"


class Returning(str, Enum):
    """``Prefer: return=`` value for mutations."""

    REPRESENTATION = "representation"
    MINIMAL = "minimal"


class MutationKind(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    UPSERT = "upsert"
    DELETE = "delete"


class AggregateFunction(str, Enum):
    """Aggregates usable in ``select=`` (``amount.sum()``, ``count()``)."""

    COUNT = "count"
    SUM = "sum"
    AVG = "avg"
    MIN = "min"
    MAX = "max"
