"""Ordering, pagination, count and cardinality modifiers."""
from __future__ import annotations

import logging
from collections.abc import Sequence

from pgrestql.compile.context import CompilationContext
from pgrestql.schema.modifiers import LimitOffset, OrderSpec, RowRange
from pgrestql.schema.operators import Cardinality, CountMode

logger = logging.getLogger(__name__)

JSON = "application/json"
OBJECT_JSON = "application/vnd.pgrst.object+json"

# ``estimated`` is sent as ``planned``; the envelope keeps the requested mode.
_COUNT_TOKENS = {
    CountMode.EXACT: "count=exact",
    CountMode.PLANNED: "count=planned",
    CountMode.ESTIMATED: "count=planned",
}


class ModifierCompiler:
    """Renders the modifiers that are not filters or selections."""

    def order_value(
        self, specs: Sequence[OrderSpec], context: CompilationContext
    ) -> str | None:
        """``name.asc,created_at.desc.nullslast`` in insertion order."""
        if not specs:
            return None
        return ",".join(self.render_order(spec, context) for spec in specs)

    def render_order(self, spec: OrderSpec, context: CompilationContext) -> str:
        token = f"{context.column(spec.column)}.{'asc' if spec.ascending else 'desc'}"
        if spec.nulls is not None:
            token = f"{token}.nulls{spec.nulls}"
        return token

    def pagination_params(
        self, pagination: LimitOffset | RowRange | None
    ) -> list[tuple[str, str]]:
        if not isinstance(pagination, LimitOffset):
            return []
        params = []
        if pagination.limit is not None:
            params.append(("limit", str(pagination.limit)))
        if pagination.offset is not None:
            params.append(("offset", str(pagination.offset)))
        return params

    def range_headers(
        self, pagination: LimitOffset | RowRange | None
    ) -> list[tuple[str, str]]:
        if not isinstance(pagination, RowRange):
            return []
        return [("Range-Unit", "items"), ("Range", pagination.header_value)]

    def count_token(self, count: CountMode) -> str | None:
        if count is CountMode.ESTIMATED:
            logger.warning(
                "count='estimated' is sent as count=planned; the total is the "
                "planner's estimate, not an exact row count."
            )
        return _COUNT_TOKENS.get(count)

    def accept(self, cardinality: Cardinality) -> str:
        if cardinality is Cardinality.MANY:
            return JSON
        return OBJECT_JSON
