"""Ordering and pagination models."""
from __future__ import annotations

from typing import Literal

from pydantic import StrictBool, StrictInt, StrictStr, model_validator

from pgrestql.errors import ConfigurationError
from pgrestql.schema.base import FrozenModel
from pgrestql.schema.column_path import ColumnPath


class OrderSpec(FrozenModel):
    """A single ``column.asc|desc[.nullsfirst|.nullslast]`` item.

    Attributes:
        column: Column path to order by.
        ascending: Sort direction.
        nulls: Explicit null placement, or ``None`` for the server default.
    """

    column: StrictStr
    ascending: StrictBool = True
    nulls: Literal["first", "last"] | None = None

    @model_validator(mode="after")
    def _check_column(self) -> OrderSpec:
        ColumnPath.parse(self.column)
        return self


class LimitOffset(FrozenModel):
    """Query-parameter pagination (``limit=`` / ``offset=``)."""

    kind: Literal["limit_offset"] = "limit_offset"
    limit: StrictInt | None = None
    offset: StrictInt | None = None

    @model_validator(mode="after")
    def _check_bounds(self) -> LimitOffset:
        if self.limit is not None and self.limit < 0:
            raise ConfigurationError("Limit must be a non-negative integer.", "limit", self.limit)
        if self.offset is not None and self.offset < 0:
            raise ConfigurationError("Offset must be a non-negative integer.", "offset", self.offset)
        return self


class RowRange(FrozenModel):
    """Header pagination (``Range: start-end``), both bounds inclusive."""

    kind: Literal["range"] = "range"
    start: StrictInt
    end: StrictInt

    @model_validator(mode="after")
    def _check_bounds(self) -> RowRange:
        if self.start < 0:
            raise ConfigurationError("Range start must be non-negative.", "range", self.start)
        if self.end < self.start:
            raise ConfigurationError(
                f"Range end ({self.end}) must not precede its start ({self.start}).",
                "range",
                (self.start, self.end),
            )
        return self

    @property
    def limit(self) -> int:
        return self.end - self.start + 1

    @property
    def offset(self) -> int:
        return self.start

    @property
    def header_value(self) -> str:
        return f"{self.start}-{self.end}"
