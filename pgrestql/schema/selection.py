"""Vertical-filtering (``select=``) models.

``SelectItem`` is a closed union:

* :class:`ColumnItem`: a plain column (``name``) or ``*``.
* :class:`AliasedItem`: ``alias:column``.
* :class:`RawItem`: a verbatim expression.  Raw items are inserted into the
  select string unescaped; the caller owns their validity.
* :class:`AggregateItem`: ``alias:column.sum()`` or ``count()``.

:class:`EmbedSpec` describes an embedded (joined) resource and carries its
own select / filter / order sub-state, recursively.

String input from the fluent API is classified by :func:`parse_select_items`.
"""
from __future__ import annotations

import re
from typing import Annotated, Literal, Union

from pydantic import Field, StrictBool, StrictInt, StrictStr, model_validator

from pgrestql.errors import ConfigurationError
from pgrestql.schema.base import FrozenModel
from pgrestql.schema.column_path import ColumnPath, validate_identifier
from pgrestql.schema.filters import FilterNode
from pgrestql.schema.modifiers import OrderSpec
from pgrestql.schema.operators import AggregateFunction

_ALIAS_COLON_RE = re.compile(r"^\s*([A-Za-z_][A-Za-z0-9_$]*)\s*:\s*([^:()\s,][^()\s,]*)\s*$")
_ALIAS_AS_RE = re.compile(r"^\s*(.+?)\s+[Aa][Ss]\s+([A-Za-z_][A-Za-z0-9_$]*)\s*$")


class ColumnItem(FrozenModel):
    """A plain column, ``*``, or a JSON-path column."""

    kind: Literal["column"] = "column"
    name: StrictStr

    @model_validator(mode="after")
    def _check_name(self) -> ColumnItem:
        if self.name != "*":
            ColumnPath.parse(self.name)
        return self


class AliasedItem(FrozenModel):
    """A renamed column rendered as ``alias:column``."""

    kind: Literal["aliased"] = "aliased"
    alias: StrictStr
    column: StrictStr

    @model_validator(mode="after")
    def _check_parts(self) -> AliasedItem:
        validate_identifier(self.alias, "alias")
        ColumnPath.parse(self.column)
        return self


class RawItem(FrozenModel):
    """A caller-supplied select expression, passed through unescaped."""

    kind: Literal["raw"] = "raw"
    expression: StrictStr

    @model_validator(mode="after")
    def _check_expression(self) -> RawItem:
        if not self.expression.strip():
            raise ConfigurationError("Select expression must be non-empty.", "select", self.expression)
        return self


class AggregateItem(FrozenModel):
    """An aggregate rendered as ``[alias:]column.fn()``, or ``count()`` over rows."""

    kind: Literal["aggregate"] = "aggregate"
    function: AggregateFunction
    column: StrictStr | None = None
    alias: StrictStr | None = None

    @model_validator(mode="after")
    def _check_parts(self) -> AggregateItem:
        if self.column is None:
            if self.function is not AggregateFunction.COUNT:
                raise ConfigurationError(
                    f"{self.function.value}() needs a column.", "aggregate", self.function.value
                )
        else:
            ColumnPath.parse(self.column)
        if self.alias is not None:
            validate_identifier(self.alias, "alias")
        return self


SelectItem = Annotated[
    Union[ColumnItem, AliasedItem, RawItem, AggregateItem],
    Field(discriminator="kind"),
]


class EmbedSpec(FrozenModel):
    """An embedded resource: ``alias:resource!hint!inner(select)``.

    Attributes:
        resource: Related table or view name.
        alias: Optional rename of the embedded key in the response.
        hint: Foreign-key constraint (or column) used to disambiguate.
        inner: Render with ``!inner`` so parents without a match are dropped.
        select: The embed's own select items (``*`` when empty).
        embeds: Nested embeds.
        filters: Filters scoped to this embed.
        order: Ordering of the embedded rows.
        limit: Limit of the embedded rows.
        offset: Offset of the embedded rows.
    """

    resource: StrictStr
    alias: StrictStr | None = None
    hint: StrictStr | None = None
    inner: StrictBool = False
    select: tuple[SelectItem, ...] = ()
    embeds: tuple[EmbedSpec, ...] = ()
    filters: tuple[FilterNode, ...] = ()
    order: tuple[OrderSpec, ...] = ()
    limit: StrictInt | None = None
    offset: StrictInt | None = None

    @model_validator(mode="after")
    def _check_names(self) -> EmbedSpec:
        validate_identifier(self.resource, "resource")
        if self.alias is not None:
            validate_identifier(self.alias, "alias")
        if self.hint is not None:
            validate_identifier(self.hint, "hint")
        for name, value in (("limit", self.limit), ("offset", self.offset)):
            if value is not None and value < 0:
                raise ConfigurationError(f"Embed {name} must be non-negative.", name, value)
        return self

    @property
    def key(self) -> str:
        """The name the embed is addressed by in scoped parameters."""
        return self.alias or self.resource


# ---------------------------------------------------------------------------
# String classification
# ---------------------------------------------------------------------------


def parse_select_items(*columns: str) -> list[ColumnItem | AliasedItem | RawItem]:
    """Classify fluent ``select()`` arguments into typed items.

    Each argument may itself be a comma-separated list; it is split at
    top-level commas (commas inside parentheses belong to an embed or a
    function call and are left alone).
    """
    items: list[ColumnItem | AliasedItem | RawItem] = []
    for arg in columns:
        if not isinstance(arg, str):
            raise ConfigurationError("Select arguments must be strings.", "select", arg)
        pieces = split_top_level(arg)
        if not pieces:
            raise ConfigurationError("Select expression must be non-empty.", "select", arg)
        items.extend(_classify(piece) for piece in pieces)
    return items


def _classify(piece: str) -> ColumnItem | AliasedItem | RawItem:
    if piece == "*":
        return ColumnItem(name="*")
    if _is_column(piece):
        return ColumnItem(name=piece)
    match = _ALIAS_COLON_RE.match(piece)
    if match and _is_column(match.group(2)):
        return AliasedItem(alias=match.group(1), column=match.group(2))
    match = _ALIAS_AS_RE.match(piece)
    if match and _is_column(match.group(1).strip()):
        return AliasedItem(alias=match.group(2), column=match.group(1).strip())
    return RawItem(expression=piece)


def _is_column(text: str) -> bool:
    try:
        ColumnPath.parse(text)
    except ConfigurationError:
        return False
    return True


def split_top_level(expr: str) -> list[str]:
    """Split ``expr`` at commas that are not nested in parentheses or quotes."""
    parts: list[str] = []
    depth = 0
    in_quotes = False
    current: list[str] = []
    for ch in expr:
        if ch == '"':
            in_quotes = not in_quotes
        elif not in_quotes and ch == "(":
            depth += 1
        elif not in_quotes and ch == ")":
            depth -= 1
        if ch == "," and depth == 0 and not in_quotes:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(ch)
    parts.append("".join(current).strip())
    return [p for p in parts if p]


EmbedSpec.model_rebuild()
