"""Value formatting for query-string tokens.

Every function here is pure: the same value always yields the same text,
independent of locale or interpreter state.
"""
from __future__ import annotations

import datetime
import re
from collections.abc import Mapping
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic_core import to_json

# Reserved characters inside ``in.(...)`` lists.
_LIST_RESERVED_RE = re.compile(r'[,()"\\\s]')
# Reserved characters inside Postgres array literals ``{...}``.
_ARRAY_RESERVED_RE = re.compile(r'[,{}"\\\s]')


def format_scalar(value: Any) -> str:
    """Render a single value as PostgREST expects it after the operator.

    ``None`` -> ``null``, booleans -> ``true``/``false``, temporal values in
    ISO 8601, ``Decimal``/``UUID`` via ``str``, mappings and sequences as
    compact JSON.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return format_scalar(value.value)
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float, Decimal, UUID)):
        return str(value)
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, (Mapping, list, tuple)):
        return to_json(value).decode()
    return str(value)


def _quote(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def format_list_item(value: Any) -> str:
    """Format one ``in.(...)`` item, double-quoting it when needed."""
    text = format_scalar(value)
    if text == "" or _LIST_RESERVED_RE.search(text):
        return _quote(text)
    return text


def format_in_list(values: Any) -> str:
    """``[1, 2, 3]`` -> ``(1,2,3)``."""
    return "(" + ",".join(format_list_item(v) for v in values) + ")"


def format_array_literal(values: Any) -> str:
    """``["a", "b c"]`` -> ``{a,"b c"}`` (Postgres array literal)."""
    items = []
    for value in values:
        text = format_scalar(value)
        if text == "" or _ARRAY_RESERVED_RE.search(text):
            text = _quote(text)
        items.append(text)
    return "{" + ",".join(items) + "}"


def format_json(value: Any) -> str:
    return to_json(value).decode()


def flatten_rpc_arg(value: Any) -> str:
    """Format a function argument carried in the query string.

    Lists become Postgres array literals; everything else formats as a scalar.
    """
    if isinstance(value, (list, tuple)):
        return format_array_literal(value)
    return format_scalar(value)
