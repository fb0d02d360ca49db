"""camelCase <-> snake_case column-name transform.

Outbound column references and payload keys are converted to snake_case;
inbound response keys are converted back to camelCase.  Nested mappings and
lists of mappings are converted recursively.
"""
from __future__ import annotations

import re
from typing import Any

from pgrestql.schema.column_path import ColumnPath

_UPPER_RE = re.compile(r"[A-Z]")
_SNAKE_RE = re.compile(r"_([a-z])")


def camel_to_snake(name: str) -> str:
    """``firstName`` -> ``first_name``."""
    return _UPPER_RE.sub(lambda m: "_" + m.group(0).lower(), name)


def snake_to_camel(name: str) -> str:
    """``first_name`` -> ``firstName``."""
    return _SNAKE_RE.sub(lambda m: m.group(1).upper(), name)


def keys_to_snake(value: Any) -> Any:
    return _transform_keys(value, camel_to_snake)


def keys_to_camel(value: Any) -> Any:
    return _transform_keys(value, snake_to_camel)


def _transform_keys(value: Any, fn: Any) -> Any:
    if isinstance(value, dict):
        return {
            (fn(k) if isinstance(k, str) else k): _transform_keys(v, fn)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [_transform_keys(v, fn) for v in value]
    return value


def column_to_snake(ref: str) -> str:
    """Convert the column part of a column path, keeping qualifiers intact."""
    if ref == "*":
        return ref
    return str(ColumnPath.parse(ref).rename(camel_to_snake))
