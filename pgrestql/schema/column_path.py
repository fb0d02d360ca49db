"""Typed column-path class.

A filter or order target may be a bare column (``age``), an embedded
resource's column (``author.name``), a JSON path (``data->address->>city``)
or any of those with a cast (``price::text``).  ``ColumnPath`` owns the
parsing and validation so the builders never split strings themselves.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Callable

from pgrestql.errors import ConfigurationError

#: A PostgreSQL identifier as PostgREST exposes it in URLs.
IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]*$")

_COLUMN_RE = re.compile(
    r"""^
    (?P<qualifiers>(?:[A-Za-z_][A-Za-z0-9_$]*\.)*)       # embed qualifiers
    (?P<column>[A-Za-z_][A-Za-z0-9_$]*)
    (?P<json>(?:->>?(?:[A-Za-z0-9_$-]+|'[^']*'))*)      # JSON path arrows
    (?P<cast>::[A-Za-z_][A-Za-z0-9_ ]*(?:\[\])?)?
    $""",
    re.VERBOSE,
)

MAX_IDENTIFIER_LENGTH = 63


def validate_identifier(name: object, field: str) -> str:
    """Return ``name`` if it is a usable table/schema/function identifier.

    Raises:
        ConfigurationError: If ``name`` is empty, too long or malformed.
    """
    if not isinstance(name, str) or not name:
        raise ConfigurationError(f"{field} must be a non-empty string.", field, name)
    if len(name) > MAX_IDENTIFIER_LENGTH:
        raise ConfigurationError(
            f"{field} cannot exceed {MAX_IDENTIFIER_LENGTH} characters.", field, name
        )
    if not IDENTIFIER_RE.match(name):
        raise ConfigurationError(
            f"{field} must start with a letter or underscore and contain only "
            "letters, digits, underscores or '$'.",
            field,
            name,
        )
    return name


@dataclass(frozen=True)
class ColumnPath:
    """A parsed column reference.

    Attributes:
        qualifiers: Embedded-resource names leading to the column, outermost
            first (empty for a column of the queried table).
        column: The column name.
        json_path: JSON arrow suffix, e.g. ``"->address->>city"``.
        cast: Cast suffix including ``::``, e.g. ``"::text"``.
    """

    qualifiers: tuple[str, ...]
    column: str
    json_path: str = ""
    cast: str = ""

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def parse(cls, ref: object) -> ColumnPath:
        """Parse a column reference string.

        Raises:
            ConfigurationError: If ``ref`` is not a well-formed column path.
        """
        if not isinstance(ref, str) or not ref:
            raise ConfigurationError("Column must be a non-empty string.", "column", ref)
        match = _COLUMN_RE.match(ref)
        if match is None:
            raise ConfigurationError(f"Malformed column path: '{ref}'.", "column", ref)
        qualifiers = tuple(q for q in match.group("qualifiers").split(".") if q)
        return cls(
            qualifiers=qualifiers,
            column=match.group("column"),
            json_path=match.group("json") or "",
            cast=match.group("cast") or "",
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def qualified(self) -> bool:
        """True when the path points into an embedded resource."""
        return bool(self.qualifiers)

    def rename(self, fn: Callable[[str], str]) -> ColumnPath:
        """Return a copy with ``fn`` applied to the column name only."""
        return replace(self, column=fn(self.column))

    def __str__(self) -> str:
        prefix = "".join(f"{q}." for q in self.qualifiers)
        return f"{prefix}{self.column}{self.json_path}{self.cast}"
