"""Compilation context value object.

Packages the client-level settings every compiler stage reads (credentials,
default headers, schema and naming) into a single immutable object, so the
compilers themselves stay free of configuration lookups.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from pgrestql.compile.naming import column_to_snake

if TYPE_CHECKING:
    from pgrestql.config import ClientConfig


@dataclass(frozen=True)
class CompilationContext:
    """Immutable context for a single compilation run.

    Attributes:
        api_key: Sent as the ``apikey`` header when set.
        authorization: Precomputed ``Authorization`` header value.
        headers: Default headers sent with every request.
        schema_name: Default schema when the query does not name one.
        transform_columns: Convert camelCase column names to snake_case.
    """

    api_key: str | None = None
    authorization: str | None = None
    headers: tuple[tuple[str, str], ...] = ()
    schema_name: str | None = None
    transform_columns: bool = False

    @classmethod
    def from_config(cls, config: ClientConfig) -> CompilationContext:
        return cls(
            api_key=config.api_key,
            authorization=config.authorization,
            headers=tuple(config.headers.items()),
            schema_name=config.schema_name,
            transform_columns=config.transform_columns,
        )

    def with_transform(self, enabled: bool | None) -> CompilationContext:
        """Apply a per-query transform override (``None`` keeps the default)."""
        if enabled is None or enabled == self.transform_columns:
            return self
        return replace(self, transform_columns=enabled)

    def column(self, ref: str) -> str:
        """Return ``ref`` as it should appear on the wire."""
        if self.transform_columns:
            return column_to_snake(ref)
        return ref
