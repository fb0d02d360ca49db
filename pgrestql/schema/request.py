"""Request and raw-response descriptors exchanged with the transport."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

from pydantic_core import to_json

from pgrestql.schema.operators import Cardinality, CountMode

# Characters PostgREST reads structurally; leaving them unescaped keeps the
# query string readable in logs.
_SAFE_CHARS = ",.:()*!-_~"


@dataclass(frozen=True)
class ResponseContext:
    """What the normalizer needs to know about the originating request.

    Attributes:
        cardinality: ``maybe_single`` changes how a 406 is classified.
        count: The count mode that was requested.
        head: The request carried no body in its response.
        transform_columns: Convert response keys to camelCase.
    """

    cardinality: Cardinality = Cardinality.MANY
    count: CountMode = CountMode.NONE
    head: bool = False
    transform_columns: bool = False


@dataclass(frozen=True)
class RequestDescriptor:
    """A fully compiled HTTP request.

    ``params`` and ``headers`` are ordered tuples of pairs; the order of the
    query parameters is part of the output contract.
    """

    method: str
    path: str
    params: tuple[tuple[str, str], ...] = ()
    headers: tuple[tuple[str, str], ...] = ()
    body: Any = None
    context: ResponseContext = field(default_factory=ResponseContext)

    def query_string(self) -> str:
        """The encoded query string, without the leading ``?``."""
        return "&".join(
            f"{quote(key, safe=_SAFE_CHARS)}={quote(value, safe=_SAFE_CHARS)}"
            for key, value in self.params
        )

    def url(self, base: str = "") -> str:
        query = self.query_string()
        target = f"{base.rstrip('/')}{self.path}"
        return f"{target}?{query}" if query else target

    def header(self, name: str) -> str | None:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers:
            if key.lower() == lowered:
                return value
        return None

    def param(self, name: str) -> str | None:
        for key, value in self.params:
            if key == name:
                return value
        return None

    def content(self) -> bytes | None:
        """The body serialized as compact JSON, or ``None``."""
        if self.body is None:
            return None
        return to_json(self.body)


@dataclass(frozen=True)
class RawResponse:
    """Transport-neutral view of an HTTP response."""

    status: int
    headers: tuple[tuple[str, str], ...] = ()
    text: str = ""

    def header(self, name: str) -> str | None:
        lowered = name.lower()
        for key, value in self.headers:
            if key.lower() == lowered:
                return value
        return None
