"""Normalized response models.

A :class:`ResponseEnvelope` is built once per executed request and never
changes afterwards.  Execution failures live in its ``error`` field as an
:class:`ErrorDescriptor`; nothing is raised unless the caller asks for it
with :meth:`ResponseEnvelope.raise_for_error`.
"""
from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

from pgrestql import errors
from pgrestql.schema.operators import CountMode

_FROZEN = ConfigDict(extra="forbid", frozen=True)


class ErrorKind(str, Enum):
    """Stable execution-error taxonomy."""

    CARDINALITY = "CardinalityError"
    CONFLICT = "ConflictError"
    VALIDATION = "ValidationError"
    NOT_FOUND = "NotFoundError"
    AUTHENTICATION = "AuthenticationError"
    PERMISSION_DENIED = "PermissionDeniedError"
    RATE_LIMIT = "RateLimitError"
    SERVER = "ServerError"
    TRANSPORT = "TransportError"
    GATEWAY = "GatewayError"


_EXCEPTIONS: dict[ErrorKind, type[errors.ExecutionError]] = {
    ErrorKind.CARDINALITY: errors.CardinalityError,
    ErrorKind.CONFLICT: errors.ConflictError,
    ErrorKind.VALIDATION: errors.ValidationError,
    ErrorKind.NOT_FOUND: errors.NotFoundError,
    ErrorKind.AUTHENTICATION: errors.AuthenticationError,
    ErrorKind.PERMISSION_DENIED: errors.PermissionDeniedError,
    ErrorKind.RATE_LIMIT: errors.RateLimitError,
    ErrorKind.SERVER: errors.ServerError,
    ErrorKind.TRANSPORT: errors.TransportError,
    ErrorKind.GATEWAY: errors.GatewayError,
}


class ErrorDescriptor(BaseModel):
    """A classified execution error.

    ``message``, ``details``, ``hint`` and ``code`` are copied verbatim from
    the gateway's JSON error envelope when one was returned.

    Attributes:
        kind: Taxonomy bucket.
        message: Human-readable message.
        status: HTTP status, or ``None`` for transport failures.
        code: Server (SQLSTATE / PGRST) error code.
        details: Server-provided details.
        hint: Server-provided hint.
        retry_after: Seconds from ``Retry-After`` on a 429.
    """

    model_config = _FROZEN

    kind: ErrorKind
    message: str
    status: int | None = None
    code: str | None = None
    details: Any = None
    hint: Any = None
    retry_after: float | None = None

    def to_exception(self) -> errors.ExecutionError:
        return _EXCEPTIONS[self.kind](self)


class CountInfo(BaseModel):
    """Total row count reported through ``Content-Range``."""

    model_config = _FROZEN

    total: int
    mode: CountMode

    @property
    def is_exact(self) -> bool:
        return self.mode is CountMode.EXACT


class ResponseEnvelope(BaseModel):
    """The uniform result of one terminal call.

    Attributes:
        data: A row, a list of rows, or ``None``.
        count: Server-reported total, when a count was requested.
        error: The classified error, if the call failed.
        status: Raw HTTP status (``None`` when no response was received).
    """

    model_config = _FROZEN

    data: Any = None
    count: CountInfo | None = None
    error: ErrorDescriptor | None = None
    status: int | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> ResponseEnvelope:
        """Raise the matching :mod:`pgrestql.errors` exception, if any.

        Returns:
            ``self`` when there is no error, so calls can be chained.
        """
        if self.error is not None:
            raise self.error.to_exception()
        return self


class PageInfo(BaseModel):
    """Position of one page within a counted result set.

    ``total_items`` and ``total_pages`` are ``None`` when the gateway did not
    report a total; ``has_next_page`` is then inferred from a full page.
    """

    model_config = _FROZEN

    page: int
    page_size: int
    offset: int
    total_items: int | None = None
    total_pages: int | None = None
    has_next_page: bool
    has_previous_page: bool


class PaginatedEnvelope(ResponseEnvelope):
    """A :class:`ResponseEnvelope` for a page of rows, with its position."""

    pagination: PageInfo | None = None
