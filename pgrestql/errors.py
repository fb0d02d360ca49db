"""Custom exception hierarchy for pgrestql.

All public errors inherit from PgrestqlError so callers can catch the base
class for any pgrestql-specific failure.

There are two tiers:

* :class:`ConfigurationError`: invalid builder usage, raised synchronously
  before any request is built.
* :class:`ExecutionError` and its subclasses: failures only known after a
  round trip.  These are normally *returned* inside
  :class:`~pgrestql.schema.response.ResponseEnvelope` and only raised when a
  caller opts in via ``ResponseEnvelope.raise_for_error()``.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pgrestql.schema.response import ErrorDescriptor


class PgrestqlError(Exception):
    """Base exception for all pgrestql errors."""


class ConfigurationError(PgrestqlError):
    """Raised when the builder is used in a way that cannot compile.

    Detected at call time, before any request is assembled, so the
    developer gets a clear message instead of an ambiguous server error.

    Args:
        message: Human-readable description.
        field: The builder argument at fault (e.g. ``"in"``, ``"limit"``).
        value: The offending value.
    """

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any = None,
    ) -> None:
        super().__init__(message)
        self.field = field
        self.value = value

    def to_error_response(self) -> dict[str, Any]:
        """Returns a structured description of the misuse."""
        return {
            "error": "CONFIGURATION_ERROR",
            "message": str(self),
            "details": {"field": self.field, "value": self.value},
        }


class ExecutionError(PgrestqlError):
    """Base class for errors determined by a round trip.

    Args:
        descriptor: The normalized error returned by the classifier.
    """

    def __init__(self, descriptor: ErrorDescriptor) -> None:
        super().__init__(descriptor.message)
        self.descriptor = descriptor

    @property
    def status(self) -> int | None:
        return self.descriptor.status

    @property
    def code(self) -> str | None:
        return self.descriptor.code


class CardinalityError(ExecutionError):
    """A single-row request matched zero or several rows."""


class ConflictError(ExecutionError):
    """Unique or foreign-key violation (HTTP 409)."""


class ValidationError(ExecutionError):
    """The gateway rejected the request (HTTP 400 / 422)."""


class NotFoundError(ExecutionError):
    """Unknown resource or route (HTTP 404)."""


class AuthenticationError(ExecutionError):
    """Missing or invalid credentials (HTTP 401)."""


class PermissionDeniedError(ExecutionError):
    """Authenticated role lacks the privilege (HTTP 403)."""


class RateLimitError(ExecutionError):
    """The gateway asked the caller to slow down (HTTP 429)."""


class ServerError(ExecutionError):
    """The gateway or database failed (HTTP 5xx)."""


class TransportError(ExecutionError):
    """No response was received (network failure, timeout)."""


class GatewayError(ExecutionError):
    """Any other non-success response."""
