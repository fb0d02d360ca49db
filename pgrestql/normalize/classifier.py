"""Error classification: HTTP status + PostgREST error envelope -> ErrorDescriptor.

==========  ======================================================
status      kind
==========  ======================================================
406         CardinalityError (object+json requested), else Gateway
409         ConflictError
400, 422    ValidationError
404         NotFoundError
401         AuthenticationError
403         PermissionDeniedError
429         RateLimitError (``Retry-After`` seconds recorded)
5xx         ServerError
other       GatewayError
==========  ======================================================
"""
from __future__ import annotations

import json
import re
from http import HTTPStatus
from typing import Any

from pgrestql.schema.operators import Cardinality
from pgrestql.schema.request import RawResponse, ResponseContext
from pgrestql.schema.response import ErrorDescriptor, ErrorKind

#: PostgREST's code for "JSON object requested, multiple (or no) rows returned".
CARDINALITY_CODE = "PGRST116"

_ROW_COUNT_RE = re.compile(r"(\d+)\s+rows?")

_STATUS_KINDS: dict[int, ErrorKind] = {
    400: ErrorKind.VALIDATION,
    401: ErrorKind.AUTHENTICATION,
    403: ErrorKind.PERMISSION_DENIED,
    404: ErrorKind.NOT_FOUND,
    409: ErrorKind.CONFLICT,
    422: ErrorKind.VALIDATION,
    429: ErrorKind.RATE_LIMIT,
}


class ErrorClassifier:
    """Maps a non-success response onto the :class:`ErrorKind` taxonomy."""

    def classify(self, raw: RawResponse, context: ResponseContext) -> ErrorDescriptor:
        envelope = parse_error_body(raw)
        kind = self.kind_for(raw.status, envelope, context)
        return ErrorDescriptor(
            kind=kind,
            message=_message(envelope, raw.status),
            status=raw.status,
            code=_as_text(envelope.get("code")),
            details=envelope.get("details"),
            hint=envelope.get("hint"),
            retry_after=_retry_after(raw) if kind is ErrorKind.RATE_LIMIT else None,
        )

    def kind_for(
        self, status: int, envelope: dict[str, Any], context: ResponseContext
    ) -> ErrorKind:
        if status == 406:
            if context.cardinality is not Cardinality.MANY or envelope.get("code") == CARDINALITY_CODE:
                return ErrorKind.CARDINALITY
            return ErrorKind.GATEWAY
        kind = _STATUS_KINDS.get(status)
        if kind is not None:
            return kind
        if 500 <= status < 600:
            return ErrorKind.SERVER
        return ErrorKind.GATEWAY


def parse_error_body(raw: RawResponse) -> dict[str, Any]:
    """Return the ``{message, details, hint, code}`` envelope.

    Non-JSON bodies become ``{"message": text}``.
    """
    text = raw.text.strip()
    if not text:
        return {}
    try:
        body = json.loads(text)
    except ValueError:
        return {"message": text}
    if isinstance(body, dict):
        return body
    return {"message": text}


def matched_rows(descriptor: ErrorDescriptor) -> int | None:
    """Row count reported by a cardinality error, when the server gave one."""
    for source in (descriptor.details, descriptor.message):
        if isinstance(source, str):
            match = _ROW_COUNT_RE.search(source)
            if match:
                return int(match.group(1))
    return None


def _message(envelope: dict[str, Any], status: int) -> str:
    for key in ("message", "details"):
        value = envelope.get(key)
        if value:
            return str(value)
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return f"HTTP {status}"


def _as_text(value: Any) -> str | None:
    return None if value is None else str(value)


def _retry_after(raw: RawResponse) -> float | None:
    value = raw.header("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None
