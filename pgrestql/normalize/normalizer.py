"""RawResponse -> ResponseEnvelope.

The normalizer is the only stage that depends on how the request was
compiled: a ``maybe_single`` read that matched no rows comes back from the
gateway as a 406, and is turned into ``data=None, error=None`` here.  Every
other error is surfaced unchanged.
"""
from __future__ import annotations

import json
import logging
import math
import re
from typing import Any

from pgrestql.compile.naming import keys_to_camel
from pgrestql.normalize.classifier import ErrorClassifier, matched_rows
from pgrestql.schema.operators import Cardinality, CountMode
from pgrestql.schema.request import RawResponse, ResponseContext
from pgrestql.schema.response import (
    CountInfo,
    ErrorDescriptor,
    ErrorKind,
    PageInfo,
    PaginatedEnvelope,
    ResponseEnvelope,
)

logger = logging.getLogger(__name__)

_CONTENT_RANGE_RE = re.compile(r"^\s*(?:(\d+)-(\d+)|\*)\s*/\s*(\d+|\*)\s*$")


class ResponseNormalizer:
    """Builds one :class:`ResponseEnvelope` per response.

    Args:
        classifier: Error classifier.  Defaults to :class:`ErrorClassifier`.
    """

    def __init__(self, classifier: ErrorClassifier | None = None) -> None:
        self._classifier = classifier or ErrorClassifier()

    def normalize(self, raw: RawResponse, context: ResponseContext) -> ResponseEnvelope:
        if not 200 <= raw.status < 300:
            return self._failure(raw, context)

        count = parse_content_range(raw.header("Content-Range"), context.count)
        data = None if context.head else _parse_body(raw.text)
        if context.cardinality is not Cardinality.MANY and isinstance(data, list):
            return self._unwrap_single(data, raw.status, count, context)
        if context.transform_columns:
            data = keys_to_camel(data)
        return ResponseEnvelope(data=data, count=count, status=raw.status)

    def transport_failure(self, exc: BaseException, context: ResponseContext) -> ResponseEnvelope:
        """Envelope for a request that never produced a response."""
        logger.debug("No response received: %s", exc)
        error = ErrorDescriptor(
            kind=ErrorKind.TRANSPORT,
            message=str(exc) or type(exc).__name__,
        )
        return ResponseEnvelope(error=error)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _failure(self, raw: RawResponse, context: ResponseContext) -> ResponseEnvelope:
        error = self._classifier.classify(raw, context)
        # Only a 406 reporting zero matched rows is absorbed; one with no
        # readable row count stays a CardinalityError.
        if (
            error.kind is ErrorKind.CARDINALITY
            and context.cardinality is Cardinality.MAYBE_SINGLE
            and matched_rows(error) == 0
        ):
            return ResponseEnvelope(status=raw.status)
        logger.debug("Request failed with %s (%s)", error.kind.value, raw.status)
        return ResponseEnvelope(error=error, status=raw.status)

    def _unwrap_single(
        self,
        rows: list[Any],
        status: int,
        count: CountInfo | None,
        context: ResponseContext,
    ) -> ResponseEnvelope:
        # Reached when the gateway answered with an array despite the
        # object+json Accept header.
        if len(rows) == 1:
            data = keys_to_camel(rows[0]) if context.transform_columns else rows[0]
            return ResponseEnvelope(data=data, count=count, status=status)
        if not rows and context.cardinality is Cardinality.MAYBE_SINGLE:
            return ResponseEnvelope(count=count, status=status)
        error = ErrorDescriptor(
            kind=ErrorKind.CARDINALITY,
            message="JSON object requested, multiple (or no) rows returned",
            status=status,
            details=f"The result contains {len(rows)} rows",
        )
        return ResponseEnvelope(error=error, status=status)


def parse_content_range(header: str | None, mode: CountMode) -> CountInfo | None:
    """``0-9/145`` or ``*/145`` -> ``CountInfo(total=145)``; ``*`` totals -> ``None``."""
    if not header:
        return None
    match = _CONTENT_RANGE_RE.match(header)
    if match is None or match.group(3) == "*":
        return None
    if mode is CountMode.NONE:
        mode = CountMode.EXACT
    return CountInfo(total=int(match.group(3)), mode=mode)


def paginate_envelope(envelope: ResponseEnvelope, limit: int, offset: int) -> PaginatedEnvelope:
    """Attach the page position of a ``limit``/``offset`` read to ``envelope``.

    Page numbers start at 1.  Without a reported total, a full page is taken
    to mean another page follows.  Failed envelopes carry no pagination.
    """
    if envelope.error is not None:
        return PaginatedEnvelope(error=envelope.error, status=envelope.status)
    rows = envelope.data
    if not isinstance(rows, list):
        rows = [] if rows is None else [rows]
    total = envelope.count.total if envelope.count is not None else None
    page = offset // limit + 1
    total_pages = math.ceil(total / limit) if total is not None else None
    has_next = page < total_pages if total_pages is not None else len(rows) == limit
    info = PageInfo(
        page=page,
        page_size=limit,
        offset=offset,
        total_items=total,
        total_pages=total_pages,
        has_next_page=has_next,
        has_previous_page=page > 1,
    )
    return PaginatedEnvelope(
        data=rows, count=envelope.count, status=envelope.status, pagination=info
    )


def _parse_body(text: str) -> Any:
    if not text.strip():
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text
