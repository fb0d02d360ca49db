"""Operator value-encoder registry.

``OperatorRegistry`` maps each :class:`~pgrestql.schema.operators.FilterOperator`
to the function that renders its value (the part after ``op.``).  The
:class:`~pgrestql.compile.filters.FilterEncoder` looks operators up here, so
an encoding can be overridden without touching the encoder.

Registries are plain instances.  :meth:`OperatorRegistry.default` returns a
fresh copy of the built-in table each time, so overriding an encoder on one
registry never affects another compiler.

Usage::

    registry = OperatorRegistry.default()

    @registry.register(FilterOperator.EQ)
    def _eq_upper(value):
        return str(value).upper()

    encoder = FilterEncoder(registry)
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, ClassVar

from pgrestql.compile.values import (
    format_array_literal,
    format_in_list,
    format_json,
    format_list_item,
    format_scalar,
)
from pgrestql.errors import ConfigurationError
from pgrestql.schema.filters import IS_VALUES
from pgrestql.schema.operators import (
    COMPARISON_OPERATORS,
    FULL_TEXT_OPERATORS,
    RANGE_OPERATORS,
    REGEX_OPERATORS,
    FilterOperator,
)

#: ``(value) -> encoded value``
ValueEncoder = Callable[[Any], str]


# ---------------------------------------------------------------------------
# Built-in encoders
# ---------------------------------------------------------------------------


def encode_pattern(value: Any) -> str:
    """``like``/``ilike``: ``*`` is accepted as the wildcard and sent as ``%``."""
    return format_scalar(value).replace("*", "%")


def encode_in(value: Any) -> str:
    if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
        raise ConfigurationError("in() expects a list of values.", "in", value)
    if not value:
        raise ConfigurationError("in() requires at least one value.", "in", value)
    return format_in_list(value)


def encode_containment(value: Any) -> str:
    """``cs``/``cd``: list -> array literal, mapping -> JSON, string as given."""
    if isinstance(value, Mapping):
        return format_json(value)
    if isinstance(value, (list, tuple)):
        return format_array_literal(value)
    return format_scalar(value)


def encode_overlap(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return format_array_literal(value)
    return format_scalar(value)


def encode_range(value: Any) -> str:
    """Range operators take a range literal, or a ``(lower, upper)`` pair."""
    if isinstance(value, (list, tuple)):
        if len(value) != 2:
            raise ConfigurationError(
                "A range bound pair must have exactly two items.", "range", value
            )
        return f"({format_list_item(value[0])},{format_list_item(value[1])})"
    return format_scalar(value)


def encode_is(value: Any) -> str:
    if isinstance(value, str) and value in IS_VALUES.values():
        return value
    if value is None or isinstance(value, bool):
        return IS_VALUES[value]
    raise ConfigurationError("is() only accepts None, True or False.", "is", value)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class OperatorRegistry:
    """Registry mapping filter operators to value encoders.

    Example::

        registry = OperatorRegistry.default()
        registry.register_handler(FilterOperator.LIKE, my_like_encoder)
    """

    _builtin: ClassVar[dict[FilterOperator, ValueEncoder]] = {}

    def __init__(self, encoders: Mapping[FilterOperator, ValueEncoder] | None = None) -> None:
        self._encoders: dict[FilterOperator, ValueEncoder] = dict(encoders or {})

    @classmethod
    def default(cls) -> OperatorRegistry:
        """Return a new registry holding the built-in encoders."""
        return cls(cls._builtin)

    def register(self, operator: FilterOperator) -> Callable[[ValueEncoder], ValueEncoder]:
        """Decorator that registers a value encoder for ``operator``.

        Args:
            operator: The operator whose value encoding is (re)defined.

        Returns:
            A decorator that registers and returns the encoder.
        """

        def decorator(encoder: ValueEncoder) -> ValueEncoder:
            self._encoders[operator] = encoder
            return encoder

        return decorator

    def register_handler(self, operator: FilterOperator, encoder: ValueEncoder) -> None:
        """Register an encoder without using the decorator form."""
        self._encoders[operator] = encoder

    def get(self, operator: FilterOperator) -> ValueEncoder | None:
        """Return the encoder for ``operator``, or ``None`` if not registered."""
        return self._encoders.get(operator)

    def registered_operators(self) -> list[str]:
        """Return the sorted list of registered operator tokens."""
        return sorted(op.value for op in self._encoders)


def _install_builtins() -> None:
    table = OperatorRegistry._builtin
    for op in COMPARISON_OPERATORS | REGEX_OPERATORS | FULL_TEXT_OPERATORS:
        table[op] = format_scalar
    table[FilterOperator.LIKE] = encode_pattern
    table[FilterOperator.ILIKE] = encode_pattern
    table[FilterOperator.IN] = encode_in
    table[FilterOperator.CONTAINS] = encode_containment
    table[FilterOperator.CONTAINED_BY] = encode_containment
    table[FilterOperator.OVERLAPS] = encode_overlap
    for op in RANGE_OPERATORS:
        table[op] = encode_range
    table[FilterOperator.IS] = encode_is
    missing = set(FilterOperator) - set(table)
    if missing:
        raise RuntimeError(
            f"No built-in encoder for operators: {sorted(op.value for op in missing)}."
        )


_install_builtins()
