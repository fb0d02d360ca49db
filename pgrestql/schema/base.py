"""Shared base for the immutable query models.

Every query model is frozen and rejects unknown fields.  Fields holding
column names, flags and pagination bounds are declared strict, so a ``limit``
of ``"5"`` is refused rather than converted.  Any type or shape error pydantic
reports while a model is built is re-raised as
:class:`~pgrestql.errors.ConfigurationError`.
"""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from pgrestql.errors import ConfigurationError


class FrozenModel(BaseModel):
    """Frozen model whose validation failures surface as ``ConfigurationError``."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as exc:
            raise configuration_error(exc, type(self).__name__) from exc

    @classmethod
    def model_validate(cls, obj: Any, **kwargs: Any) -> Any:
        try:
            return super().model_validate(obj, **kwargs)
        except ValidationError as exc:
            raise configuration_error(exc, cls.__name__) from exc


def configuration_error(exc: ValidationError, model: str) -> ConfigurationError:
    """Describe the first error of ``exc`` as a :class:`ConfigurationError`."""
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first["loc"]) or None
    return ConfigurationError(
        f"Invalid {model}.{field}: {first['msg']}.",
        field,
        first.get("input"),
    )
