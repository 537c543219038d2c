"""Immutable value object base for the risk records."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


def _freeze(value: Any) -> Any:
    if isinstance(value, dict):
        return frozenset((k, _freeze(v)) for k, v in value.items())
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    if isinstance(value, set):
        return frozenset(value)
    return value


class ValueObject(BaseModel):
    """Base class for value objects.

    Instances are frozen and compare by their field values.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, self.__class__):
            return False
        return self.model_dump() == other.model_dump()

    def __hash__(self) -> int:
        return hash(_freeze(self.model_dump()))
