"""Value transformers between REST representations and local attribute values.

``transform`` goes REST -> local, ``reverse_transform`` goes local -> REST.
Both return None for values they cannot convert instead of raising.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID


class ValueTransformer:
    """Base transformer: passes values through unchanged."""

    allows_reverse_transformation: bool = True

    def transform(self, value: Any) -> Any:
        return value

    def reverse_transform(self, value: Any) -> Any:
        return value


class UUIDTransformer(ValueTransformer):
    """Convert UUID strings received from the backend into ``UUID`` objects."""

    def transform(self, value: Any) -> UUID | None:
        if isinstance(value, UUID):
            return value
        if not isinstance(value, str):
            return None
        try:
            return UUID(value)
        except ValueError:
            return None

    def reverse_transform(self, value: Any) -> str | None:
        if not isinstance(value, UUID):
            return None
        # Hyphenated, uppercase hex
        return str(value).upper()


class DateTimeTransformer(ValueTransformer):
    """Convert ISO-8601 strings into ``datetime`` objects and back."""

    def transform(self, value: Any) -> datetime | None:
        if isinstance(value, datetime):
            return value
        if not isinstance(value, str):
            return None
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None

    def reverse_transform(self, value: Any) -> str | None:
        if not isinstance(value, datetime):
            return None
        return value.isoformat()


TRANSFORMERS: dict[str, ValueTransformer] = {
    "identity": ValueTransformer(),
    "uuid": UUIDTransformer(),
    "datetime": DateTimeTransformer(),
}


def get_transformer(name: str) -> ValueTransformer:
    """Look up a registered transformer by name.

    Raises:
        ValueError: If no transformer is registered under ``name``.
    """
    try:
        return TRANSFORMERS[name]
    except KeyError:
        raise ValueError(
            f"Unknown transformer {name!r} (known: {', '.join(sorted(TRANSFORMERS))})"
        ) from None
