"""Uniquing policies: how an incoming REST object finds its local record."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from rest_bridge.models.enums import UniquingKind


@dataclass(frozen=True)
class UniquingType:
    """Policy reconciling an incoming object with an existing local record.

    Build instances with the ``none``, ``singleton``, ``on_property`` and
    ``on_properties`` constructors rather than directly.
    """

    kind: UniquingKind = UniquingKind.NONE
    constant: str = ""
    """Singleton id, or the prefix of property-based ids."""

    properties: tuple[str, ...] = ()
    separator: str = "-"

    @classmethod
    def none(cls) -> UniquingType:
        return cls()

    @classmethod
    def singleton(cls, uniquing_id: str) -> UniquingType:
        return cls(kind=UniquingKind.SINGLETON, constant=uniquing_id)

    @classmethod
    def on_property(cls, prop: str, *, prefix: str = "") -> UniquingType:
        return cls(kind=UniquingKind.ON_PROPERTY, constant=prefix, properties=(prop,))

    @classmethod
    def on_properties(
        cls, props: tuple[str, ...] | list[str], *, prefix: str = "", separator: str = "-"
    ) -> UniquingType:
        if not props:
            raise ValueError("on_properties uniquing needs at least one property")
        return cls(
            kind=UniquingKind.ON_PROPERTIES,
            constant=prefix,
            properties=tuple(props),
            separator=separator,
        )

    @property
    def is_none(self) -> bool:
        return self.kind is UniquingKind.NONE

    def uniquing_id(self, values: Mapping[str, Any]) -> str | None:
        """Compute the identity key of an object from its local values.

        Returns None when the object cannot be uniqued: the policy is NONE or
        one of the identifying values is missing.
        """
        if self.kind is UniquingKind.NONE:
            return None
        if self.kind is UniquingKind.SINGLETON:
            return self.constant

        parts: list[str] = []
        for prop in self.properties:
            value = values.get(prop)
            if value is None:
                return None
            parts.append(str(value))
        return self.constant + self.separator.join(parts)
