"""Entity and property mapping values."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from rest_bridge.mapping.uniquing import UniquingType
from rest_bridge.utils.transformers import ValueTransformer


@dataclass(frozen=True)
class RESTPropertyMapping:
    """How one local property is represented on the backend."""

    rest_name: str
    transformer: ValueTransformer | None = None
    read_only: bool = False
    """Read-only properties are imported but never sent on save."""

    def to_local(self, value: Any) -> Any:
        if self.transformer is None or value is None:
            return value
        return self.transformer.transform(value)

    def to_rest(self, value: Any) -> Any:
        if self.transformer is None or value is None:
            return value
        if not self.transformer.allows_reverse_transformation:
            return value
        return self.transformer.reverse_transform(value)


@dataclass(frozen=True)
class RESTEntityMapping:
    """How one entity is represented on the backend.

    ``uniquing_type`` and ``rest_path`` may be left unset to inherit them from
    the nearest mapped superentity.
    """

    rest_path: str | None = None
    uniquing_type: UniquingType | None = None
    properties_mapping: dict[str, RESTPropertyMapping] = field(default_factory=dict)
