"""Load a ``RESTMapping`` from a JSON mapping file.

File layout::

    {
      "entities": {"User": {"superentity": null, "attributes": ["remote_id", "name"],
                             "relationships": {"team": {"destination": "Team"}}}},
      "mapping": {"User": {"rest_path": "users",
                            "uniquing": {"kind": "on_property", "properties": ["remote_id"]},
                            "properties": {"remote_id": {"rest_name": "id", "transformer": "uuid"}}}},
      "forced_parameters_on_fetch": {"v": "2"},
      "forced_values_on_save": {}
    }

``entities`` may be omitted when the entity model comes from SQLAlchemy.
Entities must be listed after their superentity.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, model_validator

from rest_bridge.exceptions import MappingConfigError
from rest_bridge.mapping.entities import ManagedObjectModel, RelationshipDescription
from rest_bridge.mapping.property_mapping import RESTEntityMapping, RESTPropertyMapping
from rest_bridge.mapping.query_params import ParameterizedStringSetParser
from rest_bridge.mapping.resolver import RESTMapping
from rest_bridge.mapping.uniquing import UniquingType
from rest_bridge.models.enums import UniquingKind
from rest_bridge.utils.transformers import get_transformer


class RelationshipSpec(BaseModel):
    destination: str
    to_many: bool = False


class EntitySpec(BaseModel):
    superentity: str | None = None
    attributes: list[str] = Field(default_factory=list)
    relationships: dict[str, RelationshipSpec] = Field(default_factory=dict)


class UniquingSpec(BaseModel):
    kind: UniquingKind = UniquingKind.NONE
    id: str | None = Field(default=None, description="Singleton id")
    properties: list[str] = Field(default_factory=list)
    prefix: str = ""
    separator: str = "-"

    @model_validator(mode="after")
    def _check_kind_arguments(self) -> UniquingSpec:
        if self.kind is UniquingKind.SINGLETON and self.id is None:
            raise ValueError("singleton uniquing requires 'id'")
        if self.kind is UniquingKind.ON_PROPERTY and len(self.properties) != 1:
            raise ValueError("on_property uniquing requires exactly one property")
        if self.kind is UniquingKind.ON_PROPERTIES and not self.properties:
            raise ValueError("on_properties uniquing requires at least one property")
        return self

    def to_uniquing_type(self) -> UniquingType:
        if self.kind is UniquingKind.SINGLETON:
            return UniquingType.singleton(self.id or "")
        if self.kind is UniquingKind.ON_PROPERTY:
            return UniquingType.on_property(self.properties[0], prefix=self.prefix)
        if self.kind is UniquingKind.ON_PROPERTIES:
            return UniquingType.on_properties(
                self.properties, prefix=self.prefix, separator=self.separator
            )
        return UniquingType.none()


class PropertySpec(BaseModel):
    rest_name: str
    transformer: str | None = None
    read_only: bool = False


class EntityMappingSpec(BaseModel):
    rest_path: str | None = None
    uniquing: UniquingSpec | None = None
    properties: dict[str, PropertySpec] = Field(default_factory=dict)


class MappingFile(BaseModel):
    """Schema of a mapping file."""

    entities: dict[str, EntitySpec] = Field(default_factory=dict)
    mapping: dict[str, EntityMappingSpec] = Field(default_factory=dict)
    forced_parameters_on_fetch: dict[str, Any] = Field(default_factory=dict)
    forced_values_on_save: dict[str, Any] = Field(default_factory=dict)


def build_object_model(spec: MappingFile) -> ManagedObjectModel:
    """Build the entity hierarchy declared in a mapping file."""
    model = ManagedObjectModel()
    for name, entity in spec.entities.items():
        model.add_entity(
            name,
            entity.superentity,
            attributes=entity.attributes,
            relationships={
                rel_name: RelationshipDescription(rel_name, rel.destination, rel.to_many)
                for rel_name, rel in entity.relationships.items()
            },
        )
    return model


def build_mapping(spec: MappingFile, model: ManagedObjectModel) -> RESTMapping:
    """Build the mapping table of a mapping file against ``model``.

    Raises:
        ValueError: If the file maps an unknown entity or names an unknown transformer.
    """
    entities_mapping = {}
    for name, entity_spec in spec.mapping.items():
        entity = model.get(name)
        if entity is None:
            raise ValueError(f"Mapping refers to unknown entity {name!r}")
        entities_mapping[entity] = RESTEntityMapping(
            rest_path=entity_spec.rest_path,
            uniquing_type=entity_spec.uniquing.to_uniquing_type() if entity_spec.uniquing else None,
            properties_mapping={
                prop: RESTPropertyMapping(
                    rest_name=p.rest_name,
                    transformer=get_transformer(p.transformer) if p.transformer else None,
                    read_only=p.read_only,
                )
                for prop, p in entity_spec.properties.items()
            },
        )
    return RESTMapping(
        entities_mapping=entities_mapping,
        query_param_parser=ParameterizedStringSetParser(),
        forced_parameters_on_fetch=dict(spec.forced_parameters_on_fetch),
        forced_values_on_save=dict(spec.forced_values_on_save),
    )


def load_mapping(
    path: str | Path, model: ManagedObjectModel | None = None
) -> tuple[ManagedObjectModel, RESTMapping]:
    """Load a mapping file.

    Args:
        path: JSON mapping file.
        model: Entity model to map against. Defaults to the ``entities`` section
            of the file.

    Raises:
        MappingConfigError: If the file is unreadable or invalid.
    """
    try:
        raw = json.loads(Path(path).read_text())
        spec = MappingFile.model_validate(raw)
        if model is None:
            model = build_object_model(spec)
        return model, build_mapping(spec, model)
    except (OSError, json.JSONDecodeError, ValidationError, ValueError) as e:
        raise MappingConfigError(f"Invalid mapping file {path}: {e}") from e
