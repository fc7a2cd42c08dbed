"""Entity hierarchy for mapping resolution.

An ``EntityDescription`` is one node of the single-inheritance tree of synced
models: a parent (``superentity``), ordered children (``subentities``), the
attributes it declares itself and its relationships. A ``ManagedObjectModel``
indexes the nodes by name.

Models are usually described straight from a SQLAlchemy declarative base,
where the superentity is the mapper's ``inherits`` and subentities keep class
declaration order. Hand-built models are used by mapping files and tests.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import inspect as sa_inspect


@dataclass(frozen=True)
class RelationshipDescription:
    """A relationship declared on an entity."""

    name: str
    destination: str
    """Name of the destination entity."""

    to_many: bool = False


@dataclass(eq=False)
class EntityDescription:
    """A node of the entity inheritance tree.

    Equality and hashing are by identity: two descriptions with the same name
    in different models are different entities.
    """

    name: str
    model: type[Any] | None = None
    superentity: EntityDescription | None = field(default=None, repr=False)
    subentities: list[EntityDescription] = field(default_factory=list, repr=False)
    attributes: tuple[str, ...] = ()
    """Attributes declared on this entity (inherited ones excluded)."""

    relationships: dict[str, RelationshipDescription] = field(default_factory=dict)
    """Relationships declared on this entity (inherited ones excluded)."""

    def ancestors(self) -> Iterator[EntityDescription]:
        """Yield superentities, nearest first."""
        parent = self.superentity
        while parent is not None:
            yield parent
            parent = parent.superentity

    @property
    def all_attributes(self) -> tuple[str, ...]:
        """Own and inherited attributes, root entity first."""
        chain = [self, *self.ancestors()]
        names: list[str] = []
        for entity in reversed(chain):
            names.extend(a for a in entity.attributes if a not in names)
        return tuple(names)

    @property
    def all_relationships(self) -> dict[str, RelationshipDescription]:
        """Own and inherited relationships; subentities override by name."""
        chain = [self, *self.ancestors()]
        merged: dict[str, RelationshipDescription] = {}
        for entity in reversed(chain):
            merged.update(entity.relationships)
        return merged

    @property
    def property_names(self) -> tuple[str, ...]:
        return self.all_attributes + tuple(self.all_relationships)


class ManagedObjectModel:
    """A named set of entity descriptions forming a forest of inheritance trees."""

    def __init__(self) -> None:
        self._entities: dict[str, EntityDescription] = {}

    def add_entity(
        self,
        name: str,
        superentity: EntityDescription | str | None = None,
        *,
        model: type[Any] | None = None,
        attributes: Iterable[str] = (),
        relationships: Mapping[str, RelationshipDescription] | None = None,
    ) -> EntityDescription:
        """Register a new entity, appending it to its superentity's children.

        Raises:
            ValueError: If the name is taken or the superentity is unknown.
        """
        if name in self._entities:
            raise ValueError(f"Entity {name!r} is already registered")

        parent: EntityDescription | None
        if isinstance(superentity, str):
            parent = self._entities.get(superentity)
            if parent is None:
                raise ValueError(f"Unknown superentity {superentity!r} for entity {name!r}")
        else:
            parent = superentity
            if parent is not None and self._entities.get(parent.name) is not parent:
                raise ValueError(f"Superentity {parent.name!r} does not belong to this model")

        entity = EntityDescription(
            name=name,
            model=model,
            superentity=parent,
            attributes=tuple(attributes),
            relationships=dict(relationships or {}),
        )
        if parent is not None:
            parent.subentities.append(entity)
        self._entities[name] = entity
        return entity

    @classmethod
    def from_declarative_base(cls, base: type[Any]) -> ManagedObjectModel:
        """Describe every mapped subclass of a SQLAlchemy declarative base."""
        model = cls()
        by_class: dict[type[Any], EntityDescription] = {}

        def visit(klass: type[Any]) -> None:
            for sub in klass.__subclasses__():
                mapper = sa_inspect(sub, raiseerr=False)
                if mapper is None:
                    # Abstract or mixin class: its subclasses may still be mapped
                    visit(sub)
                    continue

                parent_mapper = mapper.inherits
                inherited_columns: set[str] = set()
                inherited_relationships: set[str] = set()
                if parent_mapper is not None:
                    inherited_columns = set(parent_mapper.column_attrs.keys())
                    inherited_relationships = set(parent_mapper.relationships.keys())

                relationships = {
                    rel.key: RelationshipDescription(
                        name=rel.key,
                        destination=rel.mapper.class_.__name__,
                        to_many=bool(rel.uselist),
                    )
                    for rel in mapper.relationships
                    if rel.key not in inherited_relationships
                }
                entity = model.add_entity(
                    sub.__name__,
                    by_class.get(parent_mapper.class_) if parent_mapper is not None else None,
                    model=sub,
                    attributes=[k for k in mapper.column_attrs.keys() if k not in inherited_columns],
                    relationships=relationships,
                )
                by_class[sub] = entity
                visit(sub)

        visit(base)
        return model

    def entity_for_model(self, model_class: type[Any]) -> EntityDescription | None:
        """Find the entity describing ``model_class`` or its nearest mapped base."""
        for klass in model_class.__mro__:
            for entity in self._entities.values():
                if entity.model is klass:
                    return entity
        return None

    def entity_for_object(self, obj: Any) -> EntityDescription | None:
        return self.entity_for_model(type(obj))

    @property
    def root_entities(self) -> list[EntityDescription]:
        return [e for e in self._entities.values() if e.superentity is None]

    def get(self, name: str) -> EntityDescription | None:
        return self._entities.get(name)

    def __getitem__(self, name: str) -> EntityDescription:
        return self._entities[name]

    def __contains__(self, name: object) -> bool:
        return name in self._entities

    def __iter__(self) -> Iterator[EntityDescription]:
        return iter(self._entities.values())

    def __len__(self) -> int:
        return len(self._entities)
