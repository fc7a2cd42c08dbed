"""Mapping resolution through the entity inheritance hierarchy.

A ``RESTMapping`` is the mapping table: entity -> ``RESTEntityMapping``, plus
parameters forced on every fetch and values forced on every save. Lookups
honor inheritance:

- Entity-level lookups (mapping, uniquing type, REST path) only walk UP the
  superentity chain.
- Property lookups start at the expected entity, then walk up, then walk down
  into subentities (depth-first, declaration order). Once the search moves in
  one direction it never turns back, so it never reaches an unrelated branch
  (e.g. a sibling of the starting entity).

A failed lookup returns None, never raises. The table is frozen once built
and every lookup is a pure read, so it may be shared across tasks and threads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from rest_bridge.mapping.entities import EntityDescription
from rest_bridge.mapping.property_mapping import RESTEntityMapping, RESTPropertyMapping
from rest_bridge.mapping.query_params import ParameterizedStringSetParser
from rest_bridge.mapping.uniquing import UniquingType


@dataclass(frozen=True)
class RESTMapping:
    """Entity/property to REST mapping table."""

    entities_mapping: dict[EntityDescription, RESTEntityMapping]
    query_param_parser: ParameterizedStringSetParser = field(
        default_factory=ParameterizedStringSetParser
    )
    forced_parameters_on_fetch: dict[str, Any] = field(default_factory=dict)
    forced_values_on_save: dict[str, Any] = field(default_factory=dict)

    def entity_mapping(self, entity: EntityDescription) -> RESTEntityMapping | None:
        """Mapping of ``entity`` or of its nearest mapped superentity."""
        mapping = self.entities_mapping.get(entity)
        if mapping is not None:
            return mapping
        if entity.superentity is None:
            return None
        return self.entity_mapping(entity.superentity)

    def entity_uniquing_type(self, entity: EntityDescription) -> UniquingType:
        """Uniquing type of ``entity`` or of its nearest superentity defining one.

        Not differentiated: an entity missing from the table, a mapping without
        a uniquing type and an explicit NONE policy all give ``UniquingType.none()``.
        """
        mapping = self.entities_mapping.get(entity)
        if mapping is not None and mapping.uniquing_type is not None:
            return mapping.uniquing_type
        if entity.superentity is None:
            return UniquingType.none()
        return self.entity_uniquing_type(entity.superentity)

    def rest_path(self, entity: EntityDescription) -> str | None:
        """REST path of ``entity`` or of its nearest superentity defining one."""
        mapping = self.entities_mapping.get(entity)
        if mapping is not None and mapping.rest_path is not None:
            return mapping.rest_path
        if entity.superentity is None:
            return None
        return self.rest_path(entity.superentity)

    def property_mapping(
        self, prop: str, expected_entity: EntityDescription | None = None
    ) -> RESTPropertyMapping | None:
        """Find the mapping of property ``prop``.

        Starts from ``expected_entity``, then goes up (superentities), then, if
        still not found, goes down (subentities). Never visits an unrelated
        entity.

        Without an expected entity every mapped entity is tried as a starting
        point, in table order, and the first hit wins. When unrelated entities
        map a property with the same name, which of them is returned depends
        on that order only.
        """
        if expected_entity is None:
            for entity in self.entities_mapping:
                found = self._property_mapping(prop, entity, can_go_up=True, can_go_down=True)
                if found is not None:
                    return found
            return None
        return self._property_mapping(prop, expected_entity, can_go_up=True, can_go_down=True)

    def _property_mapping(
        self,
        prop: str,
        entity: EntityDescription,
        *,
        can_go_up: bool,
        can_go_down: bool,
    ) -> RESTPropertyMapping | None:
        mapping = self.entities_mapping.get(entity)
        if mapping is not None and prop in mapping.properties_mapping:
            return mapping.properties_mapping[prop]

        # Not found here: go up first if allowed
        if can_go_up and entity.superentity is not None:
            found = self._property_mapping(
                prop, entity.superentity, can_go_up=True, can_go_down=False
            )
            if found is not None:
                return found

        # Still not found: go down if allowed
        if can_go_down:
            for subentity in entity.subentities:
                found = self._property_mapping(prop, subentity, can_go_up=False, can_go_down=True)
                if found is not None:
                    return found
        return None

    def effective_properties_mapping(
        self, entity: EntityDescription
    ) -> dict[str, RESTPropertyMapping]:
        """Property mappings applying to ``entity``'s own and inherited properties.

        Each property is resolved from ``entity`` with ``property_mapping``.
        Unmapped properties are left out.
        """
        resolved: dict[str, RESTPropertyMapping] = {}
        for prop in entity.property_names:
            found = self.property_mapping(prop, entity)
            if found is not None:
                resolved[prop] = found
        return resolved
