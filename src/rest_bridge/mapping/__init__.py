"""Entity and property mapping between local models and REST resources.

Submodules:
- entities: entity inheritance tree (EntityDescription, ManagedObjectModel)
- property_mapping: RESTEntityMapping / RESTPropertyMapping values
- uniquing: UniquingType policies
- query_params: flatified fields parser
- resolver: RESTMapping table and inheritance-aware lookups
- loader: JSON mapping files
"""

from rest_bridge.mapping.entities import (
    EntityDescription,
    ManagedObjectModel,
    RelationshipDescription,
)
from rest_bridge.mapping.loader import load_mapping
from rest_bridge.mapping.property_mapping import RESTEntityMapping, RESTPropertyMapping
from rest_bridge.mapping.query_params import ParameterizedStringSetParser
from rest_bridge.mapping.resolver import RESTMapping
from rest_bridge.mapping.uniquing import UniquingType

__all__ = [
    "EntityDescription",
    "ManagedObjectModel",
    "ParameterizedStringSetParser",
    "RESTEntityMapping",
    "RESTMapping",
    "RESTPropertyMapping",
    "RelationshipDescription",
    "UniquingType",
    "load_mapping",
]
