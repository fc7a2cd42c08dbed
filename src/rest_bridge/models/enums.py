"""Enumerations for the rest-bridge data model."""

from enum import Enum


class UniquingKind(str, Enum):
    """How an incoming REST object is matched against existing local records."""

    NONE = "none"  # Always insert
    SINGLETON = "singleton"  # At most one local instance of the entity
    ON_PROPERTY = "on_property"  # Match on a single property value
    ON_PROPERTIES = "on_properties"  # Match on a combination of property values


class FetchType(str, Enum):
    """When a fetch request actually reaches the backend."""

    ALWAYS = "always"
    ONLY_IF_NO_LOCAL_RESULTS = "only_if_no_local_results"
    NEVER = "never"


class SaveWorkflow(str, Enum):
    """Ordering of the local commit relative to the backend round-trip.

    - SAVE_BEFORE_BACK_RETURNS: commit locally, then send to the backend
    - ROLLBACK_BEFORE_BACK_RETURNS: snapshot payloads, roll back, then send
    - SAVE_AFTER_BACK_RETURNS: send first, commit once the backend accepted
    """

    SAVE_BEFORE_BACK_RETURNS = "save_before_back_returns"
    ROLLBACK_BEFORE_BACK_RETURNS = "rollback_before_back_returns"
    SAVE_AFTER_BACK_RETURNS = "save_after_back_returns"


class ChangeKind(str, Enum):
    """What happened locally to an object being saved on the backend."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
