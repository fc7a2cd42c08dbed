"""Translation between local objects and REST resources.

``RESTBridge`` turns requests into REST paths, query parameters and payloads,
and imports REST payloads back into the local store, reconciling them with
existing records through the entity's uniquing type.

Import and save preparation run against a synchronous ``Session``: callers on
an ``AsyncSession`` go through ``AsyncSession.run_sync`` so relationship
loads may happen lazily during the import.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy import inspect as sa_inspect
from sqlalchemy import select
from sqlalchemy.orm import Session

from rest_bridge.bridge.requests import AdditionalRESTRequestInfo, PendingChange, SaveRequest
from rest_bridge.config import settings
from rest_bridge.exceptions import MappingNotFoundError
from rest_bridge.mapping.entities import EntityDescription, ManagedObjectModel
from rest_bridge.mapping.query_params import FieldTree
from rest_bridge.mapping.resolver import RESTMapping
from rest_bridge.models.enums import ChangeKind, SaveWorkflow, UniquingKind

logger = logging.getLogger(__name__)


class RESTBridge:
    """Builds REST requests from local requests and imports REST responses."""

    def __init__(
        self,
        model: ManagedObjectModel,
        mapping: RESTMapping,
        *,
        remote_id_attribute_name: str | None = None,
    ) -> None:
        self.model = model
        self.mapping = mapping
        self.remote_id_attribute_name = (
            remote_id_attribute_name or settings.remote_id_attribute_name
        )

    # ── Request building ─────────────────────────────────────────────────────

    def entity_for_object(self, obj: Any) -> EntityDescription:
        entity = self.model.entity_for_object(obj)
        if entity is None:
            raise MappingNotFoundError(f"No entity describes {type(obj).__name__}")
        return entity

    def fetch_path(self, entity: EntityDescription, remote_id: Any = None) -> str:
        """Collection path of ``entity``, or the object path when ``remote_id`` is given.

        Raises:
            MappingNotFoundError: If neither the entity nor a superentity has a REST path.
        """
        path = self.mapping.rest_path(entity)
        if path is None:
            raise MappingNotFoundError(f"No REST path for entity {entity.name!r}")
        path = path.strip("/")
        if remote_id is None:
            return path
        return f"{path}/{self._rest_remote_id(entity, remote_id)}"

    def rest_fields(self, entity: EntityDescription, tree: FieldTree) -> FieldTree:
        """Translate a local field selection of ``entity`` into REST field names.

        Nested selections follow relationships to their destination entity.
        Fields without a mapping are dropped.
        """
        relationships = entity.all_relationships
        rest_tree: FieldTree = {}
        for name, children in tree.items():
            prop_mapping = self.mapping.property_mapping(name, entity)
            if prop_mapping is None:
                logger.debug("Dropping unmapped field %s.%s", entity.name, name)
                continue
            rest_children: FieldTree = {}
            relationship = relationships.get(name)
            if children and relationship is not None:
                destination = self.model.get(relationship.destination)
                if destination is not None:
                    rest_children = self.rest_fields(destination, children)
            rest_tree[prop_mapping.rest_name] = rest_children
        return rest_tree

    def fetch_params(self, info: AdditionalRESTRequestInfo | None) -> dict[str, Any]:
        """Query parameters of a fetch: forced parameters, fields and pagination.

        Raises:
            QueryParamSyntaxError: If the field selection is malformed.
            ValueError: If a key path's paginator info is not a mapping.
        """
        params = dict(self.mapping.forced_parameters_on_fetch)
        if info is None:
            return params

        if info.flatified_fields and info.entity is not None:
            parser = self.mapping.query_param_parser
            rest_tree = self.rest_fields(info.entity, parser.parse(info.flatified_fields))
            if rest_tree:
                params["fields"] = parser.flatify(rest_tree)

        if info.paginator_info:
            params.update(info.paginator_info)

        for key_path, page in (info.key_path_paginator_info or {}).items():
            if not isinstance(page, Mapping):
                raise ValueError(
                    f"Paginator info of key path {key_path!r} must be a mapping, "
                    f"got {type(page).__name__}"
                )
            for key, value in page.items():
                params[f"{key_path}.{key}"] = value
        return params

    def payload_for_object(self, obj: Any, entity: EntityDescription | None = None) -> dict[str, Any]:
        """REST payload of ``obj``: every mapped, writable property plus forced values.

        Relationships are sent as the remote ids of the related objects. Unloaded
        relationships and attributes never set on a new object are left out.
        """
        entity = entity or self.entity_for_object(obj)
        relationships = entity.all_relationships
        state = sa_inspect(obj, raiseerr=False)
        unloaded = state.unloaded if state is not None else set()
        persistent = state is not None and state.key is not None

        payload: dict[str, Any] = {}
        for prop, prop_mapping in self.mapping.effective_properties_mapping(entity).items():
            if prop_mapping.read_only:
                continue
            if prop in unloaded and (prop in relationships or not persistent):
                continue
            value = getattr(obj, prop)
            if prop in relationships:
                if relationships[prop].to_many:
                    payload[prop_mapping.rest_name] = [self._remote_id_of(o) for o in value or []]
                else:
                    payload[prop_mapping.rest_name] = (
                        self._remote_id_of(value) if value is not None else None
                    )
            else:
                payload[prop_mapping.rest_name] = prop_mapping.to_rest(value)

        payload.update(self.mapping.forced_values_on_save)
        return payload

    def _remote_id_of(self, obj: Any) -> Any:
        entity = self.entity_for_object(obj)
        return self._rest_remote_id(entity, getattr(obj, self.remote_id_attribute_name, None))

    def _rest_remote_id(self, entity: EntityDescription, remote_id: Any) -> Any:
        if remote_id is None:
            return None
        prop_mapping = self.mapping.property_mapping(self.remote_id_attribute_name, entity)
        if prop_mapping is None:
            return remote_id
        converted = prop_mapping.to_rest(remote_id)
        return remote_id if converted is None else converted

    # ── Response import ──────────────────────────────────────────────────────

    def values_from_payload(
        self, entity: EntityDescription, payload: dict[str, Any]
    ) -> tuple[dict[str, Any], dict[str, Any]]:
        """Split a REST payload into local attribute values and nested relationship payloads."""
        relationships = entity.all_relationships
        values: dict[str, Any] = {}
        nested: dict[str, Any] = {}
        for prop, prop_mapping in self.mapping.effective_properties_mapping(entity).items():
            if prop_mapping.rest_name not in payload:
                continue
            raw = payload[prop_mapping.rest_name]
            if prop in relationships:
                nested[prop] = raw
            else:
                values[prop] = prop_mapping.to_local(raw)
        return values, nested

    def import_objects(
        self, session: Session, entity: EntityDescription, payloads: Sequence[Any]
    ) -> list[Any]:
        """Import REST objects of ``entity``, returning local objects in payload order."""
        objects: list[Any] = []
        for payload in payloads:
            if not isinstance(payload, dict):
                logger.warning("Skipping non-object payload for %s: %r", entity.name, payload)
                continue
            objects.append(self.import_object(session, entity, payload))
        return objects

    def import_object(
        self,
        session: Session,
        entity: EntityDescription,
        payload: dict[str, Any],
        *,
        into: Any = None,
    ) -> Any:
        """Import one REST object, updating ``into`` or the record it uniques to.

        A new instance of the entity's model is added to the session when no
        existing record matches.
        """
        values, nested = self.values_from_payload(entity, payload)

        obj = into if into is not None else self.find_existing(session, entity, values)
        if obj is None:
            if entity.model is None:
                raise MappingNotFoundError(f"Entity {entity.name!r} has no model class")
            obj = entity.model()
            session.add(obj)

        for prop, value in values.items():
            setattr(obj, prop, value)

        relationships = entity.all_relationships
        for prop, raw in nested.items():
            relationship = relationships[prop]
            destination = self.model.get(relationship.destination)
            if destination is None:
                logger.warning("Unknown destination entity %s for %s.%s",
                               relationship.destination, entity.name, prop)
                continue
            if relationship.to_many:
                items = raw if isinstance(raw, list) else []
                setattr(obj, prop, self.import_objects(session, destination, items))
            elif isinstance(raw, dict):
                setattr(obj, prop, self.import_object(session, destination, raw))
            elif raw is None:
                setattr(obj, prop, None)
        return obj

    def find_existing(
        self, session: Session, entity: EntityDescription, values: dict[str, Any]
    ) -> Any:
        """Existing record of ``entity`` matching ``values`` under its uniquing type."""
        uniquing_type = self.mapping.entity_uniquing_type(entity)
        if uniquing_type.uniquing_id(values) is None or entity.model is None:
            return None

        stmt = select(entity.model)
        if uniquing_type.kind is not UniquingKind.SINGLETON:
            for prop in uniquing_type.properties:
                stmt = stmt.where(getattr(entity.model, prop) == values[prop])
        return session.execute(stmt.limit(1)).scalars().first()

    # ── Save ─────────────────────────────────────────────────────────────────

    def prepare_save(self, session: Session, request: SaveRequest) -> list[PendingChange]:
        """Snapshot the changes to send for ``request``.

        Inserts come first, then updates, then deletes. Objects never synced
        with the backend (no remote id) are inserted rather than updated, and
        skipped when deleted.

        Raises:
            ValueError: If a requested object is not in the session.
            MappingNotFoundError: If an object has no entity or REST path.
        """
        if request.objects is None:
            candidates = [(o, ChangeKind.INSERT) for o in session.new]
            candidates += [(o, ChangeKind.UPDATE) for o in session.dirty if session.is_modified(o)]
            candidates += [(o, ChangeKind.DELETE) for o in session.deleted]
        else:
            candidates = []
            for obj in request.objects:
                if obj not in session:
                    raise ValueError(f"Object {obj!r} is not in the session")
                if obj in session.new:
                    candidates.append((obj, ChangeKind.INSERT))
                elif obj in session.deleted:
                    candidates.append((obj, ChangeKind.DELETE))
                else:
                    candidates.append((obj, ChangeKind.UPDATE))

        order = {ChangeKind.INSERT: 0, ChangeKind.UPDATE: 1, ChangeKind.DELETE: 2}
        changes: list[PendingChange] = []
        for obj, kind in candidates:
            entity = self.entity_for_object(obj)
            remote_id = getattr(obj, self.remote_id_attribute_name, None)
            if remote_id is None:
                if kind is ChangeKind.DELETE:
                    continue
                kind = ChangeKind.INSERT

            if kind is ChangeKind.INSERT:
                path = self.fetch_path(entity)
            else:
                path = self.fetch_path(entity, remote_id)
            payload = None if kind is ChangeKind.DELETE else self.payload_for_object(obj, entity)
            changes.append(PendingChange(obj=obj, entity=entity, kind=kind, path=path, payload=payload))

        changes.sort(key=lambda c: order[c.kind])
        request.changes = changes
        return changes

    def apply_save_responses(
        self,
        session: Session,
        request: SaveRequest,
        responses: Sequence[Any],
        *,
        partial: bool = False,
        onto_local_objects: bool | None = None,
    ) -> list[Any]:
        """Apply the backend's answers to a save back onto the local store.

        When the local changes were rolled back before sending, responses are
        imported through uniquing instead of onto the original objects.
        ``onto_local_objects`` overrides that choice.

        With ``partial``, ``responses`` answer only the first changes of the
        request (a save interrupted by a failing request).

        Raises:
            ValueError: If the responses do not match the request's changes.
        """
        if onto_local_objects is None:
            onto_local_objects = request.workflow is not SaveWorkflow.ROLLBACK_BEFORE_BACK_RETURNS
        changes = request.changes[: len(responses)] if partial else request.changes

        saved: list[Any] = []
        for change, response in zip(changes, responses, strict=True):
            if change.kind is ChangeKind.DELETE:
                continue
            if not isinstance(response, dict):
                if onto_local_objects:
                    saved.append(change.obj)
                continue
            into = change.obj if onto_local_objects else None
            saved.append(self.import_object(session, change.entity, response, into=into))
        return saved
