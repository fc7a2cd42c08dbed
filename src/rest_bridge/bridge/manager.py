"""Fetch and save orchestration between the local store and the REST backend.

The request manager pairs a ``RESTBridge`` (mapping-driven translation) with a
``RESTClient`` (transport). Every call creates a ``BackRequestOperation``:

- fetches read the backend and import the answer into the session, then commit;
  a failed fetch leaves the session's unsaved changes in place;
- saves send the session's changes to the backend and apply the answers,
  committing or rolling back locally according to the ``SaveWorkflow``. Answers
  received before a failing request are still applied and committed.

``unsafe_*`` variants also return what the local store holds *before* the
backend answers. They do not raise on local read errors: those are logged
and treated as "no local result".
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import httpx
from sqlalchemy import Select, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rest_bridge.bridge.bridge import RESTBridge
from rest_bridge.bridge.operation import BackRequestOperation, BackRequestResult
from rest_bridge.bridge.requests import (
    AdditionalRESTRequestInfo,
    FetchRequest,
    PendingChange,
    SaveRequest,
)
from rest_bridge.clients.rest import RESTClient
from rest_bridge.exceptions import MappingNotFoundError, RESTBridgeError
from rest_bridge.mapping.entities import EntityDescription
from rest_bridge.models.enums import ChangeKind, FetchType, SaveWorkflow

logger = logging.getLogger(__name__)

# Failures reported through BackRequestResult.error instead of being raised
OPERATION_ERRORS = (RESTBridgeError, httpx.HTTPError, SQLAlchemyError, ValueError)

FetchResult = BackRequestResult[FetchRequest]
SaveResult = BackRequestResult[SaveRequest]
ObjectHandler = Callable[[Any, FetchResult], None]
ObjectsHandler = Callable[[list[Any], FetchResult], None]
SaveHandler = Callable[[SaveResult], None]


class RequestManager:
    """Creates and runs back-request operations for a mapped object model.

    Usage:
        Session = session_factory(create_engine())
        async with RESTClient() as client, Session() as session:
            manager = RequestManager(RESTBridge(model, mapping), client)
            user, op = await manager.unsafe_fetch_object(User, "42", session=session)
            result = await op
            user = result.objects[0] if result.ok and result.objects else user
    """

    def __init__(self, bridge: RESTBridge, client: RESTClient) -> None:
        self.bridge = bridge
        self.client = client

    # ── Fetch requests ───────────────────────────────────────────────────────

    def fetch_request_for_object(
        self,
        entity: EntityDescription | type[Any],
        remote_id: Any = None,
        remote_id_attribute_name: str | None = None,
    ) -> Select[Any]:
        """Select at most one object of ``entity``, by remote id when one is given."""
        entity = self._entity(entity)
        model = self._model_of(entity)
        stmt = select(model).limit(1)
        if remote_id is not None:
            attribute = remote_id_attribute_name or self.bridge.remote_id_attribute_name
            local_id = self._local_remote_id(entity, attribute, remote_id)
            stmt = stmt.where(getattr(model, attribute) == local_id)
        return stmt

    async def unsafe_fetch_object(
        self,
        entity: EntityDescription | type[Any],
        remote_id: Any = None,
        *,
        session: AsyncSession,
        flatified_fields: str | None = None,
        key_path_paginator_info: dict[str, Mapping[str, Any]] | None = None,
        remote_id_attribute_name: str | None = None,
        fetch_type: FetchType = FetchType.ALWAYS,
        handler: ObjectHandler | None = None,
    ) -> tuple[Any | None, BackRequestOperation[FetchRequest]]:
        """Return the local object now, plus the started operation refreshing it.

        With several matching objects the first one is returned and a warning
        is logged. Without a remote id, the entity is expected to have a single
        local instance.
        """
        stmt = self.fetch_request_for_object(entity, remote_id, remote_id_attribute_name)
        try:
            obj = await self._first_object(session, stmt)
        except SQLAlchemyError:
            logger.warning("Local fetch failed, continuing without a local object", exc_info=True)
            obj = None

        operation = self.fetch_object(
            entity,
            remote_id,
            session=session,
            flatified_fields=flatified_fields,
            key_path_paginator_info=key_path_paginator_info,
            remote_id_attribute_name=remote_id_attribute_name,
            fetch_type=fetch_type,
            handler=handler,
        )
        return obj, operation

    def fetch_object(
        self,
        entity: EntityDescription | type[Any],
        remote_id: Any = None,
        *,
        session: AsyncSession,
        flatified_fields: str | None = None,
        key_path_paginator_info: dict[str, Mapping[str, Any]] | None = None,
        remote_id_attribute_name: str | None = None,
        fetch_type: FetchType = FetchType.ALWAYS,
        handler: ObjectHandler | None = None,
    ) -> BackRequestOperation[FetchRequest]:
        """Start fetching one object from the backend (needs a running event loop).

        ``handler`` receives the object read back from the session once the
        import is done (or None), and the operation result.
        """
        entity = self._entity(entity)
        stmt = self.fetch_request_for_object(entity, remote_id, remote_id_attribute_name)
        request = FetchRequest(
            session=session,
            entity=entity,
            statement=stmt,
            fetch_type=fetch_type,
            remote_id=remote_id,
            additional_info=AdditionalRESTRequestInfo(
                entity=entity,
                flatified_fields=flatified_fields,
                key_path_paginator_info=key_path_paginator_info,
            ),
        )

        async def on_done(result: FetchResult) -> None:
            if handler is not None:
                handler(await self._first_object(session, stmt), result)

        return self.operation_for_fetching_objects(request, auto_start=True, on_done=on_done)

    async def unsafe_fetch_objects(
        self,
        statement: Select[Any],
        *,
        session: AsyncSession,
        flatified_fields: str | None = None,
        paginator_info: dict[str, Any] | None = None,
        fetch_type: FetchType = FetchType.ALWAYS,
        handler: ObjectsHandler | None = None,
    ) -> tuple[list[Any], BackRequestOperation[FetchRequest]]:
        """Return the local objects matching ``statement`` now, plus the started operation."""
        try:
            objects = list((await session.execute(statement)).scalars().all())
        except SQLAlchemyError:
            logger.warning("Local fetch failed, continuing without local objects", exc_info=True)
            objects = []

        operation = self.fetch_objects(
            statement,
            session=session,
            flatified_fields=flatified_fields,
            paginator_info=paginator_info,
            fetch_type=fetch_type,
            handler=handler,
        )
        return objects, operation

    def fetch_objects(
        self,
        statement: Select[Any],
        *,
        session: AsyncSession,
        flatified_fields: str | None = None,
        paginator_info: dict[str, Any] | None = None,
        fetch_type: FetchType = FetchType.ALWAYS,
        handler: ObjectsHandler | None = None,
    ) -> BackRequestOperation[FetchRequest]:
        """Start fetching the collection of the statement's entity from the backend.

        ``handler`` receives the objects matching ``statement`` once the import
        is done, and the operation result.
        """
        entity = self._entity(statement.column_descriptions[0]["entity"])
        request = FetchRequest(
            session=session,
            entity=entity,
            statement=statement,
            fetch_type=fetch_type,
            additional_info=AdditionalRESTRequestInfo(
                entity=entity,
                flatified_fields=flatified_fields,
                paginator_info=paginator_info,
            ),
        )

        async def on_done(result: FetchResult) -> None:
            if handler is not None:
                objects = list((await session.execute(statement)).scalars().all())
                handler(objects, result)

        return self.operation_for_fetching_objects(request, auto_start=True, on_done=on_done)

    def operation_for_fetching_objects(
        self,
        request: FetchRequest,
        *,
        auto_start: bool,
        on_done: Callable[[FetchResult], Awaitable[None]] | None = None,
    ) -> BackRequestOperation[FetchRequest]:
        """Build the operation for ``request``, awaiting ``on_done`` with its result."""

        async def run() -> FetchResult:
            result = await self._run_fetch(request)
            if on_done is not None:
                await on_done(result)
            return result

        operation = BackRequestOperation(request, run)
        if auto_start:
            operation.start()
        return operation

    async def _run_fetch(self, request: FetchRequest) -> FetchResult:
        """Run a fetch without losing the session's unsaved state on failure.

        Errors before the import leave the session untouched. The import runs in
        a savepoint, so a failing import only discards what it added itself.
        """
        session = request.session
        try:
            if request.fetch_type is FetchType.NEVER:
                return BackRequestResult(request, objects=await self._local_objects(request))

            if request.fetch_type is FetchType.ONLY_IF_NO_LOCAL_RESULTS:
                local = await self._local_objects(request)
                if local:
                    return BackRequestResult(request, objects=local)

            path = self.bridge.fetch_path(request.entity, request.remote_id)
            params = self.bridge.fetch_params(request.additional_info)
            logger.debug("Fetching %s from %s with %s", request.entity.name, path, params)
            payload = await self.client.get(path, params=params)
        except OPERATION_ERRORS as e:
            logger.warning("Fetch of %s failed: %s", request.entity.name, e)
            return BackRequestResult(request, error=e)

        if isinstance(payload, list):
            items = payload
        elif isinstance(payload, dict):
            items = [payload]
        else:
            items = []
        try:
            async with session.begin_nested():
                objects = await session.run_sync(self.bridge.import_objects, request.entity, items)
            await session.commit()
        except OPERATION_ERRORS as e:
            logger.warning("Import of %s failed: %s", request.entity.name, e)
            return BackRequestResult(request, payload=payload, error=e)
        return BackRequestResult(request, objects=objects, payload=payload)

    async def _local_objects(self, request: FetchRequest) -> list[Any]:
        return list((await request.session.execute(request.statement)).scalars().all())

    # ── Save requests ────────────────────────────────────────────────────────

    async def save(
        self,
        session: AsyncSession,
        objects: list[Any] | None = None,
        *,
        additional_info: AdditionalRESTRequestInfo | None = None,
        rollback_instead_of_save: bool = False,
        handler: SaveHandler | None = None,
    ) -> BackRequestOperation[SaveRequest] | None:
        """Save ``objects`` on the backend and commit (or roll back) the session.

        All objects must belong to ``session``. With ``objects=None`` every
        inserted, modified or deleted object of the session is saved. The local
        commit (or rollback) happens before the backend is called.

        Returns None (after calling ``handler`` with the error) when the save
        cannot be prepared.
        """
        workflow = (
            SaveWorkflow.ROLLBACK_BEFORE_BACK_RETURNS
            if rollback_instead_of_save
            else SaveWorkflow.SAVE_BEFORE_BACK_RETURNS
        )
        return await self.operation_for_saving(
            session,
            objects,
            additional_info=additional_info,
            workflow=workflow,
            auto_start=True,
            handler=handler,
        )

    async def save_after_back_returns(
        self,
        session: AsyncSession,
        objects: list[Any] | None = None,
        *,
        additional_info: AdditionalRESTRequestInfo | None = None,
        handler: SaveHandler | None = None,
    ) -> BackRequestOperation[SaveRequest] | None:
        """Save on the backend first; commit locally only once it succeeded."""
        return await self.operation_for_saving(
            session,
            objects,
            additional_info=additional_info,
            workflow=SaveWorkflow.SAVE_AFTER_BACK_RETURNS,
            auto_start=True,
            handler=handler,
        )

    async def operation_for_saving(
        self,
        session: AsyncSession,
        objects: list[Any] | None = None,
        *,
        additional_info: AdditionalRESTRequestInfo | None = None,
        workflow: SaveWorkflow = SaveWorkflow.SAVE_BEFORE_BACK_RETURNS,
        auto_start: bool,
        handler: SaveHandler | None = None,
    ) -> BackRequestOperation[SaveRequest] | None:
        """Build the save operation, preparing and starting it when ``auto_start``.

        Operations that are not auto-started are prepared when they start.
        """
        request = SaveRequest(
            session=session,
            objects=list(objects) if objects is not None else None,
            workflow=workflow,
            additional_info=additional_info,
        )

        if auto_start:
            try:
                await session.run_sync(self.bridge.prepare_save, request)
            except OPERATION_ERRORS as e:
                logger.warning("Could not prepare save: %s", e)
                if handler is not None:
                    handler(BackRequestResult(request, error=e))
                return None

        async def run() -> SaveResult:
            result = await self._run_save(request, prepared=auto_start)
            if handler is not None:
                handler(result)
            return result

        operation = BackRequestOperation(request, run)
        if auto_start:
            operation.start()
        return operation

    async def _run_save(self, request: SaveRequest, *, prepared: bool) -> SaveResult:
        session = request.session
        responses: list[Any] = []
        try:
            if not prepared:
                await session.run_sync(self.bridge.prepare_save, request)

            if request.workflow is SaveWorkflow.SAVE_BEFORE_BACK_RETURNS:
                await session.commit()
            elif request.workflow is SaveWorkflow.ROLLBACK_BEFORE_BACK_RETURNS:
                await session.rollback()

            for change in request.changes:
                responses.append(await self._send_change(change))
            saved = await session.run_sync(self.bridge.apply_save_responses, request, responses)
            await session.commit()
            return BackRequestResult(request, objects=saved, payload=responses)
        except OPERATION_ERRORS as e:
            logger.warning("Save failed (%s): %s", request.workflow.value, e)
            await session.rollback()
            saved = await self._keep_sent_changes(request, responses) if responses else []
            return BackRequestResult(request, objects=saved, payload=responses or None, error=e)

    async def _keep_sent_changes(self, request: SaveRequest, responses: list[Any]) -> list[Any]:
        """Apply the answers received before a save failed, then commit them.

        Only objects committed before sending keep their identity; otherwise the
        answers are imported through uniquing.
        """
        session = request.session
        try:
            saved = await session.run_sync(
                self.bridge.apply_save_responses,
                request,
                responses,
                partial=True,
                onto_local_objects=request.workflow is SaveWorkflow.SAVE_BEFORE_BACK_RETURNS,
            )
            await session.commit()
        except OPERATION_ERRORS:
            logger.warning(
                "Could not apply %d backend answers of a failed save", len(responses), exc_info=True
            )
            await session.rollback()
            return []
        return saved

    async def _send_change(self, change: PendingChange) -> Any:
        if change.kind is ChangeKind.INSERT:
            return await self.client.post(change.path, json=change.payload)
        if change.kind is ChangeKind.UPDATE:
            return await self.client.put(change.path, json=change.payload)
        return await self.client.delete(change.path)

    # ── Helpers ──────────────────────────────────────────────────────────────

    def _entity(self, entity: EntityDescription | type[Any]) -> EntityDescription:
        if isinstance(entity, EntityDescription):
            return entity
        found = self.bridge.model.entity_for_model(entity)
        if found is None:
            raise MappingNotFoundError(f"No entity describes {entity.__name__}")
        return found

    @staticmethod
    def _model_of(entity: EntityDescription) -> type[Any]:
        if entity.model is None:
            raise MappingNotFoundError(f"Entity {entity.name!r} has no model class")
        return entity.model

    def _local_remote_id(self, entity: EntityDescription, attribute: str, remote_id: Any) -> Any:
        prop_mapping = self.bridge.mapping.property_mapping(attribute, entity)
        if prop_mapping is None:
            return remote_id
        converted = prop_mapping.to_local(remote_id)
        return remote_id if converted is None else converted

    @staticmethod
    async def _first_object(session: AsyncSession, statement: Select[Any]) -> Any | None:
        objects = (await session.execute(statement.limit(2))).scalars().all()
        if len(objects) > 1:
            count = await session.scalar(
                select(func.count()).select_from(statement.limit(None).subquery())
            )
            logger.warning("Got %d results where at most 1 was expected.", count)
        return objects[0] if objects else None
