"""Fetch and save requests exchanged between the local store and the bridge."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Select
from sqlalchemy.ext.asyncio import AsyncSession

from rest_bridge.mapping.entities import EntityDescription
from rest_bridge.models.enums import ChangeKind, FetchType, SaveWorkflow


@dataclass(frozen=True)
class AdditionalRESTRequestInfo:
    """Extra REST-side information attached to a fetch or save request."""

    entity: EntityDescription | None = None
    flatified_fields: str | None = None
    """Local field selection, e.g. ``"id,name,team(id)"``."""

    paginator_info: dict[str, Any] | None = None
    """Query parameters selecting a page of a collection."""

    key_path_paginator_info: dict[str, Mapping[str, Any]] | None = None
    """Pagination parameters of nested collections, keyed by relationship path."""


@dataclass
class FetchRequest:
    """Fetch objects of ``entity`` matching ``statement``, importing from the backend."""

    session: AsyncSession
    entity: EntityDescription
    statement: Select[Any]
    fetch_type: FetchType = FetchType.ALWAYS
    remote_id: Any = None
    additional_info: AdditionalRESTRequestInfo | None = None


@dataclass
class SaveRequest:
    """Save ``objects`` (or every pending change when None) on the backend."""

    session: AsyncSession
    objects: list[Any] | None = None
    workflow: SaveWorkflow = SaveWorkflow.SAVE_BEFORE_BACK_RETURNS
    additional_info: AdditionalRESTRequestInfo | None = None
    changes: list[PendingChange] = field(default_factory=list)
    """Filled when the request is prepared."""


@dataclass
class PendingChange:
    """One object to send to the backend, snapshotted at preparation time."""

    obj: Any
    entity: EntityDescription
    kind: ChangeKind
    path: str
    payload: dict[str, Any] | None
