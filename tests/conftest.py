"""Shared pytest fixtures for rest-bridge tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import TYPE_CHECKING, Any

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import StaticPool

from rest_bridge.bridge import RequestManager, RESTBridge
from rest_bridge.clients.rest import RESTClient
from rest_bridge.db import create_engine, session_factory
from rest_bridge.mapping import (
    ManagedObjectModel,
    RESTEntityMapping,
    RESTMapping,
    RESTPropertyMapping,
    UniquingType,
)
from tests.sample_models import SampleBase

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


BACKEND_URL = "http://backend.test/api"


class FakeBackend:
    """In-process REST backend answering from a route table."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], tuple[int, Any]] = {}
        self.requests: list[httpx.Request] = []
        self.transport = httpx.MockTransport(self.handle)

    def route(self, method: str, path: str, *, status: int = 200, json: Any = None) -> None:
        """Answer ``method`` on ``path`` (relative to the API root)."""
        self.routes[(method, "/api/" + path.strip("/"))] = (status, json)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key not in self.routes:
            return httpx.Response(404, json={"message": f"no route for {key}"})
        status, body = self.routes[key]
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)


@pytest.fixture
def object_model() -> ManagedObjectModel:
    return ManagedObjectModel.from_declarative_base(SampleBase)


@pytest.fixture
def rest_mapping(object_model: ManagedObjectModel) -> RESTMapping:
    """Mapping of the sample models.

    Team and Person unique on remote_id; Employee only adds a property;
    Customer has its own path and a read-only property.
    """
    by_remote_id = UniquingType.on_property("remote_id")
    return RESTMapping(
        entities_mapping={
            object_model["Team"]: RESTEntityMapping(
                rest_path="teams",
                uniquing_type=by_remote_id,
                properties_mapping={
                    "remote_id": RESTPropertyMapping("id"),
                    "name": RESTPropertyMapping("name"),
                    "members": RESTPropertyMapping("members"),
                },
            ),
            object_model["Person"]: RESTEntityMapping(
                rest_path="people",
                uniquing_type=by_remote_id,
                properties_mapping={
                    "remote_id": RESTPropertyMapping("id"),
                    "name": RESTPropertyMapping("full_name"),
                    "team": RESTPropertyMapping("team"),
                },
            ),
            object_model["Employee"]: RESTEntityMapping(
                properties_mapping={"salary": RESTPropertyMapping("salary")},
            ),
            object_model["Customer"]: RESTEntityMapping(
                rest_path="customers",
                properties_mapping={"loyalty_code": RESTPropertyMapping("loyalty", read_only=True)},
            ),
        },
        forced_parameters_on_fetch={"v": "2"},
        forced_values_on_save={"client": "tests"},
    )


@pytest.fixture
def bridge(object_model: ManagedObjectModel, rest_mapping: RESTMapping) -> RESTBridge:
    return RESTBridge(object_model, rest_mapping, remote_id_attribute_name="remote_id")


@pytest.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine with the sample tables created."""
    engine = create_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(SampleBase.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_session(test_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory(test_engine)() as session:
        yield session


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
async def rest_client(backend: FakeBackend) -> AsyncGenerator[RESTClient, None]:
    client = RESTClient(base_url=BACKEND_URL, api_key="secret", transport=backend.transport)
    yield client
    await client.aclose()


@pytest.fixture
def manager(bridge: RESTBridge, rest_client: RESTClient) -> RequestManager:
    return RequestManager(bridge, rest_client)
