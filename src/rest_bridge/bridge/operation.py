"""Awaitable back-request operations."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine, Generator
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

RequestT = TypeVar("RequestT")


@dataclass
class BackRequestResult(Generic[RequestT]):
    """Outcome of a back request: imported objects, or the error that stopped it."""

    request: RequestT
    objects: list[Any] = field(default_factory=list)  # pyright: ignore[reportUnknownVariableType]
    payload: Any = None
    """Raw decoded response(s) from the backend."""

    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BackRequestOperation(Generic[RequestT]):
    """A request to the backend running as an asyncio task.

    Awaiting the operation starts it if needed and returns its
    ``BackRequestResult``. Backend and mapping failures are reported in the
    result, not raised.
    """

    def __init__(
        self,
        request: RequestT,
        run: Callable[[], Coroutine[Any, Any, BackRequestResult[RequestT]]],
    ) -> None:
        self.request = request
        self._run = run
        self._task: asyncio.Task[BackRequestResult[RequestT]] | None = None

    def start(self) -> None:
        """Schedule the operation on the running loop. Starting twice is a no-op."""
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._run())

    @property
    def started(self) -> bool:
        return self._task is not None

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()

    def cancel(self) -> bool:
        if self._task is None:
            return False
        return self._task.cancel()

    async def wait(self) -> BackRequestResult[RequestT]:
        self.start()
        assert self._task is not None
        return await self._task

    def __await__(self) -> Generator[Any, None, BackRequestResult[RequestT]]:
        return self.wait().__await__()
