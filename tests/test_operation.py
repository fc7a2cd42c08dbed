"""Tests for awaitable back-request operations."""

import asyncio

import pytest

from rest_bridge.bridge import BackRequestOperation, BackRequestResult


class TestBackRequestOperation:
    async def test_runs_once(self) -> None:
        calls: list[int] = []

        async def run() -> BackRequestResult[str]:
            calls.append(1)
            return BackRequestResult("req", objects=[1, 2])

        operation = BackRequestOperation("req", run)
        operation.start()
        operation.start()

        first = await operation
        second = await operation.wait()

        assert first is second
        assert first.objects == [1, 2]
        assert calls == [1]

    async def test_lazy_until_awaited(self) -> None:
        async def run() -> BackRequestResult[str]:
            return BackRequestResult("req")

        operation = BackRequestOperation("req", run)

        assert not operation.started
        assert not operation.done
        assert operation.cancel() is False

        result = await operation

        assert operation.started
        assert operation.done
        assert result.ok

    async def test_cancel_running(self) -> None:
        gate = asyncio.Event()

        async def run() -> BackRequestResult[str]:
            await gate.wait()
            return BackRequestResult("req")

        operation = BackRequestOperation("req", run)
        operation.start()
        await asyncio.sleep(0)

        assert operation.cancel() is True
        with pytest.raises(asyncio.CancelledError):
            await operation
        assert operation.done

    def test_result_error(self) -> None:
        result = BackRequestResult("req", error=RuntimeError("boom"))

        assert not result.ok
        assert result.objects == []
