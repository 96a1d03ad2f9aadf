"""Tests for the sandbox Handle and its idempotent stop."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, patch

import pytest

from mysqlbox.box import LifecycleManager
from mysqlbox.config import Settings
from mysqlbox.errors import BackendError, InvalidHandleError, TeardownError
from mysqlbox.handle import BoxState, Handle, teardown
from mysqlbox.logs import LogSink


async def _provision(backend: Any, connector: Any, **kwargs: Any) -> Handle:
    manager = LifecycleManager(backend=backend, connector=connector, log=LogSink("test"))
    return await manager.provision(Settings(ready_interval=0.01, **kwargs))


class TestUninitializedHandle:
    @pytest.mark.parametrize(
        "attr",
        [
            "pool",
            "dsn",
            "url",
            "host",
            "port",
            "database",
            "container_id",
            "container_name",
            "excluded_tables",
            "log",
        ],
    )
    def test_properties_raise(self, attr: str) -> None:
        with pytest.raises(InvalidHandleError, match=attr):
            getattr(Handle(), attr)

    def test_state_is_unprovisioned(self) -> None:
        assert Handle().state is BoxState.UNPROVISIONED

    def test_rows_raises(self) -> None:
        with pytest.raises(InvalidHandleError):
            Handle().rows()

    async def test_reset_all_raises(self) -> None:
        with pytest.raises(InvalidHandleError, match="reset_all"):
            await Handle().reset_all()

    async def test_reset_some_raises(self) -> None:
        with pytest.raises(InvalidHandleError, match="reset_some"):
            await Handle().reset_some("users")

    async def test_stop_raises(self) -> None:
        with pytest.raises(InvalidHandleError, match="stop"):
            await Handle().stop()

    async def test_close_raises(self) -> None:
        with pytest.raises(InvalidHandleError):
            await Handle().close()

    async def test_async_with_raises(self) -> None:
        with pytest.raises(InvalidHandleError):
            async with Handle():
                pass

    async def test_teardown_none(self) -> None:
        with pytest.raises(InvalidHandleError, match="teardown"):
            await teardown(None)

    async def test_teardown_uninitialized(self) -> None:
        with pytest.raises(InvalidHandleError):
            await teardown(Handle())

    def test_repr(self) -> None:
        assert repr(Handle()) == "<Handle uninitialized>"


class TestStop:
    async def test_stop_is_idempotent(self, backend: Any, connector: Any) -> None:
        handle = await _provision(backend, connector)

        assert await handle.stop() is True
        assert await handle.stop() is False
        assert await teardown(handle) is False
        assert backend.ops("stop") == [handle.container_id]
        assert handle.state is BoxState.STOPPED

    async def test_pool_closed_before_stop(self, backend: Any, connector: Any) -> None:
        handle = await _provision(backend, connector)
        await handle.stop()
        await handle.stop()
        assert connector.closed == [handle.pool]

    async def test_container_already_gone(self, backend: Any, connector: Any) -> None:
        handle = await _provision(backend, connector)
        backend.containers.clear()

        assert await handle.stop() is False
        assert handle.state is BoxState.STOPPED

    async def test_runtime_failure_raises_teardown_error(
        self, backend: Any, connector: Any
    ) -> None:
        handle = await _provision(backend, connector, container_name="box")
        backend.fail("stop", BackendError("daemon unreachable"))

        with pytest.raises(TeardownError, match="daemon unreachable") as exc_info:
            await handle.stop()
        assert exc_info.value.container == "box"
        assert handle.state is BoxState.READY

        backend.failures.clear()
        assert await handle.stop() is True

    async def test_pool_close_failure_does_not_block_stop(
        self, backend: Any, connector: Any
    ) -> None:
        handle = await _provision(backend, connector)
        with patch.object(connector, "close_pool", AsyncMock(side_effect=OSError("broken pipe"))):
            assert await handle.stop() is True
        assert any("broken pipe" in line for line in handle.log.lines)

    async def test_close_keeps_container(self, backend: Any, connector: Any) -> None:
        handle = await _provision(backend, connector)
        await handle.close()
        assert handle.pool.closed
        assert handle.state is BoxState.READY
        assert backend.ops("stop") == []

    async def test_async_with(self, backend: Any, connector: Any) -> None:
        handle = await _provision(backend, connector)
        async with handle as box:
            assert box is handle
        assert handle.state is BoxState.STOPPED


class TestHandleOperations:
    async def test_endpoint(self, backend: Any, connector: Any) -> None:
        handle = await _provision(backend, connector, root_password="pw", database="shop")
        assert handle.dsn.password == "pw"
        assert handle.url == "mysql://root:pw@127.0.0.1:49153/shop"
        assert repr(handle) == f"<Handle {handle.container_name} ready 127.0.0.1:49153>"

    async def test_reset_all_honours_excluded_tables(self, backend: Any, connector: Any) -> None:
        handle = await _provision(backend, connector, excluded_tables=["categories"])
        handle.pool.tables["users"] = 4

        truncated = await handle.reset_all()

        assert truncated == ["users"]
        assert handle.pool.tables == {"users": 0, "categories": 5}

    async def test_reset_some(self, backend: Any, connector: Any) -> None:
        handle = await _provision(backend, connector)
        report = await handle.reset_some("categories", "missing")
        assert report.truncated == ["categories"]
        assert report.skipped == ["missing"]
        assert handle.pool.tables["categories"] == 0

    async def test_rows_bound_to_pool(self, backend: Any, connector: Any) -> None:
        handle = await _provision(backend, connector)
        assert await handle.rows().count("categories") == 5
