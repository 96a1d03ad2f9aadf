"""End-to-end tests against a real Docker daemon.

Opt in with ``MYSQLBOX_INTEGRATION=1``; each test starts its own sandbox.
"""

from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path

import pytest

from mysqlbox.box import LifecycleManager
from mysqlbox.config import Settings
from mysqlbox.data import InitialData
from mysqlbox.errors import ProvisioningError, ReadinessTimeoutError
from mysqlbox.handle import BoxState, Handle
from mysqlbox.runtime.docker_cli import DockerCLIBackend
from mysqlbox.runtime.models import MANAGED_LABEL

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        os.environ.get("MYSQLBOX_INTEGRATION") != "1",
        reason="set MYSQLBOX_INTEGRATION=1 to run against Docker",
    ),
]

TESTDATA = Path(__file__).parent.parent / "testdata"


async def _insert_users(handle: Handle, count: int) -> None:
    now = datetime.now()
    async with handle.pool.acquire() as conn, conn.cursor() as cur:
        for n in range(count):
            await cur.execute(
                "INSERT INTO users (id, email, created_at, updated_at) VALUES (%s, %s, %s, %s)",
                (f"U-{n}", f"user{n}@example.com", now, now),
            )


async def _managed_names() -> set[str]:
    return {c.name for c in await DockerCLIBackend().list_managed(MANAGED_LABEL)}


class TestMySQLBox:
    async def test_empty_sandbox(self) -> None:
        async with LifecycleManager().sandbox() as handle:
            assert handle.state is BoxState.READY
            async with handle.pool.acquire() as conn, conn.cursor() as cur:
                await cur.execute("SELECT DATABASE()")
                assert (await cur.fetchone())[0] == "testing"
        assert handle.state is BoxState.STOPPED

    async def test_initial_data_from_reader(self) -> None:
        with (TESTDATA / "schema.sql").open("rb") as schema:
            settings = Settings(initial_data=InitialData.from_reader(schema))
            async with LifecycleManager().sandbox(settings) as handle:
                await _insert_users(handle, 100)
                assert await handle.rows().count("users") == 100

    async def test_random_root_password(self) -> None:
        settings = Settings(random_root_password=True)
        async with LifecycleManager().sandbox(settings) as handle:
            assert handle.dsn.password
            async with handle.pool.acquire() as conn, conn.cursor() as cur:
                await cur.execute("SELECT CURRENT_USER()")
                (user,) = await cur.fetchone()
            assert user.startswith("mysqlbox@")

    async def test_reset_all_keeps_excluded(self) -> None:
        settings = Settings(
            initial_data=InitialData.from_file(TESTDATA / "schema.sql"),
            excluded_tables=["categories"],
        )
        async with LifecycleManager().sandbox(settings) as handle:
            await _insert_users(handle, 3)
            rows = handle.rows()

            assert sorted(await handle.reset_all()) == ["users"]
            assert await rows.count("users") == 0
            assert await rows.count("categories") == 5

    async def test_reset_some_skips_unknown(self) -> None:
        settings = Settings(initial_data=InitialData.from_file(TESTDATA / "schema.sql"))
        async with LifecycleManager().sandbox(settings) as handle:
            await _insert_users(handle, 3)

            report = await handle.reset_some("categories", "does_not_exist")

            assert report.ok
            assert report.skipped == ["does_not_exist"]
            assert await handle.rows().count("categories") == 0
            assert await handle.rows().count("users") == 3

    async def test_row_helpers(self) -> None:
        settings = Settings(initial_data=InitialData.from_file(TESTDATA / "schema.sql"))
        async with LifecycleManager().sandbox(settings) as handle:
            await _insert_users(handle, 2)
            row = await handle.rows().row_with_id("users", "U-1")
            assert row is not None
            assert row["email"] == "user1@example.com"
            assert len(await handle.rows().rows_where("categories", "name", "books")) == 1

    async def test_bad_initial_data_leaves_nothing(self) -> None:
        name = "mysql-test-bad-schema"
        settings = Settings(
            container_name=name,
            initial_data=InitialData.from_file(TESTDATA / "bad-schema.sql"),
        )
        with pytest.raises(ProvisioningError):
            await LifecycleManager().provision(settings)
        assert name not in await _managed_names()

    async def test_readiness_timeout_leaves_nothing(self) -> None:
        name = "mysql-test-too-slow"
        with pytest.raises(ReadinessTimeoutError):
            await LifecycleManager().provision(
                Settings(container_name=name, ready_timeout=0.5, stop_timeout=1)
            )
        assert name not in await _managed_names()

    async def test_stop_twice(self) -> None:
        handle = await LifecycleManager().provision()
        assert await handle.stop() is True
        assert await handle.stop() is False
