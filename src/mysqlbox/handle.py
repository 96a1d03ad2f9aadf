"""The caller-facing sandbox handle.

A :class:`Handle` bundles everything a test needs from a provisioned
sandbox: the pool, the endpoint, the container identity and an idempotent
stop action. Every operation on an uninitialized handle raises
:class:`~mysqlbox.errors.InvalidHandleError`, so cleanup code can call
``await handle.stop()`` unconditionally::

    handle = Handle()
    try:
        handle = await manager.provision(settings)
        ...
    finally:
        with contextlib.suppress(InvalidHandleError):
            await handle.stop()
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from mysqlbox.errors import (
    BackendError,
    ContainerNotFoundError,
    InvalidHandleError,
    TeardownError,
)
from mysqlbox.reset import ResetReport, TableResetter
from mysqlbox.rows import RowHelper
from mysqlbox.utils.telemetry import ATTR_CONTAINER_NAME, get_tracer

if TYPE_CHECKING:
    from types import TracebackType

    import aiomysql

    from mysqlbox.db import DSN, MySQLConnector
    from mysqlbox.logs import LogSink
    from mysqlbox.runtime.backend import ContainerBackend

_tracer = get_tracer(__name__)


class BoxState(str, Enum):
    """Sandbox lifecycle states."""

    UNPROVISIONED = "unprovisioned"
    CREATING = "creating"
    STARTING = "starting"
    AWAITING_READINESS = "awaiting_readiness"
    READY = "ready"
    STOPPING = "stopping"
    STOPPED = "stopped"
    FAILED = "failed"


class StopAction:
    """Idempotent stop bound to one container.

    Calling it again after a successful stop returns ``False`` instead of
    contacting the runtime.
    """

    def __init__(
        self,
        backend: ContainerBackend,
        container_id: str,
        container_name: str,
        *,
        timeout: float,
        log: LogSink,
    ) -> None:
        self._backend = backend
        self.container_id = container_id
        self.container_name = container_name
        self.timeout = timeout
        self._log = log
        self.state = BoxState.READY

    @property
    def stopped(self) -> bool:
        return self.state is BoxState.STOPPED

    async def __call__(self) -> bool:
        """Stop the container; ``True`` if this call stopped it.

        Raises:
            TeardownError: If the runtime rejects the stop request.
        """
        if self.state in (BoxState.STOPPING, BoxState.STOPPED):
            self._log.debug("%s already %s", self.container_name, self.state.value)
            return False

        self.state = BoxState.STOPPING
        self._log.info("Stopping %s (grace %ss)", self.container_name, self.timeout)
        try:
            await self._backend.stop(self.container_id, self.timeout)
        except ContainerNotFoundError:
            self.state = BoxState.STOPPED
            self._log.info("%s was already gone", self.container_name)
            return False
        except BackendError as exc:
            self.state = BoxState.READY
            raise TeardownError(self.container_name, exc.detail) from exc
        self.state = BoxState.STOPPED
        return True


@dataclass(frozen=True)
class SandboxRecord:
    """State captured at provisioning time; all a teardown needs."""

    container_id: str
    container_name: str
    image: str
    dsn: DSN
    pool: aiomysql.Pool
    excluded_tables: tuple[str, ...]
    stop: StopAction
    connector: MySQLConnector
    log: LogSink


class Handle:
    """A provisioned sandbox, or an uninitialized placeholder."""

    def __init__(self, record: SandboxRecord | None = None) -> None:
        self._record = record
        self._resetter: TableResetter | None = None
        self._pool_closed = False

    def __repr__(self) -> str:
        if self._record is None:
            return "<Handle uninitialized>"
        dsn = self._record.dsn
        return f"<Handle {self._record.container_name} {self.state.value} {dsn.host}:{dsn.port}>"

    def _require(self, operation: str) -> SandboxRecord:
        if self._record is None:
            raise InvalidHandleError(operation)
        return self._record

    # -- identity and endpoint ----------------------------------------------

    @property
    def state(self) -> BoxState:
        if self._record is None:
            return BoxState.UNPROVISIONED
        return self._record.stop.state

    @property
    def pool(self) -> aiomysql.Pool:
        return self._require("pool").pool

    @property
    def dsn(self) -> DSN:
        return self._require("dsn").dsn

    @property
    def url(self) -> str:
        return self._require("url").dsn.url

    @property
    def host(self) -> str:
        return self._require("host").dsn.host

    @property
    def port(self) -> int:
        return self._require("port").dsn.port

    @property
    def database(self) -> str:
        return self._require("database").dsn.database

    @property
    def container_id(self) -> str:
        return self._require("container_id").container_id

    @property
    def container_name(self) -> str:
        return self._require("container_name").container_name

    @property
    def excluded_tables(self) -> tuple[str, ...]:
        return self._require("excluded_tables").excluded_tables

    @property
    def log(self) -> LogSink:
        return self._require("log").log

    def rows(self) -> RowHelper:
        """Row-fetching helpers bound to this sandbox's pool."""
        return RowHelper(self._require("rows").pool)

    # -- data reset ----------------------------------------------------------

    def _table_resetter(self, operation: str) -> TableResetter:
        record = self._require(operation)
        if self._resetter is None:
            self._resetter = TableResetter(record.pool, record.dsn.database, record.log)
        return self._resetter

    async def reset_all(self) -> list[str]:
        """Truncate every table except the configured excluded tables.

        Raises:
            ResetError: On the first listing or truncation failure.
        """
        resetter = self._table_resetter("reset_all")
        return await resetter.reset_all(self.excluded_tables)

    async def reset_some(self, *names: str) -> ResetReport:
        """Truncate the named tables, skipping unknown ones; best-effort."""
        resetter = self._table_resetter("reset_some")
        return await resetter.reset_some(names)

    # -- teardown ------------------------------------------------------------

    async def stop(self) -> bool:
        """Close the pool and stop the container.

        Safe to call repeatedly; returns ``False`` when already stopped.

        Raises:
            InvalidHandleError: If the handle was never provisioned.
            TeardownError: If the runtime rejects the stop request.
        """
        record = self._require("stop")
        with _tracer.start_as_current_span("mysqlbox.teardown") as span:
            span.set_attribute(ATTR_CONTAINER_NAME, record.container_name)
            await self.close()
            return await record.stop()

    async def close(self) -> None:
        """Close the pool but leave the container running."""
        record = self._require("close")
        if self._pool_closed:
            return
        self._pool_closed = True
        try:
            await record.connector.close_pool(record.pool)
        except Exception as exc:  # noqa: BLE001
            record.log.warning("Closing pool of %s failed: %s", record.container_name, exc)

    async def __aenter__(self) -> Handle:
        self._require("__aenter__")
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()


async def teardown(handle: Handle | None) -> bool:
    """Stop the sandbox behind *handle*.

    Raises:
        InvalidHandleError: If *handle* is ``None`` or uninitialized.
        TeardownError: If the runtime rejects the stop request.
    """
    if handle is None:
        raise InvalidHandleError("teardown")
    return await handle.stop()
