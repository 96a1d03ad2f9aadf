"""Shared fakes for the container backend and the MySQL client."""

from __future__ import annotations

from typing import Any

import pymysql
import pytest

from mysqlbox.db import DSN
from mysqlbox.errors import BackendError, ContainerNotFoundError
from mysqlbox.runtime.models import ContainerInfo, ContainerSpec, ContainerSummary, PortBinding


class FakeBackend:
    """In-memory ContainerBackend that records every call."""

    def __init__(self, *, host_port: int | None = 49153, running: bool = True) -> None:
        self.host_port = host_port
        self.running = running
        self.calls: list[tuple[str, str]] = []
        self.specs: list[ContainerSpec] = []
        self.containers: set[str] = set()
        self.failures: dict[str, BaseException] = {}

    def fail(self, op: str, exc: BaseException | None = None) -> None:
        self.failures[op] = exc or BackendError(f"{op} rejected")

    def _check(self, op: str) -> None:
        if op in self.failures:
            raise self.failures[op]

    async def create(self, spec: ContainerSpec) -> str:
        self.calls.append(("create", spec.name))
        self.specs.append(spec)
        self._check("create")
        container_id = f"id-{spec.name}"
        self.containers.add(container_id)
        return container_id

    async def start(self, container_id: str) -> None:
        self.calls.append(("start", container_id))
        self._check("start")

    async def inspect(self, container_id: str) -> ContainerInfo:
        self.calls.append(("inspect", container_id))
        self._check("inspect")
        if container_id not in self.containers:
            raise ContainerNotFoundError(container_id)
        ports = {"3306/tcp": [PortBinding(host_port=self.host_port)]} if self.host_port else {}
        return ContainerInfo(id=container_id, running=self.running, ports=ports)

    async def stop(self, container_id: str, timeout: float) -> None:
        self.calls.append(("stop", container_id))
        self._check("stop")
        if container_id not in self.containers:
            raise ContainerNotFoundError(container_id)
        self.containers.discard(container_id)

    async def list_managed(self, label: str) -> list[ContainerSummary]:
        return [ContainerSummary(id=c, name=c.removeprefix("id-")) for c in sorted(self.containers)]

    def ops(self, op: str) -> list[str]:
        return [target for name, target in self.calls if name == op]


class FakeCursor:
    def __init__(self, db: FakeDatabase) -> None:
        self._db = db
        self._rows: list[Any] = []

    async def __aenter__(self) -> FakeCursor:
        return self

    async def __aexit__(self, *exc: object) -> bool:
        return False

    async def execute(self, sql: str, args: Any = None) -> None:
        self._db.statements.append(sql)
        if sql.startswith("SET FOREIGN_KEY_CHECKS"):
            if sql.endswith("0") and self._db.fk_disable_error:
                raise pymysql.err.OperationalError(2013, "Lost connection to MySQL server")
            if sql.endswith("1") and self._db.fk_enable_error:
                raise pymysql.err.OperationalError(2006, "MySQL server has gone away")
        elif sql.startswith("SELECT table_name"):
            if self._db.list_error:
                raise pymysql.err.OperationalError(2013, "Lost connection to MySQL server")
            self._db.list_args = args
            self._rows = [(t,) for t in sorted(self._db.tables)]
        elif sql.startswith("TRUNCATE TABLE"):
            table = sql.rsplit(".", 1)[1].strip("`")
            if table in self._db.broken:
                raise pymysql.err.OperationalError(1205, "Lock wait timeout exceeded")
            self._db.tables[table] = 0
        elif sql.startswith("SELECT COUNT(*)"):
            table = sql.rsplit(" ", 1)[1].strip("`")
            self._rows = [(self._db.tables[table],)]
        elif sql.startswith("SELECT *"):
            self._db.select_args = args
            self._rows = list(self._db.select_rows)

    async def fetchall(self) -> list[Any]:
        return self._rows

    async def fetchone(self) -> Any:
        return self._rows[0] if self._rows else None


class FakeConnection:
    def __init__(self, db: FakeDatabase) -> None:
        self._db = db

    def close(self) -> None:
        self._db.closed_connections += 1

    def cursor(self, cursor_cls: Any = None) -> FakeCursor:
        return FakeCursor(self._db)


class _Acquire:
    def __init__(self, db: FakeDatabase) -> None:
        self._db = db

    async def __aenter__(self) -> FakeConnection:
        if self._db.acquire_error:
            raise pymysql.err.OperationalError(2003, "Can't connect to MySQL server")
        return FakeConnection(self._db)

    async def __aexit__(self, *exc: object) -> bool:
        return False


class FakeDatabase:
    """Enough of an aiomysql pool to drive the reset engine and row helpers."""

    def __init__(self, tables: dict[str, int] | None = None) -> None:
        self.tables: dict[str, int] = dict(tables or {})
        self.broken: set[str] = set()
        self.list_error = False
        self.acquire_error = False
        self.fk_disable_error = False
        self.fk_enable_error = False
        self.closed_connections = 0
        self.statements: list[str] = []
        self.list_args: Any = None
        self.select_args: Any = None
        self.select_rows: list[dict[str, Any]] = []
        self.closed = False

    def acquire(self) -> _Acquire:
        return _Acquire(self)

    def truncations(self) -> list[str]:
        return [s.rsplit(".", 1)[1].strip("`") for s in self.statements if s.startswith("TRUNCATE")]


class FakeConnector:
    """MySQLConnector stand-in; probes fail for the first *failures* attempts."""

    def __init__(self, *, failures: int = 0, always_fail: bool = False) -> None:
        self.failures = failures
        self.always_fail = always_fail
        self.probes: list[DSN] = []
        self.pools: list[FakeDatabase] = []
        self.closed: list[FakeDatabase] = []

    async def probe(self, dsn: DSN, timeout: float) -> None:
        self.probes.append(dsn)
        if self.always_fail or len(self.probes) <= self.failures:
            raise ConnectionRefusedError("connection refused")

    async def open_pool(self, dsn: DSN) -> FakeDatabase:
        pool = FakeDatabase({"users": 0, "categories": 5})
        self.pools.append(pool)
        return pool

    async def close_pool(self, pool: FakeDatabase) -> None:
        pool.closed = True
        self.closed.append(pool)


@pytest.fixture()
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture()
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture()
def fake_db() -> FakeDatabase:
    return FakeDatabase({"users": 10, "categories": 5, "orders": 3})
