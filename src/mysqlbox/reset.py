"""Empty sandbox tables between tests without starting a new sandbox.

``reset_all`` stops at the first table it cannot truncate. ``reset_some``
skips names the database does not have and reports per-table failures
instead of raising. A failure to list the tables raises in both.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import pymysql

from mysqlbox.errors import ResetError
from mysqlbox.logs import LogSink
from mysqlbox.utils.telemetry import ATTR_DATABASE, ATTR_TABLES, ATTR_TABLES_FAILED, get_tracer

if TYPE_CHECKING:
    import aiomysql

_tracer = get_tracer(__name__)

DB_ERRORS: tuple[type[BaseException], ...] = (pymysql.err.MySQLError, OSError)

_LIST_TABLES_SQL = (
    "SELECT table_name FROM information_schema.tables "
    "WHERE table_schema = %s AND table_type = 'BASE TABLE' "
    "ORDER BY table_name"
)


def quote_identifier(name: str) -> str:
    """Backtick-quote a MySQL identifier."""
    return "`" + name.replace("`", "``") + "`"


@dataclass
class ResetReport:
    """Outcome of a best-effort reset."""

    truncated: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


class TableResetter:
    """Truncates tables of one sandbox database.

    Performs no locking: resets must not overlap with writes to the same
    tables.
    """

    def __init__(self, pool: aiomysql.Pool, database: str, log: LogSink | None = None) -> None:
        self._pool = pool
        self._database = database
        self._log = log or LogSink()

    async def list_tables(self) -> list[str]:
        """Return the base tables of the sandbox database.

        Raises:
            ResetError: If the catalog cannot be queried.
        """
        try:
            async with self._pool.acquire() as conn, conn.cursor() as cur:
                await cur.execute(_LIST_TABLES_SQL, (self._database,))
                rows = await cur.fetchall()
        except DB_ERRORS as exc:
            raise ResetError(f"cannot list tables of {self._database}: {exc}") from exc
        return [row[0] for row in rows]

    async def reset_all(self, excluded: Iterable[str] = ()) -> list[str]:
        """Truncate every table not in *excluded*; return the truncated names.

        Raises:
            ResetError: On the first listing or truncation failure.
        """
        keep = set(excluded)
        with _tracer.start_as_current_span("mysqlbox.reset_all") as span:
            span.set_attribute(ATTR_DATABASE, self._database)
            tables = [t for t in await self.list_tables() if t not in keep]
            span.set_attribute(ATTR_TABLES, tables)
            report = await self._truncate(tables, fail_fast=True)
        self._log.debug("Truncated %d table(s), kept %s", len(report.truncated), sorted(keep))
        return report.truncated

    async def reset_some(self, names: Sequence[str]) -> ResetReport:
        """Truncate the named tables that exist; never raise for a single table.

        Raises:
            ResetError: Only if the tables cannot be listed.
        """
        with _tracer.start_as_current_span("mysqlbox.reset_some") as span:
            span.set_attribute(ATTR_DATABASE, self._database)
            existing = set(await self.list_tables())
            wanted = list(dict.fromkeys(names))
            tables = [n for n in wanted if n in existing]

            report = await self._truncate(tables, fail_fast=False)
            report.skipped = [n for n in wanted if n not in existing]
            span.set_attribute(ATTR_TABLES, report.truncated)
            span.set_attribute(ATTR_TABLES_FAILED, sorted(report.failed))

        if report.skipped:
            self._log.debug("Skipped unknown table(s): %s", ", ".join(report.skipped))
        return report

    def truncate_sql(self, table: str) -> str:
        return f"TRUNCATE TABLE {quote_identifier(self._database)}.{quote_identifier(table)}"

    async def _truncate(self, tables: list[str], *, fail_fast: bool) -> ResetReport:
        report = ResetReport()
        if not tables:
            return report

        try:
            async with self._pool.acquire() as conn, conn.cursor() as cur:
                # Session-scoped; lets tables referenced by foreign keys be truncated
                await cur.execute("SET FOREIGN_KEY_CHECKS = 0")
                try:
                    for table in tables:
                        try:
                            await cur.execute(self.truncate_sql(table))
                        except DB_ERRORS as exc:
                            if fail_fast:
                                raise ResetError(str(exc), table=table) from exc
                            self._log.warning("Could not truncate %s: %s", table, exc)
                            report.failed[table] = str(exc)
                        else:
                            report.truncated.append(table)
                finally:
                    await self._restore_foreign_key_checks(conn, cur)
        except DB_ERRORS as exc:
            if fail_fast:
                raise ResetError(f"cannot prepare connection: {exc}") from exc
            self._log.warning("Could not prepare connection for truncation: %s", exc)
            for table in tables:
                if table not in report.truncated:
                    report.failed.setdefault(table, str(exc))
        return report

    async def _restore_foreign_key_checks(
        self, conn: aiomysql.Connection, cur: aiomysql.Cursor
    ) -> None:
        try:
            await cur.execute("SET FOREIGN_KEY_CHECKS = 1")
        except DB_ERRORS as exc:
            # A closed connection is dropped by the pool instead of reused
            self._log.warning(
                "Could not re-enable foreign key checks, closing connection: %s", exc
            )
            conn.close()
