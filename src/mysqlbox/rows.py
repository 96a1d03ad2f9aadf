"""Row-fetching helpers for test assertions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import aiomysql

from mysqlbox.reset import quote_identifier

if TYPE_CHECKING:
    from collections.abc import Mapping


class RowHelper:
    """Thin ``SELECT`` shortcuts over a sandbox pool."""

    def __init__(self, pool: aiomysql.Pool) -> None:
        self._pool = pool

    async def row_with_id(
        self, table: str, row_id: Any, *, id_column: str = "id"
    ) -> dict[str, Any] | None:
        """Return the row of *table* whose *id_column* equals *row_id*, or ``None``."""
        rows = await self._select(table, id_column, row_id, limit=1)
        return rows[0] if rows else None

    async def rows_where(self, table: str, column: str, value: Any) -> list[dict[str, Any]]:
        """Return every row of *table* where *column* equals *value*."""
        return await self._select(table, column, value)

    async def count(self, table: str) -> int:
        async with self._pool.acquire() as conn, conn.cursor() as cur:
            await cur.execute(f"SELECT COUNT(*) FROM {quote_identifier(table)}")
            (total,) = await cur.fetchone()
        return int(total)

    async def _select(
        self, table: str, column: str, value: Any, *, limit: int | None = None
    ) -> list[dict[str, Any]]:
        query = f"SELECT * FROM {quote_identifier(table)} WHERE {quote_identifier(column)} = %s"
        if limit is not None:
            query += f" LIMIT {int(limit)}"
        async with self._pool.acquire() as conn, conn.cursor(aiomysql.DictCursor) as cur:
            await cur.execute(query, (value,))
            rows: list[Mapping[str, Any]] = await cur.fetchall()
        return [dict(row) for row in rows]
