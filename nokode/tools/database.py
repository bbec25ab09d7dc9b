"""
Database tool for the SQLite datastore.

The model can create tables, insert, query, update and delete through
this tool. Parameterized statements always go through the prepared path,
even when the model asked for script execution, so bound values are
never interpolated into SQL text.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Literal, Optional, Tuple

import aiosqlite
from pydantic import BaseModel, Field

from nokode.tools.base import Tool

logger = logging.getLogger(__name__)

ROW_RETURNING_PREFIXES = ("SELECT", "PRAGMA", "WITH", "EXPLAIN")


def returns_rows(sql: str) -> bool:
    normalized = sql.strip().upper()
    return normalized.startswith(ROW_RETURNING_PREFIXES) or "RETURNING" in normalized


def _preview(sql: str, limit: int = 100) -> str:
    return sql if len(sql) <= limit else sql[:limit] + "..."


class Datastore:
    """
    Thin async wrapper around the SQLite database file.

    Every operation opens its own connection with foreign keys enabled;
    concurrency between requests is left to SQLite's own locking.
    """

    def __init__(self, path: str) -> None:
        self.path = path

    @asynccontextmanager
    async def connect(self) -> AsyncIterator[aiosqlite.Connection]:
        async with aiosqlite.connect(self.path) as db:
            db.row_factory = aiosqlite.Row
            await db.execute("PRAGMA foreign_keys = ON")
            yield db

    async def executescript(self, sql: str) -> None:
        async with self.connect() as db:
            await db.executescript(sql)
            await db.commit()

    async def fetchall(self, sql: str, params: Tuple[Any, ...] = ()) -> List[Dict[str, Any]]:
        async with self.connect() as db:
            cursor = await db.execute(sql, params)
            rows = await cursor.fetchall()
            await cursor.close()
            # RETURNING statements modify data as well
            await db.commit()
            return [dict(row) for row in rows]

    async def run(self, sql: str, params: Tuple[Any, ...] = ()) -> Tuple[int, Optional[int]]:
        async with self.connect() as db:
            cursor = await db.execute(sql, params)
            changes = max(cursor.rowcount, 0)
            last_rowid = cursor.lastrowid
            await cursor.close()
            await db.commit()
            return changes, last_rowid

    async def table_definitions(self) -> List[str]:
        rows = await self.fetchall("SELECT sql FROM sqlite_master WHERE type='table' AND sql IS NOT NULL")
        return [row["sql"] for row in rows]

    async def table_row_counts(self) -> Dict[str, int]:
        tables = await self.fetchall(
            "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
        )
        counts: Dict[str, int] = {}
        for table in tables:
            name = table["name"]
            quoted = '"' + name.replace('"', '""') + '"'
            rows = await self.fetchall(f"SELECT COUNT(*) AS count FROM {quoted}")
            counts[name] = rows[0]["count"] if rows else 0
        return counts


class QueryInput(BaseModel):
    query: str = Field(description="The SQL query to execute")
    params: List[Any] = Field(
        default_factory=list,
        description="Optional parameters for prepared statements (prevents SQL injection)",
    )
    mode: Literal["query", "exec"] = Field(
        default="query",
        description='Mode: "query" for SELECT/returning data, "exec" for DDL/multiple statements',
    )


class QueryTool(Tool):
    """
    Execute SQL against the datastore and report a structured result.

    Tool input schema:
    {
        "query": "SELECT * FROM contacts WHERE id = ?",
        "params": [1],
        "mode": "query"
    }

    Datastore errors never escape: they come back as
    {"success": false, "error": ..., "duration": ...}.
    """

    input_model = QueryInput

    def __init__(self, datastore: Datastore) -> None:
        super().__init__(
            name="database",
            description=(
                "Execute SQL queries on the SQLite database. You can create tables, insert data, "
                "query, update, delete - any SQL operation."
            ),
        )
        self.datastore = datastore

    async def run(self, tool_input: QueryInput) -> Dict[str, Any]:
        sql = tool_input.query
        params = tuple(tool_input.params)
        logger.info(
            "Executing %s query: %s (params=%d)", tool_input.mode.upper(), _preview(sql), len(params)
        )
        if params:
            logger.debug("Query parameters: %r", params)

        start = time.monotonic()
        try:
            if tool_input.mode == "exec" and not params:
                await self.datastore.executescript(sql)
                duration = _elapsed_ms(start)
                logger.info("Exec completed in %dms", duration)
                return {
                    "success": True,
                    "message": "Query executed successfully",
                    "result": None,
                    "duration": duration,
                }

            if returns_rows(sql):
                rows = await self.datastore.fetchall(sql, params)
                duration = _elapsed_ms(start)
                logger.info("Query returned %d rows in %dms", len(rows), duration)
                return {
                    "success": True,
                    "rows": rows,
                    "count": len(rows),
                    "duration": duration,
                }

            changes, last_rowid = await self.datastore.run(sql, params)
            duration = _elapsed_ms(start)
            logger.info(
                "%s affected %d rows in %dms", sql.strip().split(" ")[0].upper(), changes, duration
            )
            return {
                "success": True,
                "changes": changes,
                "lastInsertRowid": last_rowid,
                "duration": duration,
            }
        except (aiosqlite.Error, aiosqlite.Warning, ValueError, OverflowError) as exc:
            duration = _elapsed_ms(start)
            logger.error("Query failed after %dms: %s", duration, exc)
            return {"success": False, "error": str(exc), "duration": duration}


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
