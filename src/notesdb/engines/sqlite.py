"""Provides the :class:`SqliteEngine` class."""

import asyncio
from typing import List, Optional

import aiosqlite

from notesdb.conf import TableNames
from notesdb.engines.base import Engine
from notesdb.models import Batch, Statement


def schema_script(tables: TableNames) -> str:
    """Returns the DDL for the notes table and the entity tables. Every statement is safe to run repeatedly."""
    script = f"""
CREATE TABLE IF NOT EXISTS {tables.notes} (
    local_id INTEGER PRIMARY KEY,
    remote_id TEXT UNIQUE,
    text TEXT,
    last_modified TEXT,
    sync_state TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS {tables.notes}_index_last_modified ON {tables.notes} (last_modified);
"""
    for table in tables.entity_tables():
        script += f"""
CREATE TABLE IF NOT EXISTS {table} (
    local_id INTEGER NOT NULL,
    value TEXT NOT NULL,
    FOREIGN KEY(local_id) REFERENCES {tables.notes}(local_id)
);

CREATE UNIQUE INDEX IF NOT EXISTS {table}_index_local_id_value ON {table} (local_id, value);
CREATE INDEX IF NOT EXISTS {table}_index_value ON {table} (value);
"""
    return script


def drop_script(tables: TableNames) -> str:
    # entity tables first, since they refer to the notes table
    return ''.join(f'DROP TABLE IF EXISTS {table};\n' for table in reversed(tables.all()))


class SqliteEngine(Engine):
    """Stores notes in a SQLite database, accessed through aiosqlite.

    Call :meth:`open` before use (or use the instance as an async context manager), and :meth:`close` when done.

    Batches are serialized with a lock, so the engine can be shared by several tasks; only one batch or query runs
    at a time.
    """

    def __init__(self, path: str, tables: TableNames = TableNames()):
        self.path = path
        self.tables = tables
        self.connection: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()

    async def open(self) -> None:
        self.connection = await aiosqlite.connect(self.path)
        self.connection.row_factory = aiosqlite.Row
        await self.connection.executescript(schema_script(self.tables))
        await self.connection.commit()

    def _conn(self) -> aiosqlite.Connection:
        if self.connection is None:
            raise RuntimeError('Engine not opened. Call open() first.')
        return self.connection

    async def query(self, statement: Statement) -> List[dict]:
        conn = self._conn()
        async with self._lock:
            async with conn.execute(statement.sql, statement.params) as cursor:
                return [dict(row) for row in await cursor.fetchall()]

    async def write_all(self, batch: Batch) -> List[int]:
        conn = self._conn()
        ids = []
        async with self._lock:
            try:
                for statement in batch:
                    cursor = await conn.execute(statement.sql, statement.params)
                    if statement.generates_id:
                        ids.append(cursor.lastrowid)
                    await cursor.close()
                await conn.commit()
            except BaseException:
                await conn.rollback()
                raise
        return ids

    async def reset(self) -> None:
        conn = self._conn()
        async with self._lock:
            await conn.executescript(drop_script(self.tables) + schema_script(self.tables))
            await conn.commit()

    async def close(self) -> None:
        if self.connection is not None:
            await self.connection.close()
            self.connection = None
