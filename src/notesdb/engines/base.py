"""Defines the API between notesdb and the database that stores notes.

The most important class is :class:`Engine`.
"""

from typing import List

from notesdb.models import Batch, Statement


class Engine:
    """Base class for engines, which run statements against a database.

    An engine knows nothing about notes; it only executes what it is given. All methods are coroutines, and an
    engine is expected to serialize its own work if it is used by more than one task at a time.
    """

    async def open(self) -> None:
        """Prepares the engine for use, e.g. by connecting and creating the schema."""
        pass

    async def query(self, statement: Statement) -> List[dict]:
        """Runs a read-only statement and returns the rows, each as a dict of column name to value."""
        raise NotImplementedError()

    async def write_all(self, batch: Batch) -> List[int]:
        """Runs every statement in the batch as a single transaction.

        Returns the row id generated by each INSERT statement, in the order the statements appear in the batch.
        Statements that are not inserts do not contribute to the result.

        If any statement fails, none of the batch takes effect and the underlying exception is raised.
        """
        raise NotImplementedError()

    async def reset(self) -> None:
        """Drops all data and recreates the empty schema."""
        raise NotImplementedError()

    async def close(self) -> None:
        """Release any resources associated with the engine."""
        pass

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
