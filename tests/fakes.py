"""Fakes for testing code that talks to an engine or a store, without a database.

FakeEngine records every batch and query it receives and hands out sequential ids for INSERT statements.
FakeStore records the commands it is asked to perform. Both can be told to fail specific calls, counted from 1.
"""
from typing import Iterable, List

from notesdb.engines.base import Engine
from notesdb.models import Batch, NoteCmd, Statement


class FakeEngine(Engine):
    def __init__(self, fail_on: Iterable[int] = ()):
        self.fail_on = set(fail_on)
        self.batches: List[Batch] = []
        self.queries: List[Statement] = []
        self.rows: List[dict] = []
        self.next_id = 1

    async def query(self, statement: Statement) -> List[dict]:
        self.queries.append(statement)
        return list(self.rows)

    async def write_all(self, batch: Batch) -> List[int]:
        self.batches.append(list(batch))
        if len(self.batches) in self.fail_on:
            raise RuntimeError(f'simulated failure of batch {len(self.batches)}')
        ids = []
        for statement in batch:
            if statement.generates_id:
                ids.append(self.next_id)
                self.next_id += 1
        return ids


class FakeStore:
    def __init__(self, fail_on: Iterable[int] = ()):
        self.fail_on = set(fail_on)
        self.performed: List[NoteCmd] = []

    async def perform(self, cmd: NoteCmd):
        self.performed.append(cmd)
        if len(self.performed) in self.fail_on:
            raise RuntimeError(f'simulated failure of call {len(self.performed)}')
        return len(self.performed)
