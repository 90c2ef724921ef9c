"""Provides the main entry point for using the library, :class:`NoteStore`"""

from __future__ import annotations
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Union

from notesdb.batch import execute
from notesdb.conf import NotesdbConf
from notesdb.engines.base import Engine
from notesdb.engines.sqlite import SqliteEngine
from notesdb.models import CleanNoteCmd, CreateNotesCmd, DeleteNotesCmd, EntityCountsCmd, EntityKind, FilterSpec,\
    FilterSpecIsh, ListNotesCmd, Note, NoteCmd, SyncState, UpdateNotesCmd, as_notes
from notesdb.query import build_delete, build_entity_counts, build_get, build_get_by_remote_key, build_insert,\
    build_list, build_soft_delete, build_update


class Error(Exception):
    pass


NotesIsh = Union[Note, Iterable[Note]]


class NoteStore:
    """Main entry point for working programmatically with your collection of notes.

    Generally, you should get an instance using :meth:`NoteStore.for_user` or
    :meth:`notesdb.conf.NotesdbConf.instantiate`. Call :meth:`open` before use and :meth:`close` when you're done
    with it, or else use it as an async context manager.

    The store never modifies the :class:`notesdb.models.Note` objects passed to it. Methods that assign local keys or
    change sync states return new instances reflecting what was saved.

    .. attribute:: conf
       :type: notesdb.conf.NotesdbConf

    .. attribute:: engine
       :type: notesdb.engines.base.Engine

    Here's an example that adds a note and then lists everything tagged #journal:

    .. code-block:: python

       from notesdb.api import NoteStore
       from notesdb.models import Note

       async with NoteStore.for_user() as store:
           await store.create(Note('Dinner with @carol #journal', last_modified=datetime.now(timezone.utc)))
           notes = await store.list('#journal')
    """

    @staticmethod
    def for_user() -> NoteStore:
        """Creates an instance using the user's ``~/.notesdb.conf.py`` file.

        Raises :exc:`Exception` if it does not exist or does not define configuration.
        """
        return NotesdbConf.for_user().instantiate()

    def __init__(self, conf: NotesdbConf, engine: Engine = None):
        self.conf = conf
        self.tables = conf.table_names
        self.engine = engine or SqliteEngine(conf.db_path, conf.table_names)

    async def open(self) -> None:
        await self.engine.open()

    async def close(self) -> None:
        """Closes the associated engine."""
        await self.engine.close()

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def create(self, notes: NotesIsh, dirty: bool = False) -> List[Note]:
        """Inserts the notes and indexes their entities.

        The notes are marked ``dirty-create`` if ``dirty`` is True, meaning they still need to be sent to the remote
        system, and ``synced`` otherwise.

        This takes two batches: one for the notes, and then one for the index rows, which can only be built once the
        new local keys are known. Returns the notes with their local keys and sync states filled in.
        May raise :exc:`notesdb.batch.BatchError`.
        """
        notes = as_notes(notes)
        state = SyncState.DIRTY_CREATE if dirty else SyncState.SYNCED
        plans = [build_insert(note, state, self.tables) for note in notes]
        ids = await execute(self.engine, [plan.note for plan in plans])
        await execute(self.engine, [s for plan, local_key in zip(plans, ids) for s in plan.entities(local_key)])
        return [replace(note, local_key=local_key, sync_state=state) for note, local_key in zip(notes, ids)]

    async def update(self, notes: NotesIsh, dirty: bool = False) -> List[Note]:
        """Saves the notes and rebuilds their index rows, all in one batch.

        Each note is identified by its remote key if it has one, otherwise by its local key. A remote key must already
        be stored, and if the note also has a local key, stored on that row; otherwise :exc:`Error` is raised. Use
        :meth:`clean` to record a remote key the note has just been given. Notes that only have a remote key get
        their local key from the stored row.

        The notes are marked ``dirty-update`` if ``dirty`` is True and ``synced`` otherwise.
        """
        notes = await self._resolve(as_notes(notes))
        state = SyncState.DIRTY_UPDATE if dirty else SyncState.SYNCED
        await execute(self.engine, [s for note in notes for s in build_update(note, state, self.tables)])
        return [replace(note, sync_state=state) for note in notes]

    async def delete(self, notes: NotesIsh, dirty: bool = False) -> List[Note]:
        """Deletes the notes and their index rows.

        If ``dirty`` is True, the notes are not actually removed: they become ``dirty-delete`` tombstones that stay
        until :meth:`clean` is called after the remote system has confirmed the deletion. Tombstones lose their index
        rows right away.

        Returns the notes as they now stand.
        """
        notes = await self._resolve(as_notes(notes))
        if dirty:
            await execute(self.engine, [s for note in notes for s in build_soft_delete(note, self.tables)])
            return [replace(note, sync_state=SyncState.DIRTY_DELETE) for note in notes]
        await execute(self.engine, [s for note in notes for s in build_delete(note, self.tables)])
        return notes

    async def clean(self, note: Note) -> Optional[Note]:
        """Marks a note as finished syncing.

        A ``dirty-delete`` tombstone is deleted for real and None is returned. Any other note is saved as ``synced``,
        identified by its local key regardless of whether it has a remote key, and the updated note is returned.

        Only accepts a single note, which must have a local key.
        """
        if not isinstance(note, Note):
            raise Error('clean takes only a single note')
        if note.local_key is None:
            raise Error('Cannot clean a note that has no local key')
        if note.sync_state == SyncState.DIRTY_DELETE:
            await execute(self.engine, build_delete(note, self.tables))
            return None
        await execute(self.engine, build_update(note, SyncState.SYNCED, self.tables, cleaning=True))
        return replace(note, sync_state=SyncState.SYNCED)

    async def list(self, spec: FilterSpecIsh = None) -> List[Note]:
        """Returns the notes matching the filter, most recently modified first.

        Strings are parsed with :meth:`notesdb.models.FilterSpec.parse`; when they do not give a limit, the
        configured :attr:`notesdb.conf.NotesdbConf.page_size` is used.
        """
        spec = FilterSpec.parse(spec, limit=self.conf.page_size)
        rows = await self.engine.query(build_list(spec, self.tables))
        return [Note.from_row(row) for row in rows]

    async def entity_counts(self, kind: EntityKind, spec: FilterSpecIsh = None) -> Dict[str, int]:
        """Returns a map of entity values of the given kind to the number of matching notes that contain each one."""
        spec = FilterSpec.parse(spec, limit=self.conf.page_size)
        rows = await self.engine.query(build_entity_counts(kind, spec, self.tables))
        return {row['value']: row['count'] for row in rows}

    async def get(self, local_key: int) -> Optional[Note]:
        rows = await self.engine.query(build_get(local_key, self.tables))
        return Note.from_row(rows[0]) if rows else None

    async def get_by_remote_key(self, remote_key: str) -> Optional[Note]:
        rows = await self.engine.query(build_get_by_remote_key(remote_key, self.tables))
        return Note.from_row(rows[0]) if rows else None

    async def clear(self) -> None:
        """Deletes every note and index row."""
        await self.engine.reset()

    async def perform(self, cmd: NoteCmd) -> Any:
        """Runs a single command, returning whatever the corresponding method returns."""
        if isinstance(cmd, CreateNotesCmd):
            return await self.create(cmd.notes, dirty=cmd.dirty)
        elif isinstance(cmd, UpdateNotesCmd):
            return await self.update(cmd.notes, dirty=cmd.dirty)
        elif isinstance(cmd, DeleteNotesCmd):
            return await self.delete(cmd.notes, dirty=cmd.dirty)
        elif isinstance(cmd, CleanNoteCmd):
            return await self.clean(cmd.note)
        elif isinstance(cmd, ListNotesCmd):
            return await self.list(cmd.spec)
        elif isinstance(cmd, EntityCountsCmd):
            return await self.entity_counts(cmd.kind, cmd.spec)
        raise Error(f'Unsupported command: {cmd!r}')

    async def _resolve(self, notes: List[Note]) -> List[Note]:
        result = []
        for note in notes:
            if note.remote_key is not None:
                stored = await self.get_by_remote_key(note.remote_key)
                if not stored:
                    raise Error(f'No note found with remote key {note.remote_key}; a newly assigned remote key is '
                                'recorded by cleaning the note')
                if note.local_key is None:
                    note = replace(note, local_key=stored.local_key)
                elif note.local_key != stored.local_key:
                    raise Error(f'Remote key {note.remote_key} belongs to local key {stored.local_key}, '
                                f'not {note.local_key}')
            elif note.local_key is None:
                raise Error('Note has neither a local key nor a remote key')
            result.append(note)
        return result
