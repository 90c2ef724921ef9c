"""Builds the SQL statements for listing notes and for keeping the entity index tables up to date.

Nothing in this module touches the database; every function returns :class:`notesdb.models.Statement` values
(or lists of them) for :func:`notesdb.batch.execute` or :meth:`notesdb.engines.base.Engine.query` to run.

Free text (note text, tag values, search strings) is always passed as a bound parameter. Other values - keys,
timestamps, and sync states - are embedded into the statement text by :func:`literal`, which only accepts a few
simple types; callers are responsible for making sure those values are sane.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from notesdb.conf import TableNames
from notesdb.entities import extract
from notesdb.models import Batch, EntityKind, FilterSpec, Note, Statement, SyncState

NOTE_COLUMNS = ('local_id', 'remote_id', 'text', 'last_modified', 'sync_state')

UNIVERSAL = Statement('', ())
"""The predicate that matches every note. Its SQL is empty, so no WHERE clause is emitted for it."""


def literal(value) -> str:
    """Renders a value for direct inclusion in SQL text.

    Strings are single-quoted, with embedded quotes doubled. Timezone-aware datetimes are converted to UTC first, so
    that stored timestamps sort in time order. Raises :exc:`TypeError` for unsupported types.
    """
    if value is None:
        return 'NULL'
    if isinstance(value, bool):
        raise TypeError('Booleans are not valid literals here')
    if isinstance(value, int):
        return str(value)
    if isinstance(value, SyncState):
        value = value.value
    elif isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        value = value.isoformat()
    if isinstance(value, str):
        escaped = value.replace("'", "''")
        return f"'{escaped}'"
    raise TypeError(f'Cannot use {type(value).__name__} as a SQL literal: {value!r}')


def where(predicate: Statement) -> str:
    """Returns a WHERE clause for the predicate, or an empty string for :data:`UNIVERSAL`."""
    return f' WHERE {predicate.sql}' if predicate.sql else ''


def build_entity_lookup(hashtags: Iterable[str], mentions: Iterable[str],
                        tables: TableNames = TableNames()) -> Optional[Statement]:
    """Returns a query for the local keys of notes that have *all* of the given hashtags and mentions.

    Values are normalized with :meth:`notesdb.models.EntityKind.normalize`, so ``foo`` and ``#Foo`` both mean
    ``#foo``. Each value becomes one sub-select, and the sub-selects are combined with INTERSECT - first within each
    kind, then across kinds.

    Returns None if both collections are empty, meaning the entity index places no constraint on the results.
    """
    selects = []
    params = []
    for kind, values in ((EntityKind.HASHTAG, hashtags), (EntityKind.MENTION, mentions)):
        for value in sorted({kind.normalize(v) for v in values}):
            selects.append(f'SELECT local_id FROM {tables.for_kind(kind)} WHERE value = ?')
            params.append(value)
    if not selects:
        return None
    return Statement(' INTERSECT '.join(selects), tuple(params))


def _like_pattern(search: str) -> str:
    escaped = search.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return f'%{escaped}%'


def build_predicate(spec: FilterSpec, tables: TableNames = TableNames()) -> Statement:
    """Combines the criteria in the spec into one condition on the notes table.

    Clauses are joined with AND in this order, and only the ones that apply are emitted:

    1. membership in :func:`build_entity_lookup`, if any hashtags or mentions were requested
    2. case-insensitive substring match on the text, if a search string was given
    3. sync state is not ``synced``, if :attr:`notesdb.models.FilterSpec.unsynced_only`
    4. sync state is not ``dirty-delete``, if :attr:`notesdb.models.FilterSpec.hide_deleted`

    Returns :data:`UNIVERSAL` when none apply.
    """
    clauses = []
    params = []
    lookup = build_entity_lookup(spec.hashtags, spec.mentions, tables)
    if lookup:
        clauses.append(f'local_id IN ({lookup.sql})')
        params.extend(lookup.params)
    if spec.search:
        clauses.append("text LIKE ? ESCAPE '\\'")
        params.append(_like_pattern(spec.search))
    if spec.unsynced_only:
        clauses.append(f'sync_state != {literal(SyncState.SYNCED)}')
    if spec.hide_deleted:
        clauses.append(f'sync_state != {literal(SyncState.DIRTY_DELETE)}')
    if not clauses:
        return UNIVERSAL
    return Statement(' AND '.join(clauses), tuple(params))


def build_list(spec: FilterSpec = FilterSpec(), tables: TableNames = TableNames()) -> Statement:
    """Returns a query for the notes matching the spec, newest first, paginated by its skip and limit."""
    predicate = build_predicate(spec, tables)
    sql = (f'SELECT {", ".join(NOTE_COLUMNS)} FROM {tables.notes}{where(predicate)}'
           ' ORDER BY last_modified DESC, local_id DESC'
           f' LIMIT {literal(spec.limit)} OFFSET {literal(spec.skip)}')
    return Statement(sql, predicate.params)


def build_entity_counts(kind: EntityKind, spec: FilterSpec = FilterSpec(),
                        tables: TableNames = TableNames()) -> Statement:
    """Returns a query for (value, count) rows: how many of the notes matching the spec contain each entity.

    The spec's skip and limit are ignored.
    """
    predicate = build_predicate(spec, tables)
    table = tables.for_kind(kind)
    if predicate.sql:
        source = f'{table} WHERE local_id IN (SELECT local_id FROM {tables.notes}{where(predicate)})'
    else:
        source = table
    return Statement(f'SELECT value, COUNT(*) AS count FROM {source} GROUP BY value ORDER BY value',
                     predicate.params)


def build_get(local_key: int, tables: TableNames = TableNames()) -> Statement:
    return Statement(f'SELECT {", ".join(NOTE_COLUMNS)} FROM {tables.notes} WHERE local_id = ?', (local_key,))


def build_get_by_remote_key(remote_key: str, tables: TableNames = TableNames()) -> Statement:
    return Statement(f'SELECT {", ".join(NOTE_COLUMNS)} FROM {tables.notes} WHERE remote_id = ?', (remote_key,))


def identity_clause(note: Note, cleaning: bool = False) -> str:
    """Returns the condition that selects the note's row.

    Notes with a remote key are identified by it, since that is what the remote system knows them by. Notes without
    one have not been confirmed remotely yet, so only the local key is trustworthy. When ``cleaning``, the local key
    is always used, because the point is to finalize that specific local row.
    """
    if cleaning or note.is_new():
        return f'local_id = {literal(note.local_key)}'
    return f'remote_id = {literal(note.remote_key)}'


def build_entity_inserts(local_key: int, text: str, tables: TableNames = TableNames()) -> Batch:
    """Returns statements that add an index row for each distinct entity in the text."""
    entities = extract(text)
    result = []
    for kind in EntityKind:
        seen = set()
        for value in entities.of_kind(kind):
            value = kind.normalize(value)
            if value in seen:
                continue
            seen.add(value)
            result.append(Statement(f'INSERT INTO {tables.for_kind(kind)} (local_id, value)'
                                    f' VALUES ({literal(local_key)}, ?)',
                                    (value,)))
    return result


def build_entity_deletes(local_key: int, tables: TableNames = TableNames()) -> Batch:
    """Returns statements that remove all of a note's index rows, from every entity table."""
    return [Statement(f'DELETE FROM {table} WHERE local_id = {literal(local_key)}', ())
            for table in tables.entity_tables()]


@dataclass
class InsertPlan:
    """The statements for inserting one note.

    The index rows refer to the note's local key, which is not known until :attr:`note` has been executed, so
    they are produced afterward by :meth:`entities`.
    """

    note: Statement
    text: str
    tables: TableNames

    def entities(self, local_key: int) -> Batch:
        return build_entity_inserts(local_key, self.text, self.tables)


def build_insert(note: Note, state: SyncState, tables: TableNames = TableNames()) -> InsertPlan:
    sql = (f'INSERT INTO {tables.notes} (text, remote_id, last_modified, sync_state)'
           f' VALUES (?, {literal(note.remote_key)}, {literal(note.last_modified)}, {literal(state)})')
    return InsertPlan(Statement(sql, (note.text,)), note.text, tables)


def _update_statement(note: Note, state: SyncState, cleaning: bool, tables: TableNames) -> Statement:
    # COALESCE keeps an existing remote key: once assigned, it is never cleared
    sql = (f'UPDATE {tables.notes} SET text = ?, remote_id = COALESCE({literal(note.remote_key)}, remote_id),'
           f' last_modified = {literal(note.last_modified)}, sync_state = {literal(state)}'
           f' WHERE {identity_clause(note, cleaning)}')
    return Statement(sql, (note.text,))


def build_update(note: Note, state: SyncState, tables: TableNames = TableNames(), cleaning: bool = False) -> Batch:
    """Returns statements that save the note and rebuild all of its index rows.

    The note must have a local key, since the index rows are keyed by it.
    """
    return ([_update_statement(note, state, cleaning, tables)]
            + build_entity_deletes(note.local_key, tables)
            + build_entity_inserts(note.local_key, note.text, tables))


def build_delete(note: Note, tables: TableNames = TableNames()) -> Batch:
    """Returns statements that remove the note's row and all of its index rows."""
    return ([Statement(f'DELETE FROM {tables.notes} WHERE {identity_clause(note)}', ())]
            + build_entity_deletes(note.local_key, tables))


def build_soft_delete(note: Note, tables: TableNames = TableNames()) -> Batch:
    """Returns statements that turn the note into a ``dirty-delete`` tombstone.

    The row is kept until the remote system confirms the deletion, but its index rows are removed so it no longer
    matches hashtag or mention filters.
    """
    return ([_update_statement(note, SyncState.DIRTY_DELETE, False, tables)]
            + build_entity_deletes(note.local_key, tables))
