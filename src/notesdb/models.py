"""Defines classes for representing notes, filters, statements, and note commands.

The most important classes are :class:`Note`, :class:`FilterSpec`, and :class:`NoteCmd`
"""

from __future__ import annotations
from collections import namedtuple
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, FrozenSet, Iterable, List, Optional, Union


class SyncState(Enum):
    """Where a note stands relative to the remote system."""

    NEW = 'new'
    DIRTY_CREATE = 'dirty-create'
    DIRTY_UPDATE = 'dirty-update'
    DIRTY_DELETE = 'dirty-delete'
    SYNCED = 'synced'


class EntityKind(Enum):
    """The kinds of entities that are extracted from note text and indexed.

    Hashtags and mentions are stored with their sigil (``#`` or ``@``) and lower-cased;
    emails and URLs are stored exactly as they appear in the text.
    """

    HASHTAG = 'hashtags'
    MENTION = 'mentions'
    EMAIL = 'emails'
    URL = 'urls'

    @property
    def sigil(self) -> Optional[str]:
        if self == EntityKind.HASHTAG:
            return '#'
        elif self == EntityKind.MENTION:
            return '@'
        return None

    def normalize(self, value: str) -> str:
        """Returns the value as it is stored in this kind's table.

        For hashtags and mentions, the sigil is prepended if absent and the value is lower-cased.
        Other kinds are returned unchanged.
        """
        sigil = self.sigil
        if sigil is None:
            return value
        if not value.startswith(sigil):
            value = sigil + value
        return value.lower()


@dataclass
class Note:
    """A single note.

    Instances are treated as values by :class:`notesdb.api.NoteStore`: operations that assign keys or change the
    sync state return new instances rather than modifying the ones passed in.
    """

    text: str = ''

    last_modified: Optional[datetime] = None
    """When the note text was last changed. Listings are ordered by this, newest first."""

    local_key: Optional[int] = None
    """Assigned by local storage when the note is first inserted."""

    remote_key: Optional[str] = None
    """Assigned once the note has been synchronized with the remote system."""

    sync_state: SyncState = SyncState.NEW

    def is_new(self) -> bool:
        """True if the remote system has not confirmed this note yet (it has no remote key)."""
        return self.remote_key is None

    def as_json(self) -> dict:
        """Returns a dict representing the instance, suitable for serializing as json."""
        return {
            'local_key': self.local_key,
            'remote_key': self.remote_key,
            'text': self.text,
            'last_modified': self.last_modified.isoformat() if self.last_modified else None,
            'sync_state': self.sync_state.value,
        }

    @classmethod
    def from_row(cls, row: dict) -> Note:
        """Builds a note from a row of the notes table, as returned by :meth:`notesdb.engines.base.Engine.query`."""
        modified = row.get('last_modified')
        return cls(text=row.get('text') or '',
                   last_modified=datetime.fromisoformat(modified) if modified else None,
                   local_key=row.get('local_id'),
                   remote_key=row.get('remote_id'),
                   sync_state=SyncState(row.get('sync_state') or SyncState.NEW.value))


@dataclass
class Entities:
    """Entities found in a piece of text, in order of appearance. Duplicates are preserved."""

    hashtags: List[str] = field(default_factory=list)
    mentions: List[str] = field(default_factory=list)
    emails: List[str] = field(default_factory=list)
    urls: List[str] = field(default_factory=list)

    def of_kind(self, kind: EntityKind) -> List[str]:
        return getattr(self, kind.value)


@dataclass(frozen=True)
class FilterSpec:
    """Criteria for listing notes.

    Some methods that take a FilterSpec also accept strings as a convenience, which they pass to :meth:`parse`.

    If multiple criteria are specified, only notes satisfying *all* of them match.
    """

    hashtags: FrozenSet[str] = frozenset()
    """If non-empty, only notes that have *every* one of these hashtags match. The ``#`` is optional."""

    mentions: FrozenSet[str] = frozenset()
    """If non-empty, only notes that mention *every* one of these names match. The ``@`` is optional."""

    search: Optional[str] = None
    """If non-empty, only notes whose text contains this substring (ignoring case) match."""

    unsynced_only: bool = False
    """If True, only notes whose sync state is not ``synced`` match."""

    hide_deleted: bool = False
    """If True, notes that are waiting for the remote system to confirm their deletion do not match."""

    skip: int = 0
    limit: int = 25

    def __post_init__(self):
        # normalize to frozensets so callers can pass lists or sets
        object.__setattr__(self, 'hashtags', frozenset(self.hashtags))
        object.__setattr__(self, 'mentions', frozenset(self.mentions))
        if not isinstance(self.skip, int) or self.skip < 0:
            raise ValueError(f'skip must be a non-negative integer, not {self.skip!r}')
        if not isinstance(self.limit, int) or self.limit <= 0:
            raise ValueError(f'limit must be a positive integer, not {self.limit!r}')

    @classmethod
    def parse(cls, strquery: FilterSpecIsh, limit: int = 25) -> FilterSpec:
        """Converts the parameter to a FilterSpec, if it isn't one already.

        Query strings are split on spaces. Each part can be one of the following:

        * ``#TAG`` or ``tag:TAG1,TAG2`` - notes must have all the specified hashtags
        * ``@NAME`` or ``mention:NAME1,NAME2`` - notes must mention all the specified names
        * ``unsynced`` - only notes with changes that have not been synced
        * ``-deleted`` - leave out notes that are waiting to be deleted remotely
        * ``skip:N`` and ``limit:N`` - pagination
        * anything else is part of the search text; those words are rejoined with single spaces

        ``limit`` is used when the string does not contain a ``limit:`` term.

        Examples:

        * ``"#journal @carol dinner limit:10"`` - the 10 most recent notes tagged #journal that mention @carol and
          contain "dinner"
        """
        if isinstance(strquery, FilterSpec):
            return strquery
        hashtags = set()
        mentions = set()
        words = []
        unsynced_only = False
        hide_deleted = False
        skip = 0
        for term in (strquery or '').split():
            lower = term.lower()
            if lower.startswith('tag:'):
                hashtags.update(t for t in lower[4:].split(',') if t)
            elif lower.startswith('mention:'):
                mentions.update(m for m in lower[8:].split(',') if m)
            elif lower.startswith('skip:'):
                skip = int(lower[5:])
            elif lower.startswith('limit:'):
                limit = int(lower[6:])
            elif lower == 'unsynced':
                unsynced_only = True
            elif lower == '-deleted':
                hide_deleted = True
            elif len(term) > 1 and term[0] in '#@':
                (hashtags if term[0] == '#' else mentions).add(lower)
            else:
                words.append(term)
        return cls(hashtags=hashtags, mentions=mentions, search=' '.join(words) or None,
                   unsynced_only=unsynced_only, hide_deleted=hide_deleted, skip=skip, limit=limit)


FilterSpecIsh = Union[str, FilterSpec, None]


class Statement(namedtuple('Statement', ['sql', 'params'])):
    """One SQL statement and the parameters bound to its ``?`` placeholders."""

    __slots__ = ()

    @property
    def generates_id(self) -> bool:
        """True for INSERT statements, which produce a new row id when executed."""
        return self.sql.lstrip().upper().startswith('INSERT')


Batch = List[Statement]
"""An ordered list of statements that the storage engine executes as one unit."""


@dataclass
class NoteCmd:
    """Base class for operations that can be performed against a :class:`notesdb.api.NoteStore`."""


@dataclass
class CreateNotesCmd(NoteCmd):
    """Insert new notes and index their entities."""

    notes: List[Note]

    dirty: bool = False
    """If True, the notes are marked ``dirty-create`` (waiting to be synced); otherwise ``synced``."""


@dataclass
class UpdateNotesCmd(NoteCmd):
    """Save changed notes and rebuild their entity index rows."""

    notes: List[Note]

    dirty: bool = False
    """If True, the notes are marked ``dirty-update``; otherwise ``synced``."""


@dataclass
class DeleteNotesCmd(NoteCmd):
    """Remove notes and their entity index rows."""

    notes: List[Note]

    dirty: bool = False
    """If True, the notes are kept as ``dirty-delete`` tombstones until the remote system confirms the deletion."""


@dataclass
class CleanNoteCmd(NoteCmd):
    """Finalize a note after it has been synced.

    Tombstones are deleted; other notes are marked ``synced``.
    """

    note: Note


@dataclass
class ListNotesCmd(NoteCmd):
    """Fetch the notes matching a filter."""

    spec: FilterSpec = field(default_factory=FilterSpec)


@dataclass
class EntityCountsCmd(NoteCmd):
    """Count entities of one kind across the notes matching a filter."""

    kind: EntityKind = EntityKind.HASHTAG

    spec: FilterSpec = field(default_factory=FilterSpec)


CmdSource = Union[NoteCmd, Callable[[], Awaitable[NoteCmd]]]


@dataclass
class Call:
    """One step of a :class:`notesdb.chain.CallChain`."""

    cmd: CmdSource
    """The command to perform. A coroutine function may be given instead, to build the command only when this step
    is reached, so that it sees the effects of the steps before it. If building fails, the step fails."""

    on_success: Optional[Callable[[Any], None]] = None
    """Called with the command's result if it succeeds."""

    on_error: Optional[Callable[[Exception], None]] = None
    """Called with the exception if the command fails."""


def as_notes(notes: Union[Note, Iterable[Note]]) -> List[Note]:
    """Accepts a single note or an iterable of notes and returns a list."""
    if isinstance(notes, Note):
        return [notes]
    return list(notes)
