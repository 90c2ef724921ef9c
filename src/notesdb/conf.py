from __future__ import annotations
from dataclasses import dataclass, field, replace
import os.path

from notesdb.models import EntityKind


@dataclass(frozen=True)
class TableNames:
    """Names of the tables notesdb uses.

    A single instance is shared by the query builders and the storage engine, so that every component agrees on
    where notes and each kind of entity are stored.
    """

    notes: str = 'notes'
    hashtags: str = 'note_hashtags'
    mentions: str = 'note_mentions'
    emails: str = 'note_emails'
    urls: str = 'note_urls'

    def for_kind(self, kind: EntityKind) -> str:
        """Returns the name of the association table for the given entity kind."""
        return getattr(self, kind.value)

    def entity_tables(self):
        """Returns the association table names, in :class:`notesdb.models.EntityKind` order."""
        return [self.for_kind(kind) for kind in EntityKind]

    def all(self):
        return [self.notes] + self.entity_tables()


@dataclass
class NotesdbConf:
    db_path: str
    """Required. Path where the SQLite database file should be stored.

    The file will be created if it does not exist. Use ``:memory:`` for a database that disappears when the
    store is closed.
    """

    page_size: int = 25
    """The number of notes returned by a listing when the query does not specify a limit."""

    table_names: TableNames = field(default_factory=TableNames)

    @classmethod
    def user_config_path(cls) -> str:
        return os.path.expanduser(os.path.join('~', '.notesdb.conf.py'))

    @classmethod
    def for_user(cls) -> NotesdbConf:
        path = cls.user_config_path()
        if not os.path.exists(path):
            raise Exception(f'You need to create the config file: {path}')
        with open(path, 'r') as file:
            conf_script = file.read()
        context = {}
        exec(conf_script, context)
        if 'conf' not in context or not isinstance(context['conf'], cls):
            raise Exception('You need to assign an instance of NotesdbConf to the variable `conf` '
                            f'in your config file: {path}')
        return context['conf']

    def standardize(self) -> NotesdbConf:
        if self.db_path == ':memory:':
            return self
        return replace(self, db_path=os.path.abspath(os.path.expanduser(self.db_path)))

    def instantiate(self):
        from notesdb.api import NoteStore
        return NoteStore(self.standardize())
