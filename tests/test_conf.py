import os.path
import pytest
from notesdb.conf import NotesdbConf, TableNames
from notesdb.models import EntityKind


def test_for_user_no_file(fs):
    with pytest.raises(Exception, match=r'You need to create the config file: .*\.notesdb\.conf\.py'):
        NotesdbConf.for_user()


def test_for_user(fs):
    confpy = """from notesdb.conf import *
conf = NotesdbConf(db_path='~/notes.sqlite3', table_names=TableNames(notes='my_notes'))"""
    fs.create_file(os.path.expanduser('~/.notesdb.conf.py'), contents=confpy)
    conf = NotesdbConf.for_user()
    assert conf.db_path == '~/notes.sqlite3'
    assert conf.page_size == 25
    assert conf.table_names.notes == 'my_notes'
    assert conf.table_names.hashtags == 'note_hashtags'


def test_for_user_without_conf(fs):
    fs.create_file(os.path.expanduser('~/.notesdb.conf.py'), contents='db_path = "/notes.sqlite3"')
    with pytest.raises(Exception, match='You need to assign an instance of NotesdbConf to the variable `conf`'):
        NotesdbConf.for_user()


def test_standardize():
    assert NotesdbConf(db_path=':memory:').standardize().db_path == ':memory:'
    assert NotesdbConf(db_path='~/notes.sqlite3').standardize().db_path == os.path.expanduser('~/notes.sqlite3')
    relative = NotesdbConf(db_path='notes.sqlite3', page_size=5).standardize()
    assert relative.db_path == os.path.abspath('notes.sqlite3')
    assert relative.page_size == 5


def test_table_names():
    tables = TableNames(urls='links')
    assert tables.for_kind(EntityKind.HASHTAG) == 'note_hashtags'
    assert tables.for_kind(EntityKind.URL) == 'links'
    assert tables.entity_tables() == ['note_hashtags', 'note_mentions', 'note_emails', 'links']
    assert tables.all() == ['notes', 'note_hashtags', 'note_mentions', 'note_emails', 'links']
