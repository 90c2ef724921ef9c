import aiosqlite
import pytest

from notesdb.conf import TableNames
from notesdb.engines.sqlite import SqliteEngine, drop_script, schema_script
from notesdb.models import Statement

ALL_NOTES = Statement('SELECT local_id, text FROM notes ORDER BY local_id', ())


def insert(text, remote_id=None):
    return Statement('INSERT INTO notes (text, remote_id, sync_state) VALUES (?, ?, ?)', (text, remote_id, 'synced'))


def test_schema_script_uses_table_names():
    script = schema_script(TableNames(notes='Notes', hashtags='NoteTag'))
    assert 'CREATE TABLE IF NOT EXISTS Notes (' in script
    assert 'CREATE TABLE IF NOT EXISTS NoteTag (' in script
    assert 'REFERENCES Notes(local_id)' in script
    assert 'CREATE TABLE IF NOT EXISTS note_urls (' in script


def test_drop_script_drops_entity_tables_first():
    assert drop_script(TableNames()).split('\n')[:2] == ['DROP TABLE IF EXISTS note_urls;',
                                                          'DROP TABLE IF EXISTS note_emails;']


@pytest.mark.asyncio
async def test_not_opened():
    engine = SqliteEngine(':memory:')
    with pytest.raises(RuntimeError, match='not opened'):
        await engine.query(ALL_NOTES)


@pytest.mark.asyncio
async def test_write_all_returns_insert_ids_in_order():
    async with SqliteEngine(':memory:') as engine:
        ids = await engine.write_all([insert('one'),
                                      Statement('UPDATE notes SET text = ? WHERE local_id = 1', ('uno',)),
                                      insert('two'),
                                      insert('three')])
        assert ids == [1, 2, 3]
        assert await engine.query(ALL_NOTES) == [{'local_id': 1, 'text': 'uno'},
                                                 {'local_id': 2, 'text': 'two'},
                                                 {'local_id': 3, 'text': 'three'}]
        assert await engine.write_all([]) == []


@pytest.mark.asyncio
async def test_write_all_rolls_back_on_error():
    async with SqliteEngine(':memory:') as engine:
        await engine.write_all([insert('kept')])
        with pytest.raises(aiosqlite.Error):
            await engine.write_all([insert('lost'), Statement('INSERT INTO bogus VALUES (1)', ())])
        with pytest.raises(aiosqlite.IntegrityError):
            await engine.write_all([insert('a', 'r1'), insert('b', 'r1')])
        assert await engine.query(ALL_NOTES) == [{'local_id': 1, 'text': 'kept'}]
        # the engine is still usable afterward
        assert await engine.write_all([insert('next')]) == [2]


@pytest.mark.asyncio
async def test_reset():
    async with SqliteEngine(':memory:') as engine:
        await engine.write_all([insert('one'),
                                Statement('INSERT INTO note_hashtags (local_id, value) VALUES (1, ?)', ('#a',))])
        await engine.reset()
        assert await engine.query(ALL_NOTES) == []
        assert await engine.query(Statement('SELECT * FROM note_hashtags', ())) == []


@pytest.mark.asyncio
async def test_entity_rows_unique_per_note():
    async with SqliteEngine(':memory:') as engine:
        await engine.write_all([insert('one')])
        statement = Statement('INSERT INTO note_hashtags (local_id, value) VALUES (1, ?)', ('#a',))
        with pytest.raises(aiosqlite.IntegrityError):
            await engine.write_all([statement, statement])


@pytest.mark.asyncio
async def test_reopen_file(tmp_path):
    path = str(tmp_path / 'notes.sqlite3')
    async with SqliteEngine(path) as engine:
        await engine.write_all([insert('persisted')])
    async with SqliteEngine(path) as engine:
        assert await engine.query(ALL_NOTES) == [{'local_id': 1, 'text': 'persisted'}]
