import pytest_asyncio
from notesdb.conf import NotesdbConf


@pytest_asyncio.fixture
async def store():
    async with NotesdbConf(db_path=':memory:').instantiate() as store:
        yield store
