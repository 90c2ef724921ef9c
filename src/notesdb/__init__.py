"""Stores notes locally and indexes the hashtags, mentions, email addresses, and URLs they contain.

If you installed via ``pip``, run ``notesdb -h`` to get help.

To use the Python API, look at :class:`notesdb.api.NoteStore`
"""
