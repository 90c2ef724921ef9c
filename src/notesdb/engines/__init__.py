"""Storage engines that execute the statements built by :mod:`notesdb.query`.

:class:`notesdb.engines.base.Engine` defines the API, and
:class:`notesdb.engines.sqlite.SqliteEngine` is the implementation you usually want to use.
"""
