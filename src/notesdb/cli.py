"""Command-line interface for notesdb."""


import argparse
import asyncio
from dataclasses import replace
from datetime import datetime, timezone
import json
import logging
import sys
from typing import List, Optional

from terminaltables import AsciiTable
import yaml

from notesdb.api import Error, NoteStore
from notesdb.chain import run_chain
from notesdb.models import Call, CleanNoteCmd, CmdSource, CreateNotesCmd, DeleteNotesCmd, EntityKind, FilterSpec,\
    Note, NoteCmd, UpdateNotesCmd


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _print_note(note: Note) -> None:
    print(f'local key: {note.local_key}')
    if note.remote_key:
        print(f'remote key: {note.remote_key}')
    print(f'modified: {note.last_modified.isoformat() if note.last_modified else ""}')
    print(f'state: {note.sync_state.value}')
    print(f'text: {note.text}')


async def _load(store: NoteStore, local_key: int) -> Note:
    note = await store.get(local_key)
    if not note:
        raise Error(f'No note with local key {local_key}')
    return note


async def _add(args, store: NoteStore) -> int:
    created = await store.create(Note(' '.join(args.text), last_modified=_now()), dirty=args.dirty)
    print(f'Created note {created[0].local_key}')
    return 0


async def _edit(args, store: NoteStore) -> int:
    note = await _load(store, args.key[0])
    await store.update(replace(note, text=' '.join(args.text), last_modified=_now()), dirty=args.dirty)
    return 0


async def _rm(args, store: NoteStore) -> int:
    note = await _load(store, args.key[0])
    await store.delete(note, dirty=args.dirty)
    return 0


async def _clean(args, store: NoteStore) -> int:
    note = await _load(store, args.key[0])
    await store.clean(note)
    return 0


async def _ls(args, store: NoteStore) -> int:
    spec = FilterSpec.parse(args.query or '', limit=store.conf.page_size)
    if not args.all:
        spec = replace(spec, hide_deleted=True)
    notes = await store.list(spec)
    if args.json:
        print(json.dumps([n.as_json() for n in notes]))
    elif args.table:
        data = [('Key', 'Modified', 'State', 'Text')]
        for note in notes:
            data.append((str(note.local_key),
                         note.last_modified.strftime('%Y-%m-%d %H:%M') if note.last_modified else '',
                         note.sync_state.value,
                         note.text))
        print(AsciiTable(data).table)
    else:
        for note in notes:
            print('--------------------')
            _print_note(note)
    return 0


async def _tags(args, store: NoteStore) -> int:
    kind = EntityKind(args.kind)
    counts = await store.entity_counts(kind, args.query or '')
    if args.json:
        print(json.dumps(counts))
    else:
        data = [('Value', 'Count')] + [(v, str(counts[v])) for v in sorted(counts.keys())]
        table = AsciiTable(data)
        table.justify_columns[1] = 'right'
        print(table.table)
    return 0


def _cmd_for_op(store: NoteStore, op: dict) -> CmdSource:
    if not isinstance(op, dict):
        raise ValueError(f'Each operation must be a mapping, not {op!r}')
    method = op.get('method')
    dirty = bool(op.get('dirty', False))
    if method == 'create':
        return CreateNotesCmd([Note(op.get('text', ''), last_modified=_now(), remote_key=op.get('remote_key'))],
                              dirty=dirty)
    if method not in ('update', 'delete', 'clean'):
        raise ValueError(f'Unknown method: {method}')
    local_key = int(op['local_key'])

    # the note is loaded when this step runs, after the steps before it have taken effect
    async def build() -> NoteCmd:
        note = await _load(store, local_key)
        if method == 'update':
            return UpdateNotesCmd([replace(note, text=op.get('text', note.text), last_modified=_now())],
                                  dirty=dirty)
        elif method == 'delete':
            return DeleteNotesCmd([note], dirty=dirty)
        return CleanNoteCmd(note)

    return build


async def _apply(args, store: NoteStore) -> int:
    with open(args.path[0], 'r') as file:
        ops = yaml.safe_load(file) or []
    calls = []
    failed = 0
    for i, op in enumerate(ops, 1):
        try:
            cmd = _cmd_for_op(store, op)
        except (KeyError, TypeError, ValueError) as ex:
            print(f'{i}: skipped: {ex!r}', file=sys.stderr)
            failed += 1
            continue

        def report(result, i=i, method=op['method']):
            print(f'{i}: {method} ok')

        def report_error(ex, i=i, method=op['method']):
            print(f'{i}: {method} failed: {ex!r}', file=sys.stderr)

        calls.append(Call(cmd, on_success=report, on_error=report_error))
    outcomes = await run_chain(store, calls)
    failed += sum(1 for o in outcomes if not o.ok)
    return 1 if failed else 0


def argparser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser()
    parser.set_defaults(func=None)
    parser.add_argument('-v', '--verbose', action='store_true', help='Log details of what is being done.')

    subs = parser.add_subparsers(title='Commands')

    p_add = subs.add_parser('add', help='Create a note. Prints the local key of the new note.')
    p_add.add_argument('text', nargs='+', help='Text of the note. Multiple arguments are joined with spaces.')
    p_add.add_argument('-d', '--dirty', action='store_true', help='Mark the note as needing to be synced.')
    p_add.set_defaults(func=_add)

    p_edit = subs.add_parser('edit', help='Replace the text of a note.')
    p_edit.add_argument('key', nargs=1, type=int, help='Local key of the note.')
    p_edit.add_argument('text', nargs='+', help='New text of the note.')
    p_edit.add_argument('-d', '--dirty', action='store_true', help='Mark the note as needing to be synced.')
    p_edit.set_defaults(func=_edit)

    p_rm = subs.add_parser('rm', help='Delete a note.')
    p_rm.add_argument('key', nargs=1, type=int, help='Local key of the note.')
    p_rm.add_argument('-d', '--dirty', action='store_true',
                      help='Keep the note as a tombstone until the deletion has been synced.')
    p_rm.set_defaults(func=_rm)

    p_clean = subs.add_parser(
        'clean',
        help='Mark a note as synced. If the note is a tombstone left by "rm --dirty", it is deleted for real.')
    p_clean.add_argument('key', nargs=1, type=int, help='Local key of the note.')
    p_clean.set_defaults(func=_clean)

    p_ls = subs.add_parser(
        'ls',
        help='List notes, most recently modified first. For full query syntax, see the documentation of '
             'notesdb.models.FilterSpec.parse - an example query is "#journal @carol dinner limit:10".')
    p_ls.add_argument('query', nargs='?', help='Query string. If omitted, the query matches all notes.')
    p_ls.add_argument('-a', '--all', action='store_true', help='Include notes waiting to be deleted remotely.')
    p_ls_formats = p_ls.add_mutually_exclusive_group()
    p_ls_formats.add_argument('-j', '--json', help='Output as JSON.', action='store_true')
    p_ls_formats.add_argument('-t', '--table', help='Format output as a table.', action='store_true')
    p_ls.set_defaults(func=_ls)

    p_tags = subs.add_parser('tags', help='Show entities of one kind and the number of notes containing each.')
    p_tags.add_argument('query', nargs='?',
                        help='Query to filter notes by. If omitted, all notes are counted. The query format is the '
                             'same as for the `ls` command.')
    p_tags.add_argument('-k', '--kind', default=EntityKind.HASHTAG.value, choices=[k.value for k in EntityKind],
                        help='Kind of entity to count. Defaults to hashtags.')
    p_tags.add_argument('-j', '--json', action='store_true',
                        help='Output as JSON. The output is an object whose keys are entities and whose values '
                             'are the number of notes that matched the query and contain that entity.')
    p_tags.set_defaults(func=_tags)

    p_apply = subs.add_parser(
        'apply',
        help='Perform a list of operations from a YAML file, in order. Each item needs a "method" (create, update, '
             'delete, or clean); create takes "text", the others take "local_key", update takes "text", and '
             'create/update/delete accept "dirty". A failed operation does not stop the ones after it, but the exit '
             'status is nonzero if anything failed. Each note named by local_key is loaded when its operation runs.')
    p_apply.add_argument('path', nargs=1, help='YAML file listing the operations.')
    p_apply.set_defaults(func=_apply)

    return parser


async def _run(args) -> int:
    async with NoteStore.for_user() as store:
        return await args.func(args, store)


def main(args: Optional[List[str]] = None) -> int:
    """Runs the tool and returns its exit code.

    args may be an array of string command-line arguments; if absent,
    the process's arguments are used.
    """
    parser = argparser()
    args = parser.parse_args(args)
    if not args.func:
        parser.print_help()
        return 1
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    try:
        return asyncio.run(_run(args))
    except (Error, ValueError) as ex:
        print(ex, file=sys.stderr)
        return 2
