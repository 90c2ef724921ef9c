"""Runs a list of note commands one after another, carrying on past failures.

The most important class is :class:`CallChain`.
"""

from dataclasses import dataclass
from enum import Enum
import logging
from typing import Any, Iterable, List, Optional

from notesdb.models import Call, NoteCmd

logger = logging.getLogger(__name__)


class ChainState(Enum):
    READY = 'ready'
    RUNNING = 'running'
    DONE = 'done'


@dataclass
class CallOutcome:
    """What happened when one :class:`notesdb.models.Call` was performed."""

    call: Call
    result: Any = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class CallChain:
    """Performs calls strictly in order, one at a time, against a :class:`notesdb.api.NoteStore`.

    A failed call does not stop the chain: its ``on_error`` callback is invoked, the failure is logged, and the next
    call runs anyway. Nothing is retried or rolled back. Exceptions raised by the callbacks themselves are not
    caught.

    A chain can only be run once.

    .. attribute:: position
       :type: int

       Index of the call currently being performed, or ``len(calls)`` once done.
    """

    def __init__(self, store, calls: Iterable[Call]):
        self.store = store
        self.calls = list(calls)
        self.position = 0
        self.state = ChainState.READY
        self.outcomes: List[CallOutcome] = []

    async def run(self) -> List[CallOutcome]:
        """Performs every call and returns their outcomes, in order."""
        if self.state != ChainState.READY:
            raise RuntimeError(f'Chain cannot be run while {self.state.value}')
        self.state = ChainState.RUNNING
        while self.position < len(self.calls):
            self.outcomes.append(await self._perform(self.calls[self.position]))
            self.position += 1
        self.state = ChainState.DONE
        return self.outcomes

    async def _perform(self, call: Call) -> CallOutcome:
        cmd = call.cmd
        name = type(cmd).__name__ if isinstance(cmd, NoteCmd) else getattr(cmd, '__name__', 'deferred command')
        try:
            if not isinstance(cmd, NoteCmd):
                cmd = await cmd()
                name = type(cmd).__name__
            result = await self.store.perform(cmd)
        except Exception as ex:
            if call.on_error:
                call.on_error(ex)
            logger.error('Error performing %s (step %d of %d), calling next anyway: %s',
                         name, self.position + 1, len(self.calls), ex)
            return CallOutcome(call, error=ex)
        if call.on_success:
            call.on_success(result)
        logger.info('Performed %s (step %d of %d), calling next', name, self.position + 1, len(self.calls))
        return CallOutcome(call, result=result)


async def run_chain(store, calls: Iterable[Call]) -> List[CallOutcome]:
    """Convenience function equivalent to ``await CallChain(store, calls).run()``"""
    return await CallChain(store, calls).run()
