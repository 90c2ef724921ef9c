"""Runs batches of statements against an engine, reporting one outcome per batch."""

import logging
from typing import List

from notesdb.engines.base import Engine
from notesdb.models import Batch

logger = logging.getLogger(__name__)


class BatchError(Exception):
    """Raised when a batch could not be executed. None of its statements should be assumed to have taken effect.

    There is no indication of which statement failed; :attr:`cause` holds whatever the engine raised.
    """
    def __init__(self, message: str, batch: Batch, cause: BaseException = None):
        super().__init__(message)
        self.message = message
        self.batch = batch
        self.cause = cause


async def execute(engine: Engine, batch: Batch) -> List[int]:
    """Hands the whole batch to the engine as one unit.

    Returns the ids generated by the batch's INSERT statements, in the order those statements were submitted.
    Raises :exc:`BatchError` if the engine fails.
    """
    if not batch:
        return []
    logger.debug('Executing batch of %d statements', len(batch))
    try:
        return await engine.write_all(batch)
    except Exception as ex:
        logger.error('Batch of %d statements failed: %s', len(batch), ex)
        raise BatchError(f'Batch of {len(batch)} statements failed', batch, ex) from ex
