"""Concurrent, settle-all execution of a batch of work units.

:class:`BatchExecutor` fans every unit of a batch out as its own asyncio
task and waits until each one has reached a terminal outcome.  A shared
semaphore caps the number of service calls in flight across all batches run
by the same executor.

Results come back in ``sequence_index`` order no matter which unit finishes
first.  Successful outputs are written to the gallery before their record
is added to the result list.  A failed write is logged as a
``PersistenceFailure`` and leaves the record's success intact with
``persisted=False``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from restyle.core.errors import RestyleError
from restyle.core.gallery_store import GalleryStore
from restyle.core.invoker import StyleTransformInvoker
from restyle.core.models import Failure, ResultRecord, SessionId, Success, TransformOutcome, WorkUnit

logger = logging.getLogger(__name__)


class BatchExecutor:
    """Runs work units concurrently and reassembles their results in order.

    Args:
        invoker: Performs one transformation per unit.
        store: Gallery that receives successful outputs.
        max_concurrency: Maximum number of service calls in flight at once.
            Units waiting out a retry backoff do not hold a slot.

    Note:
        The semaphore binds to the event loop of the first batch that has to
        wait on it, so one executor must only be used from one loop.
    """

    def __init__(
        self,
        invoker: StyleTransformInvoker,
        store: GalleryStore,
        *,
        max_concurrency: int = 4,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._invoker = invoker
        self._store = store
        self._slots = asyncio.Semaphore(max_concurrency)

    async def _transform(self, unit: WorkUnit) -> TransformOutcome:
        try:
            return await self._invoker.invoke(unit.source, unit.style_name, slots=self._slots)
        except Exception as e:
            # Service errors already arrive as Failure; this only catches bugs.
            logger.exception("Unexpected error processing unit %d", unit.sequence_index)
            return Failure(message=str(e) or "Unknown error")

    async def run(self, units: Sequence[WorkUnit], session_id: SessionId) -> list[ResultRecord]:
        """Transform every unit and persist the successes under ``session_id``.

        Returns:
            One :class:`ResultRecord` per unit, ordered by ``sequence_index``.
        """
        ordered = sorted(units, key=lambda unit: unit.sequence_index)
        outcomes = await asyncio.gather(*(self._transform(unit) for unit in ordered))

        results: list[ResultRecord] = []
        for unit, outcome in zip(ordered, outcomes):
            record = ResultRecord(
                original_name=unit.source.original_name,
                style_name=unit.style_name,
                outcome=outcome,
                sequence_index=unit.sequence_index,
            )
            if isinstance(outcome, Success):
                self._persist(session_id, unit, outcome, record)
            else:
                logger.error(
                    "Error processing %s with %s: %s",
                    unit.source.original_name,
                    unit.style_name,
                    outcome.message,
                )
            results.append(record)

        succeeded = sum(1 for record in results if record.succeeded)
        logger.info("Session %s: %d/%d units succeeded", session_id, succeeded, len(results))
        return results

    def _persist(self, session_id: SessionId, unit: WorkUnit, outcome: Success, record: ResultRecord) -> None:
        try:
            record.location = self._store.write(
                session_id, unit.style_name, unit.source.original_name, outcome.image_bytes
            )
        except RestyleError as e:
            logger.error(
                "PersistenceFailure saving %s with %s: %s", unit.source.original_name, unit.style_name, e
            )
            return
        record.persisted = True
