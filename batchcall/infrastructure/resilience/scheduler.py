"""Bounded worker pool for batches of independent async operations.

``clamp(limit, 1, len(batch))`` workers share one cursor. Each worker claims
the next index, awaits the operation at that index, stores the result in the
matching slot and, if throttling is configured, pauses before claiming again.
The cursor is read and incremented with no ``await`` in between, so on a
single event loop no two workers can claim the same index.

Workers run inside an ``asyncio.TaskGroup``: the first failing operation
cancels its siblings before ``run`` re-raises that failure.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from batchcall.domain.errors import BatchCancelledError
from batchcall.domain.events.api_events import (
    BatchCompleted,
    BatchFailed,
    BatchStarted,
    DomainEvent,
    EventListener,
)
from batchcall.domain.models.common import Operation
from batchcall.infrastructure.config.settings import ConfigStore

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


def effective_concurrency(requested: int, batch_size: int) -> int:
    """Worker count: never more than the batch, never fewer than one."""
    return max(1, min(requested, batch_size))


def _first_failure(group: BaseExceptionGroup) -> BaseException:
    return group.exceptions[0]


class BoundedWorkerPool:
    """Runs operations with at most ``limit`` of them in flight."""

    def __init__(
        self,
        config_store: ConfigStore,
        sleep: Sleep = asyncio.sleep,
        listener: Optional[EventListener] = None,
    ):
        self.config_store = config_store
        self._sleep = sleep
        self.listener = listener

    def _dispatch(self, event: DomainEvent) -> None:
        logger.debug(f"EVENT: {event}")
        if self.listener is not None:
            self.listener(event)

    async def run(
        self,
        operations: Sequence[Operation],
        limit: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> List[Any]:
        """Runs every operation and returns the results in submission order.

        Args:
            operations: Zero-argument coroutine functions.
            limit: Concurrency override; defaults to the configured concurrency.
            cancel_event: When set, stops the batch and raises BatchCancelledError.

        Returns:
            One result per operation, ``result[i]`` belonging to ``operations[i]``.

        Raises:
            BatchCancelledError: If ``cancel_event`` was set while operations were
                still unfinished.
            Exception: The first failure raised by an operation.
        """
        operations = list(operations)
        total = len(operations)
        if total == 0:
            return []

        config = self.config_store.get_config()
        requested = config.concurrency if limit is None else limit
        workers = effective_concurrency(requested, total)
        throttle_s = config.throttle_ms / 1000 if config.throttle_ms > 0 else 0

        results: List[Any] = [None] * total
        cursor = 0
        completed = 0

        async def worker(worker_id: int) -> None:
            nonlocal cursor, completed
            while True:
                if cancel_event is not None and cancel_event.is_set():
                    return
                index = cursor
                cursor += 1
                if index >= total:
                    return
                results[index] = await operations[index]()
                completed += 1
                if throttle_s:
                    await self._sleep(throttle_s)

        async def watch_cancel(event: asyncio.Event) -> None:
            await event.wait()
            # Set after every slot was filled: nothing left to cancel
            if completed == total:
                return
            raise BatchCancelledError(f"Batch of {total} cancelled after {min(cursor, total)} claimed")

        logger.info(f"Running batch of {total} operations with {workers} workers")
        self._dispatch(BatchStarted(size=total, workers=workers))
        start_time = time.perf_counter()
        try:
            async with asyncio.TaskGroup() as group:
                tasks = [group.create_task(worker(n), name=f"batch-worker-{n}") for n in range(workers)]
                if cancel_event is not None:
                    watcher = group.create_task(watch_cancel(cancel_event), name="batch-cancel-watch")
                    await asyncio.wait(tasks)
                    watcher.cancel()
        except BaseExceptionGroup as group_error:
            error = _first_failure(group_error)
            logger.error(f"Batch of {total} aborted: {type(error).__name__}: {error}")
            self._dispatch(BatchFailed(
                size=total,
                error_type=type(error).__name__,
                error_message=str(error),
                detail=[str(e) for e in group_error.exceptions],
            ))
            raise error

        elapsed = time.perf_counter() - start_time
        logger.info(f"Batch of {total} completed in {elapsed:.2f}s")
        self._dispatch(BatchCompleted(size=total, elapsed_seconds=elapsed))
        return results
