"""
Queue-driven reconciliation skeleton.

Keys are deduplicated while pending and handed to ``reconcile`` by a fixed
pool of workers. A failed reconcile is requeued after a delay up to
``max_requeues`` times, then dropped. Reconcile errors are logged here and
never escape ``run``.
"""

from __future__ import annotations

import asyncio

import structlog

logger = structlog.get_logger()


class QueueController:
    def __init__(
        self,
        name: str,
        *,
        max_requeues: int = 5,
        requeue_delay: float = 1.0,
    ) -> None:
        self.name = name
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._pending: set[str] = set()
        self._failures: dict[str, int] = {}
        self._max_requeues = max_requeues
        self._requeue_delay = requeue_delay
        self.reconciled = 0

    def enqueue(self, key: str) -> None:
        if key in self._pending:
            return
        self._pending.add(key)
        self._queue.put_nowait(key)

    def size(self) -> int:
        return self._queue.qsize()

    async def reconcile(self, key: str) -> None:
        raise NotImplementedError

    async def run(self, workers: int) -> None:
        async with asyncio.TaskGroup() as tg:
            for index in range(workers):
                tg.create_task(self._worker(index), name=f"{self.name}-worker-{index}")

    async def join(self) -> None:
        await self._queue.join()

    async def _worker(self, index: int) -> None:
        while True:
            key = await self._queue.get()
            self._pending.discard(key)
            try:
                await self.reconcile(key)
            except Exception as exc:
                self._handle_error(key, exc)
            else:
                self._failures.pop(key, None)
                self.reconciled += 1
            finally:
                self._queue.task_done()

    def _handle_error(self, key: str, exc: Exception) -> None:
        attempts = self._failures.get(key, 0) + 1
        log = logger.bind(controller=self.name, key=key, attempts=attempts, error=str(exc))
        if attempts > self._max_requeues:
            self._failures.pop(key, None)
            log.error("reconcile_dropped")
            return
        self._failures[key] = attempts
        log.warning("reconcile_failed_requeued", delay=self._requeue_delay)
        asyncio.get_running_loop().call_later(self._requeue_delay, self.enqueue, key)
