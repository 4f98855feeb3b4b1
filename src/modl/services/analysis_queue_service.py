"""
Analysis Queue Service.

Runs ticket analyses off the ticket-creation path. Callers submit a job and
get an :class:`AnalysisJob` back immediately; a fixed pool of worker tasks
drains a bounded asyncio.Queue and runs each job's handler.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List

from modl.datatypes.moderation_datatypes import AnalysisState
from modl.util.logger import get_logger

logger = get_logger("analysis_queue_service")

AnalysisHandler = Callable[[], Awaitable[AnalysisState]]


@dataclass(eq=False)
class AnalysisJob:
    """Observable handle for one queued ticket analysis."""

    ticket_id: str
    handler: AnalysisHandler
    state: AnalysisState = AnalysisState.ANALYSIS_QUEUED
    error: str | None = None
    done: asyncio.Future = field(default_factory=lambda: asyncio.get_running_loop().create_future())

    def finish(self, state: AnalysisState, error: str | None = None) -> None:
        self.state = state
        self.error = error
        if not self.done.done():
            self.done.set_result(state)

    async def wait(self) -> AnalysisState:
        return await self.done


class AnalysisQueueService:
    """
    Bounded work queue for ticket analyses.

    Design notes
    ------------
    * One asyncio.Queue shared by ``worker_count`` persistent worker tasks,
      started lazily on the first submission.
    * ``submit`` never blocks: when the queue is full the job is finished
      immediately as ``analysis_failed``.
    * A handler that raises finishes its job as ``analysis_failed``; the
      worker keeps running.
    """

    def __init__(self, worker_count: int = 2, queue_size: int = 100) -> None:
        self.worker_count = max(1, int(worker_count))
        self.queue_size = max(0, int(queue_size))
        self._queue: asyncio.Queue[AnalysisJob] | None = None
        self._workers: List[asyncio.Task] = []

    # ------------------------------------------------------
    # Public API
    # ------------------------------------------------------

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    def submit(self, ticket_id: str, handler: AnalysisHandler) -> AnalysisJob:
        """Queue ``handler`` for ``ticket_id`` and return its job handle without waiting."""
        job = AnalysisJob(ticket_id=ticket_id, handler=handler)
        self._ensure_workers()
        try:
            self._queue.put_nowait(job)
        except asyncio.QueueFull:
            logger.warning("[QUEUE SERVICE] Queue full (%d); rejecting analysis of ticket %s", self.queue_size, ticket_id)
            job.finish(AnalysisState.ANALYSIS_FAILED, "analysis queue is full")
            return job

        logger.debug("[QUEUE SERVICE] Queued analysis of ticket %s (%d pending)", ticket_id, self.pending)
        return job

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        if self._queue is not None:
            await self._queue.join()

    async def shutdown(self) -> None:
        """Cancel all worker tasks and fail whatever was still queued."""
        for task in self._workers:
            if not task.done():
                task.cancel()
        if self._workers:
            await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()

        if self._queue is not None:
            while not self._queue.empty():
                job = self._queue.get_nowait()
                job.finish(AnalysisState.ANALYSIS_FAILED, "service shut down")
            self._queue = None
        logger.info("[QUEUE SERVICE] All analysis workers shut down.")

    # -------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------

    def _ensure_workers(self) -> None:
        if self._queue is None:
            self._queue = asyncio.Queue(maxsize=self.queue_size)

        self._workers = [task for task in self._workers if not task.done()]
        for index in range(len(self._workers), self.worker_count):
            self._workers.append(
                asyncio.create_task(self._worker(self._queue), name=f"modl-analysis-worker-{index}")
            )

    async def _worker(self, queue: asyncio.Queue[AnalysisJob]) -> None:
        """Persistent worker: take one job at a time and run its handler."""
        while True:
            try:
                job = await queue.get()
            except asyncio.CancelledError:
                return

            job.state = AnalysisState.ANALYZING
            try:
                state = await job.handler()
                job.finish(state)
            except asyncio.CancelledError:
                job.finish(AnalysisState.ANALYSIS_FAILED, "cancelled")
                queue.task_done()
                return
            except Exception as exc:
                logger.exception("[QUEUE SERVICE] Analysis of ticket %s raised", job.ticket_id)
                job.finish(AnalysisState.ANALYSIS_FAILED, str(exc))
            queue.task_done()
