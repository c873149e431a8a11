"""In-process job queue feeding the transcript pipeline."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
import logging

from voicememo.core.logging_safety import safe_log_identifier
from voicememo.repositories.awaitable import AsyncJobStore
from voicememo.repositories.base import JobStore
from voicememo.schemas.transcript import TranscriptStatus

logger = logging.getLogger(__name__)

INTERRUPTED_MESSAGE = "Processing interrupted"

JobRunner = Callable[[str], Awaitable[object]]


class PipelineDispatcher:
    """Owns the job queue and the worker tasks that drain it.

    Job ids enqueued before ``start`` wait in a backlog and are queued once the
    workers exist. An id already waiting is not queued twice. ``stop`` lets a
    job that a worker has already picked up run to completion.
    """

    def __init__(self, runner: JobRunner, *, worker_count: int = 4) -> None:
        if worker_count < 1:
            raise ValueError("worker_count must be at least 1")
        self._runner = runner
        self._worker_count = worker_count
        self._queue: asyncio.Queue[str] | None = None
        self._workers: list[asyncio.Task[None]] = []
        self._backlog: list[str] = []
        self._waiting: set[str] = set()
        self._busy: set[asyncio.Task] = set()
        self._stopping = False

    @property
    def running(self) -> bool:
        return bool(self._workers)

    def qsize(self) -> int:
        if self._queue is None:
            return len(self._backlog)
        return self._queue.qsize()

    def pending_job_ids(self) -> list[str]:
        if self._queue is None:
            return list(self._backlog)
        # asyncio.Queue keeps its items in a deque; this is a read-only peek.
        return list(self._queue._queue)  # noqa: SLF001

    def enqueue(self, job_id: str) -> bool:
        if job_id in self._waiting:
            return False

        self._waiting.add(job_id)
        if self._queue is None:
            self._backlog.append(job_id)
        else:
            self._queue.put_nowait(job_id)
        logger.info("dispatch.enqueued job_id=%s queue_size=%s", safe_log_identifier(job_id, prefix="jid"), self.qsize())
        return True

    async def start(self) -> None:
        if self._workers:
            return
        self._stopping = False
        self._queue = asyncio.Queue()
        for job_id in self._backlog:
            self._queue.put_nowait(job_id)
        self._backlog.clear()
        self._workers = [
            asyncio.create_task(self._work(index), name=f"pipeline-worker-{index}")
            for index in range(self._worker_count)
        ]
        logger.info("dispatch.started workers=%s queue_size=%s", self._worker_count, self._queue.qsize())

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self) -> None:
        workers, self._workers = self._workers, []
        self._stopping = True
        # Idle workers are parked on the queue; busy ones exit after their current job.
        for worker in workers:
            if worker not in self._busy:
                worker.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        if self._queue is not None:
            # Unprocessed ids survive in the store as PENDING and are recovered on the next start.
            self._backlog = self.pending_job_ids()
            self._queue = None
        logger.info("dispatch.stopped workers=%s unprocessed=%s", len(workers), len(self._backlog))

    async def _work(self, index: int) -> None:
        assert self._queue is not None
        queue = self._queue
        worker = asyncio.current_task()
        while not self._stopping:
            job_id = await queue.get()
            self._waiting.discard(job_id)
            self._busy.add(worker)
            try:
                await self._runner(job_id)
            except Exception:
                logger.exception(
                    "dispatch.worker_failed worker=%s job_id=%s",
                    index,
                    safe_log_identifier(job_id, prefix="jid"),
                )
            finally:
                self._busy.discard(worker)
                queue.task_done()


async def recover_interrupted_jobs(store: JobStore, dispatcher: PipelineDispatcher) -> tuple[int, int]:
    """Requeue PENDING jobs and fail jobs a previous process left mid-stage.

    Returns ``(requeued, failed)`` counts.
    """
    jobs = AsyncJobStore(store)
    requeued = 0
    for job in await jobs.list_jobs_by_status({TranscriptStatus.PENDING}):
        if dispatcher.enqueue(job.id):
            requeued += 1

    failed = 0
    for job in await jobs.list_jobs_by_status({TranscriptStatus.TRANSCRIBING, TranscriptStatus.SUMMARIZING}):
        previous_status = job.status
        await jobs.transition_job(job_id=job.id, new_status=TranscriptStatus.FAILED, error=INTERRUPTED_MESSAGE)
        logger.warning(
            "recovery.failed_interrupted job_id=%s prev_status=%s",
            safe_log_identifier(job.id, prefix="jid"),
            previous_status.value,
        )
        failed += 1

    logger.info("recovery.completed requeued=%s failed=%s", requeued, failed)
    return requeued, failed


__all__ = ["INTERRUPTED_MESSAGE", "PipelineDispatcher", "recover_interrupted_jobs"]
