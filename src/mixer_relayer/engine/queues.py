"""
Submission Queue

Durable FIFO of withdrawal jobs drained by exactly one worker task. Because a
single worker processes one job at a time, every nonce read and write happens
in a strictly ordered sequence without locking.

Lifecycle of a job:
    enqueue → created (persisted, response registered)
    worker pop → active
    processor returns → completed (outcome saved, job removed, outcome delivered)

A job recovered from a previous run with its outcome already saved is
delivered as is; its withdrawal is never broadcast twice.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Tuple

from ..schemas.https import INTERNAL_ERROR
from ..schemas.bases import JobState
from ..schemas.jobs import Job, JobOutcome, WithdrawRequest
from ..stores.bases import JobStore
from .dispatcher import ResponseDispatcher
from .exceptions import StoreError

logger = logging.getLogger(__name__)

JobProcessorFunc = Callable[[Job], Awaitable[JobOutcome]]


class SubmissionQueue:
    """
    Serial job queue with a single background worker.

    Attributes:
        store_retry_delay: Seconds to wait before retrying after a store failure.
        store_retries: Attempts at recording a finished job before giving up.

    Example:
        queue = SubmissionQueue(store, processor, dispatcher)
        await queue.start()
        job, future = await queue.submit(request)
        outcome = await future
    """

    def __init__(
        self,
        store: JobStore,
        processor: JobProcessorFunc,
        dispatcher: ResponseDispatcher,
        store_retry_delay: float = 1.0,
        store_retries: int = 3,
    ) -> None:
        self._store = store
        self._processor = processor
        self._dispatcher = dispatcher
        self._wakeup = asyncio.Event()
        self._worker: Optional[asyncio.Task] = None
        self.store_retry_delay = store_retry_delay
        self.store_retries = store_retries

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    async def submit(self, request: WithdrawRequest) -> Tuple[Job, asyncio.Future]:
        """
        Persist a new job for ``request`` and wake the worker.

        The pending response is registered before the job becomes visible to
        the worker, so the returned future cannot miss the outcome.

        Returns:
            (job, future): The future resolves to the job's ``JobOutcome``.

        Raises:
            StoreError: If the job could not be persisted. Nothing is registered then.
        """
        job_id = await self._store.next_id()
        job = Job(id=job_id, request=request)
        future = self._dispatcher.register(job_id)
        try:
            await self._store.push(job)
        except Exception:
            self._dispatcher.discard(job_id)
            raise

        logger.info("Job %s enqueued for %s %s", job_id, request.amount, request.currency)
        self._wakeup.set()
        return job, future

    async def enqueue(self, request: WithdrawRequest) -> Job:
        """Like ``submit`` for callers that do not wait for the outcome."""
        job, _ = await self.submit(request)
        return job

    async def size(self) -> int:
        return await self._store.size()

    async def start(self) -> None:
        """Recover jobs left active by a previous process and spawn the worker."""
        if self.running:
            return
        recovered = await self._store.requeue_active()
        if recovered:
            logger.warning("Requeued %s job(s) left active by a previous run", recovered)
        self._worker = asyncio.create_task(self._run(), name="submission-worker")
        self._wakeup.set()

    async def stop(self) -> None:
        """Cancel the worker; a job it was processing stays active in the store."""
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None

    async def _run(self) -> None:
        while True:
            self._wakeup.clear()
            try:
                job = await self._store.pop()
            except StoreError:
                logger.exception("Could not pop the next job")
                await asyncio.sleep(self.store_retry_delay)
                continue

            if job is None:
                await self._wakeup.wait()
                continue

            await self._process(job)

    async def _process(self, job: Job) -> None:
        if job.outcome is not None:
            # finished by a previous run that could not remove it from the store
            logger.warning(
                "Job %s was already completed with status %s, not processing it again",
                job.id, int(job.outcome.status),
            )
            outcome = job.outcome
        else:
            try:
                outcome = await self._processor(job)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Job %s raised out of the processor", job.id)
                outcome = JobOutcome.failure(INTERNAL_ERROR)

        completed = job.model_copy(update={"state": JobState.COMPLETED, "outcome": outcome})
        if not await self._finish(completed):
            logger.error("Job %s is still in the store and will be recovered on the next start", job.id)

        logger.info("Job %s completed with status %s", job.id, int(outcome.status))
        self._dispatcher.deliver(job.id, outcome)

    async def _finish(self, job: Job) -> bool:
        """
        Record the job's outcome, then remove it from the store.

        Store failures are retried ``store_retries`` times. A job whose outcome
        was saved but which could not be removed is recovered on the next start
        and delivered without being processed again.

        Returns:
            bool: False if the job is still in the store.
        """
        for attempt in range(1, self.store_retries + 1):
            try:
                await self._store.save(job)
                await self._store.complete(job.id)
                return True
            except StoreError:
                logger.exception(
                    "Could not finish job %s in the store (attempt %s of %s)",
                    job.id, attempt, self.store_retries,
                )
                if attempt < self.store_retries:
                    await asyncio.sleep(self.store_retry_delay)
        return False
