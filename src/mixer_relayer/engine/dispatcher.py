"""
Response Dispatcher

Correlates finished jobs with the HTTP requests waiting for them. The admission
handler registers a future when it enqueues a job and awaits it; the worker
delivers the job's outcome into that future exactly once.
"""

import asyncio
import logging
from typing import Dict

from ..schemas.jobs import JobOutcome

logger = logging.getLogger(__name__)


class ResponseDispatcher:
    """Map of job id to the future its caller awaits."""

    def __init__(self) -> None:
        self._pending: Dict[str, asyncio.Future] = {}

    def register(self, job_id: str) -> asyncio.Future:
        """
        Create the pending response of ``job_id``.

        Raises:
            ValueError: If ``job_id`` already has a pending response.
        """
        if job_id in self._pending:
            raise ValueError(f"Job {job_id} already has a pending response")
        future = asyncio.get_running_loop().create_future()
        self._pending[job_id] = future
        return future

    def deliver(self, job_id: str, outcome: JobOutcome) -> bool:
        """
        Resolve the pending response of ``job_id`` and forget it.

        Returns:
            bool: False when nobody is waiting (caller gone, or a job
            recovered after a restart).
        """
        future = self._pending.pop(job_id, None)
        if future is None:
            logger.debug("No pending response for job %s; outcome dropped: %s", job_id, outcome.body)
            return False
        if future.done():
            logger.debug("Pending response for job %s already settled", job_id)
            return False
        future.set_result(outcome)
        return True

    def discard(self, job_id: str) -> None:
        """Forget ``job_id``; its caller is no longer waiting."""
        future = self._pending.pop(job_id, None)
        if future is not None and not future.done():
            future.cancel()

    def pending(self) -> int:
        return len(self._pending)
