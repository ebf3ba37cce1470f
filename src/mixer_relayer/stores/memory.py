"""In-process stores for tests and single-process development."""

from collections import deque
from itertools import count
from typing import Deque, Dict, List, Optional

from ..schemas.bases import JobState
from ..schemas.jobs import Job
from .bases import NonceStore, JobStore


class InMemoryNonceStore(NonceStore):

    def __init__(self, initial: Optional[Dict[str, int]] = None) -> None:
        self._values: Dict[str, int] = dict(initial or {})

    async def get(self, key: str) -> Optional[int]:
        return self._values.get(key)

    async def set(self, key: str, value: int) -> None:
        self._values[key] = int(value)


class InMemoryJobStore(JobStore):

    def __init__(self) -> None:
        self._ids = count(1)
        self._wait: Deque[str] = deque()
        self._active: List[str] = []
        self._jobs: Dict[str, Job] = {}

    async def next_id(self) -> str:
        return str(next(self._ids))

    async def push(self, job: Job) -> None:
        self._jobs[job.id] = job
        self._wait.append(job.id)

    async def pop(self) -> Optional[Job]:
        while self._wait:
            job_id = self._wait.popleft()
            job = self._jobs.get(job_id)
            if job is None:
                continue
            self._active.append(job_id)
            active = job.model_copy(update={"state": JobState.ACTIVE})
            self._jobs[job_id] = active
            return active
        return None

    async def save(self, job: Job) -> None:
        if job.id in self._jobs:
            self._jobs[job.id] = job

    async def complete(self, job_id: str) -> None:
        if job_id in self._active:
            self._active.remove(job_id)
        self._jobs.pop(job_id, None)

    async def requeue_active(self) -> int:
        moved = 0
        while self._active:
            self._wait.appendleft(self._active.pop())
            moved += 1
        return moved

    async def size(self) -> int:
        return len(self._wait)
