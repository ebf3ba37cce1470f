"""
Abstract Base Classes for Persistence Backends

Two small interfaces isolate the relayer from its backing store:

    - NonceStore: strongly consistent get/set of integers (the nonce counter)
    - JobStore: durable FIFO of withdrawal jobs with a single active slot

The in-memory implementations serve tests and single-process development;
the Redis implementations survive a process restart.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..schemas.jobs import Job


class NonceStore(ABC):
    """Key/value store for integer counters."""

    @abstractmethod
    async def get(self, key: str) -> Optional[int]:
        """Return the integer stored under ``key`` or None if unset."""
        pass

    @abstractmethod
    async def set(self, key: str, value: int) -> None:
        """Store ``value`` under ``key``; visible to the next ``get`` immediately."""
        pass


class JobStore(ABC):
    """
    Durable FIFO queue of jobs.

    Jobs move ``wait`` → ``active`` → removed. A finished job is saved with its
    outcome before it is removed, so a job recovered with an outcome is known
    to be done. Only one consumer (the submission worker) calls
    ``pop``/``save``/``complete``, so the active slot holds at most one job.
    """

    @abstractmethod
    async def next_id(self) -> str:
        """Allocate a new, never reused job identifier."""
        pass

    @abstractmethod
    async def push(self, job: Job) -> None:
        """Persist ``job`` and append it to the tail of the queue."""
        pass

    @abstractmethod
    async def pop(self) -> Optional[Job]:
        """Move the head of the queue into the active slot and return it."""
        pass

    @abstractmethod
    async def save(self, job: Job) -> None:
        """Overwrite the stored copy of a job already in the queue, keeping its position."""
        pass

    @abstractmethod
    async def complete(self, job_id: str) -> None:
        """Drop a finished job from the active slot and from storage."""
        pass

    @abstractmethod
    async def requeue_active(self) -> int:
        """
        Return jobs left active by a previous process to the head of the queue.

        Returns:
            int: Number of jobs moved back.
        """
        pass

    @abstractmethod
    async def size(self) -> int:
        """Number of jobs waiting (not counting the active one)."""
        pass
