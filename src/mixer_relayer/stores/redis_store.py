"""
Redis-backed Stores

Key layout (``prefix`` defaults to ``relayer``):

    {prefix}:nonce               next relayer nonce (string integer)
    {prefix}:withdraw:id         job id counter (INCR)
    {prefix}:withdraw:jobs       hash job id -> canonical job JSON
    {prefix}:withdraw:wait       list of waiting job ids (RPUSH / LMOVE LEFT)
    {prefix}:withdraw:active     list holding the single active job id

Moving a job from ``wait`` to ``active`` is a single LMOVE, so a crash
between the two never loses a job; ``requeue_active`` puts it back at the
head of ``wait`` on the next start.
"""

import logging
from typing import Optional

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from ..engine.exceptions import StoreError
from ..schemas.bases import JobState
from ..schemas.jobs import Job
from .bases import NonceStore, JobStore

logger = logging.getLogger(__name__)


def create_redis_client(url: str) -> Redis:
    """Create an asyncio Redis client returning ``str`` values."""
    return Redis.from_url(url, decode_responses=True)


class RedisNonceStore(NonceStore):

    def __init__(self, client: Redis) -> None:
        self._client = client

    async def get(self, key: str) -> Optional[int]:
        try:
            value = await self._client.get(key)
        except RedisError as exc:
            raise StoreError(f"Failed to read {key}: {exc}") from exc
        if value is None:
            return None
        return int(value)

    async def set(self, key: str, value: int) -> None:
        try:
            await self._client.set(key, int(value))
        except RedisError as exc:
            raise StoreError(f"Failed to write {key}: {exc}") from exc


class RedisJobStore(JobStore):

    def __init__(self, client: Redis, prefix: str = "relayer") -> None:
        self._client = client
        self._id_key = f"{prefix}:withdraw:id"
        self._jobs_key = f"{prefix}:withdraw:jobs"
        self._wait_key = f"{prefix}:withdraw:wait"
        self._active_key = f"{prefix}:withdraw:active"

    async def next_id(self) -> str:
        try:
            return str(await self._client.incr(self._id_key))
        except RedisError as exc:
            raise StoreError(f"Failed to allocate job id: {exc}") from exc

    async def push(self, job: Job) -> None:
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.hset(self._jobs_key, job.id, job.to_canonical_json())
                pipe.rpush(self._wait_key, job.id)
                await pipe.execute()
        except RedisError as exc:
            raise StoreError(f"Failed to enqueue job {job.id}: {exc}") from exc

    async def pop(self) -> Optional[Job]:
        try:
            while True:
                job_id = await self._client.lmove(self._wait_key, self._active_key, "LEFT", "RIGHT")
                if job_id is None:
                    return None
                payload = await self._client.hget(self._jobs_key, job_id)
                if payload is None:
                    logger.warning("Job %s has no payload, dropping it", job_id)
                    await self._client.lrem(self._active_key, 0, job_id)
                    continue
                try:
                    job = Job.model_validate_json(payload)
                except ValidationError:
                    logger.exception("Job %s has a corrupted payload, dropping it", job_id)
                    await self._client.lrem(self._active_key, 0, job_id)
                    await self._client.hdel(self._jobs_key, job_id)
                    continue
                job = job.model_copy(update={"state": JobState.ACTIVE})
                await self._client.hset(self._jobs_key, job_id, job.to_canonical_json())
                return job
        except RedisError as exc:
            raise StoreError(f"Failed to dequeue job: {exc}") from exc

    async def save(self, job: Job) -> None:
        try:
            await self._client.hset(self._jobs_key, job.id, job.to_canonical_json())
        except RedisError as exc:
            raise StoreError(f"Failed to save job {job.id}: {exc}") from exc

    async def complete(self, job_id: str) -> None:
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.lrem(self._active_key, 0, job_id)
                pipe.hdel(self._jobs_key, job_id)
                await pipe.execute()
        except RedisError as exc:
            raise StoreError(f"Failed to complete job {job_id}: {exc}") from exc

    async def requeue_active(self) -> int:
        moved = 0
        try:
            while await self._client.lmove(self._active_key, self._wait_key, "RIGHT", "LEFT") is not None:
                moved += 1
        except RedisError as exc:
            raise StoreError(f"Failed to recover active jobs: {exc}") from exc
        return moved

    async def size(self) -> int:
        try:
            return int(await self._client.llen(self._wait_key))
        except RedisError as exc:
            raise StoreError(f"Failed to read queue size: {exc}") from exc
