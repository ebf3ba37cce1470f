from typing import Tuple

from .bases import NonceStore, JobStore
from .memory import InMemoryNonceStore, InMemoryJobStore
from .redis_store import RedisNonceStore, RedisJobStore, create_redis_client


def create_stores(redis_url: str = "", prefix: str = "relayer") -> Tuple[NonceStore, JobStore]:
    """Build the nonce and job stores; an empty ``redis_url`` selects the in-memory pair."""
    if not redis_url:
        return InMemoryNonceStore(), InMemoryJobStore()
    client = create_redis_client(redis_url)
    return RedisNonceStore(client), RedisJobStore(client, prefix=prefix)


__all__ = [
    "NonceStore",
    "JobStore",
    "InMemoryNonceStore",
    "InMemoryJobStore",
    "RedisNonceStore",
    "RedisJobStore",
    "create_redis_client",
    "create_stores",
]
