"""
Nonce Coordinator

Owns the relayer account's next transaction nonce. The value lives in a
``NonceStore`` so a restarted worker resumes where the previous one stopped.

Only the submission worker calls into the coordinator, and it does so while
processing the single active job; queue serialization is what makes the
read-then-reserve sequence below race free, so no lock is taken here.
"""

import logging
from typing import Optional

from ..stores.bases import NonceStore

logger = logging.getLogger(__name__)


class NonceCoordinator:
    """
    Single writer of the persisted nonce counter.

    Attributes:
        key: Store key holding the next nonce to use.
    """

    def __init__(self, store: NonceStore, key: str = "relayer:nonce") -> None:
        self._store = store
        self.key = key

    async def current(self) -> int:
        """Return the next nonce to use without reserving it (0 when unset)."""
        value: Optional[int] = await self._store.get(self.key)
        return int(value) if value is not None else 0

    async def sync(self, chain_nonce: int) -> int:
        """
        Align the counter with the account's pending transaction count.

        The counter never moves backwards: a stored value ahead of the chain
        means transactions are still in flight.

        Args:
            chain_nonce: ``eth_getTransactionCount(relayer, "pending")``.

        Returns:
            int: The counter after synchronisation.
        """
        stored = await self._store.get(self.key)
        value = max(int(stored or 0), int(chain_nonce))
        await self._store.set(self.key, value)
        logger.info("Nonce counter synced: stored=%s chain=%s next=%s", stored, chain_nonce, value)
        return value

    async def reserve(self) -> int:
        """
        Read the counter and persist its successor before the nonce is used.

        Returns:
            int: The nonce the caller now owns.
        """
        nonce = await self.current()
        await self._store.set(self.key, nonce + 1)
        return nonce

    async def bump(self, used_nonce: int) -> int:
        """
        Skip past a nonce the network reported as already taken.

        Args:
            used_nonce: Nonce of the rejected broadcast.

        Returns:
            int: The nonce to retry with; the counter now points past it.
        """
        retry_nonce = used_nonce + 1
        await self._store.set(self.key, retry_nonce + 1)
        return retry_nonce
