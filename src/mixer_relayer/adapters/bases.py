"""
Abstract Base Class for Chain Adapters

Defines the interface between the relay pipeline and the blockchain node.
The pipeline never talks to an RPC client directly: everything it needs from
the chain goes through a ``ChainAdapter``, which lets tests substitute a
scripted fake and keeps node-specific behaviour (error wording, encoding
quirks) in one place.

Error contract:
    - Read calls raise ``BlockchainInteractionError`` on RPC failure.
    - ``estimate_withdraw_gas`` raises ``GasEstimationError``.
    - ``send_transaction`` raises ``NonceConflictError`` when the nonce is
      already used and ``BroadcastError`` for any other rejection.
"""

from abc import ABC, abstractmethod

from ..schemas.jobs import WithdrawArgs, RelayTransaction


class ChainAdapter(ABC):
    """
    Abstract base class for the relayer's view of the chain.

    Key Responsibilities:
    1. Query mixer state (spent nullifiers, known roots)
    2. Estimate and encode the ``withdraw`` call
    3. Sign with the relayer key and broadcast
    4. Report the relayer account's pending transaction count
    """

    #: Checksummed relayer account address.
    wallet_address: str

    @abstractmethod
    async def is_spent(self, contract: str, nullifier_hash: str) -> bool:
        """Return True when ``nullifier_hash`` has already been withdrawn."""
        pass

    @abstractmethod
    async def is_known_root(self, contract: str, root: str) -> bool:
        """Return True when ``root`` is in the contract's recent root history."""
        pass

    @abstractmethod
    async def estimate_withdraw_gas(
        self,
        contract: str,
        proof: str,
        args: WithdrawArgs,
        value: int,
    ) -> int:
        """
        Estimate gas of ``withdraw(proof, *args)`` sent from the relayer.

        Args:
            contract: Mixer instance address.
            proof: Proof blob.
            args: Typed public arguments.
            value: Wei sent along with the call (the refund).

        Returns:
            int: Gas units, without any safety margin.
        """
        pass

    @abstractmethod
    def encode_withdraw(self, contract: str, proof: str, args: WithdrawArgs) -> str:
        """Return the 0x-hex ABI-encoded call data of ``withdraw``."""
        pass

    @abstractmethod
    async def get_transaction_count(self, address: str) -> int:
        """Pending transaction count of ``address``."""
        pass

    @abstractmethod
    async def send_transaction(self, tx: RelayTransaction) -> str:
        """
        Sign ``tx`` with the relayer key and broadcast it.

        Returns once the node accepted the transaction into its pool; this
        does not wait for inclusion.

        Returns:
            str: 0x-prefixed transaction hash.
        """
        pass
