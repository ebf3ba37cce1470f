"""
EVM Mixer Adapter

Server-side EVM operations needed to relay a mixer withdrawal: state queries
against the mixer instance, gas estimation, call encoding, signing with the
relayer key and broadcasting.

Dependencies:
    - web3.py: For blockchain RPC interaction
    - eth_account: For transaction signing
"""

import logging
from typing import Optional, Dict

from web3 import AsyncWeb3, Web3
from web3.contract import AsyncContract
from eth_account import Account

from ..bases import ChainAdapter
from .MIXER_ABI import get_mixer_abi
from .errors import classify_broadcast_error, node_error_message
from ...engine.exceptions import BlockchainInteractionError, GasEstimationError
from ...schemas.jobs import WithdrawArgs, RelayTransaction

logger = logging.getLogger(__name__)


def encode_function_call(contract: AsyncContract, fn_name: str, args: list) -> str:
    """Compatibility wrapper for web3 call-data encoding (``encode_abi`` / ``encodeABI``)."""
    if hasattr(contract, "encode_abi"):
        return contract.encode_abi(fn_name, args=args)
    return contract.encodeABI(fn_name=fn_name, args=args)  # type: ignore[attr-defined]


class EVMMixerAdapter(ChainAdapter):
    """
    EVM implementation of :class:`ChainAdapter`.

    A single ``AsyncWeb3`` instance is created for the configured RPC URL and
    contract objects are cached per instance address.

    Attributes:
        account: Relayer account object (from the private key)
        wallet_address: Checksum-formatted relayer address
        chain_id: Network id transactions are signed for

    Example:
        adapter = EVMMixerAdapter(private_key="0x...", rpc_url="http://localhost:8545", chain_id=1)
        spent = await adapter.is_spent(instance, nullifier_hash)
    """

    def __init__(
        self,
        private_key: str,
        rpc_url: str,
        chain_id: int,
        request_timeout: int = 60,
        web3: Optional[AsyncWeb3] = None,
    ):
        """
        Initialize the adapter.

        Args:
            private_key: Relayer private key (0x-prefixed hex).
            rpc_url: JSON-RPC endpoint of the node.
            chain_id: Network id used when signing.
            request_timeout: HTTP timeout of each RPC request in seconds.
            web3: Pre-built AsyncWeb3 instance (tests); built from ``rpc_url`` when None.

        Raises:
            ValueError: If the private key is missing or malformed.
        """
        if not private_key:
            raise ValueError("Private key not provided.")

        self.account = Account.from_key(private_key)
        self.wallet_address = AsyncWeb3.to_checksum_address(self.account.address)
        self.chain_id = chain_id
        self._web3 = web3 or AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
            rpc_url,
            request_kwargs={"timeout": request_timeout}
        ))
        self._contracts: Dict[str, AsyncContract] = {}

    def _contract(self, address: str) -> AsyncContract:
        checksum = AsyncWeb3.to_checksum_address(address)
        contract = self._contracts.get(checksum)
        if contract is None:
            contract = self._web3.eth.contract(address=checksum, abi=get_mixer_abi())
            self._contracts[checksum] = contract
        return contract

    def _withdraw_call_args(self, proof: str, args: WithdrawArgs) -> list:
        root, nullifier_hash, recipient, relayer, fee, refund = args.as_call_args()
        return [
            Web3.to_bytes(hexstr=proof),
            Web3.to_bytes(hexstr=root),
            Web3.to_bytes(hexstr=nullifier_hash),
            recipient,
            relayer,
            fee,
            refund,
        ]

    async def is_spent(self, contract: str, nullifier_hash: str) -> bool:
        try:
            fn = self._contract(contract).functions.isSpent(Web3.to_bytes(hexstr=nullifier_hash))
            return bool(await fn.call())
        except Exception as e:
            raise BlockchainInteractionError(f"isSpent call failed: {node_error_message(e)}") from e

    async def is_known_root(self, contract: str, root: str) -> bool:
        try:
            fn = self._contract(contract).functions.isKnownRoot(Web3.to_bytes(hexstr=root))
            return bool(await fn.call())
        except Exception as e:
            raise BlockchainInteractionError(f"isKnownRoot call failed: {node_error_message(e)}") from e

    async def estimate_withdraw_gas(
        self,
        contract: str,
        proof: str,
        args: WithdrawArgs,
        value: int,
    ) -> int:
        try:
            fn = self._contract(contract).functions.withdraw(*self._withdraw_call_args(proof, args))
            gas = await fn.estimate_gas({"from": self.wallet_address, "value": value})
            return int(gas)
        except Exception as e:
            raise GasEstimationError(f"Gas estimation failed: {node_error_message(e)}") from e

    def encode_withdraw(self, contract: str, proof: str, args: WithdrawArgs) -> str:
        data = encode_function_call(self._contract(contract), "withdraw", self._withdraw_call_args(proof, args))
        return data if isinstance(data, str) else Web3.to_hex(data)

    async def get_transaction_count(self, address: str) -> int:
        try:
            return int(await self._web3.eth.get_transaction_count(
                AsyncWeb3.to_checksum_address(address), "pending"
            ))
        except Exception as e:
            raise BlockchainInteractionError(f"getTransactionCount failed: {node_error_message(e)}") from e

    async def send_transaction(self, tx: RelayTransaction) -> str:
        """
        Sign ``tx`` with the relayer account and broadcast the raw bytes.

        Raises:
            NonceConflictError: The node rejected the nonce as already used.
            BroadcastError: Any other rejection.
        """
        signed_tx = self.account.sign_transaction(tx.to_tx_dict())
        try:
            tx_hash = await self._web3.eth.send_raw_transaction(signed_tx.raw_transaction)
        except Exception as e:
            raise classify_broadcast_error(e) from e
        return Web3.to_hex(tx_hash)
