"""
Relayer Test Mocks Module

Shared fixtures data and a scripted chain adapter so the pipeline, the queue
and the HTTP app can be exercised without a node.

Key Components:
    - Relayer account, mixer addresses and a valid proof / argument set
    - FakeChainAdapter: records every call; spent/root/gas answers and
      broadcast errors are scripted per test
    - Helpers building config, requests and jobs

Usage:
    from mocks import FakeChainAdapter, make_config, make_request

    chain = FakeChainAdapter(broadcast_errors=[NonceConflictError("nonce too low")] * 3)
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional

from eth_account import Account

from mixer_relayer.adapters.bases import ChainAdapter
from mixer_relayer.config import RelayerConfig, resolve_mixers
from mixer_relayer.engine.events import Dependencies
from mixer_relayer.engine.nonces import NonceCoordinator
from mixer_relayer.engine.prices import PriceFeed
from mixer_relayer.schemas.jobs import Job, WithdrawArgs, WithdrawRequest, RelayTransaction
from mixer_relayer.schemas.prices import PriceSnapshot
from mixer_relayer.stores.memory import InMemoryNonceStore


# ========================================================================
# Constants
# ========================================================================

RELAYER_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
RELAYER_ADDRESS = Account.from_key(RELAYER_PRIVATE_KEY).address

RECIPIENT = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
OTHER_ADDRESS = "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC"

NET_ID = 1337
ETH_INSTANCE = "0x1111111111111111111111111111111111111111"
DAI_INSTANCE = "0x4444444444444444444444444444444444444444"
UNKNOWN_INSTANCE = "0x9999999999999999999999999999999999999999"

# Local devnet instances, in the MIXERS_JSON form
MIXERS = {
    "eth": {
        "decimals": 18,
        "instanceAddress": {
            "0.1": ETH_INSTANCE,
            "1": "0x2222222222222222222222222222222222222222",
            "10": "0x3333333333333333333333333333333333333333",
        },
    },
    "dai": {
        "decimals": 18,
        "instanceAddress": {
            "100": DAI_INSTANCE,
            "1000": "0x5555555555555555555555555555555555555555",
        },
    },
    "usdc": {
        "decimals": 6,
        "instanceAddress": {
            "100": "0x6666666666666666666666666666666666666666",
        },
    },
}

PROOF = "0x" + "ab" * 256
ROOT = "0x" + "11" * 32
NULLIFIER_HASH = "0x" + "22" * 32

# 20 gwei fast gas price; 1 DAI is worth 0.0005 ETH
GAS_PRICES = {"fast": Decimal("20"), "standard": Decimal("10")}
ETH_PRICES = {"dai": 500000000000000}

GAS_ESTIMATE = 160000
TX_HASH_PREFIX = "0x" + "ee" * 31


def make_config(**overrides: Any) -> RelayerConfig:
    values: Dict[str, Any] = {
        "private_key": RELAYER_PRIVATE_KEY,
        "net_id": NET_ID,
        "mixers": resolve_mixers(NET_ID, MIXERS),
        "gas_prices": GAS_PRICES,
        "eth_prices": ETH_PRICES,
    }
    values.update(overrides)
    return RelayerConfig.model_validate(values)


def make_args(
    fee: Any = "50000000000000000000",
    refund: Any = "0",
    relayer: str = RELAYER_ADDRESS,
    recipient: str = RECIPIENT,
    root: str = ROOT,
    nullifier_hash: str = NULLIFIER_HASH,
) -> List[Any]:
    return [root, nullifier_hash, recipient, relayer, fee, refund]


def make_body(contract: str = DAI_INSTANCE, proof: Any = PROOF, **arg_overrides: Any) -> Dict[str, Any]:
    return {"proof": proof, "args": make_args(**arg_overrides), "contract": contract}


def make_request(
    contract: str = DAI_INSTANCE,
    currency: str = "dai",
    amount: str = "100",
    fee: int = 50 * 10 ** 18,
    refund: int = 0,
    nullifier_hash: str = NULLIFIER_HASH,
) -> WithdrawRequest:
    return WithdrawRequest(
        proof=PROOF,
        withdraw_args=WithdrawArgs(
            root=ROOT,
            nullifier_hash=nullifier_hash,
            recipient=RECIPIENT,
            relayer=RELAYER_ADDRESS,
            fee=fee,
            refund=refund,
        ),
        contract=contract,
        currency=currency,
        amount=amount,
    )


def make_job(job_id: str = "1", **request_overrides: Any) -> Job:
    return Job(id=job_id, request=make_request(**request_overrides))


def make_deps(
    chain: "FakeChainAdapter",
    nonce_store: Optional[InMemoryNonceStore] = None,
    config: Optional[RelayerConfig] = None,
) -> Dependencies:
    config = config or make_config()
    store = nonce_store if nonce_store is not None else InMemoryNonceStore()
    return Dependencies(
        chain=chain,
        nonces=NonceCoordinator(store, key=config.nonce_key),
        prices=PriceFeed(PriceSnapshot(gas_prices=GAS_PRICES, eth_prices=ETH_PRICES)),
        config=config,
    )


# ========================================================================
# Fake chain adapter
# ========================================================================

class FakeChainAdapter(ChainAdapter):
    """
    Scripted ``ChainAdapter``.

    Args:
        spent: Nullifier hashes reported as spent.
        known_roots: Roots reported as known (None means every root).
        gas_estimate: Value returned by ``estimate_withdraw_gas``.
        broadcast_errors: Exceptions raised by successive ``send_transaction``
            calls before broadcasts start succeeding.
        pending_nonce: Value returned by ``get_transaction_count``.
    """

    def __init__(
        self,
        spent: Optional[List[str]] = None,
        known_roots: Optional[List[str]] = None,
        gas_estimate: int = GAS_ESTIMATE,
        broadcast_errors: Optional[List[Exception]] = None,
        pending_nonce: int = 0,
        gas_error: Optional[Exception] = None,
    ) -> None:
        self.wallet_address = RELAYER_ADDRESS
        self.spent = set(spent or [])
        self.known_roots = None if known_roots is None else set(known_roots)
        self.gas_estimate = gas_estimate
        self.gas_error = gas_error
        self.broadcast_errors = list(broadcast_errors or [])
        self.pending_nonce = pending_nonce
        self.calls: List[str] = []
        self.sent: List[RelayTransaction] = []

    async def is_spent(self, contract: str, nullifier_hash: str) -> bool:
        self.calls.append("is_spent")
        return nullifier_hash in self.spent

    async def is_known_root(self, contract: str, root: str) -> bool:
        self.calls.append("is_known_root")
        return self.known_roots is None or root in self.known_roots

    async def estimate_withdraw_gas(self, contract: str, proof: str, args: WithdrawArgs, value: int) -> int:
        self.calls.append("estimate_withdraw_gas")
        if self.gas_error is not None:
            raise self.gas_error
        return self.gas_estimate

    def encode_withdraw(self, contract: str, proof: str, args: WithdrawArgs) -> str:
        self.calls.append("encode_withdraw")
        return "0x21a0adb6" + proof[2:]

    async def get_transaction_count(self, address: str) -> int:
        self.calls.append("get_transaction_count")
        return self.pending_nonce

    async def send_transaction(self, tx: RelayTransaction) -> str:
        self.calls.append("send_transaction")
        self.sent.append(tx)
        if self.broadcast_errors:
            raise self.broadcast_errors.pop(0)
        return f"{TX_HASH_PREFIX}{len(self.sent):02x}"
