"""
Test suite for the transaction submitter pipeline.
Tests: 1) Stage order on success 2) Business rejections short-circuit 3) Nonce-conflict retry and its cap
4) Fatal broadcast and RPC errors resolve to the generic error
"""
import pytest

from mixer_relayer.engine.events import (
    JobStartedEvent,
    NoteUnspentEvent,
    RootKnownEvent,
    GasEstimatedEvent,
    FeeAcceptedEvent,
    TransactionBuiltEvent,
    JobCompletedEvent,
)
from mixer_relayer.engine.exceptions import (
    BlockchainInteractionError,
    BroadcastError,
    GasEstimationError,
    NonceConflictError,
)
from mixer_relayer.engine.executors import EventChain
from mixer_relayer.engine.flows import setup_event_bus, WithdrawalProcessor
from mixer_relayer.schemas.https import NOTE_SPENT, ROOT_UNKNOWN, FEE_TOO_LOW, INTERNAL_ERROR
from mixer_relayer.stores.memory import InMemoryNonceStore

from mocks import (
    FakeChainAdapter,
    make_deps,
    make_job,
    make_config,
    ETH_INSTANCE,
    GAS_ESTIMATE,
    NET_ID,
    NULLIFIER_HASH,
    RELAYER_ADDRESS,
    DAI_INSTANCE,
)

NONCE_KEY = "relayer:nonce"


async def run_job(chain, nonce_store, job=None, config=None):
    """Run a job through the chain; return (events, outcome)."""
    deps = make_deps(chain, nonce_store=nonce_store, config=config)
    chain_executor = EventChain(setup_event_bus(), deps)
    events = []
    async for event in chain_executor.execute(JobStartedEvent(job=job or make_job())):
        events.append(event)
    assert isinstance(events[-1], JobCompletedEvent)
    return events, events[-1].outcome


@pytest.mark.asyncio
async def test_erc20_withdrawal_success():
    chain = FakeChainAdapter()
    store = InMemoryNonceStore({NONCE_KEY: 5})

    events, outcome = await run_job(chain, store)

    assert [type(e) for e in events] == [
        NoteUnspentEvent,
        RootKnownEvent,
        GasEstimatedEvent,
        FeeAcceptedEvent,
        TransactionBuiltEvent,
        JobCompletedEvent,
    ]
    assert outcome.status == 200
    assert outcome.tx_hash == outcome.body["txHash"]
    assert outcome.tx_hash.startswith("0x")

    tx = chain.sent[0]
    assert tx.gas == GAS_ESTIMATE + 50000 == 210000
    assert tx.gas_price == 20 * 10 ** 9
    assert tx.nonce == 5
    assert tx.value == 0
    assert tx.to == DAI_INSTANCE
    assert tx.sender == RELAYER_ADDRESS
    assert tx.chain_id == NET_ID
    assert tx.to_tx_dict()["from"] == RELAYER_ADDRESS
    assert await store.get(NONCE_KEY) == 6


@pytest.mark.asyncio
async def test_spent_note_rejected_without_touching_nonce():
    chain = FakeChainAdapter(spent=[NULLIFIER_HASH])
    store = InMemoryNonceStore({NONCE_KEY: 5})

    events, outcome = await run_job(chain, store)

    assert outcome.status == 400
    assert outcome.error == NOTE_SPENT
    assert chain.calls == ["is_spent"]
    assert await store.get(NONCE_KEY) == 5


@pytest.mark.asyncio
async def test_unknown_root_short_circuits_before_gas_estimation():
    chain = FakeChainAdapter(known_roots=[])
    store = InMemoryNonceStore({NONCE_KEY: 5})

    events, outcome = await run_job(chain, store)

    assert outcome.error == ROOT_UNKNOWN
    assert "estimate_withdraw_gas" not in chain.calls
    assert chain.sent == []
    assert await store.get(NONCE_KEY) == 5


@pytest.mark.asyncio
async def test_fee_below_cost_is_rejected():
    chain = FakeChainAdapter()
    store = InMemoryNonceStore({NONCE_KEY: 5})

    _, outcome = await run_job(chain, store, job=make_job(fee=10 ** 18))

    assert outcome.error == FEE_TOO_LOW
    assert chain.sent == []
    assert await store.get(NONCE_KEY) == 5


@pytest.mark.asyncio
async def test_eth_withdrawal_uses_native_formula():
    chain = FakeChainAdapter()
    store = InMemoryNonceStore()
    # 210000 gas at 20 gwei plus 2.5% of 0.1 ETH
    desired = 210000 * 20 * 10 ** 9 + 25 * 10 ** 14
    job = make_job(contract=ETH_INSTANCE, currency="eth", amount="0.1", fee=desired)

    _, outcome = await run_job(chain, store, job=job)

    assert outcome.status == 200
    assert chain.sent[0].nonce == 0


@pytest.mark.asyncio
async def test_three_nonce_conflicts_then_success():
    chain = FakeChainAdapter(broadcast_errors=[NonceConflictError("nonce too low")] * 3)
    store = InMemoryNonceStore({NONCE_KEY: 10})

    events, outcome = await run_job(chain, store)

    assert outcome.status == 200
    assert [tx.nonce for tx in chain.sent] == [10, 11, 12, 13]
    built = [e for e in events if isinstance(e, TransactionBuiltEvent)]
    assert [e.attempt for e in built] == [1, 2, 3, 4]
    assert await store.get(NONCE_KEY) == 14
    assert len([e for e in events if isinstance(e, JobCompletedEvent)]) == 1


@pytest.mark.asyncio
async def test_nonce_conflicts_exhaust_after_ten_retries():
    chain = FakeChainAdapter(broadcast_errors=[NonceConflictError("nonce too low")] * 11)
    store = InMemoryNonceStore({NONCE_KEY: 0})

    _, outcome = await run_job(chain, store)

    assert outcome.status == 400
    assert outcome.error == INTERNAL_ERROR
    assert len(chain.sent) == 11
    assert chain.sent[-1].nonce == 10
    assert chain.broadcast_errors == []


@pytest.mark.asyncio
async def test_retry_cap_follows_configuration():
    chain = FakeChainAdapter(broadcast_errors=[NonceConflictError("nonce too low")] * 5)
    config = make_config(max_nonce_retries=2)

    _, outcome = await run_job(chain, InMemoryNonceStore(), config=config)

    assert outcome.error == INTERNAL_ERROR
    assert len(chain.sent) == 3


@pytest.mark.asyncio
async def test_other_broadcast_error_is_fatal_without_retry():
    chain = FakeChainAdapter(broadcast_errors=[BroadcastError("insufficient funds for gas * price + value")])
    store = InMemoryNonceStore({NONCE_KEY: 3})

    _, outcome = await run_job(chain, store)

    assert outcome.error == INTERNAL_ERROR
    assert len(chain.sent) == 1
    assert await store.get(NONCE_KEY) == 4


@pytest.mark.asyncio
async def test_gas_estimation_failure_is_generic_error():
    chain = FakeChainAdapter(gas_error=GasEstimationError("execution reverted"))
    store = InMemoryNonceStore({NONCE_KEY: 3})

    _, outcome = await run_job(chain, store)

    assert outcome.error == INTERNAL_ERROR
    assert chain.sent == []
    assert await store.get(NONCE_KEY) == 3


@pytest.mark.asyncio
async def test_rpc_failure_in_spent_check_is_generic_error():
    chain = FakeChainAdapter()

    async def broken(contract, nullifier_hash):
        raise BlockchainInteractionError("connection refused")

    chain.is_spent = broken

    _, outcome = await run_job(chain, InMemoryNonceStore())

    assert outcome.error == INTERNAL_ERROR


@pytest.mark.asyncio
async def test_processor_returns_terminal_outcome():
    chain = FakeChainAdapter()
    deps = make_deps(chain)
    processor = WithdrawalProcessor(setup_event_bus(), deps)

    outcome = await processor(make_job())

    assert outcome.is_success()


@pytest.mark.asyncio
async def test_hooks_observe_every_stage():
    chain = FakeChainAdapter(broadcast_errors=[NonceConflictError("nonce too low")])
    deps = make_deps(chain)
    event_bus = setup_event_bus()
    seen = []

    async def record(event, deps):
        seen.append(type(event).__name__)

    for event_class in (JobStartedEvent, TransactionBuiltEvent, JobCompletedEvent):
        event_bus.hook(event_class, record)

    outcome = await WithdrawalProcessor(event_bus, deps)(make_job())

    assert outcome.is_success()
    assert seen == [
        "JobStartedEvent",
        "TransactionBuiltEvent",
        "TransactionBuiltEvent",
        "JobCompletedEvent",
    ]
