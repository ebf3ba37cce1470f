"""
Test suite for the relayer HTTP app.
Tests: 1) End-to-end relay success and rejection 2) Malformed requests never reach the queue
3) Status and liveness endpoints 4) Startup nonce sync 5) Stage events keep a single handler
"""
import asyncio

import httpx
import pytest

from mixer_relayer.engine.events import JobCompletedEvent, TransactionBuiltEvent
from mixer_relayer.engine.exceptions import NonceConflictError
from mixer_relayer.schemas.https import ARGS_INVALID, NOTE_SPENT, PROOF_INVALID
from mixer_relayer.servers.apps import RelayerServer
from mixer_relayer.stores.memory import InMemoryJobStore, InMemoryNonceStore

from mocks import (
    FakeChainAdapter,
    make_body,
    make_config,
    NET_ID,
    NULLIFIER_HASH,
    RELAYER_ADDRESS,
    TX_HASH_PREFIX,
)

NONCE_KEY = "relayer:nonce"


def build_app(chain=None, nonce_store=None, job_store=None):
    return RelayerServer(
        config=make_config(),
        chain=chain or FakeChainAdapter(),
        nonce_store=nonce_store or InMemoryNonceStore(),
        job_store=job_store or InMemoryJobStore(),
    )


def client_for(app):
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://relayer")


@pytest.mark.asyncio
async def test_relay_erc20_withdrawal_end_to_end():
    chain = FakeChainAdapter(pending_nonce=4)
    nonce_store = InMemoryNonceStore()
    app = build_app(chain=chain, nonce_store=nonce_store)

    await app.startup()
    try:
        async with client_for(app) as client:
            response = await client.post("/relay", json=make_body())
    finally:
        await app.shutdown()

    assert response.status_code == 200
    assert response.json() == {"txHash": f"{TX_HASH_PREFIX}01"}
    assert chain.sent[0].nonce == 4
    assert chain.sent[0].gas == 210000
    assert await nonce_store.get(NONCE_KEY) == 5


@pytest.mark.asyncio
async def test_relay_spent_note_returns_400_and_keeps_nonce():
    chain = FakeChainAdapter(spent=[NULLIFIER_HASH], pending_nonce=9)
    nonce_store = InMemoryNonceStore()
    app = build_app(chain=chain, nonce_store=nonce_store)

    await app.startup()
    try:
        async with client_for(app) as client:
            response = await client.post("/relay", json=make_body())
    finally:
        await app.shutdown()

    assert response.status_code == 400
    assert response.json() == {"error": NOTE_SPENT}
    assert chain.sent == []
    assert await nonce_store.get(NONCE_KEY) == 9


@pytest.mark.asyncio
async def test_relay_retries_nonce_conflicts_transparently():
    chain = FakeChainAdapter(broadcast_errors=[NonceConflictError("nonce too low")] * 3)
    nonce_store = InMemoryNonceStore({NONCE_KEY: 30})
    app = build_app(chain=chain, nonce_store=nonce_store)
    completed = []

    @app.hook(JobCompletedEvent)
    async def on_completed(event, deps):
        completed.append(event.outcome.status)

    await app.startup()
    try:
        async with client_for(app) as client:
            response = await client.post("/relay", json=make_body())
    finally:
        await app.shutdown()

    assert response.status_code == 200
    assert chain.sent[-1].nonce == 33
    assert completed == [200]


@pytest.mark.asyncio
async def test_malformed_requests_are_rejected_inline():
    chain = FakeChainAdapter()
    job_store = InMemoryJobStore()
    app = build_app(chain=chain, job_store=job_store)

    await app.startup()
    try:
        async with client_for(app) as client:
            bad_proof = await client.post("/relay", json=make_body(proof="0x00"))
            bad_json = await client.post(
                "/relay", content=b"{not json", headers={"content-type": "application/json"}
            )
    finally:
        await app.shutdown()

    assert bad_proof.status_code == 400
    assert bad_proof.json() == {"error": PROOF_INVALID}
    assert bad_json.status_code == 400
    assert bad_json.json() == {"error": ARGS_INVALID}
    assert "is_spent" not in chain.calls
    # no job id was ever allocated
    assert await job_store.next_id() == "1"


@pytest.mark.asyncio
async def test_concurrent_relays_get_distinct_nonces():
    chain = FakeChainAdapter()
    app = build_app(chain=chain)

    await app.startup()
    try:
        async with client_for(app) as client:
            responses = await asyncio.gather(*(
                client.post("/relay", json=make_body(nullifier_hash="0x" + f"{i:02x}" * 32))
                for i in range(4)
            ))
    finally:
        await app.shutdown()

    assert [r.status_code for r in responses] == [200] * 4
    assert len({r.json()["txHash"] for r in responses}) == 4
    assert sorted(tx.nonce for tx in chain.sent) == [0, 1, 2, 3]


@pytest.mark.asyncio
async def test_status_and_index():
    app = build_app()

    async with client_for(app) as client:
        status = await client.get("/status")
        index = await client.get("/")

    body = status.json()
    assert status.status_code == 200
    assert body["relayerAddress"] == RELAYER_ADDRESS
    assert body["netId"] == NET_ID
    assert body["mixers"]["dai"]["100"] == "0x4444444444444444444444444444444444444444"
    assert body["gasPrices"]["fast"] == "20"
    assert body["relayerServiceFee"] == "2.5"
    assert body["queueSize"] == 0
    assert body["supportedCurrencies"] == ["dai", "eth", "usdc"]
    assert index.status_code == 200
    assert "relayer" in index.text


@pytest.mark.asyncio
async def test_startup_never_moves_nonce_backwards():
    chain = FakeChainAdapter(pending_nonce=3)
    nonce_store = InMemoryNonceStore({NONCE_KEY: 8})
    app = build_app(chain=chain, nonce_store=nonce_store)

    await app.startup()
    await app.shutdown()

    assert await nonce_store.get(NONCE_KEY) == 8
    assert chain.calls == ["get_transaction_count"]


def test_second_stage_handler_is_rejected():
    app = build_app()

    async def broadcast_again(event, deps):
        return None

    with pytest.raises(ValueError):
        app.subscribe(TransactionBuiltEvent, broadcast_again)
    assert len(app.event_bus._subscribers[TransactionBuiltEvent]) == 1


@pytest.mark.asyncio
async def test_failing_hook_does_not_turn_a_broadcast_into_an_error():
    chain = FakeChainAdapter()
    app = build_app(chain=chain)

    @app.hook(JobCompletedEvent)
    async def audit(event, deps):
        raise RuntimeError("audit sink down")

    await app.startup()
    try:
        async with client_for(app) as client:
            response = await client.post("/relay", json=make_body())
    finally:
        await app.shutdown()

    assert response.status_code == 200
    assert response.json() == {"txHash": f"{TX_HASH_PREFIX}01"}
    assert len(chain.sent) == 1
