"""
Built-in event handlers for the withdrawal relay workflow.

Implements the transaction submitter: spent check → root check → gas
estimation → fee check → build → sign and send (with nonce-conflict retry).

Business rejections (spent note, stale root, low fee) complete the job with
their own message. Chain and store failures complete it with the generic
relayer error; the detail only goes to the log.
"""

import logging
from typing import Union

from web3 import Web3

from ..schemas.https import NOTE_SPENT, ROOT_UNKNOWN, INTERNAL_ERROR
from ..schemas.jobs import Job, JobOutcome, RelayTransaction
from .events import (
    BaseEvent,
    EventBus,
    Dependencies,
    JobStartedEvent,
    NoteUnspentEvent,
    RootKnownEvent,
    GasEstimatedEvent,
    FeeAcceptedEvent,
    TransactionBuiltEvent,
    JobCompletedEvent,
)
from .exceptions import RelayerError, NonceConflictError
from .executors import EventChain
from .fees import is_enough_fee

logger = logging.getLogger(__name__)


def _rejected(job: Job, stage: str, message: str) -> JobCompletedEvent:
    logger.info("Job %s rejected at %s: %s", job.id, stage, message)
    return JobCompletedEvent(job_id=job.id, outcome=JobOutcome.failure(message), stage=stage)


def _failed(job: Job, stage: str, error: Exception) -> JobCompletedEvent:
    logger.error("Job %s failed at %s: %s", job.id, stage, error, exc_info=error)
    return JobCompletedEvent(job_id=job.id, outcome=JobOutcome.failure(INTERNAL_ERROR), stage=stage)


# ==================== Event Handlers ====================

async def handle_check_spent(
    event: JobStartedEvent,
    deps: Dependencies
) -> Union[NoteUnspentEvent, JobCompletedEvent]:
    """Reject notes whose nullifier hash was already withdrawn."""
    request = event.job.request
    try:
        spent = await deps.chain.is_spent(request.contract, request.nullifier_hash)
    except RelayerError as e:
        return _failed(event.job, "check_spent", e)

    if spent:
        return _rejected(event.job, "check_spent", NOTE_SPENT)
    return NoteUnspentEvent(job=event.job)


async def handle_check_root(
    event: NoteUnspentEvent,
    deps: Dependencies
) -> Union[RootKnownEvent, JobCompletedEvent]:
    """Reject proofs generated against a root the contract no longer knows."""
    request = event.job.request
    try:
        known = await deps.chain.is_known_root(request.contract, request.root)
    except RelayerError as e:
        return _failed(event.job, "check_root", e)

    if not known:
        return _rejected(event.job, "check_root", ROOT_UNKNOWN)
    return RootKnownEvent(job=event.job)


async def handle_estimate_gas(
    event: RootKnownEvent,
    deps: Dependencies
) -> Union[GasEstimatedEvent, JobCompletedEvent]:
    """Estimate the withdraw call from the relayer account and add the margin."""
    request = event.job.request
    try:
        estimate = await deps.chain.estimate_withdraw_gas(
            request.contract,
            request.proof,
            request.withdraw_args,
            request.refund,
        )
    except RelayerError as e:
        return _failed(event.job, "estimate_gas", e)

    return GasEstimatedEvent(job=event.job, gas=estimate + deps.config.gas_limit_margin)


async def handle_fee_check(
    event: GasEstimatedEvent,
    deps: Dependencies
) -> Union[FeeAcceptedEvent, JobCompletedEvent]:
    """Compare the stated fee against gas, refund and service margin."""
    request = event.job.request
    config = deps.config
    snapshot = deps.prices.snapshot()
    try:
        decision = is_enough_fee(
            gas=event.gas,
            gas_prices=snapshot.gas_prices,
            currency=request.currency,
            amount=request.amount,
            refund=request.refund,
            eth_prices=snapshot.eth_prices,
            fee=request.fee,
            decimals=config.decimals_of(request.currency),
            service_fee_percent=config.relayer_service_fee,
            native_currency=config.native_currency,
        )
    except RelayerError as e:
        return _failed(event.job, "fee_check", e)

    if not decision.is_enough:
        logger.info(
            "Job %s fee %s below desired %s", event.job.id, request.fee, decision.desired_fee
        )
        return _rejected(event.job, "fee_check", decision.reason)

    gas_price = int(Web3.to_wei(snapshot.gas_prices["fast"], "gwei"))
    return FeeAcceptedEvent(job=event.job, gas=event.gas, gas_price=gas_price)


async def handle_build_tx(
    event: FeeAcceptedEvent,
    deps: Dependencies
) -> Union[TransactionBuiltEvent, JobCompletedEvent]:
    """Encode the call and reserve a nonce for it."""
    request = event.job.request
    try:
        data = deps.chain.encode_withdraw(request.contract, request.proof, request.withdraw_args)
        nonce = await deps.nonces.reserve()
    except RelayerError as e:
        return _failed(event.job, "build_tx", e)

    tx = RelayTransaction(
        sender=deps.chain.wallet_address,
        to=request.contract,
        value=request.refund,
        gas=event.gas,
        gas_price=event.gas_price,
        data=data,
        nonce=nonce,
        chain_id=deps.config.net_id,
    )
    return TransactionBuiltEvent(job=event.job, tx=tx, attempt=1)


async def handle_sign_and_send(
    event: TransactionBuiltEvent,
    deps: Dependencies
) -> Union[TransactionBuiltEvent, JobCompletedEvent]:
    """
    Broadcast the transaction.

    A nonce conflict moves to the next nonce and re-emits the transaction
    while ``attempt <= max_nonce_retries``; the broadcast after the last retry
    is final.
    """
    try:
        tx_hash = await deps.chain.send_transaction(event.tx)
    except NonceConflictError as e:
        if event.attempt > deps.config.max_nonce_retries:
            return _failed(event.job, "sign_and_send", e)
        try:
            nonce = await deps.nonces.bump(event.tx.nonce)
        except RelayerError as store_error:
            return _failed(event.job, "sign_and_send", store_error)
        logger.warning(
            "Job %s nonce %s already used (%s); retrying with %s, retry %s/%s",
            event.job.id, event.tx.nonce, e.node_message, nonce,
            event.attempt, deps.config.max_nonce_retries,
        )
        return TransactionBuiltEvent(job=event.job, tx=event.tx.with_nonce(nonce), attempt=event.attempt + 1)
    except RelayerError as e:
        return _failed(event.job, "sign_and_send", e)

    logger.info("Job %s broadcast %s with nonce %s", event.job.id, tx_hash, event.tx.nonce)
    return JobCompletedEvent(job_id=event.job.id, outcome=JobOutcome.success(tx_hash), stage="sign_and_send")


async def log_stage(event: BaseEvent, deps: Dependencies) -> None:
    logger.debug("Stage event %r", event)


# ==================== Event Bus Setup ====================

def setup_event_bus() -> EventBus:
    """Initialize event bus with the built-in pipeline handlers and stage logging."""
    event_bus = EventBus()

    event_bus.subscribe(JobStartedEvent, handle_check_spent)
    event_bus.subscribe(NoteUnspentEvent, handle_check_root)
    event_bus.subscribe(RootKnownEvent, handle_estimate_gas)
    event_bus.subscribe(GasEstimatedEvent, handle_fee_check)
    event_bus.subscribe(FeeAcceptedEvent, handle_build_tx)
    event_bus.subscribe(TransactionBuiltEvent, handle_sign_and_send)

    for event_class in (
        JobStartedEvent,
        NoteUnspentEvent,
        RootKnownEvent,
        GasEstimatedEvent,
        FeeAcceptedEvent,
        TransactionBuiltEvent,
        JobCompletedEvent,
    ):
        event_bus.hook(event_class, log_stage)

    return event_bus


# ==================== Processor ====================

class WithdrawalProcessor:
    """
    Runs one job through the event chain to its terminal outcome.

    Used as the submission queue's processor.

    Example:
        processor = WithdrawalProcessor(setup_event_bus(), deps)
        outcome = await processor(job)
    """

    def __init__(self, event_bus: EventBus, deps: Dependencies) -> None:
        self.event_bus = event_bus
        self.deps = deps

    async def __call__(self, job: Job) -> JobOutcome:
        chain = EventChain(self.event_bus, self.deps)
        outcome = None
        async for event in chain.execute(JobStartedEvent(job=job)):
            if isinstance(event, JobCompletedEvent):
                outcome = event.outcome

        if outcome is None:
            logger.error("Job %s event chain ended without an outcome", job.id)
            return JobOutcome.failure(INTERNAL_ERROR)
        return outcome
