"""
Withdrawal Job Schema Models

Typed representations of a relayed withdrawal as it moves through the
pipeline: the validated request, the queued job wrapping it, the terminal
outcome delivered back to the caller, and the transaction built for it.
"""

from datetime import datetime
from typing import Optional, Dict, Any, Tuple

from pydantic import ConfigDict, Field

from .bases import CanonicalModel, JobState, OutcomeStatus


class WithdrawArgs(CanonicalModel):
    """
    Typed public inputs of a withdrawal proof.

    Attributes:
        root: Merkle root the proof was generated against (bytes32 hex).
        nullifier_hash: Nullifier hash of the note being withdrawn (bytes32 hex).
        recipient: Checksummed address receiving the withdrawn funds.
        relayer: Checksummed address expected to relay (must be ours).
        fee: Fee paid to the relayer, in the smallest unit of the currency.
        refund: Native-asset amount the relayer forwards to the recipient.
    """
    model_config = ConfigDict(frozen=True)

    root: str = Field(..., description="Merkle root (0x + 64 hex)")
    nullifier_hash: str = Field(..., description="Nullifier hash (0x + 64 hex)")
    recipient: str = Field(..., description="Recipient address (checksummed)")
    relayer: str = Field(..., description="Relayer address (checksummed)")
    fee: int = Field(..., ge=0, description="Relayer fee in smallest units")
    refund: int = Field(..., ge=0, description="Refund in wei")

    def as_call_args(self) -> Tuple[str, str, str, str, int, int]:
        """Positional arguments of ``withdraw`` after the proof."""
        return (self.root, self.nullifier_hash, self.recipient, self.relayer, self.fee, self.refund)


class WithdrawRequest(CanonicalModel):
    """
    Immutable, validated withdrawal request.

    ``currency`` and ``amount`` are derived from ``contract`` at admission;
    ``withdraw_args`` holds the typed public inputs of the proof.
    """
    model_config = ConfigDict(frozen=True)

    proof: str = Field(..., description="Opaque proof blob (0x hex)")
    withdraw_args: WithdrawArgs = Field(..., description="Typed public arguments")
    contract: str = Field(..., description="Mixer instance address (checksummed)")
    currency: str = Field(..., description="Lowercase currency symbol of the instance")
    amount: str = Field(..., description="Denomination of the instance, human readable")

    @property
    def nullifier_hash(self) -> str:
        return self.withdraw_args.nullifier_hash

    @property
    def root(self) -> str:
        return self.withdraw_args.root

    @property
    def fee(self) -> int:
        return self.withdraw_args.fee

    @property
    def refund(self) -> int:
        return self.withdraw_args.refund


class JobOutcome(CanonicalModel):
    """
    Terminal result of a job, shaped as the HTTP response for the caller.

    Attributes:
        status: HTTP status code (200 on broadcast, 400 otherwise).
        body: ``{"txHash": ...}`` on success, ``{"error": ...}`` on failure.
    """
    status: OutcomeStatus = Field(..., description="HTTP status code")
    body: Dict[str, str] = Field(..., description="Response body")

    @classmethod
    def success(cls, tx_hash: str) -> "JobOutcome":
        return cls(status=OutcomeStatus.OK, body={"txHash": tx_hash})

    @classmethod
    def failure(cls, message: str) -> "JobOutcome":
        return cls(status=OutcomeStatus.BAD_REQUEST, body={"error": message})

    def is_success(self) -> bool:
        return self.status == OutcomeStatus.OK

    @property
    def tx_hash(self) -> Optional[str]:
        return self.body.get("txHash")

    @property
    def error(self) -> Optional[str]:
        return self.body.get("error")


class Job(CanonicalModel):
    """
    A queued unit of work wrapping one withdrawal request.

    The queue owns the job; the worker only changes ``state`` and ``outcome``
    while the job is active.
    """
    id: str = Field(..., description="Unique identifier assigned at enqueue time")
    request: WithdrawRequest = Field(..., description="The withdrawal to relay")
    state: JobState = Field(default=JobState.CREATED, description="Lifecycle state")
    outcome: Optional[JobOutcome] = Field(None, description="Terminal outcome once completed")
    created_at: datetime = Field(default_factory=datetime.now, description="Enqueue timestamp")


class RelayTransaction(CanonicalModel):
    """
    Ephemeral transaction built for one job; never persisted.

    Attributes:
        sender: Relayer account (``from``).
        to: Mixer instance address.
        value: Refund forwarded with the call, in wei.
        gas: Gas limit (estimate plus safety margin).
        gas_price: Gas price in wei.
        data: ABI-encoded ``withdraw`` call data.
        nonce: Relayer account nonce.
        chain_id: Network id used for replay protection.
    """
    sender: str = Field(..., alias="from")
    to: str
    value: int = Field(..., ge=0)
    gas: int = Field(..., ge=0)
    gas_price: int = Field(..., ge=0, alias="gasPrice")
    data: str
    nonce: int = Field(..., ge=0)
    chain_id: int = Field(..., ge=1, alias="chainId")

    def with_nonce(self, nonce: int) -> "RelayTransaction":
        """Return a copy of this transaction using ``nonce``."""
        return self.model_copy(update={"nonce": nonce})

    def to_tx_dict(self) -> Dict[str, Any]:
        """Render the dict expected by ``Account.sign_transaction``."""
        return self.model_dump(by_alias=True)
