"""
HTTP Request/Response Schema Models for the Relayer API

This module defines the Pydantic models used on the HTTP boundary and the
caller-facing error messages. The relay flow consists of:
1. Client POSTs a proof, its six public arguments and the mixer contract
2. Relayer validates the body and rejects malformed requests inline (400)
3. Relayer queues the withdrawal and answers once the job completes with
   either the broadcast transaction hash (200) or an error (400)
"""

from typing import List, Dict

from pydantic import BaseModel, Field


# ============================================================================
# Caller-facing messages
# ============================================================================

PROOF_INVALID = "Proof format is invalid"
ARGS_INVALID = "Withdraw arguments are invalid"
CONTRACT_UNSUPPORTED = "This relayer does not support the token"
REFUND_NOT_ALLOWED = "Cannot send refund for eth currency."
RELAYER_MISMATCH = "Relayer address is invalid"
NOTE_SPENT = "The note has been spent."
ROOT_UNKNOWN = "The merkle root is too old or invalid."
FEE_TOO_LOW = "Provided fee is not enough. Probably it is a Gas Price spike, try to resubmit."
INTERNAL_ERROR = "Internal Relayer Error. Please use a different relayer service"


# ============================================================================
# Relay responses (POST /relay)
# ============================================================================

class RelaySuccessResponse(BaseModel):
    """Returned with status 200 once the network accepted the transaction."""
    txHash: str = Field(..., description="Hash of the broadcast transaction")


class RelayErrorResponse(BaseModel):
    """Returned with status 400 for any rejected or failed relay."""
    error: str = Field(..., description="Human-readable reason")


# ============================================================================
# Status endpoint
# ============================================================================

class StatusResponse(BaseModel):
    """Public relayer status (GET /status).

    Attributes:
        relayerAddress: Account that signs and pays for withdrawals.
        netId: Network id transactions are signed for.
        mixers: Supported instances, ``{currency: {amount: address}}``.
        gasPrices: Latest gas price quotes in gwei.
        ethPrices: Latest token prices in wei.
        relayerServiceFee: Service fee in percent of the withdrawn amount.
        queueSize: Jobs waiting for the worker.
        version: Relayer version string.
    """
    relayerAddress: str
    netId: int
    mixers: Dict[str, Dict[str, str]]
    gasPrices: Dict[str, str]
    ethPrices: Dict[str, str]
    relayerServiceFee: str
    queueSize: int
    version: str
    supportedCurrencies: List[str] = Field(default_factory=list)
