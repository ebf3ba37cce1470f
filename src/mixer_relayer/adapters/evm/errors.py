"""
Broadcast Error Classification

Nodes report nonce conflicts only as human-readable text, and the wording
differs between clients (geth, Parity/OpenEthereum, Nethermind, ...). This
module is the single place that knows those strings: it turns whatever the
RPC client raised into a typed ``NonceConflictError`` or ``BroadcastError``
so the pipeline never matches on text itself.
"""

from typing import Tuple

from ...engine.exceptions import BroadcastError, NonceConflictError

#: Lower-cased fragments of node errors meaning "this nonce is already used".
NONCE_CONFLICT_SIGNATURES: Tuple[str, ...] = (
    "nonce too low",
    "transaction nonce is too low",
    "there is another transaction with same nonce in the queue",
    "replacement transaction underpriced",
)


def node_error_message(exc: BaseException) -> str:
    """
    Extract the node's message from an RPC exception.

    web3.py raises errors carrying the JSON-RPC error object
    (``{"code": ..., "message": ...}``) as the first argument; anything else
    falls back to ``str(exc)``.
    """
    if exc.args and isinstance(exc.args[0], dict):
        message = exc.args[0].get("message")
        if message:
            return str(message)
    rpc_response = getattr(exc, "rpc_response", None)
    if isinstance(rpc_response, dict):
        error = rpc_response.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return str(exc)


def is_nonce_conflict(message: str) -> bool:
    lowered = message.lower()
    return any(signature in lowered for signature in NONCE_CONFLICT_SIGNATURES)


def classify_broadcast_error(exc: BaseException) -> BroadcastError:
    """
    Map an exception raised by ``send_raw_transaction`` to a typed error.

    Args:
        exc: Exception raised by the RPC client.

    Returns:
        NonceConflictError when the node rejected the nonce, BroadcastError otherwise.
    """
    message = node_error_message(exc)
    if is_nonce_conflict(message):
        return NonceConflictError(f"Nonce conflict: {message}", node_message=message)
    return BroadcastError(f"Broadcast rejected: {message}", node_message=message)
