from .adapter import EVMMixerAdapter, encode_function_call
from .errors import (
    NONCE_CONFLICT_SIGNATURES,
    classify_broadcast_error,
    is_nonce_conflict,
    node_error_message,
)
from .verifies import (
    is_valid_proof,
    parse_withdraw_args,
    parse_uint256,
    is_bytes32_hex,
)
from .MIXER_ABI import get_mixer_abi

__all__ = [
    "EVMMixerAdapter",
    "encode_function_call",
    "NONCE_CONFLICT_SIGNATURES",
    "classify_broadcast_error",
    "is_nonce_conflict",
    "node_error_message",
    "is_valid_proof",
    "parse_withdraw_args",
    "parse_uint256",
    "is_bytes32_hex",
    "get_mixer_abi",
]
