"""
EVM Withdrawal Format Checks

Off-chain structural checks of the values a client sends with a relay
request. Nothing here is cryptographic: a proof that passes ``is_valid_proof``
only has the right shape; the mixer contract verifies it on-chain.

Each checker returns ``(valid, reason)`` where ``reason`` is an internal,
detailed explanation meant for the logs rather than for the caller.
"""

from typing import Any, List, Optional, Tuple

from eth_utils import is_address, is_hexstr, to_checksum_address

from ...schemas.jobs import WithdrawArgs

#: Proof is 8 field elements of 32 bytes.
PROOF_BYTES = 256
BYTES32_HEX_LENGTH = 2 + 64
UINT256_MAX = 2 ** 256 - 1
WITHDRAW_ARGS_COUNT = 6


def is_bytes32_hex(value: Any) -> bool:
    return (
        isinstance(value, str)
        and value.startswith("0x")
        and len(value) == BYTES32_HEX_LENGTH
        and is_hexstr(value)
    )


def parse_uint256(value: Any) -> Optional[int]:
    """
    Parse a uint256 given as a decimal string, a 0x-hex string or a JSON integer.

    Returns:
        The integer, or None when the value is not a uint256.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            if value.lower().startswith("0x"):
                parsed = int(value, 16)
            elif value.isdigit():
                parsed = int(value, 10)
            else:
                return None
        except ValueError:
            return None
    else:
        return None
    if parsed < 0 or parsed > UINT256_MAX:
        return None
    return parsed


def is_valid_proof(proof: Any) -> Tuple[bool, str]:
    """Check that ``proof`` is a 0x-prefixed hex string of exactly 256 bytes."""
    if not isinstance(proof, str):
        return False, f"proof must be a string, got {type(proof).__name__}"
    if not proof.startswith("0x") or not is_hexstr(proof):
        return False, "proof must be 0x-prefixed hex"
    if len(proof) != 2 + PROOF_BYTES * 2:
        return False, f"proof must be {PROOF_BYTES} bytes, got {(len(proof) - 2) / 2:g}"
    return True, ""


def parse_withdraw_args(args: Any) -> Tuple[Optional[WithdrawArgs], str]:
    """
    Check and type the six public withdrawal arguments.

    Expected order: ``[root, nullifierHash, recipient, relayer, fee, refund]``.

    Returns:
        (WithdrawArgs, "") when valid, otherwise (None, reason).
    """
    if not isinstance(args, list):
        return None, f"args must be a list, got {type(args).__name__}"
    if len(args) != WITHDRAW_ARGS_COUNT:
        return None, f"expected {WITHDRAW_ARGS_COUNT} args, got {len(args)}"

    root, nullifier_hash, recipient, relayer, fee, refund = args
    for name, value in (("root", root), ("nullifierHash", nullifier_hash)):
        if not is_bytes32_hex(value):
            return None, f"{name} must be a 0x-prefixed bytes32 hex string"
    for name, value in (("recipient", recipient), ("relayer", relayer)):
        if not isinstance(value, str) or not is_address(value):
            return None, f"{name} is not a valid address: {value!r}"

    parsed: List[int] = []
    for name, value in (("fee", fee), ("refund", refund)):
        number = parse_uint256(value)
        if number is None:
            return None, f"{name} is not a uint256: {value!r}"
        parsed.append(number)

    return WithdrawArgs(
        root=root.lower(),
        nullifier_hash=nullifier_hash.lower(),
        recipient=to_checksum_address(recipient),
        relayer=to_checksum_address(relayer),
        fee=parsed[0],
        refund=parsed[1],
    ), ""
