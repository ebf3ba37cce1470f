"""
Mixer Instance Smart Contract ABI Module

Minimal ABI fragments of a mixer instance: the two view functions checked
before relaying and the ``withdraw`` entry point the relayer calls.

Usage:
    from MIXER_ABI import get_mixer_abi

    contract = web3.eth.contract(address=instance, abi=get_mixer_abi())
    spent = await contract.functions.isSpent(nullifier_hash).call()
"""

from typing import Dict, Any, List


def get_is_spent_abi() -> List[Dict[str, Any]]:
    """ABI for ``isSpent(bytes32 nullifierHash) view returns (bool)``."""
    return [
        {
            "name": "isSpent",
            "type": "function",
            "stateMutability": "view",
            "inputs": [{"name": "_nullifierHash", "type": "bytes32"}],
            "outputs": [{"name": "", "type": "bool"}],
        }
    ]


def get_is_known_root_abi() -> List[Dict[str, Any]]:
    """ABI for ``isKnownRoot(bytes32 root) view returns (bool)``."""
    return [
        {
            "name": "isKnownRoot",
            "type": "function",
            "stateMutability": "view",
            "inputs": [{"name": "_root", "type": "bytes32"}],
            "outputs": [{"name": "", "type": "bool"}],
        }
    ]


def get_withdraw_abi() -> List[Dict[str, Any]]:
    """
    ABI for the payable ``withdraw`` entry point.

    ``withdraw(bytes proof, bytes32 root, bytes32 nullifierHash,
    address recipient, address relayer, uint256 fee, uint256 refund)``
    """
    return [
        {
            "name": "withdraw",
            "type": "function",
            "stateMutability": "payable",
            "inputs": [
                {"name": "_proof", "type": "bytes"},
                {"name": "_root", "type": "bytes32"},
                {"name": "_nullifierHash", "type": "bytes32"},
                {"name": "_recipient", "type": "address"},
                {"name": "_relayer", "type": "address"},
                {"name": "_fee", "type": "uint256"},
                {"name": "_refund", "type": "uint256"},
            ],
            "outputs": [],
        }
    ]


def get_mixer_abi() -> List[Dict[str, Any]]:
    """All fragments the relayer needs, in one ABI list."""
    return get_is_spent_abi() + get_is_known_root_abi() + get_withdraw_abi()
