from .bases import ChainAdapter
from .evm import EVMMixerAdapter

__all__ = [
    "ChainAdapter",
    "EVMMixerAdapter",
]
