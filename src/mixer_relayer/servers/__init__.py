from .apps import RelayerServer
from .validators import RequestValidator, ValidationResult

__all__ = [
    "RelayerServer",
    "RequestValidator",
    "ValidationResult",
]
