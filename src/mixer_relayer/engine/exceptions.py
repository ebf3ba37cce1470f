"""
Exception and Error Definitions Module

Defines the exception hierarchy for request admission, chain interaction,
persistence and configuration. All exceptions inherit from RelayerError for
unified handling at the worker boundary.

Exception Hierarchy:
    RelayerError (root)
    ├── ConfigurationError
    ├── RequestValidationError
    ├── StoreError
    └── BlockchainInteractionError
        ├── GasEstimationError
        └── BroadcastError
            └── NonceConflictError
"""


class RelayerError(Exception):
    """
    Root exception class for all project-specific exceptions.
    """
    pass


class ConfigurationError(RelayerError):
    """
    Raised when configuration is missing or invalid.

    This includes scenarios such as:
    - Missing relayer private key
    - Malformed mixer or price JSON overrides
    - Unsupported network id
    """
    pass


class RequestValidationError(RelayerError):
    """
    Raised when a relay request body is malformed.

    Attributes:
        reason: Caller-facing message
        detail: Internal detail, logged but never returned to the caller
    """

    def __init__(self, reason: str, detail: str = ""):
        super().__init__(reason)
        self.reason = reason
        self.detail = detail


class StoreError(RelayerError):
    """
    Raised when the persistence backend cannot be used.

    This includes scenarios such as:
    - Redis unreachable
    - A command rejected by the server
    """
    pass


class BlockchainInteractionError(RelayerError):
    """
    Raised when a blockchain RPC call fails.

    This includes scenarios such as:
    - Network connectivity issues
    - Contract call revert
    - Unexpected node response
    """
    pass


class GasEstimationError(BlockchainInteractionError):
    """
    Raised when the node cannot estimate gas for the withdrawal call.

    Usually means the withdrawal would revert (bad proof, spent note racing
    another relayer, insufficient refund).
    """
    pass


class BroadcastError(BlockchainInteractionError):
    """
    Raised when a signed transaction is rejected at broadcast time.

    Attributes:
        node_message: Raw error text returned by the node
    """

    def __init__(self, message: str, node_message: str = ""):
        super().__init__(message)
        self.node_message = node_message or message


class NonceConflictError(BroadcastError):
    """
    Raised when the broadcast was rejected because its nonce is already used.

    Covers stale nonces ("nonce too low") and replacement attempts for a
    pending transaction with the same nonce ("replacement transaction
    underpriced"). Recoverable by retrying with the next nonce.
    """
    pass
