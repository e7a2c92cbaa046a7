"""
Error taxonomy for the UserOperation pipeline.
"""

from typing import Optional


class RelayError(Exception):
    """Base exception for relay errors."""
    pass


class ValidationError(RelayError):
    """Request rejected before any RPC call (bad address, calldata, batch shape)."""
    pass


class UnsupportedChainError(ValidationError):
    """No chain configuration exists for the requested chain id."""
    pass


class WalletNotFoundError(RelayError):
    """No wallet with this address exists in the project."""
    pass


class InfrastructureError(RelayError):
    """Chain node, bundler or paymaster unreachable or erroring. Retryable by the caller."""
    pass


class ChainRPCError(InfrastructureError):
    """Chain node JSON-RPC call failed."""
    pass


class SponsorshipError(RelayError):
    """The paymaster refused to sponsor the operation."""
    pass


class PlaceholderSignatureError(RelayError):
    """A UserOperation still carrying the estimation placeholder signature reached submission."""
    pass


class PostSubmissionPersistenceError(RelayError):
    """
    The bundler accepted the operation but the pending record could not be saved.

    The operation is in flight with no local tracking; recreate the record, never
    resubmit the operation.
    """

    def __init__(self, message: str, user_op_hash: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.user_op_hash = user_op_hash
        self.cause = cause
