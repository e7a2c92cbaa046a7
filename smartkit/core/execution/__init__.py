"""
UserOperation Execution Layer

Builds, estimates, sponsors, signs and submits ERC-4337 UserOperations for
operator-owned smart accounts, then tracks them to a terminal status:
- UserOpExecutor: the synchronous send pipeline
- ReceiptPoller: detached confirmation tracking keyed by operation hash
- NonceManager: per-wallet nonce reservation for concurrent sends

The package namespace re-exports the leaf types only. Import nonce_manager,
gas, erc4337_executor and receipt_poller from their own modules.

Usage:
    from smartkit.core.execution import UserOperation, get_user_op_hash
    from smartkit.core.execution.erc4337_executor import UserOpExecutor
"""

from .errors import (
    RelayError,
    ValidationError,
    UnsupportedChainError,
    WalletNotFoundError,
    InfrastructureError,
    ChainRPCError,
    SponsorshipError,
    PlaceholderSignatureError,
    PostSubmissionPersistenceError,
)

from .userop import (
    DUMMY_SIGNATURE,
    UserOperation,
    FeeEstimate,
    UserOpGasEstimate,
    SponsorshipResult,
    UserOpReceipt,
)

from .userop_hash import (
    pack_gas_limits,
    pack_gas_fees,
    unpack_uint128_pair,
    get_user_op_hash,
)

from .signer import (
    Signer,
    LocalAccountSigner,
    get_operator_signer,
)

__all__ = [
    # Errors
    "RelayError",
    "ValidationError",
    "UnsupportedChainError",
    "WalletNotFoundError",
    "InfrastructureError",
    "ChainRPCError",
    "SponsorshipError",
    "PlaceholderSignatureError",
    "PostSubmissionPersistenceError",
    # UserOperation
    "DUMMY_SIGNATURE",
    "UserOperation",
    "FeeEstimate",
    "UserOpGasEstimate",
    "SponsorshipResult",
    "UserOpReceipt",
    "pack_gas_limits",
    "pack_gas_fees",
    "unpack_uint128_pair",
    "get_user_op_hash",
    # Signing
    "Signer",
    "LocalAccountSigner",
    "get_operator_signer",
]
