"""
ERC-4337 UserOperation models and helpers.
"""

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from .userop_hash import pack_gas_fees, pack_gas_limits


# Publicly documented dummy signature accepted by bundler simulators. Used only
# while estimating and sponsoring, before the real signature exists.
DUMMY_SIGNATURE = (
    "0xfffffffffffffffffffffffffffffff0000000000000000000000000000000007"
    "aaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa1c"
)


def _to_hex(value: int) -> str:
    return hex(value)


def _parse_hex(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, int):
        return value
    return int(value, 16)


def _word(value: int) -> str:
    return "0x" + hex(value)[2:].rjust(64, "0")


@dataclass
class UserOperation:
    """
    ERC-4337 UserOperation payload.

    Values should be supplied in raw units (wei / gas units) and are encoded
    as hex for RPC calls. Byte fields are 0x-prefixed hex strings.
    """
    sender: str
    nonce: int
    init_code: str
    call_data: str
    call_gas_limit: int = 0
    verification_gas_limit: int = 0
    pre_verification_gas: int = 0
    max_fee_per_gas: int = 0
    max_priority_fee_per_gas: int = 0
    paymaster_and_data: str = "0x"
    signature: str = DUMMY_SIGNATURE

    @property
    def has_placeholder_signature(self) -> bool:
        return self.signature.lower() == DUMMY_SIGNATURE.lower()

    @property
    def packed_gas_limits(self) -> int:
        return pack_gas_limits(self.verification_gas_limit, self.call_gas_limit)

    @property
    def packed_gas_fees(self) -> int:
        return pack_gas_fees(self.max_priority_fee_per_gas, self.max_fee_per_gas)

    def copy(self, **changes: Any) -> "UserOperation":
        return replace(self, **changes)

    def to_rpc_dict(self) -> Dict[str, Any]:
        """Unpacked form used for gas estimation and sponsorship requests."""
        return {
            "sender": self.sender,
            "nonce": _to_hex(self.nonce),
            "initCode": self.init_code,
            "callData": self.call_data,
            "callGasLimit": _to_hex(self.call_gas_limit),
            "verificationGasLimit": _to_hex(self.verification_gas_limit),
            "preVerificationGas": _to_hex(self.pre_verification_gas),
            "maxFeePerGas": _to_hex(self.max_fee_per_gas),
            "maxPriorityFeePerGas": _to_hex(self.max_priority_fee_per_gas),
            "paymasterAndData": self.paymaster_and_data,
            "signature": self.signature,
        }

    def to_packed_rpc_dict(self) -> Dict[str, Any]:
        """EntryPoint v0.7 PackedUserOperation form used for submission."""
        return {
            "sender": self.sender,
            "nonce": _to_hex(self.nonce),
            "initCode": self.init_code,
            "callData": self.call_data,
            "accountGasLimits": _word(self.packed_gas_limits),
            "preVerificationGas": _to_hex(self.pre_verification_gas),
            "gasFees": _word(self.packed_gas_fees),
            "paymasterAndData": self.paymaster_and_data,
            "signature": self.signature,
        }


@dataclass
class FeeEstimate:
    max_fee_per_gas: int
    max_priority_fee_per_gas: int
    fallback: bool = False


@dataclass
class UserOpGasEstimate:
    call_gas_limit: int
    verification_gas_limit: int
    pre_verification_gas: int
    paymaster_verification_gas_limit: Optional[int] = None
    paymaster_post_op_gas_limit: Optional[int] = None

    @classmethod
    def from_rpc(cls, data: Dict[str, Any]) -> "UserOpGasEstimate":
        return cls(
            call_gas_limit=_parse_hex(data.get("callGasLimit")) or 0,
            verification_gas_limit=_parse_hex(data.get("verificationGasLimit")) or 0,
            pre_verification_gas=_parse_hex(data.get("preVerificationGas")) or 0,
            paymaster_verification_gas_limit=_parse_hex(data.get("paymasterVerificationGasLimit")),
            paymaster_post_op_gas_limit=_parse_hex(data.get("paymasterPostOpGasLimit")),
        )


@dataclass
class SponsorshipResult:
    paymaster_and_data: str
    call_gas_limit: int
    verification_gas_limit: int
    pre_verification_gas: int

    @classmethod
    def from_rpc(cls, data: Dict[str, Any]) -> "SponsorshipResult":
        paymaster_and_data = data.get("paymasterAndData")
        if not paymaster_and_data and data.get("paymaster"):
            # v0.7 split form: paymaster | uint128 verificationGas | uint128 postOpGas | data
            paymaster_and_data = (
                data["paymaster"]
                + hex(_parse_hex(data.get("paymasterVerificationGasLimit")) or 0)[2:].rjust(32, "0")
                + hex(_parse_hex(data.get("paymasterPostOpGasLimit")) or 0)[2:].rjust(32, "0")
                + (data.get("paymasterData") or "0x")[2:]
            )
        return cls(
            paymaster_and_data=paymaster_and_data or "0x",
            call_gas_limit=_parse_hex(data.get("callGasLimit")) or 0,
            verification_gas_limit=_parse_hex(data.get("verificationGasLimit")) or 0,
            pre_verification_gas=_parse_hex(data.get("preVerificationGas")) or 0,
        )


@dataclass
class UserOpReceipt:
    user_op_hash: str
    success: bool
    transaction_hash: Optional[str] = None
    block_number: Optional[int] = None
    gas_used: Optional[int] = None

    @classmethod
    def from_rpc(cls, user_op_hash: str, data: Dict[str, Any]) -> "UserOpReceipt":
        receipt = data.get("receipt") or {}
        if "success" in data:
            success = bool(data["success"])
        else:
            success = receipt.get("status") == "0x1"
        return cls(
            user_op_hash=user_op_hash,
            success=success,
            transaction_hash=receipt.get("transactionHash"),
            block_number=_parse_hex(receipt.get("blockNumber")),
            gas_used=_parse_hex(receipt.get("gasUsed") or data.get("actualGasUsed")),
        )
