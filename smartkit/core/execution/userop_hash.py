"""
Canonical EntryPoint v0.7 packing and UserOperation hashing.

Two 128-bit quantities share one 32-byte word: the first argument of each pack
helper occupies the high 128 bits, the second the low 128 bits. The layout is
what the EntryPoint unpacks on-chain; any deviation yields a hash the contract
will not accept.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Tuple

from eth_abi import encode
from eth_utils import keccak, to_bytes, to_checksum_address

if TYPE_CHECKING:
    from .userop import UserOperation


UINT128_MAX = (1 << 128) - 1


def pack_uint128_pair(high: int, low: int) -> int:
    if not 0 <= high <= UINT128_MAX or not 0 <= low <= UINT128_MAX:
        raise ValueError("Packed values must fit in 128 bits")
    return (high << 128) | low


def unpack_uint128_pair(packed: int) -> Tuple[int, int]:
    return packed >> 128, packed & UINT128_MAX


def pack_gas_limits(verification_gas_limit: int, call_gas_limit: int) -> int:
    return pack_uint128_pair(verification_gas_limit, call_gas_limit)


def pack_gas_fees(max_priority_fee_per_gas: int, max_fee_per_gas: int) -> int:
    return pack_uint128_pair(max_priority_fee_per_gas, max_fee_per_gas)


def _hash_hex(data: str) -> bytes:
    return keccak(to_bytes(hexstr=data))


def _bytes32(value: int) -> bytes:
    return value.to_bytes(32, "big")


def get_user_op_content_hash(user_op: "UserOperation") -> bytes:
    """keccak256 of the packed UserOperation, signature excluded."""
    encoded = encode(
        [
            "address",
            "uint256",
            "bytes32",
            "bytes32",
            "bytes32",
            "uint256",
            "bytes32",
            "bytes32",
        ],
        [
            to_checksum_address(user_op.sender),
            user_op.nonce,
            _hash_hex(user_op.init_code),
            _hash_hex(user_op.call_data),
            _bytes32(user_op.packed_gas_limits),
            user_op.pre_verification_gas,
            _bytes32(user_op.packed_gas_fees),
            _hash_hex(user_op.paymaster_and_data),
        ],
    )
    return keccak(encoded)


def get_user_op_hash(user_op: "UserOperation", entry_point: str, chain_id: int) -> bytes:
    """Final hash bound to one EntryPoint deployment and chain."""
    encoded = encode(
        ["bytes32", "address", "uint256"],
        [get_user_op_content_hash(user_op), to_checksum_address(entry_point), chain_id],
    )
    return keccak(encoded)
