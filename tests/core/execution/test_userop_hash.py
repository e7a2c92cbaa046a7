"""
Tests for EntryPoint v0.7 field packing and UserOperation hashing.
"""

import pytest
from eth_abi import encode
from eth_utils import keccak

from smartkit.config import ENTRY_POINT_V07
from smartkit.core.execution.userop import UserOperation
from smartkit.core.execution.userop_hash import (
    UINT128_MAX,
    get_user_op_content_hash,
    get_user_op_hash,
    pack_gas_fees,
    pack_gas_limits,
    unpack_uint128_pair,
)

def _user_op(**overrides) -> UserOperation:
    fields = dict(
        sender="0x1111111111111111111111111111111111111111",
        nonce=3,
        init_code="0x",
        call_data="0xb61d27f6",
        call_gas_limit=100_000,
        verification_gas_limit=150_000,
        pre_verification_gas=45_000,
        max_fee_per_gas=2_000_000_000,
        max_priority_fee_per_gas=1_000_000,
        paymaster_and_data="0x",
        signature="0x",
    )
    fields.update(overrides)
    return UserOperation(**fields)


# =============================================================================
# Packing
# =============================================================================


class TestPacking:
    @pytest.mark.parametrize(
        "verification,call",
        [(0, 0), (1, UINT128_MAX), (UINT128_MAX, 1), (UINT128_MAX, UINT128_MAX), (150_000, 50_000)],
    )
    def test_gas_limits_boundaries(self, verification, call):
        assert unpack_uint128_pair(pack_gas_limits(verification, call)) == (verification, call)

    def test_gas_limits_layout(self):
        packed = pack_gas_limits(verification_gas_limit=0x70000, call_gas_limit=0x50000)
        word = packed.to_bytes(32, "big")
        assert int.from_bytes(word[:16], "big") == 0x70000
        assert int.from_bytes(word[16:], "big") == 0x50000

    def test_gas_fees_layout(self):
        packed = pack_gas_fees(max_priority_fee_per_gas=1, max_fee_per_gas=2)
        assert packed == (1 << 128) | 2

    def test_rejects_values_wider_than_128_bits(self):
        with pytest.raises(ValueError):
            pack_gas_limits(UINT128_MAX + 1, 0)
        with pytest.raises(ValueError):
            pack_gas_fees(0, -1)

    def test_packed_rpc_form_uses_32_byte_words(self):
        op = _user_op(verification_gas_limit=1, call_gas_limit=2)
        packed = op.to_packed_rpc_dict()
        assert packed["accountGasLimits"] == "0x" + "0" * 31 + "1" + "0" * 31 + "2"
        assert len(packed["gasFees"]) == 66


# =============================================================================
# Hashing
# =============================================================================


class TestUserOpHash:
    def test_same_fields_same_hash(self):
        assert get_user_op_hash(_user_op(), ENTRY_POINT_V07, 84532) == get_user_op_hash(
            _user_op(), ENTRY_POINT_V07, 84532
        )

    def test_signature_is_not_hashed(self):
        assert get_user_op_hash(_user_op(signature="0x01"), ENTRY_POINT_V07, 1) == get_user_op_hash(
            _user_op(signature="0x02"), ENTRY_POINT_V07, 1
        )

    @pytest.mark.parametrize(
        "field,value",
        [
            ("sender", "0x2222222222222222222222222222222222222222"),
            ("nonce", 4),
            ("init_code", "0x" + "fa" * 20 + "5fbfb9cf"),
            ("call_data", "0xb61d27f600"),
            ("call_gas_limit", 100_001),
            ("verification_gas_limit", 150_001),
            ("pre_verification_gas", 45_001),
            ("max_fee_per_gas", 2_000_000_001),
            ("max_priority_fee_per_gas", 1_000_001),
            ("paymaster_and_data", "0x" + "9a" * 20),
        ],
    )
    def test_any_field_change_changes_hash(self, field, value):
        base = get_user_op_hash(_user_op(), ENTRY_POINT_V07, 84532)
        changed = get_user_op_hash(_user_op(**{field: value}), ENTRY_POINT_V07, 84532)
        assert changed != base

    def test_bound_to_chain_and_entry_point(self):
        op = _user_op()
        base = get_user_op_hash(op, ENTRY_POINT_V07, 84532)
        assert get_user_op_hash(op, ENTRY_POINT_V07, 421614) != base
        assert get_user_op_hash(op, "0x5FF137D4b0FDCD49DcA30c7CF57E578a026d2789", 84532) != base

    def test_final_hash_wraps_content_hash(self):
        op = _user_op()
        expected = keccak(
            encode(
                ["bytes32", "address", "uint256"],
                [get_user_op_content_hash(op), ENTRY_POINT_V07, 84532],
            )
        )
        assert get_user_op_hash(op, ENTRY_POINT_V07, 84532) == expected

    def test_content_hash_packs_gas_words(self):
        op = _user_op()
        expected = keccak(
            encode(
                ["address", "uint256", "bytes32", "bytes32", "bytes32", "uint256", "bytes32", "bytes32"],
                [
                    op.sender,
                    op.nonce,
                    keccak(b""),
                    keccak(bytes.fromhex("b61d27f6")),
                    ((150_000 << 128) | 100_000).to_bytes(32, "big"),
                    45_000,
                    ((1_000_000 << 128) | 2_000_000_000).to_bytes(32, "big"),
                    keccak(b""),
                ],
            )
        )
        assert get_user_op_content_hash(op) == expected
