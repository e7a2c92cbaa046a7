"""
Tests for ERC-4337 UserOperation calldata builders.
"""

import pytest
from eth_abi import decode
from eth_utils import keccak, to_bytes

from smartkit.core.execution.errors import ValidationError
from smartkit.core.execution.userop_builder import (
    build_create_account_call,
    build_execute_batch_call_data,
    build_execute_call_data,
    build_init_code,
    validate_call_data,
)

TARGET = "0x1111111111111111111111111111111111111111"
DEAD = "0x000000000000000000000000000000000000dEaD"


def _selector(signature: str) -> str:
    return "0x" + keccak(text=signature)[:4].hex()


def test_build_execute_call_data_encodes_execute() -> None:
    selector = _selector("execute(address,uint256,bytes)")
    call_data = build_execute_call_data(
        to_address=TARGET,
        value_wei=1,
        data="0x1234",
        signature="execute(address,uint256,bytes)",
    )

    assert call_data.startswith(selector)
    # 4-byte selector + 3 words (address, value, offset) + bytes length + data padded
    assert len(call_data) == len(selector) + 64 * 4 + 64
    assert call_data.endswith("1234" + "0" * 60)


def test_build_execute_batch_call_data_round_trips() -> None:
    call_data = build_execute_batch_call_data(
        [TARGET, DEAD],
        [0, 5],
        ["0x", "0xabcd"],
        signature="executeBatch(address[],uint256[],bytes[])",
    )

    assert call_data.startswith(_selector("executeBatch(address[],uint256[],bytes[])"))
    targets, values, datas = decode(
        ["address[]", "uint256[]", "bytes[]"], to_bytes(hexstr=call_data[10:])
    )
    assert [t.lower() for t in targets] == [TARGET, DEAD.lower()]
    assert list(values) == [0, 5]
    assert list(datas) == [b"", b"\xab\xcd"]


class TestBatchValidation:
    def test_mismatched_lengths_rejected(self):
        with pytest.raises(ValidationError, match="equal length"):
            build_execute_batch_call_data([TARGET, DEAD], [0, 0, 0], ["0x", "0x", "0x"])

    def test_empty_batch_rejected(self):
        with pytest.raises(ValidationError):
            build_execute_batch_call_data([], [], [])

    def test_batch_over_limit_rejected(self):
        with pytest.raises(ValidationError):
            build_execute_batch_call_data([TARGET] * 11, [0] * 11, ["0x"] * 11, max_calls=10)

    def test_bad_target_rejected(self):
        with pytest.raises(ValidationError, match="Invalid address"):
            build_execute_batch_call_data(["0x1234"], [0], ["0x"])


class TestInputValidation:
    @pytest.mark.parametrize("data", ["0x1", "1234", "0xzz"])
    def test_bad_call_data(self, data):
        with pytest.raises(ValidationError):
            validate_call_data(data)

    def test_missing_call_data_is_empty(self):
        assert validate_call_data(None) == "0x"

    def test_negative_value_rejected(self):
        with pytest.raises(ValidationError):
            build_execute_call_data(TARGET, -1, "0x")


def test_init_code_is_factory_then_create_account() -> None:
    factory = "0x" + "fa" * 20
    owner = "0x" + "0b" * 20
    init_code = build_init_code(factory, owner, salt=7)

    assert init_code.startswith(factory)
    assert init_code[42:] == build_create_account_call(owner, 7)[2:]
    assert init_code[42:50] == _selector("createAccount(address,uint256)")[2:]
