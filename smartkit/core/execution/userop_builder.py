"""
UserOperation calldata builders.
"""

from __future__ import annotations

import re
from typing import Optional, Sequence

from eth_abi import encode
from eth_utils import keccak, to_bytes, to_checksum_address

from smartkit.config import settings

from .errors import ValidationError


_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_HEX_RE = re.compile(r"^0x([0-9a-fA-F]{2})*$")

UINT256_MAX = 2**256 - 1


def _strip_0x(value: str) -> str:
    return value[2:] if value.startswith("0x") else value


def validate_address(address: str) -> str:
    if not isinstance(address, str) or not _ADDRESS_RE.match(address):
        raise ValidationError(f"Invalid address: {address!r}")
    return address


def validate_call_data(data: Optional[str]) -> str:
    data = data or "0x"
    if not isinstance(data, str) or not _HEX_RE.match(data):
        raise ValidationError("Call data must be an even-length 0x-prefixed hex string")
    return data


def validate_value(value: int) -> int:
    if not isinstance(value, int) or not 0 <= value <= UINT256_MAX:
        raise ValidationError(f"Value out of uint256 range: {value!r}")
    return value


def _selector_from_signature(signature: str) -> str:
    selector = keccak(text=signature)[:4].hex()
    return f"0x{selector}"


def _function_call(signature: str, types: list[str], args: list) -> str:
    return _selector_from_signature(signature) + encode(types, args).hex()


def build_execute_call_data(
    to_address: str,
    value_wei: int,
    data: str,
    *,
    signature: Optional[str] = None,
) -> str:
    """
    Build calldata for execute(address,uint256,bytes).
    """
    validate_address(to_address)
    validate_value(value_wei)
    data = validate_call_data(data)

    signature = signature or settings.account_execute_signature
    return _function_call(
        signature,
        ["address", "uint256", "bytes"],
        [to_checksum_address(to_address), value_wei, to_bytes(hexstr=data)],
    )


def build_execute_batch_call_data(
    targets: Sequence[str],
    values: Sequence[int],
    datas: Sequence[str],
    *,
    max_calls: Optional[int] = None,
    signature: Optional[str] = None,
) -> str:
    """
    Build calldata for executeBatch(address[],uint256[],bytes[]).

    All three arrays must have the same length, between 1 and max_calls.
    """
    if not (len(targets) == len(values) == len(datas)):
        raise ValidationError(
            f"Batch arrays must have equal length "
            f"(targets={len(targets)}, values={len(values)}, datas={len(datas)})"
        )
    max_calls = max_calls or settings.max_batch_calls
    if not 1 <= len(targets) <= max_calls:
        raise ValidationError(f"Batch must contain between 1 and {max_calls} calls")

    for target in targets:
        validate_address(target)
    for value in values:
        validate_value(value)
    datas = [validate_call_data(data) for data in datas]

    signature = signature or settings.account_execute_batch_signature
    return _function_call(
        signature,
        ["address[]", "uint256[]", "bytes[]"],
        [
            [to_checksum_address(target) for target in targets],
            list(values),
            [to_bytes(hexstr=data) for data in datas],
        ],
    )


def build_create_account_call(owner: str, salt: int) -> str:
    """
    Build calldata for Factory.createAccount(address,uint256).
    """
    return _function_call(
        "createAccount(address,uint256)",
        ["address", "uint256"],
        [to_checksum_address(owner), salt],
    )


def build_init_code(factory_address: str, owner: str, salt: int) -> str:
    """
    initCode = factory address followed by createAccount(owner, salt) calldata.
    """
    validate_address(factory_address)
    return "0x" + _strip_0x(factory_address).lower() + _strip_0x(build_create_account_call(owner, salt))


def build_factory_get_address_call(owner: str, salt: int) -> str:
    """
    Build calldata for Factory.getAddress(address,uint256).
    """
    return _function_call(
        "getAddress(address,uint256)",
        ["address", "uint256"],
        [to_checksum_address(owner), salt],
    )


def build_entrypoint_get_nonce_call(sender: str, key: int = 0) -> str:
    """
    Build calldata for EntryPoint.getNonce(address,uint192).
    """
    return _function_call(
        "getNonce(address,uint192)",
        ["address", "uint192"],
        [to_checksum_address(sender), key],
    )
