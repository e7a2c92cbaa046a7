"""
UserOperation signers.

The relay signs with a single operator key on behalf of every wallet it created
(custodial model). Signing sits behind the Signer interface so a per-project
key, an HSM or a threshold scheme can replace it without touching the pipeline.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from eth_account import Account
from eth_account.messages import encode_defunct

from smartkit.config import settings


class Signer(ABC):
    """Signs UserOperation hashes."""

    @property
    @abstractmethod
    def address(self) -> str:
        """Owner address registered with the account factory."""
        pass

    @abstractmethod
    def sign_hash(self, user_op_hash: bytes) -> str:
        """Return a 65-byte 0x-prefixed signature over the hash."""
        pass


class LocalAccountSigner(Signer):
    """EIP-191 personal-message signer backed by a local private key."""

    def __init__(self, private_key: str) -> None:
        if not private_key:
            raise ValueError("OPERATOR_PRIVATE_KEY not set. Required for signing UserOperations.")
        self._account = Account.from_key(private_key)

    def __repr__(self) -> str:
        return f"LocalAccountSigner(address={self.address})"

    @property
    def address(self) -> str:
        return self._account.address

    def sign_hash(self, user_op_hash: bytes) -> str:
        if len(user_op_hash) != 32:
            raise ValueError("UserOperation hash must be 32 bytes")
        message = encode_defunct(primitive=user_op_hash)
        signed = self._account.sign_message(message)
        return "0x" + bytes(signed.signature).hex()


_operator_signer: Optional[Signer] = None


def get_operator_signer() -> Signer:
    global _operator_signer
    if _operator_signer is None:
        _operator_signer = LocalAccountSigner(settings.operator_private_key.get_secret_value())
    return _operator_signer
