"""
Counterfactual smart-account addresses.

A wallet's salt is keccak256 of the caller's user id read as an unsigned
integer; its address is whatever the factory reports for (operator, salt).
"""

from dataclasses import dataclass

from eth_utils import keccak

from smartkit.providers.chain import ChainProvider


def user_id_to_salt(user_id: str) -> int:
    return int.from_bytes(keccak(text=user_id), "big")


@dataclass(frozen=True)
class DerivedAddress:
    salt: int
    address: str


class AddressDeriver:
    """Stateless: every call is a fresh factory read. Chain errors propagate."""

    def __init__(self, chain: ChainProvider, operator_address: str) -> None:
        self.chain = chain
        self.operator_address = operator_address

    async def derive(self, user_id: str) -> DerivedAddress:
        salt = user_id_to_salt(user_id)
        address = await self.chain.get_counterfactual_address(self.operator_address, salt)
        return DerivedAddress(salt=salt, address=address)
