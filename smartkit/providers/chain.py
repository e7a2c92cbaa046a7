"""
Chain node provider: the read-only calls the relay needs.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

from eth_abi import decode
from eth_utils import to_bytes, to_checksum_address

from .base import JsonRpcProvider
from ..chains import ChainConfig, get_chain_config
from ..config import settings
from ..core.execution.errors import ChainRPCError
from ..core.execution.userop import FeeEstimate
from ..core.execution.userop_builder import (
    build_entrypoint_get_nonce_call,
    build_factory_get_address_call,
)

logger = logging.getLogger(__name__)


class ChainProvider(JsonRpcProvider):
    name = "chain"
    error_cls = ChainRPCError
    rejection_cls = ChainRPCError

    def __init__(self, config: ChainConfig) -> None:
        super().__init__(config.rpc_url)
        self.config = config

    async def eth_call(self, to: str, data: str) -> bytes:
        result = await self._rpc_call("eth_call", [{"to": to, "data": data}, "latest"])
        if not isinstance(result, str):
            raise ChainRPCError("Invalid chain response for eth_call")
        return to_bytes(hexstr=result)

    async def get_code(self, address: str) -> str:
        result = await self._rpc_call("eth_getCode", [address, "latest"])
        if not isinstance(result, str):
            raise ChainRPCError("Invalid chain response for eth_getCode")
        return result

    async def is_deployed(self, address: str) -> bool:
        code = await self.get_code(address)
        return code not in ("", "0x", "0x0")

    async def get_counterfactual_address(self, owner: str, salt: int) -> str:
        """Factory.getAddress(owner, salt)."""
        raw = await self.eth_call(
            self.config.factory_address,
            build_factory_get_address_call(owner, salt),
        )
        if len(raw) < 32:
            raise ChainRPCError("Factory getAddress returned no data")
        (address,) = decode(["address"], raw)
        return to_checksum_address(address)

    async def get_nonce(self, sender: str, key: int = 0) -> int:
        """EntryPoint.getNonce(sender, key)."""
        raw = await self.eth_call(
            self.config.entry_point_address,
            build_entrypoint_get_nonce_call(sender, key),
        )
        if len(raw) < 32:
            raise ChainRPCError("EntryPoint getNonce returned no data")
        (nonce,) = decode(["uint256"], raw)
        logger.debug(f"EntryPoint nonce for {sender}: {nonce}")
        return nonce

    async def suggest_fees(self) -> Optional[FeeEstimate]:
        """
        EIP-1559 fee suggestion from the latest base fee and the node's priority fee.

        Returns None when the node has no suggestion (pre-1559 chain, empty answers).
        """
        block = await self._rpc_call("eth_getBlockByNumber", ["latest", False])
        priority_hex = await self._rpc_call("eth_maxPriorityFeePerGas", [])
        base_fee_hex = (block or {}).get("baseFeePerGas")
        if not base_fee_hex or not priority_hex:
            return None

        base_fee = int(base_fee_hex, 16)
        priority_fee = int(priority_hex, 16)
        return FeeEstimate(
            max_fee_per_gas=base_fee * 2 + priority_fee,
            max_priority_fee_per_gas=priority_fee,
        )


_chain_providers: Dict[int, ChainProvider] = {}


def get_chain_provider(chain_id: Optional[int] = None) -> ChainProvider:
    chain_id = chain_id or settings.chain_id
    if chain_id not in _chain_providers:
        _chain_providers[chain_id] = ChainProvider(get_chain_config(chain_id))
    return _chain_providers[chain_id]
