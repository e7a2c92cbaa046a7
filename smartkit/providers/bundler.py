"""
ERC-4337 Bundler Provider.
"""

from __future__ import annotations

from typing import Dict, Optional

from .base import JsonRpcProvider
from ..chains import ChainConfig, get_chain_config
from ..config import settings
from ..core.execution.errors import InfrastructureError
from ..core.execution.userop import UserOperation, UserOpGasEstimate, UserOpReceipt


class BundlerError(InfrastructureError):
    """Bundler provider error."""
    pass


class BundlerRejectedError(BundlerError):
    """The bundler answered with a JSON-RPC error (invalid calldata, simulation revert, ...)."""
    pass


class BundlerProvider(JsonRpcProvider):
    name = "bundler"
    timeout_s = 20
    error_cls = BundlerError
    rejection_cls = BundlerRejectedError

    def __init__(self, config: ChainConfig) -> None:
        super().__init__(config.bundler_url, timeout_s=self.timeout_s)
        self.entry_point = config.entry_point_address

    async def send_user_operation(self, user_op: UserOperation) -> str:
        result = await self._rpc_call(
            "eth_sendUserOperation",
            [user_op.to_packed_rpc_dict(), self.entry_point],
        )
        if not isinstance(result, str):
            raise BundlerError("Invalid bundler response for eth_sendUserOperation")
        return result

    async def estimate_user_operation_gas(self, user_op: UserOperation) -> UserOpGasEstimate:
        result = await self._rpc_call(
            "eth_estimateUserOperationGas",
            [user_op.to_rpc_dict(), self.entry_point],
        )
        if not isinstance(result, dict):
            raise BundlerError("Invalid bundler response for eth_estimateUserOperationGas")
        return UserOpGasEstimate.from_rpc(result)

    async def get_user_operation_receipt(self, user_op_hash: str) -> Optional[UserOpReceipt]:
        result = await self._rpc_call(
            "eth_getUserOperationReceipt",
            [user_op_hash],
        )
        if not result:
            return None
        if not isinstance(result, dict):
            raise BundlerError("Invalid bundler response for eth_getUserOperationReceipt")
        return UserOpReceipt.from_rpc(user_op_hash, result)


_bundler_providers: Dict[int, BundlerProvider] = {}


def get_bundler_provider(chain_id: Optional[int] = None) -> BundlerProvider:
    chain_id = chain_id or settings.chain_id
    if chain_id not in _bundler_providers:
        _bundler_providers[chain_id] = BundlerProvider(get_chain_config(chain_id))
    return _bundler_providers[chain_id]
