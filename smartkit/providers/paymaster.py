"""
ERC-4337 Paymaster Provider.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from .base import JsonRpcProvider
from ..chains import ChainConfig, get_chain_config
from ..config import settings
from ..core.execution.errors import InfrastructureError, SponsorshipError
from ..core.execution.userop import SponsorshipResult, UserOperation


class PaymasterError(InfrastructureError):
    """Paymaster unreachable or answered with an unusable payload."""
    pass


class SponsorshipDeniedError(SponsorshipError):
    """The paymaster answered the sponsorship request with an error."""
    pass


class PaymasterProvider(JsonRpcProvider):
    name = "paymaster"
    timeout_s = 20
    error_cls = PaymasterError
    rejection_cls = SponsorshipDeniedError

    def __init__(
        self,
        config: ChainConfig,
        rpc_method: Optional[str] = None,
        sponsorship_policy_id: Optional[str] = None,
    ) -> None:
        super().__init__(config.paymaster_url, timeout_s=self.timeout_s)
        self.entry_point = config.entry_point_address
        self.rpc_method = rpc_method or settings.paymaster_rpc_method
        self.sponsorship_policy_id = sponsorship_policy_id or settings.sponsorship_policy_id

    async def sponsor_user_operation(
        self,
        user_op: UserOperation,
        context: Optional[Dict[str, Any]] = None,
    ) -> SponsorshipResult:
        params: list[Any] = [user_op.to_rpc_dict(), self.entry_point]
        context = dict(context or {})
        if self.sponsorship_policy_id:
            context.setdefault("sponsorshipPolicyId", self.sponsorship_policy_id)
        if context:
            params.append(context)

        result = await self._rpc_call(self.rpc_method, params)
        if not isinstance(result, dict):
            raise PaymasterError("Invalid paymaster response")

        sponsorship = SponsorshipResult.from_rpc(result)
        if sponsorship.paymaster_and_data in ("", "0x"):
            raise SponsorshipDeniedError("Paymaster returned no paymasterAndData")
        return sponsorship


_paymaster_providers: Dict[int, PaymasterProvider] = {}


def get_paymaster_provider(chain_id: Optional[int] = None) -> PaymasterProvider:
    chain_id = chain_id or settings.chain_id
    if chain_id not in _paymaster_providers:
        _paymaster_providers[chain_id] = PaymasterProvider(get_chain_config(chain_id))
    return _paymaster_providers[chain_id]
