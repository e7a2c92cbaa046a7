"""
Gas and fee estimation for UserOperations.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Tuple

from smartkit.config import settings
from smartkit.providers.bundler import BundlerProvider
from smartkit.providers.chain import ChainProvider

from .userop import DUMMY_SIGNATURE, FeeEstimate, UserOperation, UserOpGasEstimate

logger = logging.getLogger(__name__)


class GasFeeEstimator:
    """Fee levels from the chain node, gas limits from the bundler."""

    def __init__(self, chain: ChainProvider, bundler: BundlerProvider) -> None:
        self.chain = chain
        self.bundler = bundler

    async def estimate_fees(self) -> FeeEstimate:
        suggestion = await self.chain.suggest_fees()
        if suggestion is None:
            max_fee, priority_fee = settings.fallback_fees
            logger.info("Chain node gave no fee suggestion, using fallback fees")
            return FeeEstimate(
                max_fee_per_gas=max_fee,
                max_priority_fee_per_gas=priority_fee,
                fallback=True,
            )
        return suggestion

    async def estimate_gas(self, user_op: UserOperation) -> UserOpGasEstimate:
        # Estimation must not depend on the real signature, which does not exist yet.
        return await self.bundler.estimate_user_operation_gas(
            user_op.copy(signature=DUMMY_SIGNATURE)
        )

    async def estimate(self, user_op: UserOperation) -> Tuple[FeeEstimate, UserOpGasEstimate]:
        """Fee suggestion and gas estimation are independent and run concurrently."""
        fees, gas = await asyncio.gather(
            self.estimate_fees(),
            self.estimate_gas(user_op),
        )
        logger.info(
            f"Estimated UserOperation for {user_op.sender}: "
            f"callGas={gas.call_gas_limit} verificationGas={gas.verification_gas_limit} "
            f"preVerificationGas={gas.pre_verification_gas} maxFee={fees.max_fee_per_gas}"
        )
        return fees, gas

    @staticmethod
    def apply(
        user_op: UserOperation,
        fees: Optional[FeeEstimate] = None,
        gas: Optional[UserOpGasEstimate] = None,
    ) -> UserOperation:
        if fees is not None:
            user_op.max_fee_per_gas = fees.max_fee_per_gas
            user_op.max_priority_fee_per_gas = fees.max_priority_fee_per_gas
        if gas is not None:
            user_op.call_gas_limit = gas.call_gas_limit
            user_op.verification_gas_limit = gas.verification_gas_limit
            user_op.pre_verification_gas = gas.pre_verification_gas
        return user_op
