"""
ERC-4337 UserOperation execution.

Runs the synchronous part of a send: deployment check, init code, nonce,
gas and fee estimation, optional sponsorship, hashing, signing and submission.
Confirmation tracking happens elsewhere (see receipt_poller).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import structlog

from smartkit.chains import ChainConfig, get_chain_config
from smartkit.config import settings
from smartkit.providers.bundler import BundlerProvider, BundlerRejectedError, get_bundler_provider
from smartkit.providers.chain import ChainProvider, get_chain_provider
from smartkit.providers.paymaster import PaymasterProvider, get_paymaster_provider

from .errors import PlaceholderSignatureError, SponsorshipError
from .gas import GasFeeEstimator
from .nonce_manager import NonceManager, get_nonce_manager
from .signer import Signer, get_operator_signer
from .userop import DUMMY_SIGNATURE, UserOperation
from .userop_builder import build_init_code
from .userop_hash import get_user_op_hash

logger = logging.getLogger(__name__)
event_log = structlog.stdlib.get_logger("smartkit.userop")


@dataclass
class UserOpExecutionResult:
    user_op_hash: str
    user_op: UserOperation
    local_hash: str
    sponsored: bool
    was_deployed: bool

    @property
    def deploys_account(self) -> bool:
        return not self.was_deployed


class UserOpExecutor:
    """
    Builds, signs and submits UserOperations for operator-owned smart accounts.
    """

    def __init__(
        self,
        chain_id: Optional[int] = None,
        chain: Optional[ChainProvider] = None,
        bundler: Optional[BundlerProvider] = None,
        paymaster: Optional[PaymasterProvider] = None,
        signer: Optional[Signer] = None,
        nonce_manager: Optional[NonceManager] = None,
        config: Optional[ChainConfig] = None,
    ) -> None:
        self.chain_id = chain_id or settings.chain_id
        self.config = config or get_chain_config(self.chain_id)
        self.chain = chain or get_chain_provider(self.chain_id)
        self.bundler = bundler or get_bundler_provider(self.chain_id)
        self._paymaster = paymaster
        self._signer = signer
        self.nonce_manager = nonce_manager or get_nonce_manager()
        self.estimator = GasFeeEstimator(self.chain, self.bundler)

    @property
    def signer(self) -> Signer:
        if self._signer is None:
            self._signer = get_operator_signer()
        return self._signer

    @property
    def paymaster(self) -> PaymasterProvider:
        if self._paymaster is None:
            self._paymaster = get_paymaster_provider(self.chain_id)
        return self._paymaster

    @property
    def entry_point(self) -> str:
        return self.config.entry_point_address

    async def build_user_operation(
        self,
        sender: str,
        call_data: str,
        salt: int,
        nonce: int,
        deployed: bool,
    ) -> UserOperation:
        init_code = "0x" if deployed else build_init_code(
            self.config.factory_address, self.signer.address, salt
        )
        return UserOperation(
            sender=sender,
            nonce=nonce,
            init_code=init_code,
            call_data=call_data,
            signature=DUMMY_SIGNATURE,
        )

    async def sponsor(
        self,
        user_op: UserOperation,
        context: Optional[Dict[str, Any]] = None,
    ) -> UserOperation:
        """The paymaster's gas limits replace the bundler's estimate."""
        if not self.config.paymaster_url:
            raise SponsorshipError("Sponsorship requested but no paymaster is configured")
        sponsorship = await self.paymaster.sponsor_user_operation(
            user_op.copy(signature=DUMMY_SIGNATURE),
            context=context,
        )
        user_op.paymaster_and_data = sponsorship.paymaster_and_data
        user_op.call_gas_limit = sponsorship.call_gas_limit
        user_op.verification_gas_limit = sponsorship.verification_gas_limit
        user_op.pre_verification_gas = sponsorship.pre_verification_gas
        return user_op

    def sign(self, user_op: UserOperation) -> str:
        """Sign in place and return the locally computed operation hash."""
        op_hash = get_user_op_hash(user_op, self.entry_point, self.chain_id)
        user_op.signature = self.signer.sign_hash(op_hash)
        return "0x" + op_hash.hex()

    async def submit(self, user_op: UserOperation) -> str:
        if user_op.has_placeholder_signature:
            raise PlaceholderSignatureError(
                f"UserOperation for {user_op.sender} still carries the estimation signature"
            )
        return await self.bundler.send_user_operation(user_op)

    async def execute(
        self,
        sender: str,
        call_data: str,
        salt: int,
        sponsored: bool = True,
        sponsorship_context: Optional[Dict[str, Any]] = None,
    ) -> UserOpExecutionResult:
        """
        Run the send pipeline for one UserOperation.

        The reserved nonce is released when the send fails before reaching the
        bundler or the bundler rejects it. A transport failure during submission
        keeps the reservation, since the operation may already be in the mempool.
        Errors propagate unchanged.
        """
        deployed = await self.chain.is_deployed(sender)
        nonce = await self.nonce_manager.get_next_nonce(sender, self.chain_id)

        try:
            user_op = await self.build_user_operation(sender, call_data, salt, nonce, deployed)
            fees, gas = await self.estimator.estimate(user_op)
            self.estimator.apply(user_op, fees=fees, gas=gas)
            if sponsored:
                await self.sponsor(user_op, context=sponsorship_context)
            local_hash = self.sign(user_op)
        except Exception:
            await self.nonce_manager.release_nonce(sender, self.chain_id, nonce)
            raise

        try:
            user_op_hash = await self.submit(user_op)
        except (BundlerRejectedError, PlaceholderSignatureError):
            await self.nonce_manager.release_nonce(sender, self.chain_id, nonce)
            raise
        except Exception:
            logger.warning(
                f"Submission outcome unknown for {sender} nonce {nonce}; keeping the reservation"
            )
            raise

        if user_op_hash.lower() != local_hash.lower():
            logger.warning(
                f"Bundler hash {user_op_hash} differs from local hash {local_hash} for {sender}"
            )
        event_log.info(
            "userop_submitted",
            user_op_hash=user_op_hash,
            sender=sender,
            nonce=nonce,
            chain_id=self.chain_id,
            sponsored=sponsored,
            deploys_account=not deployed,
        )
        return UserOpExecutionResult(
            user_op_hash=user_op_hash,
            user_op=user_op,
            local_hash=local_hash,
            sponsored=sponsored,
            was_deployed=deployed,
        )
