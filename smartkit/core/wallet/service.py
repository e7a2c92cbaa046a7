"""
Smart wallet service.

Entry point for the API and CLI: wallet creation and lookup, single and batch
sends, transaction queries and per-project stats. Sends run the executor
pipeline synchronously, record the pending transaction, and hand confirmation
off to the receipt poller.
"""

import json
import logging
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Sequence

import structlog
from eth_utils import to_checksum_address

from smartkit.config import settings
from smartkit.core.execution.erc4337_executor import UserOpExecutionResult, UserOpExecutor
from smartkit.core.execution.errors import PostSubmissionPersistenceError, WalletNotFoundError
from smartkit.core.execution.receipt_poller import ReceiptPoller, get_receipt_poller
from smartkit.core.execution.signer import Signer, get_operator_signer
from smartkit.core.execution.userop_builder import (
    build_execute_batch_call_data,
    build_execute_call_data,
    validate_address,
    validate_call_data,
)
from smartkit.db.models import Transaction, TransactionStatus, Wallet
from smartkit.db.store import TransactionStore, get_store
from smartkit.providers.chain import get_chain_provider

from .address import AddressDeriver

logger = logging.getLogger(__name__)
event_log = structlog.stdlib.get_logger("smartkit.userop")

BATCH_TARGET = "batch"


class SmartWalletService:
    def __init__(
        self,
        store: Optional[TransactionStore] = None,
        poller: Optional[ReceiptPoller] = None,
        signer: Optional[Signer] = None,
        executor_factory: Optional[Callable[[int], UserOpExecutor]] = None,
        address_deriver_factory: Optional[Callable[[int], AddressDeriver]] = None,
        chain_id: Optional[int] = None,
    ) -> None:
        self._store = store
        self._poller = poller
        self._signer = signer
        self.chain_id = chain_id or settings.chain_id
        self._executor_factory = executor_factory or self._default_executor
        self._address_deriver_factory = address_deriver_factory or self._default_deriver
        self._executors: Dict[int, UserOpExecutor] = {}

    @property
    def store(self) -> TransactionStore:
        if self._store is None:
            self._store = get_store()
        return self._store

    @property
    def poller(self) -> ReceiptPoller:
        if self._poller is None:
            self._poller = get_receipt_poller()
        return self._poller

    @property
    def signer(self) -> Signer:
        if self._signer is None:
            self._signer = get_operator_signer()
        return self._signer

    def _default_executor(self, chain_id: int) -> UserOpExecutor:
        return UserOpExecutor(chain_id=chain_id, signer=self.signer)

    def _default_deriver(self, chain_id: int) -> AddressDeriver:
        return AddressDeriver(get_chain_provider(chain_id), self.signer.address)

    def executor_for(self, chain_id: int) -> UserOpExecutor:
        if chain_id not in self._executors:
            self._executors[chain_id] = self._executor_factory(chain_id)
        return self._executors[chain_id]

    # =========================================================================
    # Wallets
    # =========================================================================

    async def create_wallet(
        self,
        project_id: str,
        user_id: str,
        email: Optional[str] = None,
    ) -> Wallet:
        """
        Return the project's wallet for user_id, deriving and storing it on first use.
        """
        existing = await self.store.get_wallet_by_user(project_id, user_id)
        if existing is not None:
            return existing

        derived = await self._address_deriver_factory(self.chain_id).derive(user_id)
        wallet = await self.store.create_wallet(
            Wallet(
                project_id=project_id,
                address=derived.address,
                owner_user_id=user_id,
                salt=derived.salt,
                chain_id=self.chain_id,
                deployed=False,
                email=email,
            )
        )
        logger.info(f"Created wallet {wallet.address} for project {project_id}")
        return wallet

    async def get_wallet(self, project_id: str, address: str) -> Wallet:
        validate_address(address)
        wallet = await self.store.get_wallet_by_address(project_id, address)
        if wallet is None:
            raise WalletNotFoundError(f"Wallet {address} not found")
        return wallet

    async def list_wallets(self, project_id: str) -> List[Wallet]:
        return await self.store.list_wallets(project_id)

    # =========================================================================
    # Sends
    # =========================================================================

    async def send_transaction(
        self,
        project_id: str,
        wallet_address: str,
        to: str,
        value: int = 0,
        data: Optional[str] = None,
        sponsored: Optional[bool] = None,
    ) -> Transaction:
        data = validate_call_data(data)
        call_data = build_execute_call_data(
            to, value, data,
            signature=settings.account_execute_signature,
        )
        wallet = await self.get_wallet(project_id, wallet_address)
        return await self._send(
            wallet,
            call_data,
            sponsored=settings.default_sponsored if sponsored is None else sponsored,
            to=to,
            value=str(value),
            recorded_data=data,
        )

    async def send_batch(
        self,
        project_id: str,
        wallet_address: str,
        calls: Sequence[Dict[str, Any]],
        sponsored: Optional[bool] = None,
    ) -> Transaction:
        """Each call is a dict with "to", optional "value" (wei) and optional "data"."""
        targets = [call.get("to") for call in calls]
        values = [call.get("value", 0) for call in calls]
        datas = [call.get("data") or "0x" for call in calls]
        return await self.send_batch_arrays(
            project_id, wallet_address, targets, values, datas, sponsored=sponsored
        )

    async def send_batch_arrays(
        self,
        project_id: str,
        wallet_address: str,
        targets: Sequence[str],
        values: Sequence[int],
        datas: Sequence[str],
        sponsored: Optional[bool] = None,
    ) -> Transaction:
        call_data = build_execute_batch_call_data(
            targets, values, datas,
            max_calls=settings.max_batch_calls,
            signature=settings.account_execute_batch_signature,
        )
        wallet = await self.get_wallet(project_id, wallet_address)
        recorded_calls = [
            {"to": target, "value": str(value), "data": data}
            for target, value, data in zip(targets, values, datas)
        ]
        return await self._send(
            wallet,
            call_data,
            sponsored=settings.default_sponsored if sponsored is None else sponsored,
            to=BATCH_TARGET,
            value="0",
            recorded_data=json.dumps(recorded_calls),
            call_count=len(recorded_calls),
        )

    async def _send(
        self,
        wallet: Wallet,
        call_data: str,
        sponsored: bool,
        to: str,
        value: str,
        recorded_data: str,
        call_count: int = 1,
    ) -> Transaction:
        executor = self.executor_for(wallet.chain_id)
        result = await executor.execute(
            sender=to_checksum_address(wallet.address),
            call_data=call_data,
            salt=wallet.salt,
            sponsored=sponsored,
        )

        # The operation is in flight from here on. Failures below must never
        # lead to a resubmission.
        transaction = await self._record_pending(
            wallet, result, to=to, value=value, recorded_data=recorded_data, call_count=call_count
        )
        self.poller.schedule(transaction)
        if not wallet.deployed:
            await self._mark_deployed(wallet, result.user_op_hash)
        return transaction

    async def _record_pending(
        self,
        wallet: Wallet,
        result: UserOpExecutionResult,
        to: str,
        value: str,
        recorded_data: str,
        call_count: int,
    ) -> Transaction:
        try:
            transaction = await self.store.create_transaction(
                Transaction(
                    project_id=wallet.project_id,
                    wallet_address=wallet.address,
                    user_op_hash=result.user_op_hash,
                    to=to,
                    value=value,
                    call_data=recorded_data,
                    status=TransactionStatus.PENDING,
                    chain_id=wallet.chain_id,
                    gas_sponsored=result.sponsored,
                    call_count=call_count,
                )
            )
        except Exception as e:
            event_log.error(
                "userop_record_persist_failed",
                user_op_hash=result.user_op_hash,
                wallet=wallet.address,
                error=str(e),
            )
            raise PostSubmissionPersistenceError(
                f"UserOperation {result.user_op_hash} was submitted but could not be recorded",
                user_op_hash=result.user_op_hash,
                cause=e,
            ) from e
        return transaction

    async def _mark_deployed(self, wallet: Wallet, user_op_hash: str) -> None:
        """Flip the deployment flag once the deploying operation is tracked.

        A failed write leaves the flag unset; the next send re-reads the chain
        and omits the init code once the account exists.
        """
        try:
            await self.store.mark_wallet_deployed(wallet.id)
        except Exception as e:
            event_log.error(
                "wallet_deploy_flag_persist_failed",
                user_op_hash=user_op_hash,
                wallet=wallet.address,
                error=str(e),
            )
            return
        wallet.deployed = True

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_transaction(self, project_id: str, hash_: str) -> Optional[Transaction]:
        return await self.store.get_transaction_by_hash(project_id, hash_)

    async def list_transactions(
        self,
        project_id: str,
        wallet_address: Optional[str] = None,
    ) -> List[Transaction]:
        if wallet_address:
            validate_address(wallet_address)
        return await self.store.list_transactions(project_id, wallet_address)

    async def get_stats(self, project_id: str) -> Dict[str, Any]:
        wallets = await self.store.list_wallets(project_id)
        transactions = await self.store.list_transactions(project_id)

        successful = sum(1 for t in transactions if t.status == TransactionStatus.SUCCESS)
        failed = sum(1 for t in transactions if t.status == TransactionStatus.FAILED)
        pending = sum(1 for t in transactions if not t.status.is_terminal)
        gas_sponsored = sum(
            (Decimal(t.gas_cost) for t in transactions if t.gas_sponsored and t.gas_cost),
            Decimal(0),
        )
        success_rate = f"{successful / len(transactions) * 100:.1f}" if transactions else "0"

        return {
            "totalWallets": len(wallets),
            "totalTransactions": len(transactions),
            "successfulTxs": successful,
            "failedTxs": failed,
            "pendingTxs": pending,
            "totalGasSponsored": f"{gas_sponsored:.4f}",
            "successRate": success_rate,
        }


# Singleton instance
_wallet_service: Optional[SmartWalletService] = None


def get_wallet_service() -> SmartWalletService:
    """Get the singleton wallet service instance."""
    global _wallet_service
    if _wallet_service is None:
        _wallet_service = SmartWalletService()
    return _wallet_service
