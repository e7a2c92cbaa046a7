"""
Confirmation tracking for submitted UserOperations.

Each pending transaction gets its own detached task that asks the bundler for a
receipt every poll interval until one arrives or the attempt budget runs out.
Tasks are keyed by operation hash and outlive the request that scheduled them.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

import structlog

from smartkit.config import settings
from smartkit.db.models import Transaction, TransactionStatus
from smartkit.db.store import TransactionStore, get_store
from smartkit.providers.bundler import BundlerProvider, get_bundler_provider

from .errors import InfrastructureError
from .userop import UserOpReceipt

logger = logging.getLogger(__name__)
event_log = structlog.stdlib.get_logger("smartkit.userop")

FinalizedCallback = Callable[[Transaction], Awaitable[None]]

WEI_PER_ETHER = 10**18


def format_ether(wei: int) -> str:
    """Wei to a decimal ether string, e.g. 21000 -> "0.000000000000021", 10**18 -> "1.0"."""
    whole, fraction = divmod(wei, WEI_PER_ETHER)
    fraction_str = str(fraction).rjust(18, "0").rstrip("0") or "0"
    return f"{whole}.{fraction_str}"


class ReceiptPoller:
    """
    Supervises receipt polling tasks.

    Features:
    - One task per operation hash; scheduling a tracked hash again is a no-op
    - Task failures are logged, never raised into the scheduling request
    - recover_pending() respawns tasks for rows left pending by a restart
    - shutdown() cancels everything still running
    """

    def __init__(
        self,
        store: Optional[TransactionStore] = None,
        bundler_factory: Callable[[int], BundlerProvider] = get_bundler_provider,
        poll_interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
        on_finalized: Optional[FinalizedCallback] = None,
    ) -> None:
        self._store = store
        self._bundler_factory = bundler_factory
        self.poll_interval = (
            settings.receipt_poll_interval_seconds if poll_interval is None else poll_interval
        )
        self.max_attempts = max_attempts or settings.receipt_poll_max_attempts
        self.on_finalized = on_finalized
        self._tasks: Dict[str, asyncio.Task] = {}

    @property
    def store(self) -> TransactionStore:
        if self._store is None:
            self._store = get_store()
        return self._store

    @property
    def active_hashes(self) -> list:
        return [h for h, task in self._tasks.items() if not task.done()]

    def is_tracking(self, user_op_hash: str) -> bool:
        task = self._tasks.get(user_op_hash.lower())
        return task is not None and not task.done()

    def schedule(self, transaction: Transaction) -> asyncio.Task:
        key = transaction.user_op_hash.lower()
        existing = self._tasks.get(key)
        if existing is not None and not existing.done():
            return existing

        task = asyncio.create_task(self._run(transaction), name=f"receipt:{key}")
        self._tasks[key] = task
        task.add_done_callback(lambda t, k=key: self._forget(k, t))
        return task

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]

    async def _run(self, transaction: Transaction) -> Optional[Transaction]:
        try:
            return await self.poll(transaction)
        except asyncio.CancelledError:
            logger.info(f"Receipt polling cancelled for {transaction.user_op_hash}")
            raise
        except Exception as e:
            logger.exception(f"Receipt polling crashed for {transaction.user_op_hash}: {e}")
            return None

    async def poll(self, transaction: Transaction) -> Transaction:
        """Drive one transaction to a terminal status."""
        if transaction.is_final:
            return transaction
        bundler = self._bundler_factory(transaction.chain_id)

        for attempt in range(1, self.max_attempts + 1):
            await asyncio.sleep(self.poll_interval)
            try:
                receipt = await bundler.get_user_operation_receipt(transaction.user_op_hash)
            except InfrastructureError as e:
                logger.warning(
                    f"Receipt lookup failed for {transaction.user_op_hash} "
                    f"(attempt {attempt}/{self.max_attempts}): {e}"
                )
                continue
            if receipt is not None:
                return await self._finalize(transaction, receipt, attempt)

        return await self._time_out(transaction)

    async def _finalize(
        self,
        transaction: Transaction,
        receipt: UserOpReceipt,
        attempt: int,
    ) -> Transaction:
        status = TransactionStatus.SUCCESS if receipt.success else TransactionStatus.FAILED
        gas_cost = format_ether(receipt.gas_used) if receipt.gas_used is not None else None

        await self.store.update_transaction_receipt(
            transaction.id,
            status,
            chain_hash=receipt.transaction_hash,
            gas_cost=gas_cost,
        )
        transaction.status = status
        transaction.chain_hash = receipt.transaction_hash
        transaction.gas_cost = gas_cost

        event_log.info(
            "userop_confirmed",
            user_op_hash=transaction.user_op_hash,
            tx_hash=receipt.transaction_hash,
            success=receipt.success,
            gas_cost=gas_cost,
            attempts=attempt,
        )
        await self._notify(transaction)
        return transaction

    async def _time_out(self, transaction: Transaction) -> Transaction:
        # Recorded as failed; the operation may still land later.
        await self.store.mark_transaction_failed(transaction.id)
        transaction.status = TransactionStatus.FAILED

        event_log.warning(
            "userop_confirmation_timeout",
            user_op_hash=transaction.user_op_hash,
            attempts=self.max_attempts,
            waited_seconds=self.max_attempts * self.poll_interval,
        )
        await self._notify(transaction)
        return transaction

    async def _notify(self, transaction: Transaction) -> None:
        if self.on_finalized is None:
            return
        try:
            await self.on_finalized(transaction)
        except Exception as e:
            logger.error(f"Finalization callback failed for {transaction.user_op_hash}: {e}")

    async def recover_pending(self) -> int:
        """Respawn pollers for every non-terminal row in the store."""
        pending = await self.store.list_pending_transactions()
        scheduled = 0
        for transaction in pending:
            if not self.is_tracking(transaction.user_op_hash):
                self.schedule(transaction)
                scheduled += 1
        if scheduled:
            logger.info(f"Recovered {scheduled} pending transactions for receipt polling")
        return scheduled

    async def shutdown(self) -> None:
        tasks = [task for task in self._tasks.values() if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()


# Singleton instance
_receipt_poller: Optional[ReceiptPoller] = None


def get_receipt_poller() -> ReceiptPoller:
    """Get the singleton receipt poller instance."""
    global _receipt_poller
    if _receipt_poller is None:
        _receipt_poller = ReceiptPoller()
    return _receipt_poller
