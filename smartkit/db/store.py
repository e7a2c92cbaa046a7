"""
Persistence store interface.

The pipeline does not own storage. It emits create/update intents through this
interface and treats the store as authoritative and idempotent per operation
hash. Implementations do not retry internally.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable, List, Optional

from .models import Transaction, TransactionStatus, Wallet


class TransactionStore(ABC):
    """Wallet and transaction persistence used by the relay."""

    # Wallets

    @abstractmethod
    async def get_wallet_by_user(self, project_id: str, user_id: str) -> Optional[Wallet]:
        pass

    @abstractmethod
    async def get_wallet_by_address(self, project_id: str, address: str) -> Optional[Wallet]:
        """Case-insensitive lookup."""
        pass

    @abstractmethod
    async def list_wallets(self, project_id: str) -> List[Wallet]:
        """Newest first."""
        pass

    @abstractmethod
    async def create_wallet(self, wallet: Wallet) -> Wallet:
        pass

    @abstractmethod
    async def mark_wallet_deployed(self, wallet_id: str) -> None:
        pass

    # Transactions

    @abstractmethod
    async def create_transaction(self, transaction: Transaction) -> Transaction:
        pass

    @abstractmethod
    async def update_transaction_receipt(
        self,
        transaction_id: str,
        status: TransactionStatus,
        chain_hash: Optional[str] = None,
        gas_cost: Optional[str] = None,
    ) -> None:
        pass

    @abstractmethod
    async def mark_transaction_failed(self, transaction_id: str) -> None:
        pass

    @abstractmethod
    async def get_transaction_by_hash(self, project_id: str, hash_: str) -> Optional[Transaction]:
        """Match the operation hash first, then the on-chain transaction hash."""
        pass

    @abstractmethod
    async def list_transactions(
        self,
        project_id: str,
        wallet_address: Optional[str] = None,
    ) -> List[Transaction]:
        """Newest first."""
        pass

    @abstractmethod
    async def list_pending_transactions(self) -> List[Transaction]:
        """Non-terminal rows across all projects, for poller recovery."""
        pass

    async def mark_stale_transactions_failed(
        self,
        created_before: datetime,
        exclude_hashes: Iterable[str] = (),
    ) -> int:
        """Fail pending rows created before the cutoff. Returns the number updated."""
        excluded = {h.lower() for h in exclude_hashes}
        cleaned = 0
        for transaction in await self.list_pending_transactions():
            if transaction.user_op_hash.lower() in excluded or not transaction.id:
                continue
            if transaction.created_at < created_before:
                await self.mark_transaction_failed(transaction.id)
                cleaned += 1
        return cleaned


# Singleton instance
_store: Optional[TransactionStore] = None


def get_store() -> TransactionStore:
    """Get the singleton store for the configured backend."""
    global _store
    if _store is None:
        from smartkit.config import settings

        if settings.store_backend == "convex":
            from .convex_store import ConvexStore
            _store = ConvexStore()
        else:
            from .memory_store import InMemoryStore
            _store = InMemoryStore()
    return _store


def set_store(store: Optional[TransactionStore]) -> None:
    """Replace the singleton store (tests and the CLI)."""
    global _store
    _store = store
