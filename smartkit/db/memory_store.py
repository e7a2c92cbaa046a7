"""
In-process store for development and tests.
"""

import asyncio
import logging
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional

from .models import Transaction, TransactionStatus, Wallet
from .store import TransactionStore

logger = logging.getLogger(__name__)


class InMemoryStore(TransactionStore):
    """
    Dict-backed store.

    Mirrors the constraints of the hosted schema: one wallet per (project, user),
    one row per operation hash, and terminal rows never change status again.
    Rows are copied in and out so callers never hold a live reference.
    """

    def __init__(self) -> None:
        self._wallets: Dict[str, Wallet] = {}
        self._transactions: Dict[str, Transaction] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def _new_id() -> str:
        return uuid.uuid4().hex

    # Wallets

    async def get_wallet_by_user(self, project_id: str, user_id: str) -> Optional[Wallet]:
        for wallet in self._wallets.values():
            if wallet.project_id == project_id and wallet.owner_user_id == user_id:
                return replace(wallet)
        return None

    async def get_wallet_by_address(self, project_id: str, address: str) -> Optional[Wallet]:
        address = address.lower()
        for wallet in self._wallets.values():
            if wallet.project_id == project_id and wallet.address == address:
                return replace(wallet)
        return None

    async def list_wallets(self, project_id: str) -> List[Wallet]:
        wallets = [replace(w) for w in self._wallets.values() if w.project_id == project_id]
        return sorted(wallets, key=lambda w: w.created_at, reverse=True)

    async def create_wallet(self, wallet: Wallet) -> Wallet:
        async with self._lock:
            existing = await self.get_wallet_by_user(wallet.project_id, wallet.owner_user_id)
            if existing is not None:
                return existing
            wallet = replace(wallet, id=wallet.id or self._new_id())
            self._wallets[wallet.id] = replace(wallet)
            return wallet

    async def mark_wallet_deployed(self, wallet_id: str) -> None:
        wallet = self._wallets.get(wallet_id)
        if wallet is not None:
            wallet.deployed = True

    # Transactions

    async def create_transaction(self, transaction: Transaction) -> Transaction:
        async with self._lock:
            for existing in self._transactions.values():
                if existing.user_op_hash == transaction.user_op_hash:
                    return replace(existing)
            transaction = replace(transaction, id=transaction.id or self._new_id())
            self._transactions[transaction.id] = replace(transaction)
            return transaction

    async def update_transaction_receipt(
        self,
        transaction_id: str,
        status: TransactionStatus,
        chain_hash: Optional[str] = None,
        gas_cost: Optional[str] = None,
    ) -> None:
        async with self._lock:
            transaction = self._transactions.get(transaction_id)
            if transaction is None:
                return
            if transaction.is_final:
                logger.info(
                    f"Ignoring receipt update for finalized transaction {transaction_id} "
                    f"({transaction.status.value})"
                )
                return
            transaction.status = TransactionStatus(status)
            if chain_hash is not None:
                transaction.chain_hash = chain_hash
            if gas_cost is not None:
                transaction.gas_cost = gas_cost
            transaction.updated_at = datetime.utcnow()

    async def mark_transaction_failed(self, transaction_id: str) -> None:
        await self.update_transaction_receipt(transaction_id, TransactionStatus.FAILED)

    async def get_transaction_by_hash(self, project_id: str, hash_: str) -> Optional[Transaction]:
        hash_ = hash_.lower()
        rows = [t for t in self._transactions.values() if t.project_id == project_id]
        for transaction in rows:
            if transaction.user_op_hash.lower() == hash_:
                return replace(transaction)
        for transaction in rows:
            if transaction.chain_hash and transaction.chain_hash.lower() == hash_:
                return replace(transaction)
        return None

    async def list_transactions(
        self,
        project_id: str,
        wallet_address: Optional[str] = None,
    ) -> List[Transaction]:
        rows = [t for t in self._transactions.values() if t.project_id == project_id]
        if wallet_address:
            rows = [t for t in rows if t.wallet_address == wallet_address.lower()]
        return sorted((replace(t) for t in rows), key=lambda t: t.created_at, reverse=True)

    async def list_pending_transactions(self) -> List[Transaction]:
        return [replace(t) for t in self._transactions.values() if not t.is_final]
