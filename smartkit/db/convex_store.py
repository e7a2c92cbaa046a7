"""
Convex-backed store.

Maps the TransactionStore interface onto the `wallets:*` and `transactions:*`
Convex functions of the hosted deployment.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .convex_client import ConvexClient, get_convex_client
from .models import Transaction, TransactionStatus, Wallet
from .store import TransactionStore


def _created_at(doc: Dict[str, Any]) -> datetime:
    # _creationTime is milliseconds since epoch
    millis = doc.get("_creationTime") or doc.get("createdAt") or 0
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc).replace(tzinfo=None)


def wallet_from_doc(doc: Dict[str, Any]) -> Wallet:
    return Wallet(
        id=doc.get("_id"),
        project_id=doc["projectId"],
        address=doc["address"],
        owner_user_id=doc["userId"],
        email=doc.get("email") or None,
        salt=int(doc.get("salt") or 0),
        chain_id=int(doc["chainId"]),
        deployed=bool(doc.get("deployed", False)),
        created_at=_created_at(doc),
    )


def transaction_from_doc(doc: Dict[str, Any]) -> Transaction:
    return Transaction(
        id=doc.get("_id"),
        project_id=doc["projectId"],
        wallet_address=doc["walletAddress"],
        user_op_hash=doc["userOpHash"],
        chain_hash=doc.get("txHash"),
        to=doc["to"],
        value=doc.get("value", "0"),
        call_data=doc.get("data", "0x"),
        status=TransactionStatus(doc.get("status", "pending")),
        chain_id=int(doc["chainId"]),
        gas_sponsored=bool(doc.get("gasSponsored", True)),
        gas_cost=doc.get("gasCost"),
        call_count=int(doc.get("callCount") or 1),
        created_at=_created_at(doc),
    )


class ConvexStore(TransactionStore):
    def __init__(self, client: Optional[ConvexClient] = None) -> None:
        self._client = client

    @property
    def client(self) -> ConvexClient:
        if self._client is None:
            self._client = get_convex_client()
        return self._client

    # Wallets

    async def get_wallet_by_user(self, project_id: str, user_id: str) -> Optional[Wallet]:
        doc = await self.client.query(
            "wallets:getWalletByProjectAndUser",
            {"projectId": project_id, "userId": user_id},
        )
        return wallet_from_doc(doc) if doc else None

    async def get_wallet_by_address(self, project_id: str, address: str) -> Optional[Wallet]:
        doc = await self.client.query(
            "wallets:getWalletByProjectAndAddress",
            {"projectId": project_id, "address": address.lower()},
        )
        return wallet_from_doc(doc) if doc else None

    async def list_wallets(self, project_id: str) -> List[Wallet]:
        docs = await self.client.query("wallets:getAllWallets", {"projectId": project_id})
        return [wallet_from_doc(doc) for doc in docs or []]

    async def create_wallet(self, wallet: Wallet) -> Wallet:
        wallet.id = await self.client.mutation(
            "wallets:createWallet",
            {
                "projectId": wallet.project_id,
                "address": wallet.address,
                "userId": wallet.owner_user_id,
                "email": wallet.email or "",
                "salt": str(wallet.salt),
                "chainId": wallet.chain_id,
                "deployed": wallet.deployed,
            },
        )
        return wallet

    async def mark_wallet_deployed(self, wallet_id: str) -> None:
        await self.client.mutation("wallets:markWalletDeployed", {"walletId": wallet_id})

    # Transactions

    async def create_transaction(self, transaction: Transaction) -> Transaction:
        transaction.id = await self.client.mutation(
            "transactions:createTransaction",
            {
                "projectId": transaction.project_id,
                "walletAddress": transaction.wallet_address,
                "userOpHash": transaction.user_op_hash,
                "to": transaction.to,
                "value": transaction.value,
                "data": transaction.call_data,
                "status": transaction.status.value,
                "chainId": transaction.chain_id,
                "gasSponsored": transaction.gas_sponsored,
            },
        )
        return transaction

    async def update_transaction_receipt(
        self,
        transaction_id: str,
        status: TransactionStatus,
        chain_hash: Optional[str] = None,
        gas_cost: Optional[str] = None,
    ) -> None:
        args: Dict[str, Any] = {"txId": transaction_id, "status": TransactionStatus(status).value}
        if chain_hash is not None:
            args["txHash"] = chain_hash
        if gas_cost is not None:
            args["gasCost"] = gas_cost
        await self.client.mutation("transactions:updateTransactionReceipt", args)

    async def mark_transaction_failed(self, transaction_id: str) -> None:
        await self.client.mutation("transactions:markTransactionFailed", {"txId": transaction_id})

    async def get_transaction_by_hash(self, project_id: str, hash_: str) -> Optional[Transaction]:
        doc = await self.client.query(
            "transactions:getTransactionByHash",
            {"projectId": project_id, "hash": hash_},
        )
        return transaction_from_doc(doc) if doc else None

    async def list_transactions(
        self,
        project_id: str,
        wallet_address: Optional[str] = None,
    ) -> List[Transaction]:
        args: Dict[str, Any] = {"projectId": project_id}
        if wallet_address:
            args["walletAddress"] = wallet_address.lower()
        docs = await self.client.query("transactions:getTransactions", args)
        return [transaction_from_doc(doc) for doc in docs or []]

    async def list_pending_transactions(self) -> List[Transaction]:
        docs = await self.client.query("transactions:getPendingTransactions", {})
        return [transaction_from_doc(doc) for doc in docs or []]
