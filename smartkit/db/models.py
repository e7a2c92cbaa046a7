"""
Wallet and transaction records exchanged with the persistence store.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class TransactionStatus(str, Enum):
    """UserOperation record lifecycle status."""
    PENDING = "pending"          # Accepted by the bundler, awaiting receipt
    SUBMITTED = "submitted"      # Reserved by the record schema; treated as pending
    SUCCESS = "success"          # Receipt with success=true
    FAILED = "failed"            # Receipt with success=false, or confirmation timeout

    @property
    def is_terminal(self) -> bool:
        return self in (TransactionStatus.SUCCESS, TransactionStatus.FAILED)


@dataclass
class Wallet:
    project_id: str
    address: str
    owner_user_id: str
    salt: int
    chain_id: int
    deployed: bool = False
    email: Optional[str] = None
    id: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)

    def __post_init__(self) -> None:
        self.address = self.address.lower()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "projectId": self.project_id,
            "address": self.address,
            "userId": self.owner_user_id,
            "email": self.email,
            "salt": str(self.salt),
            "chainId": self.chain_id,
            "deployed": self.deployed,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass
class Transaction:
    project_id: str
    wallet_address: str
    user_op_hash: str
    to: str
    value: str
    call_data: str
    chain_id: int
    gas_sponsored: bool
    status: TransactionStatus = TransactionStatus.PENDING
    chain_hash: Optional[str] = None
    gas_cost: Optional[str] = None
    call_count: int = 1
    id: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        self.wallet_address = self.wallet_address.lower()
        self.status = TransactionStatus(self.status)

    @property
    def is_final(self) -> bool:
        return self.status.is_terminal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "projectId": self.project_id,
            "walletAddress": self.wallet_address,
            "userOpHash": self.user_op_hash,
            "txHash": self.chain_hash,
            "to": self.to,
            "value": self.value,
            "data": self.call_data,
            "status": self.status.value,
            "chainId": self.chain_id,
            "gasSponsored": self.gas_sponsored,
            "gasCost": self.gas_cost,
            "callCount": self.call_count,
            "createdAt": self.created_at.isoformat(),
        }
