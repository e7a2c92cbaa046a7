"""
Wallets API

Per-project smart wallets:
- Create (idempotent per user id)
- List and look up by address
"""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..core.execution.errors import RelayError
from ..core.wallet.service import SmartWalletService, get_wallet_service
from ..db.models import Wallet
from .errors import to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects/{project_id}/wallets", tags=["wallets"])


# ============================================================================
# Request/Response Models
# ============================================================================


class CreateWalletRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=256, alias="userId")
    email: Optional[str] = None

    model_config = {"populate_by_name": True}


class WalletResponse(BaseModel):
    id: Optional[str] = None
    address: str
    user_id: str = Field(serialization_alias="userId")
    email: Optional[str] = None
    salt: str
    chain_id: int = Field(serialization_alias="chainId")
    deployed: bool
    created_at: str = Field(serialization_alias="createdAt")

    @classmethod
    def from_wallet(cls, wallet: Wallet) -> "WalletResponse":
        return cls(
            id=wallet.id,
            address=wallet.address,
            user_id=wallet.owner_user_id,
            email=wallet.email,
            salt=str(wallet.salt),
            chain_id=wallet.chain_id,
            deployed=wallet.deployed,
            created_at=wallet.created_at.isoformat(),
        )


class WalletListResponse(BaseModel):
    wallets: List[WalletResponse]
    count: int


# ============================================================================
# Endpoints
# ============================================================================


@router.post("", response_model=WalletResponse, response_model_by_alias=True)
async def create_wallet(
    project_id: str,
    request: CreateWalletRequest,
    service: SmartWalletService = Depends(get_wallet_service),
) -> WalletResponse:
    """Create the user's wallet, or return the existing one."""
    try:
        wallet = await service.create_wallet(project_id, request.user_id, email=request.email)
    except RelayError as e:
        raise to_http_exception(e)
    return WalletResponse.from_wallet(wallet)


@router.get("", response_model=WalletListResponse, response_model_by_alias=True)
async def list_wallets(
    project_id: str,
    service: SmartWalletService = Depends(get_wallet_service),
) -> WalletListResponse:
    try:
        wallets = await service.list_wallets(project_id)
    except RelayError as e:
        raise to_http_exception(e)
    return WalletListResponse(
        wallets=[WalletResponse.from_wallet(w) for w in wallets],
        count=len(wallets),
    )


@router.get("/{address}", response_model=WalletResponse, response_model_by_alias=True)
async def get_wallet(
    project_id: str,
    address: str,
    service: SmartWalletService = Depends(get_wallet_service),
) -> WalletResponse:
    try:
        wallet = await service.get_wallet(project_id, address)
    except RelayError as e:
        raise to_http_exception(e)
    return WalletResponse.from_wallet(wallet)
