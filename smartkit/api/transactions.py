"""
Transactions API

Sends return as soon as the bundler accepts the UserOperation, with the
transaction in "pending" status. Clients re-query by hash for the outcome.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from ..config import settings
from ..core.execution.errors import RelayError
from ..core.wallet.service import SmartWalletService, get_wallet_service
from .errors import to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects/{project_id}", tags=["transactions"])

ADDRESS_PATTERN = r"^0x[0-9a-fA-F]{40}$"
HEX_PATTERN = r"^0x([0-9a-fA-F]{2})*$"
WEI_PATTERN = r"^[0-9]+$"


# ============================================================================
# Request Models
# ============================================================================


class CallRequest(BaseModel):
    to: str = Field(..., pattern=ADDRESS_PATTERN)
    value: str = Field(default="0", pattern=WEI_PATTERN, description="Amount in wei")
    data: str = Field(default="0x", pattern=HEX_PATTERN)


class SendTransactionRequest(CallRequest):
    wallet_address: str = Field(..., pattern=ADDRESS_PATTERN, alias="walletAddress")
    sponsored: Optional[bool] = None

    model_config = {"populate_by_name": True}


class SendBatchRequest(BaseModel):
    wallet_address: str = Field(..., pattern=ADDRESS_PATTERN, alias="walletAddress")
    calls: List[CallRequest] = Field(..., min_length=1, max_length=settings.max_batch_calls)
    sponsored: Optional[bool] = None

    model_config = {"populate_by_name": True}


# ============================================================================
# Endpoints
# ============================================================================


@router.post("/transactions")
async def send_transaction(
    project_id: str,
    request: SendTransactionRequest,
    service: SmartWalletService = Depends(get_wallet_service),
) -> Dict[str, Any]:
    try:
        transaction = await service.send_transaction(
            project_id,
            request.wallet_address,
            to=request.to,
            value=int(request.value),
            data=request.data,
            sponsored=request.sponsored,
        )
    except RelayError as e:
        raise to_http_exception(e)
    return transaction.to_dict()


@router.post("/transactions/batch")
async def send_batch(
    project_id: str,
    request: SendBatchRequest,
    service: SmartWalletService = Depends(get_wallet_service),
) -> Dict[str, Any]:
    try:
        transaction = await service.send_batch(
            project_id,
            request.wallet_address,
            calls=[
                {"to": call.to, "value": int(call.value), "data": call.data}
                for call in request.calls
            ],
            sponsored=request.sponsored,
        )
    except RelayError as e:
        raise to_http_exception(e)
    return transaction.to_dict()


@router.get("/transactions")
async def list_transactions(
    project_id: str,
    wallet_address: Optional[str] = Query(default=None, alias="walletAddress"),
    service: SmartWalletService = Depends(get_wallet_service),
) -> Dict[str, Any]:
    try:
        transactions = await service.list_transactions(project_id, wallet_address)
    except RelayError as e:
        raise to_http_exception(e)
    return {
        "transactions": [t.to_dict() for t in transactions],
        "count": len(transactions),
    }


@router.get("/transactions/{hash_}")
async def get_transaction(
    project_id: str,
    hash_: str,
    service: SmartWalletService = Depends(get_wallet_service),
) -> Dict[str, Any]:
    """Look up by UserOperation hash or on-chain transaction hash."""
    try:
        transaction = await service.get_transaction(project_id, hash_)
    except RelayError as e:
        raise to_http_exception(e)
    if transaction is None:
        raise HTTPException(status_code=404, detail=f"Transaction {hash_} not found")
    return transaction.to_dict()


@router.get("/stats")
async def get_stats(
    project_id: str,
    service: SmartWalletService = Depends(get_wallet_service),
) -> Dict[str, Any]:
    try:
        return await service.get_stats(project_id)
    except RelayError as e:
        raise to_http_exception(e)
