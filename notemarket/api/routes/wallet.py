"""
Wallet API Routes
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, ConfigDict, Field, StrictInt
from sqlalchemy.ext.asyncio import AsyncSession

from notemarket.api.dependencies.auth import get_current_account
from notemarket.core.config import settings
from notemarket.db.database import get_db
from notemarket.db.models.account import Account
from notemarket.db.models.wallet_transaction import TransactionCategory, TransactionType
from notemarket.domain.services.wallet_service import WalletService

router = APIRouter()


class SubscriptionResponse(BaseModel):
    plan: str
    start_date: Optional[datetime]
    end_date: Optional[datetime]
    is_active: bool


class WalletResponse(BaseModel):
    account_id: int
    balance: int
    total_earnings: int
    total_spent: int
    subscription: SubscriptionResponse
    has_active_subscription: bool


class TransactionResponse(BaseModel):
    id: int
    type: str
    amount: int
    category: str
    description: Optional[str]
    related_note_id: Optional[int]
    related_purchase_id: Optional[int]
    related_tutoring_id: Optional[int]
    balance_after: int
    status: str
    created_at: Optional[datetime]


class PaginationResponse(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class TransactionPageResponse(BaseModel):
    transactions: List[TransactionResponse]
    pagination: PaginationResponse


class TopupRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    amount: StrictInt = Field(..., le=settings.MAX_TRANSACTION_AMOUNT)


class TopupResponse(BaseModel):
    transaction_id: int
    amount: int
    balance: int


@router.get(
    "",
    response_model=WalletResponse,
    summary="Wallet overview",
    description="Balance, lifetime totals and subscription state of the caller.",
)
async def get_wallet(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    service = WalletService(db)
    return await service.get_wallet(account.id)


@router.get(
    "/transactions",
    response_model=TransactionPageResponse,
    summary="Wallet transaction history",
    description="Newest first, optionally filtered by type and category.",
)
async def get_transactions(
    page: int = Query(1),
    limit: int = Query(20),
    type: Optional[TransactionType] = Query(None),
    category: Optional[TransactionCategory] = Query(None),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    service = WalletService(db)
    return await service.get_transactions(
        account.id, page=page, limit=limit, type=type, category=category
    )


@router.get(
    "/statement",
    summary="Download wallet statement",
    description="Every ledger entry of the caller as an Excel workbook.",
)
async def export_statement(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    account_id = account.id
    service = WalletService(db)
    content = await service.export_statement(account_id)
    return Response(
        content=content,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={
            "Content-Disposition": f'attachment; filename="statement-{account_id}.xlsx"'
        },
    )


@router.post(
    "/topup",
    response_model=TopupResponse,
    summary="Top up wallet",
    description="Credits the wallet. No payment gateway is involved.",
)
async def topup(
    body: TopupRequest,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    service = WalletService(db)
    entry = await service.topup(account.id, body.amount)
    return TopupResponse(
        transaction_id=entry.id,
        amount=entry.amount,
        balance=entry.balance_after,
    )
