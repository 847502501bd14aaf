"""
Admin API Routes - platform figures and ledger reconciliation
"""
from typing import List

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from notemarket.api.dependencies.auth import require_admin
from notemarket.core.config import settings
from notemarket.db.database import get_db
from notemarket.db.models.account import Account
from notemarket.domain.services.ledger_service import LedgerService

router = APIRouter()


class AccountCountsResponse(BaseModel):
    total: int
    note_makers: int


class NoteCountsResponse(BaseModel):
    total: int
    active: int
    pending_review: int


class PlatformStatsResponse(BaseModel):
    accounts: AccountCountsResponse
    notes: NoteCountsResponse
    purchases: int
    revenue: int
    platform_fees: int
    subscription_revenue: int


class AnomalyResponse(BaseModel):
    account_id: int
    stored_balance: int
    ledger_balance: int
    difference: int


class ReconciliationResponse(BaseModel):
    checked: int
    anomalies: List[AnomalyResponse]


@router.get(
    "/stats",
    response_model=PlatformStatsResponse,
    summary="Platform statistics",
)
async def platform_stats(
    admin: Account = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    service = LedgerService(db)
    return await service.platform_stats()


@router.get(
    "/reconciliation",
    response_model=ReconciliationResponse,
    summary="Reconcile wallet balances with the ledger",
    description="Report-only: nothing is corrected automatically.",
)
async def reconciliation(
    limit: int = Query(settings.RECONCILIATION_BATCH_SIZE, ge=1),
    admin: Account = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    service = LedgerService(db)
    return await service.reconcile_all(limit=limit)
