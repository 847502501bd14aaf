"""
Purchase API Routes - note purchases, subscriptions and private page notes
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr
from sqlalchemy.ext.asyncio import AsyncSession

from notemarket.api.dependencies.auth import get_current_account
from notemarket.api.routes.wallet import SubscriptionResponse
from notemarket.db.database import get_db
from notemarket.db.models.account import Account
from notemarket.domain.services.purchase_service import MAX_COMMENT_LENGTH, PurchaseService
from notemarket.domain.services.subscription_service import SubscriptionService

router = APIRouter()


class PurchaseResultResponse(BaseModel):
    purchase_id: int
    note_id: int
    price: int
    buyer_new_balance: int
    platform_fee: int
    creator_amount: int
    state: str


class SubscriptionPurchaseResponse(BaseModel):
    subscription: SubscriptionResponse
    buyer_new_balance: int


class PurchasedNoteResponse(BaseModel):
    id: int
    title: str
    subject: str
    price: int

    class Config:
        from_attributes = True


class PurchaseResponse(BaseModel):
    id: int
    note_id: int
    price: int
    created_at: Optional[datetime]
    note: Optional[PurchasedNoteResponse]

    class Config:
        from_attributes = True


class AnnotationRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    page_number: StrictInt = Field(..., ge=1)
    content: StrictStr = Field(..., min_length=1)
    position_x: Optional[float] = None
    position_y: Optional[float] = None


class AnnotationResponse(BaseModel):
    id: int
    page_number: int
    content: str
    position_x: Optional[float]
    position_y: Optional[float]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class CommentRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    page_number: StrictInt = Field(..., ge=1)
    content: StrictStr = Field(..., min_length=1, max_length=MAX_COMMENT_LENGTH)


class CommentResponse(BaseModel):
    id: int
    page_number: int
    content: str
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


@router.post(
    "/notes/{note_id}",
    response_model=PurchaseResultResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Buy a note",
    description="Debits the caller's wallet and grants permanent access to the note.",
)
async def purchase_note(
    note_id: int,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    service = PurchaseService(db)
    result = await service.purchase_note(account.id, note_id)
    return PurchaseResultResponse(
        purchase_id=result.purchase_id,
        note_id=result.note_id,
        price=result.price,
        buyer_new_balance=result.buyer_new_balance,
        platform_fee=result.platform_fee,
        creator_amount=result.creator_amount,
        state=result.state.value,
    )


@router.post(
    "/subscription",
    response_model=SubscriptionPurchaseResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Buy a PLUS subscription",
)
async def purchase_subscription(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    service = SubscriptionService(db)
    subscription, new_balance = await service.purchase_subscription(account.id)
    return {"subscription": subscription, "buyer_new_balance": new_balance}


@router.get(
    "",
    response_model=List[PurchaseResponse],
    summary="Purchased notes",
    description="The caller's purchases, newest first.",
)
async def list_purchases(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    service = PurchaseService(db)
    return await service.list_purchases(account.id)


@router.post(
    "/{purchase_id}/annotations",
    response_model=List[AnnotationResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Annotate a page of a purchased note",
)
async def add_annotation(
    purchase_id: int,
    body: AnnotationRequest,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    service = PurchaseService(db)
    return await service.add_annotation(
        account.id,
        purchase_id,
        body.page_number,
        body.content,
        position_x=body.position_x,
        position_y=body.position_y,
    )


@router.post(
    "/{purchase_id}/comments",
    response_model=List[CommentResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Comment on a page of a purchased note",
)
async def add_comment(
    purchase_id: int,
    body: CommentRequest,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    service = PurchaseService(db)
    return await service.add_comment(account.id, purchase_id, body.page_number, body.content)
