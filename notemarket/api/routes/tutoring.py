"""
Tutoring API Routes
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr
from sqlalchemy.ext.asyncio import AsyncSession

from notemarket.api.dependencies.auth import get_current_account
from notemarket.db.database import get_db
from notemarket.db.models.account import Account
from notemarket.db.models.tutoring import TutoringStatus
from notemarket.domain.services.tutoring_service import (
    MAX_MEETING_LINK_LENGTH,
    MAX_MESSAGE_LENGTH,
    MAX_RESPONSE_LENGTH,
    MAX_SESSION_NOTES_LENGTH,
    TutoringService,
)

router = APIRouter()


class TutoringCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    note_id: StrictInt
    message: StrictStr = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH)
    proposed_price: StrictInt = Field(..., gt=0)


class SessionDetails(BaseModel):
    model_config = ConfigDict(extra="forbid")

    scheduled_at: Optional[datetime] = None
    duration_minutes: Optional[StrictInt] = Field(None, gt=0)
    meeting_link: Optional[StrictStr] = Field(None, max_length=MAX_MEETING_LINK_LENGTH)
    notes: Optional[StrictStr] = Field(None, max_length=MAX_SESSION_NOTES_LENGTH)


class TutoringRespondRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    accept: StrictBool
    final_price: Optional[StrictInt] = Field(None, gt=0)
    tutor_response: Optional[StrictStr] = Field(None, max_length=MAX_RESPONSE_LENGTH)
    session_details: Optional[SessionDetails] = None


class TutoringResponse(BaseModel):
    id: int
    student_id: int
    tutor_id: int
    note_id: int
    message: str
    proposed_price: int
    final_price: Optional[int]
    status: TutoringStatus
    tutor_response: Optional[str]
    session_details: Optional[SessionDetails] = None
    is_paid: bool
    paid_at: Optional[datetime]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


@router.post(
    "",
    response_model=TutoringResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Request tutoring from a note's creator",
)
async def create_request(
    body: TutoringCreateRequest,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    service = TutoringService(db)
    return await service.create_request(
        account.id, body.note_id, body.message, body.proposed_price
    )


@router.get(
    "/mine",
    response_model=List[TutoringResponse],
    summary="Tutoring requests I sent",
)
async def list_mine(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    service = TutoringService(db)
    return await service.list_for_student(account.id)


@router.get(
    "/for-me",
    response_model=List[TutoringResponse],
    summary="Tutoring requests addressed to me",
)
async def list_for_me(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    service = TutoringService(db)
    return await service.list_for_tutor(account.id)


@router.post(
    "/{tutoring_id}/respond",
    response_model=TutoringResponse,
    summary="Accept or reject a tutoring request",
)
async def respond(
    tutoring_id: int,
    body: TutoringRespondRequest,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    service = TutoringService(db)
    return await service.respond(
        account.id,
        tutoring_id,
        accept=body.accept,
        final_price=body.final_price,
        tutor_response=body.tutor_response,
        session_details=(
            body.session_details.model_dump(exclude_none=True) if body.session_details else None
        ),
    )


@router.post(
    "/{tutoring_id}/pay",
    response_model=TutoringResponse,
    summary="Pay for an accepted tutoring request",
)
async def pay(
    tutoring_id: int,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    service = TutoringService(db)
    return await service.pay(account.id, tutoring_id)
