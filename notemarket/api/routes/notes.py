"""
Note access API Routes
"""
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from notemarket.api.dependencies.auth import get_optional_account
from notemarket.core.exceptions import NoteNotFoundError
from notemarket.db.database import get_db
from notemarket.db.models.account import Account
from notemarket.db.models.note import Note
from notemarket.domain.services.entitlement_service import EntitlementService

router = APIRouter()


class NoteAccessResponse(BaseModel):
    note_id: int
    is_free: bool
    has_purchased: bool
    can_access_content: bool
    can_access_ai_features: bool

    class Config:
        from_attributes = True


@router.get(
    "/{note_id}/access",
    response_model=NoteAccessResponse,
    summary="What the caller may do with a note",
    description="Anonymous callers are allowed and only get the preview.",
)
async def get_note_access(
    note_id: int,
    account: Optional[Account] = Depends(get_optional_account),
    db: AsyncSession = Depends(get_db),
):
    note = await db.get(Note, note_id)
    if not note or note.is_deleted:
        raise NoteNotFoundError(note_id)

    service = EntitlementService(db)
    return await service.resolve_access(account, note)
