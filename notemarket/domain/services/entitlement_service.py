"""
Entitlement Service - who may read a note and use its AI study aids

Read-only. Anonymous callers (account None) only ever get the preview.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from notemarket.core.exceptions import AccessDeniedError
from notemarket.db.models.account import Account
from notemarket.db.models.note import Note
from notemarket.db.models.purchase import Purchase


@dataclass(frozen=True)
class NoteAccess:
    note_id: int
    is_free: bool
    has_purchased: bool
    can_access_content: bool
    can_access_ai_features: bool


class EntitlementService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def has_purchased(self, account_id: Optional[int], note_id: int) -> bool:
        if account_id is None:
            return False
        result = await self.db.execute(
            select(Purchase.id).where(
                Purchase.account_id == account_id,
                Purchase.note_id == note_id,
            )
        )
        return result.first() is not None

    async def can_access_content(self, account_id: Optional[int], note: Note) -> bool:
        if note.is_free:
            return True
        return await self.has_purchased(account_id, note.id)

    async def can_access_ai_features(
        self,
        account: Optional[Account],
        note: Note,
        now: Optional[datetime] = None,
    ) -> bool:
        if account is None:
            return False
        if note.is_free:
            return True
        if await self.has_purchased(account.id, note.id):
            return True
        return account.has_active_subscription(now)

    async def can_review(self, account_id: Optional[int], note: Note) -> bool:
        """Only readers who actually got the note may review it"""
        return await self.can_access_content(account_id, note)

    async def require_ai_access(self, account: Optional[Account], note: Note) -> None:
        """Gate in front of the AI generation collaborator"""
        if not await self.can_access_ai_features(account, note):
            raise AccessDeniedError(
                "Purchase this note or subscribe to PLUS to use AI features",
                details={"note_id": note.id},
            )

    async def resolve_access(self, account: Optional[Account], note: Note) -> NoteAccess:
        account_id = account.id if account is not None else None
        has_purchased = await self.has_purchased(account_id, note.id)
        return NoteAccess(
            note_id=note.id,
            is_free=note.is_free,
            has_purchased=has_purchased,
            can_access_content=note.is_free or has_purchased,
            can_access_ai_features=await self.can_access_ai_features(account, note),
        )
