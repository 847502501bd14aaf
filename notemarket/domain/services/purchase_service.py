"""
Purchase Service - Atomic note purchase settlement

A purchase attempt moves REQUESTED -> VALIDATED -> SETTLED, or ends REJECTED.
Nothing is persisted for the intermediate states: the settlement runs as a
single database transaction under the locks of every account it touches.

1. Load the note fresh (price, status, creator are never cached)
2. Lock buyer, creator and platform accounts (ascending id order)
3. Reject if the buyer already owns the note
4. Free note: insert Purchase, bump counter, no ledger entries
5. Paid note: check balance, split price, insert Purchase
6. Debit buyer, credit creator, credit platform fee
7. Bump counter, commit - or roll everything back
"""
import enum
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from notemarket.core.exceptions import (
    AlreadyPurchasedError,
    AppException,
    InsufficientFundsError,
    NoteNotFoundError,
    PurchaseNotFoundError,
    SettlementError,
    ValidationException,
)
from notemarket.core.logging import get_logger, log_async_operation
from notemarket.db.models.note import Note
from notemarket.db.models.purchase import Purchase, PurchaseAnnotation, PurchaseComment
from notemarket.db.models.wallet_transaction import TransactionCategory
from notemarket.domain.services import pricing
from notemarket.domain.services.account_locks import account_locks
from notemarket.domain.services.account_service import AccountService

logger = get_logger(__name__)

MAX_COMMENT_LENGTH = 2000


class SettlementState(str, enum.Enum):
    REQUESTED = "REQUESTED"
    VALIDATED = "VALIDATED"
    SETTLED = "SETTLED"
    REJECTED = "REJECTED"


@dataclass(frozen=True)
class PurchaseResult:
    purchase_id: int
    note_id: int
    price: int
    buyer_new_balance: int
    platform_fee: int = 0
    creator_amount: int = 0
    state: SettlementState = SettlementState.SETTLED


def is_duplicate_purchase(error: IntegrityError) -> bool:
    """True when the violated constraint is the one-purchase-per-note guard"""
    message = str(error.orig)
    return "uq_purchase_account_note" in message or "purchases.account_id" in message


class PurchaseService:
    """Service for note purchases and the buyer's private page notes"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.accounts = AccountService(db)

    async def _load_purchasable_note(self, note_id: int) -> Note:
        result = await self.db.execute(
            select(Note)
            .where(Note.id == note_id)
            .execution_options(populate_existing=True)
        )
        note = result.scalar_one_or_none()
        if not note or not note.is_purchasable:
            raise NoteNotFoundError(note_id)
        return note

    async def _find_purchase(self, account_id: int, note_id: int) -> Optional[Purchase]:
        result = await self.db.execute(
            select(Purchase).where(
                Purchase.account_id == account_id,
                Purchase.note_id == note_id,
            )
        )
        return result.scalar_one_or_none()

    @log_async_operation("purchase_note")
    async def purchase_note(self, buyer_id: int, note_id: int) -> PurchaseResult:
        """Settle a purchase of ``note_id`` by ``buyer_id``.

        Raises NoteNotFoundError, AlreadyPurchasedError, InsufficientFundsError,
        AccountNotFoundError before anything is written. Any failure after the
        first write rolls the whole transaction back and surfaces as
        SettlementError (or AlreadyPurchasedError when the UNIQUE constraint
        caught a concurrent duplicate).
        """
        note = await self._load_purchasable_note(note_id)
        creator_id = note.creator_id
        platform = await self.accounts.get_platform_account()
        platform_id = platform.id

        logger.debug(
            "Purchase requested",
            extra_data={
                "buyer_id": buyer_id,
                "note_id": note_id,
                "state": SettlementState.REQUESTED.value,
            }
        )

        async with account_locks.hold(buyer_id, creator_id, platform_id):
            try:
                result = await self._settle(buyer_id, note_id, platform_id)
            except AppException:
                await self.db.rollback()
                raise
            except IntegrityError as e:
                await self.db.rollback()
                if is_duplicate_purchase(e):
                    raise AlreadyPurchasedError(buyer_id, note_id)
                raise SettlementError("purchase_note", "constraint violation", {
                    "buyer_id": buyer_id, "note_id": note_id
                }) from e
            except Exception as e:
                await self.db.rollback()
                logger.error(
                    "Purchase rolled back",
                    extra_data={"buyer_id": buyer_id, "note_id": note_id, "error": str(e)},
                    exc_info=True
                )
                raise SettlementError("purchase_note", str(e), {
                    "buyer_id": buyer_id, "note_id": note_id
                }) from e

        logger.info(
            "Purchase settled",
            extra_data={
                "buyer_id": buyer_id,
                "note_id": note_id,
                "purchase_id": result.purchase_id,
                "price": result.price,
                "platform_fee": result.platform_fee,
                "creator_amount": result.creator_amount,
                "state": result.state.value,
            }
        )
        return result

    async def _settle(self, buyer_id: int, note_id: int, platform_id: int) -> PurchaseResult:
        # re-read under the locks: price or status may have changed meanwhile
        note = await self._load_purchasable_note(note_id)

        if await self._find_purchase(buyer_id, note_id):
            raise AlreadyPurchasedError(buyer_id, note_id)

        buyer = await self.accounts.get_account(buyer_id, for_update=True)
        price = note.price

        if price == 0:
            purchase = Purchase(account_id=buyer_id, note_id=note_id, price=0)
            self.db.add(purchase)
            note.purchases = (note.purchases or 0) + 1
            await self.db.flush()
            purchase_id = purchase.id
            balance = buyer.wallet_balance
            await self.db.commit()
            return PurchaseResult(
                purchase_id=purchase_id,
                note_id=note_id,
                price=0,
                buyer_new_balance=balance,
            )

        if buyer.wallet_balance < price:
            raise InsufficientFundsError(buyer_id, buyer.wallet_balance, price)

        split = pricing.split(price)
        logger.debug(
            "Purchase validated",
            extra_data={
                "buyer_id": buyer_id,
                "note_id": note_id,
                "price": price,
                "state": SettlementState.VALIDATED.value,
            }
        )

        purchase = Purchase(account_id=buyer_id, note_id=note_id, price=price)
        self.db.add(purchase)
        await self.db.flush()
        purchase_id = purchase.id

        await self.accounts.debit(
            buyer_id,
            price,
            TransactionCategory.NOTE_PURCHASE,
            f"Purchase of note #{note_id}: {note.title}",
            related_note_id=note_id,
            related_purchase_id=purchase_id,
        )
        await self.accounts.credit(
            note.creator_id,
            split.creator_amount,
            TransactionCategory.NOTE_SALE,
            f"Sale of note #{note_id}: {note.title}",
            related_note_id=note_id,
            related_purchase_id=purchase_id,
        )
        if split.platform_fee > 0:
            await self.accounts.credit(
                platform_id,
                split.platform_fee,
                TransactionCategory.PLATFORM_FEE,
                f"Commission on purchase #{purchase_id}",
                related_note_id=note_id,
                related_purchase_id=purchase_id,
            )

        note.purchases = (note.purchases or 0) + 1
        # buyer row is refreshed in place by every locked read; covers self-purchase too
        buyer_new_balance = buyer.wallet_balance

        await self.db.commit()

        return PurchaseResult(
            purchase_id=purchase_id,
            note_id=note_id,
            price=price,
            buyer_new_balance=buyer_new_balance,
            platform_fee=split.platform_fee,
            creator_amount=split.creator_amount,
        )

    async def list_purchases(self, account_id: int) -> list[Purchase]:
        """Newest first, with the purchased note loaded"""
        result = await self.db.execute(
            select(Purchase)
            .options(selectinload(Purchase.note))
            .where(Purchase.account_id == account_id)
            .order_by(Purchase.created_at.desc(), Purchase.id.desc())
        )
        return list(result.scalars().all())

    async def get_own_purchase(self, account_id: int, purchase_id: int) -> Purchase:
        result = await self.db.execute(
            select(Purchase).where(
                Purchase.id == purchase_id,
                Purchase.account_id == account_id,
            )
        )
        purchase = result.scalar_one_or_none()
        if not purchase:
            raise PurchaseNotFoundError(purchase_id)
        return purchase

    @staticmethod
    def _validate_page_note(page_number: int, content: str, max_length: Optional[int] = None) -> str:
        if page_number < 1:
            raise ValidationException("page_number must be at least 1", field="page_number")
        content = (content or "").strip()
        if not content:
            raise ValidationException("content is required", field="content")
        if max_length and len(content) > max_length:
            raise ValidationException(
                f"content must be at most {max_length} characters", field="content"
            )
        return content

    async def add_annotation(
        self,
        account_id: int,
        purchase_id: int,
        page_number: int,
        content: str,
        position_x: Optional[float] = None,
        position_y: Optional[float] = None,
    ) -> list[PurchaseAnnotation]:
        content = self._validate_page_note(page_number, content)
        await self.get_own_purchase(account_id, purchase_id)

        self.db.add(PurchaseAnnotation(
            purchase_id=purchase_id,
            page_number=page_number,
            content=content,
            position_x=position_x,
            position_y=position_y,
        ))
        await self.db.commit()

        result = await self.db.execute(
            select(PurchaseAnnotation)
            .where(PurchaseAnnotation.purchase_id == purchase_id)
            .order_by(PurchaseAnnotation.id)
        )
        return list(result.scalars().all())

    async def add_comment(
        self,
        account_id: int,
        purchase_id: int,
        page_number: int,
        content: str,
    ) -> list[PurchaseComment]:
        content = self._validate_page_note(page_number, content, MAX_COMMENT_LENGTH)
        await self.get_own_purchase(account_id, purchase_id)

        self.db.add(PurchaseComment(
            purchase_id=purchase_id,
            page_number=page_number,
            content=content,
        ))
        await self.db.commit()

        result = await self.db.execute(
            select(PurchaseComment)
            .where(PurchaseComment.purchase_id == purchase_id)
            .order_by(PurchaseComment.id)
        )
        return list(result.scalars().all())
