"""
Wallet Service - top-ups, balance view, transaction history and statements
"""
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from notemarket.core.config import settings
from notemarket.core.exceptions import AppException, SettlementError, ValidationException
from notemarket.core.logging import get_logger, log_async_operation
from notemarket.db.database import utcnow
from notemarket.db.models.wallet_transaction import (
    TransactionCategory,
    TransactionType,
    WalletTransaction,
)
from notemarket.domain.services.account_locks import account_locks
from notemarket.domain.services.account_service import AccountService, validate_amount
from notemarket.domain.services.export_service import generate_statement_excel

logger = get_logger(__name__)


def serialize_transaction(entry: WalletTransaction) -> dict[str, Any]:
    return {
        "id": entry.id,
        "type": entry.type.value,
        "amount": entry.amount,
        "category": entry.category.value,
        "description": entry.description,
        "related_note_id": entry.related_note_id,
        "related_purchase_id": entry.related_purchase_id,
        "related_tutoring_id": entry.related_tutoring_id,
        "balance_after": entry.balance_after,
        "status": entry.status.value,
        "created_at": entry.created_at,
    }


class WalletService:
    """Service for the account holder's view of their wallet"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.accounts = AccountService(db)

    @log_async_operation("wallet_topup")
    async def topup(self, account_id: int, amount: int) -> WalletTransaction:
        """
        Credit the wallet with ``amount``.

        There is no payment gateway behind this: the amount is trusted as-is,
        so the route must stay behind authentication. Deposits do not count
        towards total_earnings.
        """
        validate_amount(amount, account_id)

        async with account_locks.hold(account_id):
            try:
                entry = await self.accounts.credit(
                    account_id,
                    amount,
                    TransactionCategory.TOP_UP,
                    "Wallet top-up",
                    count_as_earnings=False,
                )
                await self.db.commit()
            except AppException:
                await self.db.rollback()
                raise
            except Exception as e:
                await self.db.rollback()
                logger.error(
                    "Top-up rolled back",
                    extra_data={"account_id": account_id, "error": str(e)},
                    exc_info=True
                )
                raise SettlementError("wallet_topup", str(e), {"account_id": account_id}) from e

        logger.info(
            "Wallet topped up",
            extra_data={
                "account_id": account_id,
                "amount": amount,
                "balance_after": entry.balance_after,
            }
        )
        return entry

    async def get_wallet(self, account_id: int) -> dict[str, Any]:
        account = await self.accounts.get_account(account_id)
        return {
            "account_id": account.id,
            "balance": account.wallet_balance,
            "total_earnings": account.total_earnings,
            "total_spent": account.total_spent,
            "subscription": account.subscription,
            "has_active_subscription": account.has_active_subscription(),
        }

    async def get_transactions(
        self,
        account_id: int,
        page: int = 1,
        limit: int = 20,
        type: Optional[TransactionType] = None,
        category: Optional[TransactionCategory] = None,
    ) -> dict[str, Any]:
        """Newest-first page of the account's ledger"""
        if page < 1:
            raise ValidationException("page must be at least 1", field="page")
        if limit < 1:
            raise ValidationException("limit must be at least 1", field="limit")
        limit = min(limit, settings.TRANSACTIONS_MAX_PAGE_SIZE)

        await self.accounts.get_account(account_id)

        filters = [WalletTransaction.account_id == account_id]
        if type is not None:
            filters.append(WalletTransaction.type == type)
        if category is not None:
            filters.append(WalletTransaction.category == category)

        total = await self.db.scalar(
            select(func.count(WalletTransaction.id)).where(*filters)
        )
        result = await self.db.execute(
            select(WalletTransaction)
            .where(*filters)
            .order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        total = total or 0

        return {
            "transactions": [serialize_transaction(t) for t in result.scalars().all()],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": (total + limit - 1) // limit,
            },
        }

    async def export_statement(self, account_id: int) -> bytes:
        """Full ledger of the account as an XLSX statement"""
        account = await self.accounts.get_account(account_id)
        result = await self.db.execute(
            select(WalletTransaction)
            .where(WalletTransaction.account_id == account_id)
            .order_by(WalletTransaction.id)
        )
        entries = [serialize_transaction(t) for t in result.scalars().all()]

        return generate_statement_excel(
            {
                "id": account.id,
                "name": account.name,
                "email": account.email,
                "wallet_balance": account.wallet_balance,
                "total_earnings": account.total_earnings,
                "total_spent": account.total_spent,
            },
            entries,
            generated_at=utcnow(),
        )
