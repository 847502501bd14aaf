"""
Ledger Service - reconciliation and platform-wide figures

Reconciliation is report-only: anomalies are logged and returned, never
auto-corrected. A corrected balance without a ledger entry would break the
audit trail it is checking.
"""
from typing import Any

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from notemarket.core.config import settings
from notemarket.core.logging import get_logger
from notemarket.db.models.account import Account, AccountRole
from notemarket.db.models.note import Note, NoteStatus
from notemarket.db.models.purchase import Purchase
from notemarket.db.models.wallet_transaction import (
    TransactionCategory,
    TransactionType,
    WalletTransaction,
)
from notemarket.domain.services.account_service import AccountService

logger = get_logger(__name__)


class LedgerService:
    """Service for checking balances against the ledger"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.accounts = AccountService(db)

    async def reconcile_account(self, account_id: int) -> dict[str, Any]:
        """
        Compare the stored balance with the ledger.

        Walks the entries in creation order and checks that each
        ``balance_after`` equals the running sum up to and including it.
        """
        account = await self.accounts.get_account(account_id)
        result = await self.db.execute(
            select(WalletTransaction)
            .where(WalletTransaction.account_id == account_id)
            .order_by(WalletTransaction.id)
        )
        entries = result.scalars().all()

        running = 0
        broken_entry_id = None
        for entry in entries:
            running += entry.signed_amount
            if broken_entry_id is None and entry.balance_after != running:
                broken_entry_id = entry.id

        return {
            "account_id": account_id,
            "stored_balance": account.wallet_balance,
            "ledger_balance": running,
            "entry_count": len(entries),
            "balance_matches": account.wallet_balance == running,
            "chain_consistent": broken_entry_id is None,
            "first_inconsistent_entry_id": broken_entry_id,
        }

    async def reconcile_all(self, limit: int | None = None) -> dict[str, Any]:
        """Reconcile every account (up to ``limit``) in one aggregate query"""
        limit = limit or settings.RECONCILIATION_BATCH_SIZE
        ledger_sum = (
            select(
                WalletTransaction.account_id.label("account_id"),
                func.sum(
                    case(
                        (WalletTransaction.type == TransactionType.CREDIT, WalletTransaction.amount),
                        else_=-WalletTransaction.amount,
                    )
                ).label("ledger_balance"),
            )
            .group_by(WalletTransaction.account_id)
            .subquery()
        )
        result = await self.db.execute(
            select(
                Account.id,
                Account.wallet_balance,
                func.coalesce(ledger_sum.c.ledger_balance, 0),
            )
            .outerjoin(ledger_sum, ledger_sum.c.account_id == Account.id)
            .order_by(Account.id)
            .limit(limit)
        )

        checked = 0
        anomalies = []
        for account_id, stored, ledger_balance in result.all():
            checked += 1
            if stored != ledger_balance:
                anomalies.append({
                    "account_id": account_id,
                    "stored_balance": stored,
                    "ledger_balance": int(ledger_balance),
                    "difference": stored - int(ledger_balance),
                })

        for anomaly in anomalies:
            logger.error(
                "Ledger does not reconcile with stored balance",
                extra_data=anomaly,
            )
        logger.info(
            "Ledger reconciliation finished",
            extra_data={"checked": checked, "anomalies": len(anomalies)}
        )
        return {"checked": checked, "anomalies": anomalies}

    async def platform_stats(self) -> dict[str, Any]:
        total_accounts = await self.db.scalar(
            select(func.count(Account.id)).where(Account.role != AccountRole.PLATFORM)
        )
        note_makers = await self.db.scalar(
            select(func.count(Account.id)).where(Account.role == AccountRole.NOTEMAKER)
        )
        total_notes = await self.db.scalar(
            select(func.count(Note.id)).where(Note.is_deleted.is_(False))
        )
        active_notes = await self.db.scalar(
            select(func.count(Note.id)).where(
                Note.is_deleted.is_(False), Note.status == NoteStatus.ACTIVE
            )
        )
        pending_notes = await self.db.scalar(
            select(func.count(Note.id)).where(
                Note.is_deleted.is_(False), Note.status == NoteStatus.PAUSED_FOR_REVIEW
            )
        )
        total_purchases = await self.db.scalar(select(func.count(Purchase.id)))
        revenue = await self.db.scalar(
            select(func.coalesce(func.sum(WalletTransaction.amount), 0)).where(
                WalletTransaction.type == TransactionType.DEBIT,
                WalletTransaction.category == TransactionCategory.NOTE_PURCHASE,
            )
        )
        platform_fees = await self.db.scalar(
            select(func.coalesce(func.sum(WalletTransaction.amount), 0)).where(
                WalletTransaction.type == TransactionType.CREDIT,
                WalletTransaction.category == TransactionCategory.PLATFORM_FEE,
            )
        )
        subscription_revenue = await self.db.scalar(
            select(func.coalesce(func.sum(WalletTransaction.amount), 0)).where(
                WalletTransaction.type == TransactionType.DEBIT,
                WalletTransaction.category == TransactionCategory.SUBSCRIPTION,
            )
        )

        return {
            "accounts": {"total": total_accounts or 0, "note_makers": note_makers or 0},
            "notes": {
                "total": total_notes or 0,
                "active": active_notes or 0,
                "pending_review": pending_notes or 0,
            },
            "purchases": total_purchases or 0,
            "revenue": int(revenue or 0),
            "platform_fees": int(platform_fees or 0),
            "subscription_revenue": int(subscription_revenue or 0),
        }
