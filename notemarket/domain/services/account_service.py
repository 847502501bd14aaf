"""
Account Service - balance mutations and the ledger entries that record them

debit / credit are the only code paths that change wallet_balance. They never
commit: the settlement service that calls them owns the transaction, so a
failure at any later step rolls the balance change back together with its
ledger entry.
"""
from datetime import datetime, timedelta
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from notemarket.core.config import settings
from notemarket.core.exceptions import (
    AccountNotFoundError,
    AlreadySubscribedError,
    InsufficientFundsError,
    InvalidAmountError,
    ValidationException,
)
from notemarket.core.logging import get_logger
from notemarket.db.database import utcnow
from notemarket.db.models.account import Account, AccountRole, SubscriptionPlan
from notemarket.db.models.wallet_transaction import (
    TransactionCategory,
    TransactionType,
    WalletTransaction,
)

logger = get_logger(__name__)

# BIGINT upper bound of the balance and total columns
MAX_WALLET_BALANCE = 2**63 - 1


def validate_amount(amount, account_id: Optional[int] = None) -> int:
    """Amounts are positive integers in the smallest currency unit, capped at
    MAX_TRANSACTION_AMOUNT"""
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmountError(amount, account_id=account_id)
    if amount > settings.MAX_TRANSACTION_AMOUNT:
        raise InvalidAmountError(
            amount,
            account_id=account_id,
            reason=f"exceeds the maximum of {settings.MAX_TRANSACTION_AMOUNT}",
        )
    return amount


class AccountService:
    """Service for account balances and subscription state"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_account(self, account_id: int, for_update: bool = False) -> Account:
        """Load an account, re-reading its row so balances are never stale"""
        query = (
            select(Account)
            .where(Account.id == account_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        account = result.scalar_one_or_none()
        if not account:
            raise AccountNotFoundError(account_id)
        return account

    async def find_account(self, account_id: Optional[int]) -> Optional[Account]:
        if account_id is None:
            return None
        return await self.db.get(Account, account_id)

    async def get_platform_account(self, for_update: bool = False) -> Account:
        query = (
            select(Account)
            .where(Account.email == settings.PLATFORM_ACCOUNT_EMAIL)
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        account = result.scalar_one_or_none()
        if not account:
            account = await self.ensure_platform_account()
        return account

    async def ensure_platform_account(self) -> Account:
        """Create the marketplace's own account if it does not exist yet.

        Commits, so call it before a settlement starts mutating anything.
        """
        result = await self.db.execute(
            select(Account).where(Account.email == settings.PLATFORM_ACCOUNT_EMAIL)
        )
        account = result.scalar_one_or_none()
        if account:
            return account

        account = Account(
            email=settings.PLATFORM_ACCOUNT_EMAIL,
            name="Platform",
            role=AccountRole.PLATFORM,
            wallet_balance=0,
            total_earnings=0,
            total_spent=0,
        )
        self.db.add(account)
        try:
            await self.db.commit()
        except IntegrityError:
            # created concurrently by another worker
            await self.db.rollback()
            result = await self.db.execute(
                select(Account).where(Account.email == settings.PLATFORM_ACCOUNT_EMAIL)
            )
            return result.scalar_one()

        logger.info(
            "Platform account created",
            extra_data={"account_id": account.id, "email": account.email}
        )
        return account

    async def debit(
        self,
        account_id: int,
        amount: int,
        category: TransactionCategory,
        description: str,
        related_note_id: Optional[int] = None,
        related_purchase_id: Optional[int] = None,
        related_tutoring_id: Optional[int] = None,
    ) -> WalletTransaction:
        """Take ``amount`` from the account and append a DEBIT entry.

        Must run while the caller holds the account's lock.
        """
        validate_amount(amount, account_id)
        account = await self.get_account(account_id, for_update=True)

        if account.wallet_balance < amount:
            raise InsufficientFundsError(account_id, account.wallet_balance, amount)

        account.wallet_balance = account.wallet_balance - amount
        account.total_spent = account.total_spent + amount

        entry = WalletTransaction(
            account_id=account_id,
            type=TransactionType.DEBIT,
            amount=amount,
            category=category,
            description=description,
            related_note_id=related_note_id,
            related_purchase_id=related_purchase_id,
            related_tutoring_id=related_tutoring_id,
            balance_after=account.wallet_balance,
        )
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def credit(
        self,
        account_id: int,
        amount: int,
        category: TransactionCategory,
        description: str,
        related_note_id: Optional[int] = None,
        related_purchase_id: Optional[int] = None,
        related_tutoring_id: Optional[int] = None,
        count_as_earnings: bool = True,
    ) -> WalletTransaction:
        """Add ``amount`` to the account and append a CREDIT entry.

        Top-ups pass count_as_earnings=False so total_earnings only tracks
        income from sales, tutoring and fees.
        """
        validate_amount(amount, account_id)
        account = await self.get_account(account_id, for_update=True)

        if account.wallet_balance + amount > MAX_WALLET_BALANCE or (
            count_as_earnings and account.total_earnings + amount > MAX_WALLET_BALANCE
        ):
            raise InvalidAmountError(
                amount, account_id=account_id, reason="balance would exceed the wallet limit"
            )

        account.wallet_balance = account.wallet_balance + amount
        if count_as_earnings:
            account.total_earnings = account.total_earnings + amount

        entry = WalletTransaction(
            account_id=account_id,
            type=TransactionType.CREDIT,
            amount=amount,
            category=category,
            description=description,
            related_note_id=related_note_id,
            related_purchase_id=related_purchase_id,
            related_tutoring_id=related_tutoring_id,
            balance_after=account.wallet_balance,
        )
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def has_active_subscription(
        self, account_id: int, now: Optional[datetime] = None
    ) -> bool:
        account = await self.get_account(account_id)
        return account.has_active_subscription(now)

    async def grant_subscription(
        self,
        account_id: int,
        plan_price: Optional[int] = None,
        duration_days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Tuple[Account, WalletTransaction]:
        """Charge ``plan_price`` and switch the account to PLUS for
        ``duration_days`` starting at ``now``.

        AlreadySubscribedError is raised before anything is debited. Must run
        while the caller holds the account's lock; the caller commits.

        Returns:
            Tuple of (account, debit entry)
        """
        now = now or utcnow()
        price = settings.SUBSCRIPTION_PRICE if plan_price is None else plan_price
        days = settings.SUBSCRIPTION_DURATION_DAYS if duration_days is None else duration_days
        if isinstance(days, bool) or not isinstance(days, int) or days < 1:
            raise ValidationException(
                "duration_days must be a positive integer", field="duration_days"
            )

        account = await self.get_account(account_id, for_update=True)
        if account.has_active_subscription(now):
            raise AlreadySubscribedError(account_id, account.subscription_end_date)

        entry = await self.debit(
            account_id,
            price,
            TransactionCategory.SUBSCRIPTION,
            f"PLUS subscription ({days} days)",
        )

        account.subscription_plan = SubscriptionPlan.PLUS
        account.subscription_start_date = now
        account.subscription_end_date = now + timedelta(days=days)
        account.subscription_is_active = True
        await self.db.flush()
        return account, entry
