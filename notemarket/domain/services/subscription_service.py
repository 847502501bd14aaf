"""
Subscription Service - PLUS plan settlement and expiry
"""
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from notemarket.core.config import settings
from notemarket.core.exceptions import AppException, SettlementError
from notemarket.core.logging import get_logger, log_async_operation
from notemarket.db.database import utcnow
from notemarket.db.models.account import Account, SubscriptionPlan
from notemarket.db.models.wallet_transaction import TransactionCategory
from notemarket.domain.services.account_locks import account_locks
from notemarket.domain.services.account_service import AccountService

logger = get_logger(__name__)


class SubscriptionService:
    """Service for buying and expiring PLUS subscriptions"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.accounts = AccountService(db)

    @log_async_operation("purchase_subscription")
    async def purchase_subscription(
        self, account_id: int, now: Optional[datetime] = None
    ) -> Tuple[dict, int]:
        """
        Debit SUBSCRIPTION_PRICE and grant a PLUS window of
        SUBSCRIPTION_DURATION_DAYS starting now.

        AlreadySubscribed is checked before the debit. Subscription revenue is
        booked as a SUBSCRIPTION credit on the platform account.

        Returns:
            Tuple of (subscription, buyer_new_balance)
        """
        now = now or utcnow()
        price = settings.SUBSCRIPTION_PRICE
        platform = await self.accounts.get_platform_account()
        platform_id = platform.id

        async with account_locks.hold(account_id, platform_id):
            try:
                account, debit_entry = await self.accounts.grant_subscription(
                    account_id,
                    plan_price=price,
                    duration_days=settings.SUBSCRIPTION_DURATION_DAYS,
                    now=now,
                )
                await self.accounts.credit(
                    platform_id,
                    price,
                    TransactionCategory.SUBSCRIPTION,
                    f"PLUS subscription of account #{account_id}",
                )
                subscription = account.subscription
                new_balance = debit_entry.balance_after

                await self.db.commit()
            except AppException:
                await self.db.rollback()
                raise
            except Exception as e:
                await self.db.rollback()
                logger.error(
                    "Subscription purchase rolled back",
                    extra_data={"account_id": account_id, "error": str(e)},
                    exc_info=True
                )
                raise SettlementError("purchase_subscription", str(e), {
                    "account_id": account_id
                }) from e

        logger.info(
            "Subscription purchased",
            extra_data={
                "account_id": account_id,
                "price": price,
                "end_date": subscription["end_date"].isoformat(),
            }
        )
        return subscription, new_balance

    async def expire_subscriptions(self, now: Optional[datetime] = None) -> int:
        """Clear the is_active flag on PLUS subscriptions past their end date.

        Access checks use the end date, never this flag.
        """
        now = now or utcnow()
        result = await self.db.execute(
            select(Account).where(
                Account.subscription_plan == SubscriptionPlan.PLUS,
                Account.subscription_is_active.is_(True),
                Account.subscription_end_date <= now,
            )
        )
        expired = result.scalars().all()
        for account in expired:
            account.subscription_is_active = False

        if expired:
            await self.db.commit()
            logger.info(
                "Subscriptions expired",
                extra_data={"count": len(expired)}
            )
        return len(expired)
