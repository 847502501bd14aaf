"""
Account Model - Users, NoteMakers and their wallets
"""
import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Column, Integer, BigInteger, String, DateTime, Boolean, CheckConstraint, Enum as SQLEnum
)

from notemarket.db.database import Base, utcnow


class AccountRole(str, enum.Enum):
    USER = "USER"
    NOTEMAKER = "NOTEMAKER"
    ADMIN = "ADMIN"
    PLATFORM = "PLATFORM"  # the marketplace's own ledger account (commission, subscriptions)


class SubscriptionPlan(str, enum.Enum):
    FREE = "FREE"
    PLUS = "PLUS"


class Account(Base):
    """A user's identity and financial state.

    Balances are integers in the smallest currency unit and are only changed
    through AccountService.debit / credit, which also append the ledger entry.
    """

    __tablename__ = "accounts"
    __table_args__ = (
        CheckConstraint("wallet_balance >= 0", name="ck_accounts_wallet_balance_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=False)
    role = Column(SQLEnum(AccountRole), default=AccountRole.USER, nullable=False)

    wallet_balance = Column(BigInteger, default=0, nullable=False)
    total_earnings = Column(BigInteger, default=0, nullable=False)
    total_spent = Column(BigInteger, default=0, nullable=False)

    subscription_plan = Column(SQLEnum(SubscriptionPlan), default=SubscriptionPlan.FREE, nullable=False)
    subscription_start_date = Column(DateTime, nullable=True)
    subscription_end_date = Column(DateTime, nullable=True)
    subscription_is_active = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def has_active_subscription(self, now: Optional[datetime] = None) -> bool:
        """PLUS plan with an end date strictly in the future"""
        if self.subscription_plan != SubscriptionPlan.PLUS:
            return False
        if self.subscription_end_date is None:
            return False
        return (now or utcnow()) < self.subscription_end_date

    @property
    def subscription(self) -> dict:
        return {
            "plan": self.subscription_plan.value if self.subscription_plan else SubscriptionPlan.FREE.value,
            "start_date": self.subscription_start_date,
            "end_date": self.subscription_end_date,
            "is_active": bool(self.subscription_is_active),
        }
