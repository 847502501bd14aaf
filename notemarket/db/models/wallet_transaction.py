"""
Wallet Transaction Model - Immutable Ledger Entries

Append-only. Every balance change writes exactly one row here, and
``balance_after`` snapshots the account balance right after the change.
"""
import enum
from sqlalchemy import (
    Column, Integer, BigInteger, String, DateTime, ForeignKey, CheckConstraint, Index,
    UniqueConstraint, Enum as SQLEnum
)

from notemarket.db.database import Base, utcnow


class TransactionType(str, enum.Enum):
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"


class TransactionCategory(str, enum.Enum):
    NOTE_PURCHASE = "NOTE_PURCHASE"
    NOTE_SALE = "NOTE_SALE"
    SUBSCRIPTION = "SUBSCRIPTION"
    REFUND = "REFUND"
    WITHDRAWAL = "WITHDRAWAL"
    TOP_UP = "TOP_UP"
    TUTORING = "TUTORING"
    PLATFORM_FEE = "PLATFORM_FEE"


class TransactionStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class WalletTransaction(Base):
    """One balance-affecting event on one account"""

    __tablename__ = "wallet_transactions"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_wallet_transactions_amount_positive"),
        # no double booking of the same purchase / tutoring session
        UniqueConstraint(
            "account_id", "related_purchase_id", "category", "type",
            name="uq_wallet_tx_purchase_category",
        ),
        UniqueConstraint(
            "account_id", "related_tutoring_id", "category", "type",
            name="uq_wallet_tx_tutoring_category",
        ),
        Index("ix_wallet_tx_account_created", "account_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)

    type = Column(SQLEnum(TransactionType), nullable=False)
    amount = Column(BigInteger, nullable=False)
    category = Column(SQLEnum(TransactionCategory), nullable=False, index=True)
    description = Column(String(500), nullable=True)

    related_note_id = Column(Integer, ForeignKey("notes.id"), nullable=True)
    related_purchase_id = Column(Integer, ForeignKey("purchases.id"), nullable=True, index=True)
    related_tutoring_id = Column(Integer, ForeignKey("tutoring_requests.id"), nullable=True)

    balance_after = Column(BigInteger, nullable=False)
    status = Column(SQLEnum(TransactionStatus), default=TransactionStatus.COMPLETED, nullable=False)

    created_at = Column(DateTime, default=utcnow)

    @property
    def signed_amount(self) -> int:
        return self.amount if self.type == TransactionType.CREDIT else -self.amount
