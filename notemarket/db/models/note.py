"""
Note Model - priced study-note documents
"""
import enum
from sqlalchemy import (
    Column, Integer, BigInteger, String, DateTime, Boolean, ForeignKey, CheckConstraint,
    Enum as SQLEnum
)
from sqlalchemy.orm import relationship

from notemarket.db.database import Base, utcnow


class NoteStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    PAUSED_FOR_REVIEW = "PAUSED_FOR_REVIEW"
    REJECTED = "REJECTED"
    DRAFT = "DRAFT"


class Note(Base):
    """Catalog entry. Content and moderation live in the catalog service."""

    __tablename__ = "notes"
    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_notes_price_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    subject = Column(String(100), nullable=False, index=True)
    creator_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)

    price = Column(BigInteger, default=0, nullable=False)
    status = Column(SQLEnum(NoteStatus), default=NoteStatus.DRAFT, nullable=False, index=True)
    is_deleted = Column(Boolean, default=False, nullable=False)

    # approximate counter - a rare lost increment under contention is tolerated
    purchases = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    creator = relationship("Account")

    @property
    def is_free(self) -> bool:
        return self.price == 0

    @property
    def is_purchasable(self) -> bool:
        return not self.is_deleted and self.status == NoteStatus.ACTIVE
