"""
Purchase Model - the durable entitlement linking one account to one note
"""
from sqlalchemy import (
    Column, Integer, BigInteger, String, Text, Float, DateTime, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import relationship

from notemarket.db.database import Base, utcnow


class Purchase(Base):
    """One row per (account, note). The UNIQUE constraint is the final guard
    against two concurrent purchases of the same note."""

    __tablename__ = "purchases"
    __table_args__ = (
        UniqueConstraint("account_id", "note_id", name="uq_purchase_account_note"),
    )

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    note_id = Column(Integer, ForeignKey("notes.id"), nullable=False, index=True)

    # amount actually paid; may differ from the note's current price
    price = Column(BigInteger, nullable=False)

    created_at = Column(DateTime, default=utcnow)

    note = relationship("Note")
    annotations = relationship(
        "PurchaseAnnotation",
        order_by="PurchaseAnnotation.id",
        cascade="all, delete-orphan",
    )
    comments = relationship(
        "PurchaseComment",
        order_by="PurchaseComment.id",
        cascade="all, delete-orphan",
    )


class PurchaseAnnotation(Base):
    """Private annotation placed on a page of a purchased note"""

    __tablename__ = "purchase_annotations"

    id = Column(Integer, primary_key=True, index=True)
    purchase_id = Column(Integer, ForeignKey("purchases.id"), nullable=False, index=True)
    page_number = Column(Integer, nullable=False)
    content = Column(Text, nullable=False)
    position_x = Column(Float, nullable=True)
    position_y = Column(Float, nullable=True)
    created_at = Column(DateTime, default=utcnow)


class PurchaseComment(Base):
    """Private comment on a page of a purchased note"""

    __tablename__ = "purchase_comments"

    id = Column(Integer, primary_key=True, index=True)
    purchase_id = Column(Integer, ForeignKey("purchases.id"), nullable=False, index=True)
    page_number = Column(Integer, nullable=False)
    content = Column(String(2000), nullable=False)
    created_at = Column(DateTime, default=utcnow)
