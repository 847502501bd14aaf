"""
Tutoring Request Model - paid one-to-one sessions with a note's creator
"""
import enum
from sqlalchemy import (
    Column, Integer, BigInteger, String, DateTime, Boolean, ForeignKey, Enum as SQLEnum
)

from notemarket.db.database import Base, utcnow


class TutoringStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class TutoringRequest(Base):
    """Student asks the creator of a note for a session at a proposed price"""

    __tablename__ = "tutoring_requests"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    tutor_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    note_id = Column(Integer, ForeignKey("notes.id"), nullable=False)

    message = Column(String(500), nullable=False)
    proposed_price = Column(BigInteger, nullable=False)
    final_price = Column(BigInteger, nullable=True)
    status = Column(SQLEnum(TutoringStatus), default=TutoringStatus.PENDING, nullable=False)
    tutor_response = Column(String(1000), nullable=True)

    # Agreed session, set when the tutor accepts
    session_scheduled_at = Column(DateTime, nullable=True)
    session_duration_minutes = Column(Integer, nullable=True)
    session_meeting_link = Column(String(500), nullable=True)
    session_notes = Column(String(1000), nullable=True)

    is_paid = Column(Boolean, default=False, nullable=False)
    paid_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    @property
    def session_details(self) -> dict | None:
        details = {
            "scheduled_at": self.session_scheduled_at,
            "duration_minutes": self.session_duration_minutes,
            "meeting_link": self.session_meeting_link,
            "notes": self.session_notes,
        }
        if all(value is None for value in details.values()):
            return None
        return details
