"""
Tutoring Service - session requests to a note's creator and their payment

PENDING -> ACCEPTED | REJECTED, then an ACCEPTED request is paid once.
Payment moves the agreed price from student to tutor with no commission and
follows the same locking and atomicity rules as a note purchase.
"""
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from notemarket.core.exceptions import (
    AccessDeniedError,
    AppException,
    NoteNotFoundError,
    SettlementError,
    TutoringNotFoundError,
    TutoringStateError,
    ValidationException,
)
from notemarket.core.logging import get_logger, log_async_operation
from notemarket.db.database import utcnow
from notemarket.db.models.note import Note
from notemarket.db.models.tutoring import TutoringRequest, TutoringStatus
from notemarket.db.models.wallet_transaction import TransactionCategory
from notemarket.domain.services.account_locks import account_locks
from notemarket.domain.services.account_service import AccountService, validate_amount

logger = get_logger(__name__)

MAX_MESSAGE_LENGTH = 500
MAX_RESPONSE_LENGTH = 1000
MAX_MEETING_LINK_LENGTH = 500
MAX_SESSION_NOTES_LENGTH = 1000
SESSION_DETAIL_FIELDS = ("scheduled_at", "duration_minutes", "meeting_link", "notes")


class TutoringService:
    """Service for tutoring requests"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.accounts = AccountService(db)

    async def get_request(self, tutoring_id: int, for_update: bool = False) -> TutoringRequest:
        query = (
            select(TutoringRequest)
            .where(TutoringRequest.id == tutoring_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        request = result.scalar_one_or_none()
        if not request:
            raise TutoringNotFoundError(tutoring_id)
        return request

    async def create_request(
        self,
        student_id: int,
        note_id: int,
        message: str,
        proposed_price: int,
    ) -> TutoringRequest:
        message = (message or "").strip()
        if not message or len(message) > MAX_MESSAGE_LENGTH:
            raise ValidationException(
                f"message must be 1-{MAX_MESSAGE_LENGTH} characters", field="message"
            )
        validate_amount(proposed_price, student_id)

        note = await self.db.get(Note, note_id)
        if not note or note.is_deleted:
            raise NoteNotFoundError(note_id)
        if note.creator_id == student_id:
            raise ValidationException(
                "You cannot request tutoring on your own note", field="note_id"
            )
        await self.accounts.get_account(student_id)

        request = TutoringRequest(
            student_id=student_id,
            tutor_id=note.creator_id,
            note_id=note_id,
            message=message,
            proposed_price=proposed_price,
            status=TutoringStatus.PENDING,
            is_paid=False,
        )
        self.db.add(request)
        await self.db.commit()
        await self.db.refresh(request)

        logger.info(
            "Tutoring requested",
            extra_data={
                "tutoring_id": request.id,
                "student_id": student_id,
                "tutor_id": request.tutor_id,
                "proposed_price": proposed_price,
            }
        )
        return request

    async def respond(
        self,
        tutor_id: int,
        tutoring_id: int,
        accept: bool,
        final_price: Optional[int] = None,
        tutor_response: Optional[str] = None,
        session_details: Optional[dict[str, Any]] = None,
    ) -> TutoringRequest:
        """Accept or reject a PENDING request.

        On acceptance the price defaults to the proposed one and the optional
        session details (scheduled_at, duration_minutes, meeting_link, notes)
        are stored. They are ignored on rejection.
        """
        request = await self.get_request(tutoring_id, for_update=True)

        if request.tutor_id != tutor_id:
            raise AccessDeniedError(
                "Only the tutor can respond to this request",
                details={"tutoring_id": tutoring_id},
            )
        if request.status != TutoringStatus.PENDING:
            raise TutoringStateError(
                tutoring_id, request.status.value, "This request was already answered"
            )
        if tutor_response and len(tutor_response) > MAX_RESPONSE_LENGTH:
            raise ValidationException(
                f"tutor_response must be at most {MAX_RESPONSE_LENGTH} characters",
                field="tutor_response",
            )

        if accept:
            price = request.proposed_price if final_price is None else final_price
            validate_amount(price, tutor_id)
            if session_details:
                self._apply_session_details(request, session_details)
            request.status = TutoringStatus.ACCEPTED
            request.final_price = price
        else:
            request.status = TutoringStatus.REJECTED
        request.tutor_response = tutor_response

        await self.db.commit()
        logger.info(
            "Tutoring request answered",
            extra_data={
                "tutoring_id": tutoring_id,
                "status": request.status.value,
                "final_price": request.final_price,
            }
        )
        return request

    @staticmethod
    def _apply_session_details(request: TutoringRequest, details: dict[str, Any]) -> None:
        unknown = set(details) - set(SESSION_DETAIL_FIELDS)
        if unknown:
            raise ValidationException(
                f"Unknown session details: {', '.join(sorted(unknown))}",
                field="session_details",
            )

        scheduled_at = details.get("scheduled_at")
        if scheduled_at is not None:
            if not isinstance(scheduled_at, datetime):
                raise ValidationException("scheduled_at must be a datetime", field="scheduled_at")
            if scheduled_at.tzinfo is not None:
                scheduled_at = scheduled_at.astimezone(timezone.utc).replace(tzinfo=None)

        duration = details.get("duration_minutes")
        if duration is not None and (
            isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0
        ):
            raise ValidationException(
                "duration_minutes must be a positive integer", field="duration_minutes"
            )

        meeting_link = details.get("meeting_link")
        if meeting_link is not None and len(meeting_link) > MAX_MEETING_LINK_LENGTH:
            raise ValidationException(
                f"meeting_link must be at most {MAX_MEETING_LINK_LENGTH} characters",
                field="meeting_link",
            )

        notes = details.get("notes")
        if notes is not None and len(notes) > MAX_SESSION_NOTES_LENGTH:
            raise ValidationException(
                f"notes must be at most {MAX_SESSION_NOTES_LENGTH} characters", field="notes"
            )

        request.session_scheduled_at = scheduled_at
        request.session_duration_minutes = duration
        request.session_meeting_link = meeting_link
        request.session_notes = notes

    @log_async_operation("tutoring_payment")
    async def pay(self, student_id: int, tutoring_id: int) -> TutoringRequest:
        """Move final_price from the student to the tutor, once"""
        request = await self.get_request(tutoring_id)
        if request.student_id != student_id:
            raise AccessDeniedError(
                "Only the student can pay for this request",
                details={"tutoring_id": tutoring_id},
            )
        tutor_id = request.tutor_id

        async with account_locks.hold(student_id, tutor_id):
            try:
                request = await self.get_request(tutoring_id, for_update=True)
                if request.status != TutoringStatus.ACCEPTED:
                    raise TutoringStateError(
                        tutoring_id, request.status.value, "Only accepted requests can be paid"
                    )
                if request.is_paid:
                    raise TutoringStateError(
                        tutoring_id, request.status.value, "This request is already paid"
                    )

                amount = request.final_price
                await self.accounts.debit(
                    student_id,
                    amount,
                    TransactionCategory.TUTORING,
                    f"Tutoring session #{tutoring_id}",
                    related_note_id=request.note_id,
                    related_tutoring_id=tutoring_id,
                )
                await self.accounts.credit(
                    tutor_id,
                    amount,
                    TransactionCategory.TUTORING,
                    f"Tutoring session #{tutoring_id}",
                    related_note_id=request.note_id,
                    related_tutoring_id=tutoring_id,
                )
                request.is_paid = True
                request.paid_at = utcnow()
                await self.db.commit()
            except AppException:
                await self.db.rollback()
                raise
            except Exception as e:
                await self.db.rollback()
                logger.error(
                    "Tutoring payment rolled back",
                    extra_data={"tutoring_id": tutoring_id, "error": str(e)},
                    exc_info=True
                )
                raise SettlementError("tutoring_payment", str(e), {
                    "tutoring_id": tutoring_id, "student_id": student_id
                }) from e

        logger.info(
            "Tutoring paid",
            extra_data={
                "tutoring_id": tutoring_id,
                "student_id": student_id,
                "tutor_id": tutor_id,
                "amount": amount,
            }
        )
        return request

    async def list_for_student(self, student_id: int) -> list[TutoringRequest]:
        result = await self.db.execute(
            select(TutoringRequest)
            .where(TutoringRequest.student_id == student_id)
            .order_by(TutoringRequest.created_at.desc(), TutoringRequest.id.desc())
        )
        return list(result.scalars().all())

    async def list_for_tutor(self, tutor_id: int) -> list[TutoringRequest]:
        result = await self.db.execute(
            select(TutoringRequest)
            .where(TutoringRequest.tutor_id == tutor_id)
            .order_by(TutoringRequest.created_at.desc(), TutoringRequest.id.desc())
        )
        return list(result.scalars().all())
