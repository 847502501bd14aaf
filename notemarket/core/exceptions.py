"""
Custom Exception Hierarchy

Typed errors raised by the settlement core. The route layer maps them to HTTP
responses through ``AppException.status_code`` and ``to_dict()``.
"""
from typing import Any
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes for API responses"""

    # General errors (1xxx)
    INTERNAL_ERROR = "ERR_1000"
    VALIDATION_ERROR = "ERR_1001"
    NOT_FOUND = "ERR_1002"
    ALREADY_EXISTS = "ERR_1003"
    UNAUTHORIZED = "ERR_1004"
    FORBIDDEN = "ERR_1005"

    # Catalog / purchase errors (2xxx)
    NOTE_NOT_FOUND = "ERR_2001"
    ALREADY_PURCHASED = "ERR_2002"
    PURCHASE_NOT_FOUND = "ERR_2003"
    ACCESS_DENIED = "ERR_2004"

    # Account errors (3xxx)
    ACCOUNT_NOT_FOUND = "ERR_3001"
    ALREADY_SUBSCRIBED = "ERR_3002"

    # Wallet errors (4xxx)
    INSUFFICIENT_FUNDS = "ERR_4001"
    INVALID_AMOUNT = "ERR_4002"
    SETTLEMENT_FAILED = "ERR_4003"

    # Tutoring errors (5xxx)
    TUTORING_NOT_FOUND = "ERR_5001"
    TUTORING_INVALID_STATE = "ERR_5002"


class AppException(Exception):
    """Base exception for all application errors"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        details: dict[str, Any] | None = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API response"""
        return {
            "error": {
                "code": self.error_code.value,
                "message": self.message,
                "details": self.details
            }
        }


class ValidationException(AppException):
    """Raised when input validation fails"""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None
    ):
        super().__init__(
            message=message,
            error_code=ErrorCode.VALIDATION_ERROR,
            status_code=400,
            details=details
        )
        if field:
            self.details["field"] = field


class NotFoundException(AppException):
    """Raised when a requested resource is not found"""

    def __init__(
        self,
        resource: str,
        identifier: Any,
        error_code: ErrorCode = ErrorCode.NOT_FOUND
    ):
        super().__init__(
            message=f"{resource} not found: {identifier}",
            error_code=error_code,
            status_code=404,
            details={"resource": resource, "identifier": str(identifier)}
        )


class AccessDeniedError(AppException):
    """Raised when the caller is not entitled to the requested resource"""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.ACCESS_DENIED,
            status_code=403,
            details=details
        )


# ==================== Catalog / purchases ====================


class NoteNotFoundError(NotFoundException):
    """Raised when a note is missing, soft-deleted or not ACTIVE"""

    def __init__(self, note_id: int):
        super().__init__("Note", note_id, error_code=ErrorCode.NOTE_NOT_FOUND)
        self.details["note_id"] = note_id


class PurchaseNotFoundError(NotFoundException):
    """Raised when a purchase does not exist or belongs to another account"""

    def __init__(self, purchase_id: int):
        super().__init__("Purchase", purchase_id, error_code=ErrorCode.PURCHASE_NOT_FOUND)


class AlreadyPurchasedError(AppException):
    """Raised when the account already holds a purchase for the note"""

    def __init__(self, account_id: int, note_id: int):
        super().__init__(
            message=f"Account {account_id} has already purchased note {note_id}",
            error_code=ErrorCode.ALREADY_PURCHASED,
            status_code=409,
            details={"account_id": account_id, "note_id": note_id}
        )


# ==================== Accounts / wallet ====================


class WalletException(AppException):
    """Base exception for wallet-related errors"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        account_id: int | None = None,
        status_code: int = 400,
        details: dict[str, Any] | None = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status_code,
            details=details
        )
        if account_id is not None:
            self.details["account_id"] = account_id


class AccountNotFoundError(WalletException):
    """Raised when the account does not exist"""

    def __init__(self, account_id: int):
        super().__init__(
            message=f"Account not found: {account_id}",
            error_code=ErrorCode.ACCOUNT_NOT_FOUND,
            account_id=account_id,
            status_code=404
        )


class InsufficientFundsError(WalletException):
    """Raised when a debit would take the balance below zero"""

    def __init__(self, account_id: int, current_balance: int, required_amount: int):
        super().__init__(
            message=f"Insufficient wallet balance for account {account_id}",
            error_code=ErrorCode.INSUFFICIENT_FUNDS,
            account_id=account_id,
            status_code=402,
            details={
                "current_balance": current_balance,
                "required_amount": required_amount,
                "shortfall": required_amount - current_balance
            }
        )


class InvalidAmountError(WalletException):
    """Raised when an amount is not a positive integer within the allowed range"""

    def __init__(self, amount: Any, account_id: int | None = None, reason: str | None = None):
        details = {"amount": str(amount)}
        if reason:
            details["reason"] = reason
        super().__init__(
            message=f"Invalid amount: {amount!r}",
            error_code=ErrorCode.INVALID_AMOUNT,
            account_id=account_id,
            details=details
        )


class AlreadySubscribedError(WalletException):
    """Raised when buying a subscription while one is still active"""

    def __init__(self, account_id: int, end_date: Any = None):
        super().__init__(
            message=f"Account {account_id} already has an active subscription",
            error_code=ErrorCode.ALREADY_SUBSCRIBED,
            account_id=account_id,
            status_code=409,
            details={"end_date": str(end_date)} if end_date else None
        )


class SettlementError(WalletException):
    """Raised when a settlement failed mid-flight and was rolled back.

    ``reason`` stays server-side; the client only sees a generic message.
    """

    def __init__(self, operation: str, reason: str, details: dict[str, Any] | None = None):
        self.operation = operation
        self.reason = reason
        super().__init__(
            message="Settlement failed and was rolled back",
            error_code=ErrorCode.SETTLEMENT_FAILED,
            status_code=500,
            details=details
        )
        self.details["operation"] = operation


# ==================== Tutoring ====================


class TutoringNotFoundError(NotFoundException):
    """Raised when a tutoring request is not found"""

    def __init__(self, tutoring_id: int):
        super().__init__("Tutoring request", tutoring_id, error_code=ErrorCode.TUTORING_NOT_FOUND)


class TutoringStateError(AppException):
    """Raised when a tutoring request has the wrong status for the operation"""

    def __init__(self, tutoring_id: int, current_status: str, message: str):
        super().__init__(
            message=message,
            error_code=ErrorCode.TUTORING_INVALID_STATE,
            status_code=400,
            details={"tutoring_id": tutoring_id, "current_status": current_status}
        )
