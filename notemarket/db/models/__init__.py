"""
Database Models
"""
from notemarket.db.models.account import Account
from notemarket.db.models.note import Note
from notemarket.db.models.purchase import Purchase, PurchaseAnnotation, PurchaseComment
from notemarket.db.models.tutoring import TutoringRequest
from notemarket.db.models.wallet_transaction import WalletTransaction

__all__ = [
    "Account",
    "Note",
    "Purchase",
    "PurchaseAnnotation",
    "PurchaseComment",
    "TutoringRequest",
    "WalletTransaction",
]
