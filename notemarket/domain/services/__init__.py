"""
Domain Services
"""
from notemarket.domain.services.account_service import AccountService
from notemarket.domain.services.entitlement_service import EntitlementService
from notemarket.domain.services.ledger_service import LedgerService
from notemarket.domain.services.purchase_service import PurchaseService
from notemarket.domain.services.subscription_service import SubscriptionService
from notemarket.domain.services.tutoring_service import TutoringService
from notemarket.domain.services.wallet_service import WalletService

__all__ = [
    "AccountService",
    "EntitlementService",
    "LedgerService",
    "PurchaseService",
    "SubscriptionService",
    "TutoringService",
    "WalletService",
]
