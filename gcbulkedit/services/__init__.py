"""Services package."""

from gcbulkedit.services.blog import BlogRepository
from gcbulkedit.services.gateway import PaymentGateway, StripeGateway
from gcbulkedit.services.ledger import CustomerLedger, normalize_email
from gcbulkedit.services.store import RedisCustomerStore

__all__ = [
    "BlogRepository",
    "CustomerLedger",
    "PaymentGateway",
    "RedisCustomerStore",
    "StripeGateway",
    "normalize_email",
]
