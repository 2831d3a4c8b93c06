"""Cart, pricing, address book and order lifecycle engine for a storefront."""
from .addresses import AddressBook
from .compare import CompareSet
from .errors import Changeset, CollaboratorError, ErrorKind, Failure, Result
from .line_items import LineItemStore, Transfer, WishlistStore
from .money import Money
from .orders import OrderHistory, advance, can_cancel, cancel, create_order, next_status, reorder
from .pricing import PricingEngine, Quote
from .reviews import ReviewBook, rating_summary

__all__ = [
    "AddressBook",
    "Changeset",
    "CollaboratorError",
    "CompareSet",
    "ErrorKind",
    "Failure",
    "LineItemStore",
    "Money",
    "OrderHistory",
    "PricingEngine",
    "Quote",
    "Result",
    "ReviewBook",
    "Transfer",
    "WishlistStore",
    "advance",
    "can_cancel",
    "cancel",
    "create_order",
    "next_status",
    "rating_summary",
    "reorder",
]
