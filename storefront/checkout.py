"""
Checkout: turn the signed-in user's cart into an order.

The order is written before the cart is cleared. A card order is only
created after the payment provider confirmed the charge; if payment is
cancelled or fails nothing is written.
"""
import logging
from typing import Optional

from . import config
from .addresses import ADDRESSES, AddressBook
from .collaborators import DocumentStore, IdentityProvider, PaymentIntent, PaymentProvider, persist
from .errors import CollaboratorError, ErrorKind, Result
from .line_items import CART, LineItemStore
from .orders import ORDERS, create_order
from .payments import MIN_CARD_AMOUNT
from .pricing import PricingEngine
from .schemas import Order, PaymentMethod, ShippingInfo

logger = logging.getLogger(__name__)


class CheckoutService:
    def __init__(self, store: DocumentStore, payments: PaymentProvider,
                 pricing: Optional[PricingEngine] = None, currency: str = config.CURRENCY):
        self.store = store
        self.payments = payments
        self.pricing = pricing or PricingEngine()
        self.currency = currency

    def checkout(self, identity: IdentityProvider, payment_method: PaymentMethod,
                 shipping_info: Optional[ShippingInfo] = None,
                 address_id: Optional[str] = None) -> Result[Order]:
        user = identity.current_user()
        if user is None:
            return Result.failure(ErrorKind.VALIDATION, "Please sign in to place an order")

        cart = LineItemStore(user.id)
        cart.replace_all(self.store.get_collection(user.id, CART))
        quote = self.pricing.quote(cart.items())
        if quote.item_count == 0:
            return Result.failure(ErrorKind.VALIDATION, "Your cart is empty")

        if shipping_info is None:
            resolved = self._shipping_from_address_book(user.id, address_id, user.email)
            if not resolved.ok:
                return Result(error=resolved.error)
            shipping_info = resolved.value

        reference = None
        method = PaymentMethod(payment_method)
        if method == PaymentMethod.CARD:
            if quote.total.cents < MIN_CARD_AMOUNT:
                return Result.failure(ErrorKind.VALIDATION, "Order total is below the minimum card charge")
            paid = self._charge(quote.total.cents)
            if not paid.ok:
                return Result(error=paid.error)
            reference = paid.value.id

        placed = create_order(user.id, cart.items(), shipping_info, method, quote, payment_reference=reference)
        if not placed.ok:
            return placed
        persist(self.store, user.id, ORDERS, placed.changes)

        try:
            persist(self.store, user.id, CART, cart.clear().changes)
        except CollaboratorError:
            # the order stands; a stale cart is recoverable by the user
            logger.exception("order %s placed but clearing the cart of user %s failed",
                             placed.value.order_number, user.id)
        return Result.success(placed.value)

    def _shipping_from_address_book(self, user_id: str, address_id: Optional[str],
                                    email: Optional[str]) -> Result[ShippingInfo]:
        book = AddressBook(user_id)
        book.replace_all(self.store.get_collection(user_id, ADDRESSES))
        address = book.get(address_id) if address_id else book.get_default()
        if address is None:
            if address_id:
                return Result.failure(ErrorKind.NOT_FOUND, "Address not found")
            return Result.failure(ErrorKind.VALIDATION, "Please add a shipping address")
        return Result.success(address.to_shipping_info(email))

    def _charge(self, amount: int) -> Result[PaymentIntent]:
        try:
            intent = self.payments.create_payment_intent(amount, self.currency)
            outcome = self.payments.confirm_payment(intent.client_secret)
        except Exception as e:
            logger.exception("payment provider failed for %d %s", amount, self.currency)
            raise CollaboratorError("payment provider", str(e), e)
        if not outcome.succeeded:
            logger.info("payment %s %s: %s", intent.id, outcome.status.value, outcome.reason)
            if outcome.reason:
                return Result.failure(ErrorKind.VALIDATION, f"Payment {outcome.status.value}: {outcome.reason}")
            return Result.failure(ErrorKind.VALIDATION, f"Payment {outcome.status.value}")
        return Result.success(intent)
