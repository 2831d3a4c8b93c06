"""
Order creation and status lifecycle.

Orders move forward one step at a time:

    pending -> confirmed -> processing -> shipped -> delivered

and may be cancelled, with a reason, while still pending, confirmed or
processing. `delivered` and `cancelled` are terminal. Items and totals are
frozen when the order is created and never recomputed.
"""
import logging
import random
import string
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from .errors import Changeset, ErrorKind, Result
from .line_items import LineItemStore, Transfer
from .pricing import Quote
from .schemas import (
    LineItem,
    Order,
    OrderLineItem,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    Product,
    ShippingInfo,
    now_utc,
)

logger = logging.getLogger(__name__)

ORDERS = "orders"

FORWARD = {
    OrderStatus.PENDING: OrderStatus.CONFIRMED,
    OrderStatus.CONFIRMED: OrderStatus.PROCESSING,
    OrderStatus.PROCESSING: OrderStatus.SHIPPED,
    OrderStatus.SHIPPED: OrderStatus.DELIVERED,
}

TERMINAL = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})

CANCELLABLE = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PROCESSING})


def generate_order_number(created_at: Optional[datetime] = None) -> str:
    created_at = created_at or now_utc()
    suffix = "".join(random.choices(string.digits, k=4))
    return f"ORD-{created_at.strftime('%Y%m%d%H%M%S')}-{suffix}"


def next_status(status: OrderStatus) -> Optional[OrderStatus]:
    return FORWARD.get(OrderStatus(status))


def can_cancel(order: Order) -> bool:
    return order.status in CANCELLABLE


def _changes(order: Order) -> Changeset:
    changes = Changeset()
    changes.put(order.id, order.record())
    return changes


def create_order(user_id: str, items: Iterable[LineItem], shipping_info: ShippingInfo,
                 payment_method: PaymentMethod, quote: Quote,
                 payment_reference: Optional[str] = None) -> Result[Order]:
    """Freeze a cart snapshot and its quote into a new order.

    Card orders are only created after the payment provider confirmed the
    charge, so they start as paid. Cash-on-delivery orders start pending.
    """
    lines = [
        OrderLineItem(
            product_id=i.product_id,
            name=i.name,
            price=i.price,
            quantity=i.quantity,
            image=i.image,
        )
        for i in items
    ]
    if not lines:
        return Result.failure(ErrorKind.VALIDATION, "Your cart is empty")
    if sum(line.quantity for line in lines) != quote.item_count:
        return Result.failure(ErrorKind.VALIDATION, "Your cart changed. Please review your order again")

    method = PaymentMethod(payment_method)
    created_at = now_utc()
    order = Order(
        user_id=user_id,
        order_number=generate_order_number(created_at),
        items=lines,
        subtotal=quote.subtotal.to_float(),
        shipping=quote.shipping.to_float(),
        tax=quote.tax.to_float(),
        total=quote.total.to_float(),
        shipping_info=shipping_info.model_copy(deep=True),
        payment_method=method,
        status=OrderStatus.PENDING,
        payment_status=PaymentStatus.PAID if method == PaymentMethod.CARD else PaymentStatus.PENDING,
        payment_reference=payment_reference,
        created_at=created_at,
        updated_at=created_at,
    )
    logger.info("created order %s for user %s total=%s", order.order_number, user_id, quote.total)
    return Result.success(order, _changes(order))


def advance(order: Order) -> Result[Order]:
    target = next_status(order.status)
    if target is None:
        return Result.failure(
            ErrorKind.INVALID_TRANSITION,
            f"Order #{order.order_number} is already {OrderStatus(order.status).value}",
        )
    updated = order.model_copy(update={"status": target, "updated_at": now_utc()})
    logger.info("order %s: %s -> %s", order.order_number, OrderStatus(order.status).value, target.value)
    return Result.success(updated, _changes(updated))


def cancel(order: Order, reason: str, cancelled_by: str) -> Result[Order]:
    if not can_cancel(order):
        return Result.failure(ErrorKind.NOT_CANCELLABLE)
    if not (reason or "").strip():
        return Result.failure(ErrorKind.MISSING_REASON)
    stamp = now_utc()
    updated = order.model_copy(update={
        "status": OrderStatus.CANCELLED,
        "cancel_reason": reason.strip(),
        "cancelled_at": stamp,
        "cancelled_by": cancelled_by,
        "updated_at": stamp,
    })
    logger.info("order %s cancelled by %s", order.order_number, cancelled_by)
    return Result.success(updated, _changes(updated))


def reorder(order: Order, cart: LineItemStore) -> Result[Transfer]:
    """Add every line of a past order back into the cart at the ordered quantity."""
    entries = [
        (Product(id=line.product_id, name=line.name, price=line.price,
                 images=[line.image] if line.image else []), line.quantity)
        for line in order.items
    ]
    added = cart.bulk_upsert(entries)
    if not added.ok:
        return Result(error=added.error)
    return Result.success(Transfer(moved=[line.product_id for line in order.items], target=added.changes))


class OrderHistory:
    """One user's orders, newest first."""

    collection = ORDERS

    def __init__(self, user_id: str, orders: Iterable[Order] = ()):
        self.user_id = user_id
        self._orders: Dict[str, Order] = {o.id: o for o in orders}

    def replace_all(self, records: Iterable[Dict[str, Any]]):
        orders: Dict[str, Order] = {}
        for rec in records:
            try:
                order = Order.model_validate(rec)
            except ValueError:
                logger.warning("skipping malformed order record for user %s: %r", self.user_id, rec)
                continue
            orders[order.id] = order
        self._orders = orders

    def add(self, order: Order):
        self._orders[order.id] = order

    def get(self, order_id: str) -> Optional[Order]:
        return self._orders.get(order_id)

    def orders(self) -> List[Order]:
        return sorted(self._orders.values(), key=lambda o: o.created_at, reverse=True)

    def advance(self, order_id: str) -> Result[Order]:
        return self._apply(order_id, advance)

    def cancel(self, order_id: str, reason: str, cancelled_by: str) -> Result[Order]:
        return self._apply(order_id, lambda o: cancel(o, reason, cancelled_by))

    def _apply(self, order_id: str, transition) -> Result[Order]:
        order = self._orders.get(order_id)
        if order is None:
            return Result.failure(ErrorKind.NOT_FOUND, "Order not found")
        res = transition(order)
        if res.ok:
            self._orders[order_id] = res.value
        return res
