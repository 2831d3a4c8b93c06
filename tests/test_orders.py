import pytest

from storefront.errors import ErrorKind
from storefront.line_items import LineItemStore
from storefront.orders import OrderHistory, advance, can_cancel, cancel, create_order, next_status, reorder
from storefront.pricing import PricingEngine
from storefront.schemas import OrderStatus, PaymentMethod, PaymentStatus, ShippingInfo

from factories import make_product

SHIPPING = ShippingInfo(full_name="Jane Doe", phone="555", address="1 Main St", city="Springfield",
                        state="CA", zip_code="90210", country="USA")


def place(method=PaymentMethod.CASH_ON_DELIVERY):
    cart = LineItemStore("u1")
    cart.upsert(make_product("A", 10.0), 2)
    cart.upsert(make_product("B", 5.0), 1)
    quote = PricingEngine(9.99, 0.08).quote(cart.items())
    return cart, create_order("u1", cart.items(), SHIPPING, method, quote)


def with_status(order, status):
    return order.model_copy(update={"status": status})


def test_create_order_freezes_quote():
    _, res = place()
    order = res.value
    assert res.ok
    assert order.order_number.startswith("ORD-")
    assert (order.subtotal, order.shipping, order.tax, order.total) == (25.0, 9.99, 2.0, 36.99)
    assert order.status == OrderStatus.PENDING
    assert [(i.product_id, i.quantity) for i in order.items] == [("A", 2), ("B", 1)]
    assert res.changes.puts[order.id]["status"] == "pending"


def test_payment_status_depends_on_method():
    assert place(PaymentMethod.CARD)[1].value.payment_status == PaymentStatus.PAID
    assert place(PaymentMethod.CASH_ON_DELIVERY)[1].value.payment_status == PaymentStatus.PENDING


def test_order_snapshot_is_immutable_after_cart_changes():
    cart, res = place()
    order = res.value
    cart.set_quantity("A", 10)
    cart.upsert(make_product("A", 99.0), 1)
    cart.remove("B")
    assert order.total == 36.99
    assert [(i.product_id, i.price, i.quantity) for i in order.items] == [("A", 10.0, 2), ("B", 5.0, 1)]


def test_create_order_rejects_empty_or_stale_cart():
    quote = PricingEngine().quote([])
    assert create_order("u1", [], SHIPPING, PaymentMethod.CARD, quote).kind == ErrorKind.VALIDATION
    cart = LineItemStore("u1")
    cart.upsert(make_product("A"), 1)
    stale = PricingEngine().quote(cart.items())
    cart.upsert(make_product("A"), 1)
    assert create_order("u1", cart.items(), SHIPPING, PaymentMethod.CARD, stale).kind == ErrorKind.VALIDATION


def test_advance_visits_every_state_in_order():
    order = place()[1].value
    seen = []
    while True:
        res = advance(order)
        if not res.ok:
            break
        order = res.value
        seen.append(order.status)
    assert seen == [OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED]
    assert res.kind == ErrorKind.INVALID_TRANSITION


def test_next_status():
    assert next_status(OrderStatus.PENDING) == OrderStatus.CONFIRMED
    assert next_status(OrderStatus.DELIVERED) is None
    assert next_status(OrderStatus.CANCELLED) is None


@pytest.mark.parametrize("status", [OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PROCESSING])
def test_cancel_allowed_before_shipment(status):
    order = with_status(place()[1].value, status)
    assert can_cancel(order)
    res = cancel(order, "  Changed my mind ", "u1")
    assert res.ok
    assert res.value.status == OrderStatus.CANCELLED
    assert res.value.cancel_reason == "Changed my mind"
    assert res.value.cancelled_by == "u1"
    assert res.value.cancelled_at is not None
    assert advance(res.value).kind == ErrorKind.INVALID_TRANSITION


@pytest.mark.parametrize("status", [OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.CANCELLED])
def test_cancel_refused_after_shipment(status):
    order = with_status(place()[1].value, status)
    assert cancel(order, "too late", "u1").kind == ErrorKind.NOT_CANCELLABLE


def test_cancel_requires_reason():
    order = place()[1].value
    assert cancel(order, "   ", "u1").kind == ErrorKind.MISSING_REASON
    assert order.status == OrderStatus.PENDING


def test_reorder_adds_ordered_quantities():
    order = place()[1].value
    cart = LineItemStore("u1")
    cart.upsert(make_product("A", 10.0), 1)
    res = reorder(order, cart)
    assert res.ok
    assert cart.get("A").quantity == 3
    assert cart.get("B").quantity == 1
    assert set(res.value.target.puts) == {"A", "B"}


def test_history_sorts_and_transitions():
    first = place()[1].value
    second = place()[1].value.model_copy(update={"created_at": first.created_at.replace(year=first.created_at.year + 1)})
    history = OrderHistory("u1")
    history.replace_all([first.record(), second.record(), {"bogus": True}])
    assert [o.id for o in history.orders()] == [second.id, first.id]
    assert history.advance(first.id).value.status == OrderStatus.CONFIRMED
    assert history.get(first.id).status == OrderStatus.CONFIRMED
    assert history.cancel("missing", "x", "u1").kind == ErrorKind.NOT_FOUND
