from storefront.line_items import LineItemStore
from storefront.money import Money
from storefront.pricing import PricingEngine

from factories import make_product


def test_empty_quote_is_all_zero():
    q = PricingEngine(9.99, 0.08).quote([])
    assert (q.subtotal, q.shipping, q.tax, q.total) == (Money(0), Money(0), Money(0), Money(0))
    assert q.item_count == 0


def test_end_to_end_totals():
    cart = LineItemStore("u1")
    cart.upsert(make_product("A", 10.00), 2)
    cart.upsert(make_product("B", 5.00), 1)
    q = PricingEngine(9.99, 0.08).quote(cart.items())
    assert q.subtotal.format() == "25.00"
    assert q.tax.format() == "2.00"
    assert q.shipping.format() == "9.99"
    assert q.total.format() == "36.99"
    assert q.item_count == 3
    assert q.as_dict() == {"subtotal": 25.0, "shipping": 9.99, "tax": 2.0, "total": 36.99, "item_count": 3}


def test_quote_is_deterministic():
    cart = LineItemStore("u1")
    cart.upsert(make_product("A", 19.99), 3)
    engine = PricingEngine(9.99, 0.08)
    assert engine.quote(cart.items()) == engine.quote(cart.items())


def test_tax_rounds_half_up_at_the_cent():
    cart = LineItemStore("u1")
    cart.upsert(make_product("A", 10.005), 1)
    q = PricingEngine(9.99, 0.08).quote(cart.items())
    assert q.tax.format() == "0.80"

    half = LineItemStore("u1")
    half.upsert(make_product("B", 1.00), 1)
    assert PricingEngine(0, "0.005").quote(half.items()).tax.cents == 1
    below = LineItemStore("u1")
    below.upsert(make_product("C", 0.99), 1)
    assert PricingEngine(0, "0.005").quote(below.items()).tax.cents == 0


def test_defaults_come_from_config():
    engine = PricingEngine()
    assert engine.shipping_flat_fee == Money.of("9.99")
