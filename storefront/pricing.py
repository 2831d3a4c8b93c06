from dataclasses import dataclass
from typing import Dict, Iterable

from . import config
from .money import Money, Number, ZERO
from .schemas import LineItem


@dataclass(frozen=True)
class Quote:
    subtotal: Money
    shipping: Money
    tax: Money
    total: Money
    item_count: int

    def as_dict(self) -> Dict[str, object]:
        return {
            "subtotal": self.subtotal.to_float(),
            "shipping": self.shipping.to_float(),
            "tax": self.tax.to_float(),
            "total": self.total.to_float(),
            "item_count": self.item_count,
        }


class PricingEngine:
    """Derives order totals from line items.

    Shipping is a flat fee charged only on a non-empty subtotal; tax is
    `subtotal * tax_rate` rounded half-up to the cent.
    """

    def __init__(self, shipping_flat_fee: Number = config.SHIPPING_FLAT_FEE, tax_rate: Number = config.TAX_RATE):
        self.shipping_flat_fee = Money.of(shipping_flat_fee)
        self.tax_rate = tax_rate

    def quote(self, items: Iterable[LineItem]) -> Quote:
        subtotal = ZERO
        count = 0
        for item in items:
            subtotal = subtotal + Money.of(item.price).times(item.quantity)
            count += item.quantity
        shipping = self.shipping_flat_fee if subtotal.cents > 0 else ZERO
        tax = subtotal.apply_rate(self.tax_rate)
        return Quote(
            subtotal=subtotal,
            shipping=shipping,
            tax=tax,
            total=subtotal + shipping + tax,
            item_count=count,
        )
