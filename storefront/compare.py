import logging
from typing import Any, Dict, Iterable, List, Optional

from . import config
from .errors import ErrorKind, Result
from .line_items import LineItemStore, Transfer
from .schemas import Product

logger = logging.getLogger(__name__)

COMPARE = "compare"


class CompareSet:
    """Up to two products picked for side-by-side comparison, in pick order."""

    collection = COMPARE

    def __init__(self, user_id: str, products: Iterable[Product] = (), limit: int = config.COMPARE_LIMIT):
        self.user_id = user_id
        self.limit = limit
        self._products: List[Product] = []
        for p in products:
            if len(self._products) < limit and not self.contains(p.id):
                self._products.append(p)

    def add(self, product: Product) -> Result[Product]:
        if not self.can_add():
            return Result.failure(ErrorKind.LIMIT_REACHED)
        if self.contains(product.id):
            return Result.failure(ErrorKind.ALREADY_PRESENT, "This product is already in your comparison")
        self._products.append(product)
        res = Result.success(product)
        res.changes.put(product.id, product.model_dump(mode="json"))
        return res

    def remove(self, product_id: str) -> Result[None]:
        self._products = [p for p in self._products if p.id != product_id]
        res = Result.success()
        res.changes.delete(product_id)
        return res

    def clear(self) -> Result[List[str]]:
        removed = [p.id for p in self._products]
        self._products = []
        res = Result.success(removed)
        for pid in removed:
            res.changes.delete(pid)
        return res

    def can_add(self) -> bool:
        return len(self._products) < self.limit

    def contains(self, product_id: str) -> bool:
        return any(p.id == product_id for p in self._products)

    def get(self, product_id: str) -> Optional[Product]:
        for p in self._products:
            if p.id == product_id:
                return p
        return None

    def items(self) -> List[Product]:
        return list(self._products)

    def move_all_to_cart(self, cart: LineItemStore) -> Result[Transfer]:
        """Put every compared product in the cart (one each), then empty the set.

        The set is only cleared once all cart upserts succeeded.
        """
        if not self._products:
            return Result.success(Transfer())
        added = cart.bulk_upsert([(p, 1) for p in self._products])
        if not added.ok:
            return Result(error=added.error)
        moved = [p.id for p in self._products]
        cleared = self.clear()
        return Result.success(Transfer(moved=moved, target=added.changes, source=cleared.changes))

    def replace_all(self, records: Iterable[Dict[str, Any]]):
        products: List[Product] = []
        for rec in records:
            try:
                product = Product.model_validate(rec)
            except ValueError:
                logger.warning("skipping malformed compare record for user %s: %r", self.user_id, rec)
                continue
            if len(products) >= self.limit:
                logger.warning("compare snapshot for user %s exceeds %d products", self.user_id, self.limit)
                break
            if all(p.id != product.id for p in products):
                products.append(product)
        self._products = products

    def __len__(self) -> int:
        return len(self._products)
