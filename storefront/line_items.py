"""
In-memory cart and wishlist state for one user.

Both stores are keyed by product id, so a product appears at most once.
Every mutator returns a `Result` whose changeset lists the records the
caller must write to (or delete from) the document store.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .errors import Changeset, ErrorKind, Result
from .money import Money
from .schemas import LineItem, Product, WishlistItem, now_utc

logger = logging.getLogger(__name__)

CART = "cart"
WISHLIST = "wishlist"


@dataclass
class Transfer:
    """Outcome of moving entries from one collection into the cart.

    `target` must be persisted before `source`; if writing the target fails
    the source changes must be dropped.
    """
    moved: List[str] = field(default_factory=list)
    target: Changeset = field(default_factory=Changeset)
    source: Changeset = field(default_factory=Changeset)


def _is_quantity(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class LineItemStore:
    collection = CART

    def __init__(self, user_id: str, items: Iterable[LineItem] = ()):
        self.user_id = user_id
        self._items: Dict[str, LineItem] = {}
        for item in items:
            self._items[item.product_id] = item

    # ---------------------- Mutators ----------------------

    def upsert(self, product: Product, quantity_delta: int = 1) -> Result[Optional[LineItem]]:
        """Add `quantity_delta` of `product`, merging with an existing line.

        A new line starts at max(quantity_delta, 1). An existing line whose
        quantity drops below 1 is removed and the result value is None.
        """
        if not _is_quantity(quantity_delta):
            return Result.failure(ErrorKind.VALIDATION, "Quantity must be a whole number")
        if not product.id:
            return Result.failure(ErrorKind.VALIDATION, "Product id is required")
        changes = Changeset()
        item = self._apply_upsert(self._items, product, quantity_delta, changes)
        return Result.success(item, changes)

    def set_quantity(self, product_id: str, quantity: int) -> Result[Optional[LineItem]]:
        if not _is_quantity(quantity):
            return Result.failure(ErrorKind.VALIDATION, "Quantity must be a whole number")
        current = self._items.get(product_id)
        if current is None:
            return Result.failure(ErrorKind.NOT_FOUND, "This item is no longer in your cart")
        if quantity < 1:
            return self.remove(product_id)
        item = current.model_copy(update={"quantity": quantity, "updated_at": now_utc()})
        self._items[product_id] = item
        changes = Changeset()
        changes.put(product_id, item.record())
        return Result.success(item, changes)

    def remove(self, product_id: str) -> Result[None]:
        # absent ids still produce a delete so a retried removal reaches the store
        removed = self._items.pop(product_id, None)
        if removed is None:
            logger.debug("remove of absent %s entry %s for user %s", self.collection, product_id, self.user_id)
        changes = Changeset()
        changes.delete(product_id)
        return Result.success(None, changes)

    def clear(self) -> Result[List[str]]:
        removed = list(self._items)
        self._items.clear()
        changes = Changeset()
        for pid in removed:
            changes.delete(pid)
        return Result.success(removed, changes)

    def bulk_upsert(self, entries: Sequence[Tuple[Product, int]]) -> Result[List[LineItem]]:
        """Apply `upsert` for every (product, quantity) pair, all or nothing."""
        for product, quantity in entries:
            if not _is_quantity(quantity) or not product.id:
                return Result.failure(ErrorKind.VALIDATION, f"Invalid entry for {product.name or product.id!r}")
        staged = dict(self._items)
        changes = Changeset()
        touched: List[LineItem] = []
        for product, quantity in entries:
            item = self._apply_upsert(staged, product, quantity, changes)
            if item is not None:
                touched.append(item)
        self._items = staged
        return Result.success(touched, changes)

    def replace_all(self, records: Iterable[Dict[str, Any]]):
        """Replace local state with a snapshot pushed by the document store."""
        items: Dict[str, LineItem] = {}
        for rec in records:
            try:
                item = LineItem.model_validate(rec)
            except ValueError:
                logger.warning("skipping malformed %s record for user %s: %r", self.collection, self.user_id, rec)
                continue
            items[item.product_id] = item
        self._items = items

    @staticmethod
    def _apply_upsert(items: Dict[str, LineItem], product: Product, quantity_delta: int,
                      changes: Changeset) -> Optional[LineItem]:
        existing = items.get(product.id)
        if existing is None:
            item = LineItem.from_product(product, quantity_delta)
        else:
            quantity = existing.quantity + quantity_delta
            if quantity < 1:
                del items[product.id]
                changes.delete(product.id)
                return None
            item = existing.model_copy(update={"quantity": quantity, "updated_at": now_utc()})
        items[product.id] = item
        changes.put(product.id, item.record())
        return item

    # ---------------------- Queries ----------------------

    def total(self) -> Money:
        return Money.sum(Money.of(i.price).times(i.quantity) for i in self._items.values())

    def count(self) -> int:
        return sum(i.quantity for i in self._items.values())

    def contains(self, product_id: str) -> bool:
        return product_id in self._items

    def get(self, product_id: str) -> Optional[LineItem]:
        return self._items.get(product_id)

    def items(self) -> List[LineItem]:
        return list(self._items.values())

    def __len__(self) -> int:
        return len(self._items)


class WishlistStore:
    collection = WISHLIST

    def __init__(self, user_id: str, items: Iterable[WishlistItem] = ()):
        self.user_id = user_id
        self._items: Dict[str, WishlistItem] = {i.product_id: i for i in items}

    def add(self, product: Product) -> Result[WishlistItem]:
        if product.id in self._items:
            return Result.failure(ErrorKind.ALREADY_PRESENT, "This product is already in your wishlist")
        item = WishlistItem.from_product(product)
        self._items[product.id] = item
        changes = Changeset()
        changes.put(product.id, item.record())
        return Result.success(item, changes)

    def remove(self, product_id: str) -> Result[None]:
        self._items.pop(product_id, None)
        changes = Changeset()
        changes.delete(product_id)
        return Result.success(None, changes)

    def toggle(self, product: Product) -> Result[bool]:
        """Add the product if absent, remove it otherwise. Value is the new membership."""
        if product.id in self._items:
            res = self.remove(product.id)
            return Result.success(False, res.changes)
        res = self.add(product)
        return Result.success(True, res.changes)

    def clear(self) -> Result[List[str]]:
        removed = list(self._items)
        self._items.clear()
        changes = Changeset()
        for pid in removed:
            changes.delete(pid)
        return Result.success(removed, changes)

    def move_to_cart(self, cart: LineItemStore, product_ids: Optional[Sequence[str]] = None) -> Result[Transfer]:
        """Add wishlist entries to the cart (one each), then drop them from the wishlist.

        Nothing is removed from the wishlist unless every cart upsert succeeded.
        """
        if product_ids is None:
            product_ids = list(self._items)
        missing = [pid for pid in product_ids if pid not in self._items]
        if missing:
            return Result.failure(ErrorKind.NOT_FOUND, "This item is no longer in your wishlist")
        added = cart.bulk_upsert([(self._items[pid].to_product(), 1) for pid in product_ids])
        if not added.ok:
            return Result(error=added.error)
        transfer = Transfer(moved=list(product_ids), target=added.changes)
        for pid in product_ids:
            transfer.source.merge(self.remove(pid).changes)
        return Result.success(transfer)

    def replace_all(self, records: Iterable[Dict[str, Any]]):
        items: Dict[str, WishlistItem] = {}
        for rec in records:
            try:
                item = WishlistItem.model_validate(rec)
            except ValueError:
                logger.warning("skipping malformed wishlist record for user %s: %r", self.user_id, rec)
                continue
            items[item.product_id] = item
        self._items = items

    def contains(self, product_id: str) -> bool:
        return product_id in self._items

    def get(self, product_id: str) -> Optional[WishlistItem]:
        return self._items.get(product_id)

    def items(self) -> List[WishlistItem]:
        return list(self._items.values())

    def count(self) -> int:
        return len(self._items)
