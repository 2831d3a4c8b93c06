"""
Process-local document store.

Keeps per-user collections in dictionaries and notifies subscribers
synchronously after every write. `InMemoryCatalog` is the matching product
lookup. Both are used for local runs and tests.
"""
import copy
from collections import defaultdict
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from .collaborators import BatchOp, Record, Unsubscribe
from .reviews import RatingSummary
from .schemas import Product

Key = Tuple[str, str]


class InMemoryDocumentStore:
    def __init__(self):
        self._data: Dict[Key, Dict[str, Record]] = defaultdict(dict)
        self._listeners: Dict[Key, List[Callable[[List[Record]], None]]] = defaultdict(list)

    def get_collection(self, user_id: str, name: str) -> List[Record]:
        return [copy.deepcopy(r) for r in self._data[(user_id, name)].values()]

    def put_record(self, user_id: str, name: str, record_id: str, record: Record):
        self._data[(user_id, name)][record_id] = copy.deepcopy(record)
        self._notify({(user_id, name)})

    def delete_record(self, user_id: str, name: str, record_id: str):
        self._data[(user_id, name)].pop(record_id, None)
        self._notify({(user_id, name)})

    def run_batch(self, ops: List[BatchOp]):
        for op in ops:
            if op.kind not in ("put", "delete"):
                raise ValueError(f"Unknown batch operation {op.kind!r}")
        touched = set()
        for op in ops:
            key = (op.user_id, op.name)
            if op.kind == "put":
                self._data[key][op.record_id] = copy.deepcopy(op.record)
            else:
                self._data[key].pop(op.record_id, None)
            touched.add(key)
        self._notify(touched)

    def find(self, name: str, **match: Any) -> List[Record]:
        return [
            copy.deepcopy(r)
            for (_, coll), records in self._data.items() if coll == name
            for r in records.values()
            if all(r.get(k) == v for k, v in match.items())
        ]

    def subscribe(self, user_id: str, name: str, on_change: Callable[[List[Record]], None]) -> Unsubscribe:
        key = (user_id, name)
        self._listeners[key].append(on_change)

        def unsubscribe():
            if on_change in self._listeners[key]:
                self._listeners[key].remove(on_change)

        return unsubscribe

    def _notify(self, keys):
        for user_id, name in keys:
            for listener in list(self._listeners[(user_id, name)]):
                listener(self.get_collection(user_id, name))


class InMemoryCatalog:
    def __init__(self, products: Iterable[Product] = ()):
        self._products: Dict[str, Product] = {p.id: p for p in products}

    def add(self, product: Product):
        self._products[product.id] = product

    def get_product(self, product_id: str) -> Optional[Product]:
        return self._products.get(product_id)

    def set_rating(self, product_id: str, summary: RatingSummary):
        product = self._products.get(product_id)
        if product is not None:
            self._products[product_id] = product.model_copy(
                update={"rating": summary.rating, "review_count": summary.review_count})
