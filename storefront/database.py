"""
MongoDB access.

`db` is the configured database (None when DATABASE_URL / DATABASE_NAME are
not set). `MongoDocumentStore` stores every per-user record as one document
whose `_id` is "<user_id>:<record_id>" inside a collection named after the
record kind.

`MongoCatalog` reads the shared `product` collection, where products are
keyed by `_id` (an ObjectId or a plain string id).
"""
import logging
import threading
from typing import Any, Callable, List, Optional

from bson import ObjectId
from pymongo import MongoClient
from pymongo.errors import PyMongoError

from . import config
from .collaborators import BatchOp, Record, Unsubscribe
from .errors import CollaboratorError
from .reviews import RatingSummary
from .schemas import Product

logger = logging.getLogger(__name__)

PRODUCTS = "product"

client = MongoClient(config.DATABASE_URL) if config.DATABASE_URL else None
db = client[config.DATABASE_NAME] if client is not None and config.DATABASE_NAME else None


def doc_id(user_id: str, record_id: str) -> str:
    return f"{user_id}:{record_id}"


def _clean(doc: dict) -> Record:
    doc.pop("_id", None)
    return doc


class MongoDocumentStore:
    def __init__(self, database):
        self.db = database

    def get_collection(self, user_id: str, name: str) -> List[Record]:
        try:
            return [_clean(d) for d in self.db[name].find({"user_id": user_id})]
        except PyMongoError as e:
            logger.exception("reading %s for user %s failed", name, user_id)
            raise CollaboratorError("document store", f"failed to read {name}", e)

    def put_record(self, user_id: str, name: str, record_id: str, record: Record):
        self.run_batch([BatchOp.put(user_id, name, record_id, record)])

    def delete_record(self, user_id: str, name: str, record_id: str):
        self.run_batch([BatchOp.delete(user_id, name, record_id)])

    def run_batch(self, ops: List[BatchOp]):
        """Apply ops in order.

        MongoDB gives no atomicity across these writes: when one fails the
        earlier ones stay applied and a `CollaboratorError` reports how many.
        """
        for op in ops:
            if op.kind not in ("put", "delete"):
                raise ValueError(f"Unknown batch operation {op.kind!r}")
        for applied, op in enumerate(ops):
            key = doc_id(op.user_id, op.record_id)
            try:
                if op.kind == "put":
                    self.db[op.name].replace_one({"_id": key}, {**op.record, "_id": key, "user_id": op.user_id},
                                                 upsert=True)
                else:
                    self.db[op.name].delete_one({"_id": key})
            except PyMongoError as e:
                logger.exception("batch stopped at %s %s/%s after %d of %d ops",
                                 op.kind, op.name, key, applied, len(ops))
                raise CollaboratorError("document store", f"batch applied {applied} of {len(ops)} ops", e)

    def find(self, name: str, **match: Any) -> List[Record]:
        try:
            return [_clean(d) for d in self.db[name].find(match)]
        except PyMongoError as e:
            logger.exception("querying %s by %r failed", name, match)
            raise CollaboratorError("document store", f"failed to query {name}", e)

    def subscribe(self, user_id: str, name: str, on_change: Callable[[List[Record]], None]) -> Unsubscribe:
        """Watch a collection through a change stream (requires a replica set).

        Each change touching this user's documents re-reads the collection
        and hands the full snapshot to `on_change` on a background thread.
        """
        stop = threading.Event()
        prefix = doc_id(user_id, "")

        def watch():
            try:
                with self.db[name].watch(max_await_time_ms=500) as stream:
                    while not stop.is_set() and stream.alive:
                        change = stream.try_next()
                        if change is None:
                            continue
                        key = str(change.get("documentKey", {}).get("_id", ""))
                        if key.startswith(prefix):
                            on_change(self.get_collection(user_id, name))
            except PyMongoError:
                logger.exception("change stream on %s for user %s stopped", name, user_id)

        thread = threading.Thread(target=watch, name=f"watch-{name}-{user_id}", daemon=True)
        thread.start()
        return stop.set


def _product_filter(product_id: str) -> dict:
    if ObjectId.is_valid(product_id):
        return {"_id": {"$in": [product_id, ObjectId(product_id)]}}
    return {"_id": product_id}


class MongoCatalog:
    def __init__(self, database, name: str = PRODUCTS):
        self.db = database
        self.name = name

    def get_product(self, product_id: str) -> Optional[Product]:
        try:
            doc = self.db[self.name].find_one(_product_filter(product_id))
        except PyMongoError as e:
            logger.exception("looking up product %s failed", product_id)
            raise CollaboratorError("catalog", f"failed to read product {product_id}", e)
        if doc is None:
            return None
        doc["id"] = str(doc.pop("_id"))
        try:
            return Product.model_validate(doc)
        except ValueError:
            logger.warning("product %s has a malformed catalog record", product_id)
            return None

    def set_rating(self, product_id: str, summary: RatingSummary):
        try:
            self.db[self.name].update_one(
                _product_filter(product_id),
                {"$set": {"rating": summary.rating, "review_count": summary.review_count}},
            )
        except PyMongoError as e:
            logger.exception("updating rating of product %s failed", product_id)
            raise CollaboratorError("catalog", f"failed to update product {product_id}", e)
