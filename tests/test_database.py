import mongomock
import pytest
from bson import ObjectId
from pymongo.errors import PyMongoError

from storefront.collaborators import BatchOp, persist
from storefront.database import PRODUCTS, MongoCatalog, MongoDocumentStore, doc_id
from storefront.errors import CollaboratorError
from storefront.line_items import CART, LineItemStore
from storefront.reviews import RatingSummary

from factories import make_product


@pytest.fixture
def mongo():
    return mongomock.MongoClient()["storefront_test"]


def test_records_are_scoped_per_user(mongo):
    store = MongoDocumentStore(mongo)
    store.put_record("u1", CART, "A", {"product_id": "A", "quantity": 1})
    store.put_record("u2", CART, "A", {"product_id": "A", "quantity": 5})
    assert store.get_collection("u1", CART) == [{"product_id": "A", "quantity": 1, "user_id": "u1"}]
    assert mongo[CART].find_one({"_id": doc_id("u2", "A")})["quantity"] == 5


def test_put_replaces_and_delete_removes(mongo):
    store = MongoDocumentStore(mongo)
    store.put_record("u1", CART, "A", {"product_id": "A", "quantity": 1})
    store.put_record("u1", CART, "A", {"product_id": "A", "quantity": 3})
    assert [r["quantity"] for r in store.get_collection("u1", CART)] == [3]
    store.delete_record("u1", CART, "A")
    store.delete_record("u1", CART, "A")
    assert store.get_collection("u1", CART) == []


def test_changesets_round_trip_through_a_batch(mongo):
    store = MongoDocumentStore(mongo)
    cart = LineItemStore("u1")
    persist(store, "u1", CART, cart.upsert(make_product("A", 10.0), 2).changes)
    persist(store, "u1", CART, cart.upsert(make_product("B", 5.0), 1).changes)
    persist(store, "u1", CART, cart.remove("B").changes)

    reloaded = LineItemStore("u1")
    reloaded.replace_all(store.get_collection("u1", CART))
    assert [(i.product_id, i.quantity) for i in reloaded.items()] == [("A", 2)]


def test_batch_spans_collections(mongo):
    store = MongoDocumentStore(mongo)
    store.run_batch([
        BatchOp.put("u1", "cart", "A", {"product_id": "A"}),
        BatchOp.put("u1", "wishlist", "B", {"product_id": "B"}),
        BatchOp.delete("u1", "wishlist", "missing"),
    ])
    assert len(store.get_collection("u1", "cart")) == 1
    assert len(store.get_collection("u1", "wishlist")) == 1


def test_driver_errors_are_wrapped(mongo):
    class Broken:
        def __getitem__(self, name):
            raise PyMongoError("connection refused")

    store = MongoDocumentStore(Broken())
    with pytest.raises(CollaboratorError):
        store.get_collection("u1", CART)


def test_unknown_batch_operation(mongo):
    with pytest.raises(ValueError):
        MongoDocumentStore(mongo).run_batch([BatchOp("upsert", "u1", CART, "A", {})])


def test_partial_batch_keeps_earlier_writes(mongo):
    class Flaky:
        def __getitem__(self, name):
            if name == "wishlist":
                raise PyMongoError("connection reset")
            return mongo[name]

    store = MongoDocumentStore(Flaky())
    with pytest.raises(CollaboratorError) as info:
        store.run_batch([
            BatchOp.put("u1", "cart", "A", {"product_id": "A"}),
            BatchOp.put("u1", "wishlist", "B", {"product_id": "B"}),
        ])
    assert "1 of 2" in str(info.value)
    assert mongo["cart"].count_documents({}) == 1


def test_find_reads_across_users(mongo):
    store = MongoDocumentStore(mongo)
    store.put_record("u1", "reviews", "r1", {"id": "r1", "product_id": "A", "rating": 5})
    store.put_record("u2", "reviews", "r2", {"id": "r2", "product_id": "A", "rating": 3})
    store.put_record("u2", "reviews", "r3", {"id": "r3", "product_id": "B", "rating": 1})
    assert sorted(r["id"] for r in store.find("reviews", product_id="A")) == ["r1", "r2"]


def test_catalog_lookup_by_object_id_or_string_id(mongo):
    oid = ObjectId()
    mongo[PRODUCTS].insert_many([
        {"_id": oid, "name": "Headphones", "price": 59.99, "stock": 4},
        {"_id": "sku-1", "name": "Cable", "price": 4.5},
    ])
    catalog = MongoCatalog(mongo)
    product = catalog.get_product(str(oid))
    assert (product.id, product.price) == (str(oid), 59.99)
    assert catalog.get_product("sku-1").name == "Cable"
    assert catalog.get_product("missing") is None


def test_catalog_skips_malformed_products(mongo):
    mongo[PRODUCTS].insert_one({"_id": "bad", "name": "No price"})
    assert MongoCatalog(mongo).get_product("bad") is None


def test_catalog_rating_update(mongo):
    mongo[PRODUCTS].insert_one({"_id": "sku-1", "name": "Cable", "price": 4.5})
    catalog = MongoCatalog(mongo)
    catalog.set_rating("sku-1", RatingSummary(4.5, 2))
    product = catalog.get_product("sku-1")
    assert (product.rating, product.review_count) == (4.5, 2)


def test_catalog_errors_are_wrapped():
    class Broken:
        def __getitem__(self, name):
            raise PyMongoError("connection refused")

    with pytest.raises(CollaboratorError):
        MongoCatalog(Broken()).get_product("sku-1")
