import os
import logging
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from . import config
from .addresses import AddressBook
from .checkout import CheckoutService
from .collaborators import DocumentStore, PaymentProvider, ProductCatalog, StaticIdentity, persist
from .compare import CompareSet
from .database import MongoCatalog, MongoDocumentStore, db
from .errors import RETRY_MESSAGE, CollaboratorError, ErrorKind, Result
from .line_items import LineItemStore, Transfer, WishlistStore
from .notifications import NOTIFICATIONS, order_status_notification
from .orders import OrderHistory, reorder
from .payments import MockPaymentProvider
from .pricing import PricingEngine
from .reviews import ReviewBook, rating_summary
from .schemas import AddressInput, AddressPatch, CurrentUser, Order, PaymentMethod, Product, Review, ShippingInfo

config.configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Storefront API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

STATUS_CODES = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_TRANSITION: 409,
    ErrorKind.NOT_CANCELLABLE: 409,
    ErrorKind.LIMIT_REACHED: 409,
    ErrorKind.ALREADY_PRESENT: 409,
    ErrorKind.MISSING_REASON: 400,
    ErrorKind.VALIDATION: 400,
}

# ---------------------- Dependencies ----------------------

_payments = MockPaymentProvider()


def get_store() -> DocumentStore:
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return MongoDocumentStore(db)


def get_catalog() -> ProductCatalog:
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return MongoCatalog(db)


def get_payments() -> PaymentProvider:
    return _payments


def get_pricing() -> PricingEngine:
    return PricingEngine()


def current_user(x_user_id: str = Header(...), x_user_email: Optional[str] = Header(None)) -> CurrentUser:
    if not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Please sign in to continue")
    return CurrentUser(id=x_user_id, email=x_user_email or None)


def require_admin(x_admin_key: str = Header(None)):
    if x_admin_key != config.ADMIN_KEY:
        raise HTTPException(401, "Unauthorized")


# ---------------------- Utilities ----------------------

@app.exception_handler(CollaboratorError)
def collaborator_error(request: Request, exc: CollaboratorError):
    logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": RETRY_MESSAGE})


def unwrap(res: Result):
    if not res.ok:
        raise HTTPException(STATUS_CODES[res.error.kind], res.error.message)
    return res.value


def load(store: DocumentStore, user_id: str, cls):
    state = cls(user_id)
    state.replace_all(store.get_collection(user_id, cls.collection))
    return state


def save(store: DocumentStore, state, res: Result):
    value = unwrap(res)
    persist(store, state.user_id, state.collection, res.changes)
    return value


def save_transfer(store: DocumentStore, user_id: str, source: Optional[str], res: Result) -> Transfer:
    transfer: Transfer = unwrap(res)
    persist(store, user_id, LineItemStore.collection, transfer.target)
    if source:
        persist(store, user_id, source, transfer.source)
    return transfer


def cart_view(cart: LineItemStore, pricing: PricingEngine):
    return {
        "items": [i.record() for i in cart.items()],
        "summary": pricing.quote(cart.items()).as_dict(),
    }


def lookup(catalog: ProductCatalog, product_id: str) -> Product:
    product = catalog.get_product(product_id)
    if product is None:
        raise HTTPException(404, "Product not found")
    return product


def publish_status(store: DocumentStore, order: Order):
    note = order_status_notification(order)
    try:
        store.put_record(order.user_id, NOTIFICATIONS, note.id, note.record())
    except CollaboratorError:
        logger.exception("notification for order %s not written", order.order_number)


def refresh_rating(store: DocumentStore, catalog: ProductCatalog, product_id: str):
    try:
        reviews = [Review.model_validate(r) for r in store.find(ReviewBook.collection, product_id=product_id)]
        catalog.set_rating(product_id, rating_summary(reviews))
    except CollaboratorError:
        logger.exception("rating of product %s not refreshed", product_id)


# ---------------------- Root & Health ----------------------

@app.get("/")
def read_root():
    return {"message": "Storefront API running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if config.DATABASE_URL else "❌ Not Set",
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        if db is not None:
            response["database"] = "✅ Available"
            response["database_name"] = db.name
            response["connection_status"] = "Connected"
            try:
                response["collections"] = db.list_collection_names()
                response["database"] = "✅ Connected & Working"
            except Exception as e:
                response["database"] = f"⚠️ Connected but Error: {str(e)[:80]}"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"
    return response


# ---------------------- Cart ----------------------

class AddToCartBody(BaseModel):
    product_id: str
    quantity: int = 1


class QuantityBody(BaseModel):
    quantity: int


@app.get("/cart")
def get_cart(user: CurrentUser = Depends(current_user), store: DocumentStore = Depends(get_store),
             pricing: PricingEngine = Depends(get_pricing)):
    return cart_view(load(store, user.id, LineItemStore), pricing)


@app.get("/cart/summary")
def cart_summary(user: CurrentUser = Depends(current_user), store: DocumentStore = Depends(get_store),
                 pricing: PricingEngine = Depends(get_pricing)):
    return pricing.quote(load(store, user.id, LineItemStore).items()).as_dict()


@app.post("/cart/items")
def add_to_cart(body: AddToCartBody, user: CurrentUser = Depends(current_user),
                store: DocumentStore = Depends(get_store), catalog: ProductCatalog = Depends(get_catalog),
                pricing: PricingEngine = Depends(get_pricing)):
    product = lookup(catalog, body.product_id)
    cart = load(store, user.id, LineItemStore)
    save(store, cart, cart.upsert(product, body.quantity))
    return cart_view(cart, pricing)


@app.put("/cart/items/{product_id}")
def update_quantity(product_id: str, body: QuantityBody, user: CurrentUser = Depends(current_user),
                    store: DocumentStore = Depends(get_store), pricing: PricingEngine = Depends(get_pricing)):
    cart = load(store, user.id, LineItemStore)
    save(store, cart, cart.set_quantity(product_id, body.quantity))
    return cart_view(cart, pricing)


@app.delete("/cart/items/{product_id}")
def remove_from_cart(product_id: str, user: CurrentUser = Depends(current_user),
                     store: DocumentStore = Depends(get_store), pricing: PricingEngine = Depends(get_pricing)):
    cart = load(store, user.id, LineItemStore)
    save(store, cart, cart.remove(product_id))
    return cart_view(cart, pricing)


@app.delete("/cart")
def clear_cart(user: CurrentUser = Depends(current_user), store: DocumentStore = Depends(get_store)):
    cart = load(store, user.id, LineItemStore)
    removed = save(store, cart, cart.clear())
    return {"removed": removed}


# ---------------------- Wishlist ----------------------

class ProductBody(BaseModel):
    product_id: str


class MoveBody(BaseModel):
    product_ids: Optional[List[str]] = None


@app.get("/wishlist")
def get_wishlist(user: CurrentUser = Depends(current_user), store: DocumentStore = Depends(get_store)):
    wishlist = load(store, user.id, WishlistStore)
    return {"items": [i.record() for i in wishlist.items()], "count": wishlist.count()}


@app.post("/wishlist/toggle")
def toggle_wishlist(body: ProductBody, user: CurrentUser = Depends(current_user),
                    store: DocumentStore = Depends(get_store), catalog: ProductCatalog = Depends(get_catalog)):
    product = lookup(catalog, body.product_id)
    wishlist = load(store, user.id, WishlistStore)
    in_wishlist = save(store, wishlist, wishlist.toggle(product))
    return {"in_wishlist": in_wishlist, "count": wishlist.count()}


@app.delete("/wishlist/{product_id}")
def remove_from_wishlist(product_id: str, user: CurrentUser = Depends(current_user),
                         store: DocumentStore = Depends(get_store)):
    wishlist = load(store, user.id, WishlistStore)
    save(store, wishlist, wishlist.remove(product_id))
    return {"ok": True}


@app.post("/wishlist/move-to-cart")
def move_wishlist_to_cart(body: MoveBody, user: CurrentUser = Depends(current_user),
                          store: DocumentStore = Depends(get_store)):
    wishlist = load(store, user.id, WishlistStore)
    cart = load(store, user.id, LineItemStore)
    transfer = save_transfer(store, user.id, WishlistStore.collection,
                             wishlist.move_to_cart(cart, body.product_ids))
    return {"moved": transfer.moved}


# ---------------------- Compare ----------------------

@app.get("/compare")
def get_compare(user: CurrentUser = Depends(current_user), store: DocumentStore = Depends(get_store)):
    compare = load(store, user.id, CompareSet)
    return {"items": [p.model_dump(mode="json") for p in compare.items()], "can_add": compare.can_add()}


@app.post("/compare")
def add_to_compare(body: ProductBody, user: CurrentUser = Depends(current_user),
                   store: DocumentStore = Depends(get_store), catalog: ProductCatalog = Depends(get_catalog)):
    product = lookup(catalog, body.product_id)
    compare = load(store, user.id, CompareSet)
    save(store, compare, compare.add(product))
    return {"items": [p.id for p in compare.items()], "can_add": compare.can_add()}


@app.delete("/compare/{product_id}")
def remove_from_compare(product_id: str, user: CurrentUser = Depends(current_user),
                        store: DocumentStore = Depends(get_store)):
    compare = load(store, user.id, CompareSet)
    save(store, compare, compare.remove(product_id))
    return {"ok": True}


@app.post("/compare/move-to-cart")
def move_compare_to_cart(user: CurrentUser = Depends(current_user), store: DocumentStore = Depends(get_store)):
    compare = load(store, user.id, CompareSet)
    cart = load(store, user.id, LineItemStore)
    transfer = save_transfer(store, user.id, CompareSet.collection, compare.move_all_to_cart(cart))
    return {"moved": transfer.moved}


# ---------------------- Addresses ----------------------

@app.get("/addresses")
def list_addresses(user: CurrentUser = Depends(current_user), store: DocumentStore = Depends(get_store)):
    return [a.record() for a in load(store, user.id, AddressBook).addresses()]


@app.post("/addresses")
def add_address(body: AddressInput, user: CurrentUser = Depends(current_user),
                store: DocumentStore = Depends(get_store)):
    book = load(store, user.id, AddressBook)
    return save(store, book, book.add(body)).record()


@app.put("/addresses/{address_id}")
def update_address(address_id: str, body: AddressPatch, user: CurrentUser = Depends(current_user),
                   store: DocumentStore = Depends(get_store)):
    book = load(store, user.id, AddressBook)
    return save(store, book, book.update(address_id, body)).record()


@app.delete("/addresses/{address_id}")
def delete_address(address_id: str, user: CurrentUser = Depends(current_user),
                   store: DocumentStore = Depends(get_store)):
    book = load(store, user.id, AddressBook)
    promoted = save(store, book, book.remove(address_id))
    return {"ok": True, "new_default": promoted.id if promoted else None}


@app.post("/addresses/{address_id}/default")
def set_default_address(address_id: str, user: CurrentUser = Depends(current_user),
                        store: DocumentStore = Depends(get_store)):
    book = load(store, user.id, AddressBook)
    return save(store, book, book.set_default(address_id)).record()


# ---------------------- Checkout & Orders ----------------------

class CheckoutBody(BaseModel):
    payment_method: PaymentMethod
    address_id: Optional[str] = None
    shipping_info: Optional[ShippingInfo] = None


class CancelBody(BaseModel):
    reason: str = ""


@app.post("/checkout")
def checkout(body: CheckoutBody, user: CurrentUser = Depends(current_user),
             store: DocumentStore = Depends(get_store), payments: PaymentProvider = Depends(get_payments),
             pricing: PricingEngine = Depends(get_pricing)):
    service = CheckoutService(store, payments, pricing)
    order = unwrap(service.checkout(StaticIdentity(user), body.payment_method,
                                    shipping_info=body.shipping_info, address_id=body.address_id))
    return order.record()


@app.get("/orders")
def list_orders(user: CurrentUser = Depends(current_user), store: DocumentStore = Depends(get_store)):
    return [o.record() for o in load(store, user.id, OrderHistory).orders()]


@app.get("/orders/{order_id}")
def get_order(order_id: str, user: CurrentUser = Depends(current_user), store: DocumentStore = Depends(get_store)):
    order = load(store, user.id, OrderHistory).get(order_id)
    if not order:
        raise HTTPException(404, "Order not found")
    return order.record()


@app.post("/orders/{order_id}/cancel")
def cancel_order(order_id: str, body: CancelBody, user: CurrentUser = Depends(current_user),
                 store: DocumentStore = Depends(get_store)):
    history = load(store, user.id, OrderHistory)
    order = save(store, history, history.cancel(order_id, body.reason, cancelled_by=user.id))
    publish_status(store, order)
    return order.record()


@app.post("/orders/{order_id}/reorder")
def reorder_items(order_id: str, user: CurrentUser = Depends(current_user),
                  store: DocumentStore = Depends(get_store)):
    order = load(store, user.id, OrderHistory).get(order_id)
    if not order:
        raise HTTPException(404, "Order not found")
    cart = load(store, user.id, LineItemStore)
    transfer = save_transfer(store, user.id, None, reorder(order, cart))
    return {"moved": transfer.moved}


# ---------------------- Admin: Orders ----------------------

@app.post("/admin/orders/{user_id}/{order_id}/advance", dependencies=[Depends(require_admin)])
def admin_advance_order(user_id: str, order_id: str, store: DocumentStore = Depends(get_store)):
    history = load(store, user_id, OrderHistory)
    order = save(store, history, history.advance(order_id))
    publish_status(store, order)
    return order.record()


@app.post("/admin/orders/{user_id}/{order_id}/cancel", dependencies=[Depends(require_admin)])
def admin_cancel_order(user_id: str, order_id: str, body: CancelBody, store: DocumentStore = Depends(get_store)):
    history = load(store, user_id, OrderHistory)
    order = save(store, history, history.cancel(order_id, body.reason, cancelled_by="admin"))
    publish_status(store, order)
    return order.record()


# ---------------------- Reviews ----------------------

class ReviewBody(BaseModel):
    product_id: str
    order_id: Optional[str] = None
    rating: int
    comment: Optional[str] = None


class ReviewPatch(BaseModel):
    rating: Optional[int] = None
    comment: Optional[str] = None


@app.get("/reviews")
def my_reviews(user: CurrentUser = Depends(current_user), store: DocumentStore = Depends(get_store)):
    return [r.record() for r in load(store, user.id, ReviewBook).reviews()]


@app.post("/reviews")
def submit_review(body: ReviewBody, user: CurrentUser = Depends(current_user),
                  store: DocumentStore = Depends(get_store), catalog: ProductCatalog = Depends(get_catalog)):
    lookup(catalog, body.product_id)
    book = load(store, user.id, ReviewBook)
    review = save(store, book, book.add(body.product_id, body.rating, body.comment, body.order_id))
    refresh_rating(store, catalog, review.product_id)
    return review.record()


@app.put("/reviews/{review_id}")
def edit_review(review_id: str, body: ReviewPatch, user: CurrentUser = Depends(current_user),
                store: DocumentStore = Depends(get_store), catalog: ProductCatalog = Depends(get_catalog)):
    book = load(store, user.id, ReviewBook)
    review = save(store, book, book.update(review_id, body.rating, body.comment))
    refresh_rating(store, catalog, review.product_id)
    return review.record()


@app.delete("/reviews/{review_id}")
def delete_review(review_id: str, user: CurrentUser = Depends(current_user),
                  store: DocumentStore = Depends(get_store), catalog: ProductCatalog = Depends(get_catalog)):
    book = load(store, user.id, ReviewBook)
    removed = save(store, book, book.remove(review_id))
    refresh_rating(store, catalog, removed.product_id)
    return {"ok": True}


# ---------------------- Notifications ----------------------

@app.get("/notifications")
def list_notifications(user: CurrentUser = Depends(current_user), store: DocumentStore = Depends(get_store)):
    notes = store.get_collection(user.id, NOTIFICATIONS)
    return sorted(notes, key=lambda n: n.get("created_at") or "", reverse=True)


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
