"""
Record Schemas for the Storefront

Each Pydantic model is the shape of a record kept in the document store.
Per-user collections ("cart", "wishlist", "compare", "addresses", "orders",
"reviews", "notifications") are keyed by the owning user's id; the record id
is the product id for cart/wishlist/compare entries and a generated id
otherwise.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pydantic import BaseModel, EmailStr, Field


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(ObjectId())


class Record(BaseModel):
    def record(self) -> Dict[str, Any]:
        """JSON-safe dict written to the document store."""
        return self.model_dump(mode="json")


# ---------------------- Catalog ----------------------

class Product(BaseModel):
    """
    Read-only catalog entry.

    `specifications` is free-form; by convention it may carry a
    `features` list of strings.
    """
    id: str
    name: str
    price: float = Field(..., ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    brand: str = ""
    category: str = ""
    description: str = ""
    images: List[str] = []
    rating: float = 0.0
    review_count: int = 0
    stock: int = 0
    specifications: Dict[str, Any] = {}
    featured: bool = False

    @property
    def features(self) -> List[str]:
        return list(self.specifications.get("features") or [])


class ProductSnapshot(Record):
    """Product fields denormalized at the moment an entry is added."""
    product_id: str
    name: str
    price: float = Field(..., ge=0)
    original_price: float = Field(0, ge=0)
    brand: str = ""
    category: str = ""
    images: List[str] = []
    specifications: Dict[str, Any] = {}

    @staticmethod
    def snapshot_fields(product: Product) -> Dict[str, Any]:
        return {
            "product_id": product.id,
            "name": product.name,
            "price": product.price,
            "original_price": product.original_price or product.price,
            "brand": product.brand or "",
            "category": product.category or "",
            "images": list(product.images or []),
            "specifications": dict(product.specifications or {}),
        }

    @property
    def image(self) -> Optional[str]:
        return self.images[0] if self.images else None


class LineItem(ProductSnapshot):
    quantity: int = Field(1, ge=1)
    added_at: datetime = Field(default_factory=now_utc)
    updated_at: datetime = Field(default_factory=now_utc)

    @classmethod
    def from_product(cls, product: Product, quantity: int = 1) -> "LineItem":
        return cls(**cls.snapshot_fields(product), quantity=max(int(quantity), 1))


class WishlistItem(ProductSnapshot):
    added_at: datetime = Field(default_factory=now_utc)

    @classmethod
    def from_product(cls, product: Product) -> "WishlistItem":
        return cls(**cls.snapshot_fields(product))

    def to_product(self) -> Product:
        return Product(
            id=self.product_id,
            name=self.name,
            price=self.price,
            original_price=self.original_price,
            brand=self.brand,
            category=self.category,
            images=self.images,
            specifications=self.specifications,
        )


# ---------------------- Addresses ----------------------

class AddressFields(BaseModel):
    full_name: str
    phone: str
    address: str
    city: str
    state: str
    zip_code: str
    country: str = "United States"


class AddressInput(AddressFields):
    is_default: bool = False


class AddressPatch(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    is_default: Optional[bool] = None


class Address(AddressFields, Record):
    id: str = Field(default_factory=new_id)
    user_id: str
    is_default: bool = False
    created_at: datetime = Field(default_factory=now_utc)
    updated_at: datetime = Field(default_factory=now_utc)

    def to_shipping_info(self, email: Optional[str] = None) -> "ShippingInfo":
        return ShippingInfo(**self.model_dump(include=set(AddressFields.model_fields)), email=email)


class ShippingInfo(AddressFields):
    email: Optional[EmailStr] = None


# ---------------------- Orders ----------------------

class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    CARD = "card"
    CASH_ON_DELIVERY = "cod"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"


class OrderLineItem(BaseModel):
    product_id: str
    name: str
    price: float
    quantity: int = Field(..., ge=1)
    image: Optional[str] = None


class Order(Record):
    id: str = Field(default_factory=new_id)
    user_id: str
    order_number: str
    items: List[OrderLineItem]
    subtotal: float
    shipping: float
    tax: float
    total: float
    shipping_info: ShippingInfo
    payment_method: PaymentMethod
    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_reference: Optional[str] = None
    created_at: datetime = Field(default_factory=now_utc)
    updated_at: datetime = Field(default_factory=now_utc)
    cancel_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None


# ---------------------- Reviews & Notifications ----------------------

class Review(Record):
    id: str = Field(default_factory=new_id)
    user_id: str
    product_id: str
    order_id: Optional[str] = None
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None
    created_at: datetime = Field(default_factory=now_utc)
    updated_at: datetime = Field(default_factory=now_utc)


class Notification(Record):
    id: str = Field(default_factory=new_id)
    user_id: str
    type: str
    title: str
    message: str
    order_id: Optional[str] = None
    read: bool = False
    created_at: datetime = Field(default_factory=now_utc)


class CurrentUser(BaseModel):
    id: str
    email: Optional[EmailStr] = None
    display_name: Optional[str] = None
