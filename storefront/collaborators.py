"""
Contracts for the services the engine relies on but does not implement:
the document store, the product catalog, the payment provider and the
identity provider.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol

from .errors import Changeset
from .reviews import RatingSummary
from .schemas import CurrentUser, Product

Record = Dict[str, Any]
Unsubscribe = Callable[[], None]


@dataclass(frozen=True)
class BatchOp:
    kind: str  # "put" or "delete"
    user_id: str
    name: str
    record_id: str
    record: Optional[Record] = None

    @classmethod
    def put(cls, user_id: str, name: str, record_id: str, record: Record) -> "BatchOp":
        return cls("put", user_id, name, record_id, record)

    @classmethod
    def delete(cls, user_id: str, name: str, record_id: str) -> "BatchOp":
        return cls("delete", user_id, name, record_id)


class DocumentStore(Protocol):
    def get_collection(self, user_id: str, name: str) -> List[Record]:
        ...

    def put_record(self, user_id: str, name: str, record_id: str, record: Record) -> None:
        ...

    def delete_record(self, user_id: str, name: str, record_id: str) -> None:
        ...

    def subscribe(self, user_id: str, name: str, on_change: Callable[[List[Record]], None]) -> Unsubscribe:
        ...

    def run_batch(self, ops: List[BatchOp]) -> None:
        """Apply puts and deletes, all-or-nothing where the store supports it.

        Stores that may apply a prefix of the batch raise `CollaboratorError`
        when they stop part way.
        """
        ...

    def find(self, name: str, **match: Any) -> List[Record]:
        """Records of every user in `name` whose fields equal `match`."""
        ...


class PaymentStatusCode(str, Enum):
    SUCCEEDED = "succeeded"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True)
class PaymentIntent:
    id: str
    client_secret: str
    ephemeral_key: str
    customer_id: str
    amount: int
    currency: str


@dataclass(frozen=True)
class PaymentOutcome:
    status: PaymentStatusCode
    reason: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == PaymentStatusCode.SUCCEEDED


class PaymentProvider(Protocol):
    def create_payment_intent(self, amount_minor: int, currency: str) -> PaymentIntent:
        ...

    def confirm_payment(self, client_secret: str) -> PaymentOutcome:
        ...


class ProductCatalog(Protocol):
    """Read-only product data owned by the catalog service.

    The engine only pushes back the aggregate rating computed from reviews.
    """

    def get_product(self, product_id: str) -> Optional[Product]:
        ...

    def set_rating(self, product_id: str, summary: RatingSummary) -> None:
        ...


class IdentityProvider(Protocol):
    def current_user(self) -> Optional[CurrentUser]:
        ...


@dataclass
class StaticIdentity:
    """Identity already resolved by the caller (e.g. from a request header)."""
    user: Optional[CurrentUser] = field(default=None)

    def current_user(self) -> Optional[CurrentUser]:
        return self.user


def batch_ops(user_id: str, name: str, changes: Changeset) -> List[BatchOp]:
    ops = [BatchOp.put(user_id, name, rid, rec) for rid, rec in changes.puts.items()]
    ops.extend(BatchOp.delete(user_id, name, rid) for rid in changes.deletes)
    return ops


def persist(store: DocumentStore, user_id: str, name: str, changes: Changeset):
    """Write a mutation's changeset to the store as one batch."""
    if changes:
        store.run_batch(batch_ops(user_id, name, changes))
