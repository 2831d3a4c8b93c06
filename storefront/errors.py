"""
Result values for business operations.

Expected business conditions (not found, limit reached, invalid transition,
...) are returned as a failed `Result`, never raised. Only collaborator I/O
failures propagate, wrapped in `CollaboratorError`.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    INVALID_TRANSITION = "invalid_transition"
    NOT_CANCELLABLE = "not_cancellable"
    MISSING_REASON = "missing_reason"
    LIMIT_REACHED = "limit_reached"
    ALREADY_PRESENT = "already_present"
    VALIDATION = "validation"


MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.NOT_FOUND: "The requested item could not be found",
    ErrorKind.INVALID_TRANSITION: "This order cannot move to another status",
    ErrorKind.NOT_CANCELLABLE: "Orders can only be cancelled before they ship",
    ErrorKind.MISSING_REASON: "Please provide a reason for cancelling",
    ErrorKind.LIMIT_REACHED: "You can only compare 2 products at a time",
    ErrorKind.ALREADY_PRESENT: "This product is already in the list",
    ErrorKind.VALIDATION: "Please check the details and try again",
}

RETRY_MESSAGE = "Something went wrong. Please try again."


class CollaboratorError(Exception):
    """A persistence, payment or identity collaborator failed."""

    def __init__(self, collaborator: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"{collaborator}: {message}")
        self.collaborator = collaborator
        self.cause = cause


@dataclass(frozen=True)
class Failure:
    kind: ErrorKind
    message: str

    @classmethod
    def of(cls, kind: ErrorKind, message: Optional[str] = None) -> "Failure":
        return cls(kind, message or MESSAGES[kind])


@dataclass
class Changeset:
    """Records to write back to the document store after a mutation."""
    puts: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    deletes: List[str] = field(default_factory=list)

    def put(self, record_id: str, record: Dict[str, Any]):
        if record_id in self.deletes:
            self.deletes.remove(record_id)
        self.puts[record_id] = record

    def delete(self, record_id: str):
        self.puts.pop(record_id, None)
        if record_id not in self.deletes:
            self.deletes.append(record_id)

    def merge(self, other: "Changeset") -> "Changeset":
        for rid, rec in other.puts.items():
            self.put(rid, rec)
        for rid in other.deletes:
            self.delete(rid)
        return self

    def __bool__(self) -> bool:
        return bool(self.puts or self.deletes)


@dataclass
class Result(Generic[T]):
    value: Optional[T] = None
    error: Optional[Failure] = None
    changes: Changeset = field(default_factory=Changeset)

    @classmethod
    def success(cls, value: Optional[T] = None, changes: Optional[Changeset] = None) -> "Result[T]":
        return cls(value=value, changes=changes or Changeset())

    @classmethod
    def failure(cls, kind: ErrorKind, message: Optional[str] = None) -> "Result[T]":
        return cls(error=Failure.of(kind, message))

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error else None

    def __bool__(self) -> bool:
        return self.ok
