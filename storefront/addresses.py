"""
Saved shipping addresses for one user.

Whenever the book is non-empty exactly one address is the default. The first
address added becomes the default regardless of input; removing the default
promotes the remaining address with the earliest `created_at` (ties broken
by insertion order). Each mutator returns only the records whose stored
state actually changed.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

from .errors import Changeset, ErrorKind, Result
from .schemas import Address, AddressInput, AddressPatch, now_utc

logger = logging.getLogger(__name__)

ADDRESSES = "addresses"

REQUIRED_FIELDS = ("full_name", "phone", "address", "city", "state", "zip_code")


def _missing_fields(values: Dict[str, Any]) -> List[str]:
    return [f for f in REQUIRED_FIELDS if f in values and not str(values[f] or "").strip()]


class AddressBook:
    collection = ADDRESSES

    def __init__(self, user_id: str, addresses: Iterable[Address] = ()):
        self.user_id = user_id
        self._addresses: Dict[str, Address] = {a.id: a for a in addresses}

    def add(self, data: AddressInput) -> Result[Address]:
        missing = _missing_fields(data.model_dump())
        if missing:
            return Result.failure(ErrorKind.VALIDATION, "Please fill in: " + ", ".join(missing))
        changes = Changeset()
        make_default = data.is_default or not self._addresses
        if make_default:
            self._clear_defaults(changes)
        address = Address(user_id=self.user_id, **data.model_dump(exclude={"is_default"}), is_default=make_default)
        self._addresses[address.id] = address
        changes.put(address.id, address.record())
        logger.debug("added address %s for user %s (default=%s)", address.id, self.user_id, make_default)
        return Result.success(address, changes)

    def update(self, address_id: str, patch: AddressPatch) -> Result[Address]:
        current = self._addresses.get(address_id)
        if current is None:
            return Result.failure(ErrorKind.NOT_FOUND, "Address not found")
        fields = patch.model_dump(exclude_unset=True, exclude={"is_default"}, exclude_none=True)
        missing = _missing_fields(fields)
        if missing:
            return Result.failure(ErrorKind.VALIDATION, "Please fill in: " + ", ".join(missing))
        changes = Changeset()
        is_default = current.is_default
        if patch.is_default:
            self._clear_defaults(changes, keep=address_id)
            is_default = True
        elif patch.is_default is False and current.is_default:
            # the default can only move by choosing another address
            logger.debug("ignoring unset of default address %s for user %s", address_id, self.user_id)
        updated = current.model_copy(update={**fields, "is_default": is_default, "updated_at": now_utc()})
        self._addresses[address_id] = updated
        changes.put(address_id, updated.record())
        return Result.success(updated, changes)

    def remove(self, address_id: str) -> Result[Optional[Address]]:
        """Delete an address. The value is the newly promoted default, if any."""
        removed = self._addresses.pop(address_id, None)
        if removed is None:
            return Result.failure(ErrorKind.NOT_FOUND, "Address not found")
        changes = Changeset()
        changes.delete(address_id)
        promoted = None
        if removed.is_default and self._addresses:
            candidate = min(self._addresses.values(), key=lambda a: a.created_at)
            promoted = self._mark_default(candidate, True, changes)
            logger.info("promoted address %s to default for user %s", promoted.id, self.user_id)
        return Result.success(promoted, changes)

    def set_default(self, address_id: str) -> Result[Address]:
        target = self._addresses.get(address_id)
        if target is None:
            return Result.failure(ErrorKind.NOT_FOUND, "Address not found")
        changes = Changeset()
        self._clear_defaults(changes, keep=address_id)
        if not target.is_default:
            target = self._mark_default(target, True, changes)
        return Result.success(target, changes)

    def replace_all(self, records: Iterable[Dict[str, Any]]):
        addresses: Dict[str, Address] = {}
        for rec in records:
            try:
                address = Address.model_validate(rec)
            except ValueError:
                logger.warning("skipping malformed address record for user %s: %r", self.user_id, rec)
                continue
            addresses[address.id] = address
        self._addresses = addresses
        defaults = sum(1 for a in addresses.values() if a.is_default)
        if addresses and defaults != 1:
            logger.warning("address snapshot for user %s has %d defaults", self.user_id, defaults)

    def _clear_defaults(self, changes: Changeset, keep: Optional[str] = None):
        for address in list(self._addresses.values()):
            if address.id != keep and address.is_default:
                self._mark_default(address, False, changes)

    def _mark_default(self, address: Address, value: bool, changes: Changeset) -> Address:
        updated = address.model_copy(update={"is_default": value, "updated_at": now_utc()})
        self._addresses[address.id] = updated
        changes.put(address.id, updated.record())
        return updated

    # ---------------------- Queries ----------------------

    def get(self, address_id: str) -> Optional[Address]:
        return self._addresses.get(address_id)

    def get_default(self) -> Optional[Address]:
        for address in self._addresses.values():
            if address.is_default:
                return address
        return None

    def addresses(self) -> List[Address]:
        return list(self._addresses.values())

    def __len__(self) -> int:
        return len(self._addresses)
