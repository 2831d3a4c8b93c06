import random
from datetime import timedelta

from storefront.addresses import AddressBook
from storefront.errors import ErrorKind
from storefront.schemas import AddressInput, AddressPatch

from factories import make_address


def defaults(book):
    return [a.id for a in book.addresses() if a.is_default]


def assert_invariant(book):
    if len(book):
        assert len(defaults(book)) == 1
    else:
        assert defaults(book) == []


def test_first_address_is_default():
    book = AddressBook("u1")
    res = book.add(make_address(is_default=False))
    assert res.value.is_default
    assert res.value.user_id == "u1"
    assert book.get_default().id == res.value.id


def test_default_moves_and_promotes_back():
    book = AddressBook("u1")
    a1 = book.add(make_address("One")).value
    res = book.add(make_address("Two", is_default=True))
    a2 = res.value
    assert a2.is_default
    assert not book.get(a1.id).is_default
    # only the new address and the old default were written
    assert set(res.changes.puts) == {a1.id, a2.id}

    removed = book.remove(a2.id)
    assert removed.ok
    assert removed.value.id == a1.id
    assert book.get(a1.id).is_default
    assert removed.changes.deletes == [a2.id]
    assert set(removed.changes.puts) == {a1.id}


def test_add_non_default_leaves_others_untouched():
    book = AddressBook("u1")
    a1 = book.add(make_address("One")).value
    res = book.add(make_address("Two"))
    assert not res.value.is_default
    assert set(res.changes.puts) == {res.value.id}
    assert book.get_default().id == a1.id


def test_remove_promotes_earliest_created():
    book = AddressBook("u1")
    a1 = book.add(make_address("One")).value
    a2 = book.add(make_address("Two")).value
    a3 = book.add(make_address("Three")).value
    # make the third address the oldest
    book.replace_all([
        a1.record(),
        a2.record(),
        a3.model_copy(update={"created_at": a1.created_at - timedelta(days=1)}).record(),
    ])
    promoted = book.remove(a1.id).value
    assert promoted.id == a3.id


def test_remove_last_address_empties_book():
    book = AddressBook("u1")
    a1 = book.add(make_address()).value
    res = book.remove(a1.id)
    assert res.ok and res.value is None
    assert book.get_default() is None
    assert len(book) == 0


def test_remove_and_set_default_unknown_are_not_found():
    book = AddressBook("u1")
    assert book.remove("x").kind == ErrorKind.NOT_FOUND
    assert book.set_default("x").kind == ErrorKind.NOT_FOUND
    assert book.update("x", AddressPatch(city="Paris")).kind == ErrorKind.NOT_FOUND


def test_set_default_writes_only_changed_records():
    book = AddressBook("u1")
    a1 = book.add(make_address("One")).value
    a2 = book.add(make_address("Two")).value
    a3 = book.add(make_address("Three")).value
    res = book.set_default(a3.id)
    assert res.value.is_default
    assert set(res.changes.puts) == {a1.id, a3.id}
    assert a2.id not in res.changes.puts
    again = book.set_default(a3.id)
    assert not again.changes


def test_update_fields_and_default_propagation():
    book = AddressBook("u1")
    a1 = book.add(make_address("One")).value
    a2 = book.add(make_address("Two")).value
    res = book.update(a2.id, AddressPatch(city="Paris", is_default=True))
    assert res.value.city == "Paris"
    assert res.value.is_default
    assert not book.get(a1.id).is_default


def test_update_cannot_unset_the_only_default():
    book = AddressBook("u1")
    a1 = book.add(make_address("One")).value
    res = book.update(a1.id, AddressPatch(is_default=False))
    assert res.value.is_default


def test_blank_required_fields_are_rejected():
    book = AddressBook("u1")
    res = book.add(make_address(city=" "))
    assert res.kind == ErrorKind.VALIDATION
    assert len(book) == 0
    a1 = book.add(make_address()).value
    assert book.update(a1.id, AddressPatch(phone="")).kind == ErrorKind.VALIDATION


def test_invariant_holds_across_random_operations():
    rng = random.Random(7)
    book = AddressBook("u1")
    for step in range(300):
        ids = [a.id for a in book.addresses()]
        op = rng.choice(["add", "add", "update", "remove", "set_default"])
        if op == "add" or not ids:
            book.add(make_address(f"Person {step}", is_default=rng.random() < 0.4))
        elif op == "update":
            book.update(rng.choice(ids), AddressPatch(is_default=rng.choice([True, False, None])))
        elif op == "remove":
            book.remove(rng.choice(ids))
        else:
            book.set_default(rng.choice(ids))
        assert_invariant(book)


def test_state_is_required_and_country_defaults():
    book = AddressBook("u1")
    res = book.add(make_address(state=""))
    assert res.kind == ErrorKind.VALIDATION
    assert "state" in res.error.message
    fields = make_address().model_dump(exclude={"country"})
    assert book.add(AddressInput(**fields)).value.country == "United States"
