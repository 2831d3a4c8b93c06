from storefront.schemas import AddressInput, Product


def make_product(pid="A", price=10.0, **kw):
    kw.setdefault("name", f"Product {pid}")
    return Product(id=pid, price=price, **kw)


def make_address(name="Jane Doe", is_default=False, **kw):
    fields = {
        "full_name": name,
        "phone": "555-1234",
        "address": "1 Main St",
        "city": "Springfield",
        "state": "CA",
        "zip_code": "90210",
        "country": "USA",
    }
    fields.update(kw)
    return AddressInput(is_default=is_default, **fields)
