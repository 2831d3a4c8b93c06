import pytest

from storefront.memory import InMemoryDocumentStore


@pytest.fixture
def store():
    return InMemoryDocumentStore()
