"""
Main pytest configuration for catalog sync tests.

In-memory fakes for the external collaborators (product backend, image
source) plus fixtures wiring them into the cache and services.
"""

import asyncio
import os
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

# Set test environment variables before importing library modules
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "DEBUG"

from catalog_sync.constants import CREATION_SENTINEL
from catalog_sync.domain.catalog.entities import Product
from catalog_sync.domain.catalog.exceptions import NotFoundError
from catalog_sync.domain.catalog.repository_interfaces import (
    ImageSource,
    ProductRepository,
)
from catalog_sync.services.cache.entity_store import EntityStore
from catalog_sync.services.cache.paginated_cache import PaginatedFetchCache


def make_product(product_id: str, **fields) -> Product:
    """Build a product with sensible defaults."""
    defaults = {
        "title": f"Product {product_id}",
        "slug": f"product_{product_id}",
        "price": "10",
        "stock": 5,
    }
    defaults.update(fields)
    return Product(id=product_id, **defaults)


class FakeProductRepository(ProductRepository):
    """
    Scriptable in-memory product backend.

    ``pages`` maps page index to products; ``gates`` holds per-page events
    that block a page fetch until set, to control completion order.
    ``failures`` queues exceptions raised by the next calls of an operation.
    """

    def __init__(self, pages: Optional[Dict[int, List[Product]]] = None):
        self.pages: Dict[int, List[Product]] = pages or {}
        self.products: Dict[str, Product] = {
            product.id: product
            for page in self.pages.values()
            for product in page
        }
        self.gates: Dict[int, asyncio.Event] = {}
        self.upsert_gate: Optional[asyncio.Event] = None
        self.failures: Dict[str, List[Exception]] = {}
        self.page_calls: List[int] = []
        self.get_calls: List[str] = []
        self.upserts: List[Product] = []
        self._next_id = 1

    def fail_next(self, operation: str, error: Exception) -> None:
        self.failures.setdefault(operation, []).append(error)

    def _maybe_fail(self, operation: str) -> None:
        queued = self.failures.get(operation)
        if queued:
            raise queued.pop(0)

    async def get_entities_by_page(self, page_index: int) -> List[Product]:
        self.page_calls.append(page_index)
        gate = self.gates.get(page_index)
        if gate is not None:
            await gate.wait()
        else:
            await asyncio.sleep(0)
        self._maybe_fail("page")
        return list(self.pages.get(page_index, []))

    async def get_entity_by_id(self, product_id: str) -> Product:
        self.get_calls.append(product_id)
        await asyncio.sleep(0)
        self._maybe_fail("get")
        if product_id not in self.products:
            raise NotFoundError(product_id)
        return self.products[product_id]

    async def upsert_entity(self, product: Product) -> Product:
        self.upserts.append(product)
        if self.upsert_gate is not None:
            await self.upsert_gate.wait()
        else:
            await asyncio.sleep(0)
        self._maybe_fail("upsert")

        if product.id == CREATION_SENTINEL:
            saved = product.model_copy(update={"id": f"srv-{self._next_id}"})
            self._next_id += 1
        else:
            saved = product
        self.products[saved.id] = saved
        return saved


class FakeImageSource(ImageSource):
    """Image source that resolves when its gate opens."""

    def __init__(self, images: Optional[List[str]] = None, error: Optional[Exception] = None):
        self.images = images or []
        self.error = error
        self.gate = asyncio.Event()
        self.gate.set()
        self.calls = 0

    async def acquire_images(self) -> List[str]:
        self.calls += 1
        await self.gate.wait()
        if self.error is not None:
            raise self.error
        return list(self.images)


class FakeClock:
    """Manually advanced UTC clock for staleness tests."""

    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sample_pages():
    """Two pages: [a, b] and [c]."""
    return {
        0: [make_product("a"), make_product("b")],
        1: [make_product("c")],
    }


@pytest.fixture
def repository(sample_pages):
    return FakeProductRepository(sample_pages)


@pytest.fixture
def store(clock):
    return EntityStore(clock=clock)


@pytest.fixture
def cache(repository, store):
    return PaginatedFetchCache(repository, store)
