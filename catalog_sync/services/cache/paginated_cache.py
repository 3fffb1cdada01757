"""
Paginated Fetch Cache

Fetches and caches ordered pages of products and single products on top of
the EntityStore. Concurrent requests for the same key share one in-flight
task; pages flatten strictly by index, never by network completion order.
Invalidation only marks entries stale, the next access re-fetches them.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from opentelemetry import trace

from ...constants import PRODUCTS_PAGE_KIND, CREATION_SENTINEL
from ...domain.catalog.entities import PageEntry, Product
from ...domain.catalog.exceptions import CatalogException
from ...domain.catalog.repository_interfaces import ProductRepository
from ...domain.catalog.value_objects import CacheKey, TTL
from .entity_store import EntityStore

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class PaginatedFetchCache:
    """
    Request-coalescing cache for product pages and products.

    Provides fetch_page / fetch_next / fetch_by_id plus an explicit
    invalidation API used by the mutation coordinator.
    """

    def __init__(
        self,
        repository: ProductRepository,
        store: EntityStore,
        page_ttl: Optional[TTL] = None,
        product_ttl: Optional[TTL] = None,
    ):
        self.repository = repository
        self.store = store
        self.page_ttl = page_ttl or TTL.default()
        self.product_ttl = product_ttl or TTL.default()
        self._in_flight: Dict[CacheKey, Tuple[asyncio.Task, int]] = {}
        self._has_more = True

    # Pages

    @property
    def page_count(self) -> int:
        """Number of gap-free pages cached from index 0."""
        count = 0
        while self.store.contains(CacheKey.page(count)):
            count += 1
        return count

    @property
    def next_page_index(self) -> int:
        return self.page_count

    @property
    def has_more(self) -> bool:
        """False once a page came back empty (end of the catalog)."""
        return self._has_more

    async def fetch_page(self, page_index: int) -> List[Product]:
        """
        Get products for a page, from cache when fresh.

        Args:
            page_index: Zero-based page index

        Returns:
            Ordered products of the page

        Raises:
            NetworkError: If the page had to be fetched and the fetch failed
        """
        key = CacheKey.page(page_index)
        if not self.store.is_stale(key):
            logger.debug("Page cache hit", extra={"page_index": page_index})
            return self._resolve_page(self.store.get(key).value)

        return await self._coalesce(key, lambda mark: self._load_page(page_index, mark))

    async def fetch_next(self) -> Optional[List[Product]]:
        """
        Fetch the first page not cached yet.

        Returns:
            Products of the fetched page, or None when the next page is
            already being fetched or the catalog end was reached
        """
        page_index = self.next_page_index
        key = CacheKey.page(page_index)

        if key in self._in_flight:
            logger.debug("Next page already pending", extra={"page_index": page_index})
            return None

        if not self._has_more:
            return None

        return await self.fetch_page(page_index)

    def flattened(self) -> List[Product]:
        """Concatenate cached pages by index order (stale pages included)."""
        products: List[Product] = []
        for page_index in range(self.page_count):
            entry = self.store.get(CacheKey.page(page_index))
            products.extend(self._resolve_page(entry.value))
        return products

    def stale_pages(self) -> List[int]:
        return [
            page_index
            for page_index in range(self.page_count)
            if self.store.is_stale(CacheKey.page(page_index))
        ]

    async def refresh_stale_pages(self) -> List[Product]:
        """
        Re-fetch every stale cached page concurrently.

        Pages that fail keep their previous content; the first failure is
        raised after all fetches settled.
        """
        results = await asyncio.gather(
            *(self.fetch_page(page_index) for page_index in self.stale_pages()),
            return_exceptions=True,
        )

        for result in results:
            if isinstance(result, BaseException):
                raise result

        return self.flattened()

    # Products

    async def fetch_by_id(self, product_id: str) -> Product:
        """
        Get product by id, from cache when fresh.

        The creation sentinel resolves to an empty template without any
        network call.

        Raises:
            NotFoundError: If the product does not exist
            NetworkError: If the fetch failed
        """
        if product_id == CREATION_SENTINEL:
            return Product.new_template()

        key = CacheKey.product(product_id)
        if not self.store.is_stale(key):
            return self.store.get(key).value

        return await self._coalesce(key, lambda mark: self._load_product(product_id, mark))

    def peek_product(self, product_id: str) -> Optional[Product]:
        """Get the cached product without fetching (stale allowed)."""
        entry = self.store.get(CacheKey.product(product_id))
        return entry.value if entry else None

    def write_product(self, product: Product) -> None:
        """Store a server-confirmed product (mutation result)."""
        self.store.put(CacheKey.product(product.id), product, self.product_ttl)

    # Invalidation

    def invalidate_pages(self) -> int:
        """Mark every cached list page stale."""
        self._has_more = True
        count = self.store.invalidate_kind(PRODUCTS_PAGE_KIND)
        logger.info("Invalidated product pages", extra={"count": count})
        return count

    def invalidate_product(self, product_id: str) -> bool:
        """Mark the cached product stale."""
        invalidated = self.store.invalidate(CacheKey.product(product_id))
        logger.info(
            "Invalidated product",
            extra={"product_id": product_id, "cached": invalidated},
        )
        return invalidated

    def is_stale(self, key: CacheKey) -> bool:
        return self.store.is_stale(key)

    def is_fetching(self, key: CacheKey) -> bool:
        return key in self._in_flight

    # Internals

    def _coalesce(
        self, key: CacheKey, loader: Callable[[int], Awaitable]
    ) -> Awaitable:
        """
        Attach to the pending fetch for key, or start one.

        A fetch started before key was invalidated is not joined: it would
        return data the invalidation declared outdated.
        """
        pending = self._in_flight.get(key)
        if pending is not None and not self.store.invalidated_since(key, pending[1]):
            logger.debug("Joined in-flight fetch", extra={"key": str(key)})
            task = pending[0]
        else:
            mark = self.store.mark()
            task = asyncio.ensure_future(loader(mark))
            self._in_flight[key] = (task, mark)
            task.add_done_callback(lambda done, key=key: self._forget(key, done))

        # A cancelled waiter must not cancel the fetch other waiters share
        return asyncio.shield(task)

    def _forget(self, key: CacheKey, task: asyncio.Task) -> None:
        pending = self._in_flight.get(key)
        if pending is not None and pending[0] is task:
            del self._in_flight[key]

    async def _load_page(self, page_index: int, mark: int) -> List[Product]:
        with tracer.start_as_current_span("paginated_cache.load_page") as span:
            span.set_attribute("page_index", page_index)

            try:
                products = await self.repository.get_entities_by_page(page_index)
            except CatalogException as e:
                logger.warning(
                    f"Failed to fetch page {page_index}: {e}",
                    extra={"page_index": page_index, "error_code": e.error_code},
                )
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                raise

            span.set_attribute("product_count", len(products))

            if not products:
                if self.store.invalidated_since(CacheKey.page(page_index), mark):
                    # Outdated answer, the list may have grown since
                    return []
                self._drop_pages_from(page_index)
                self._has_more = False
                return []

            for product in products:
                self.store.put(
                    CacheKey.product(product.id), product, self.product_ttl, as_of=mark
                )

            page = PageEntry(page_index, tuple(product.id for product in products))
            self.store.put(page.get_key(), page, self.page_ttl, as_of=mark)

            logger.debug(
                "Fetched page",
                extra={"page_index": page_index, "product_count": len(products)},
            )
            return list(products)

    async def _load_product(self, product_id: str, mark: int) -> Product:
        with tracer.start_as_current_span("paginated_cache.load_product") as span:
            span.set_attribute("product_id", product_id)

            try:
                product = await self.repository.get_entity_by_id(product_id)
            except CatalogException as e:
                logger.warning(
                    f"Failed to fetch product {product_id}: {e}",
                    extra={"product_id": product_id, "error_code": e.error_code},
                )
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                raise

            key = CacheKey.product(product_id)
            if self.store.put(key, product, self.product_ttl, as_of=mark) is None:
                # A newer confirmed copy is cached
                return self.store.get(key).value
            return product

    def _drop_pages_from(self, page_index: int) -> None:
        """An empty page ends the catalog: evict it and every later page."""
        for key in self.store.keys(PRODUCTS_PAGE_KIND):
            if key.identity >= page_index:
                self.store.remove(key)

    def _resolve_page(self, page: PageEntry) -> List[Product]:
        products = []
        for product_id in page.product_ids:
            entry = self.store.get(CacheKey.product(product_id))
            if entry is not None:
                products.append(entry.value)
        return products

    def clear(self) -> None:
        """Forget pending fetch bookkeeping (tasks themselves are not cancelled)."""
        self._in_flight.clear()
        self._has_more = True
