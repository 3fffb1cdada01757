"""
Product Feed

List-screen view over the paginated cache: the flattened product list,
a load_more() trigger for scroll-driven pagination and a refresh() that
re-fetches pages invalidated by mutations. Errors are published, not raised.
"""

from typing import List, Optional

import structlog

from ...core.observable import Observable
from ...domain.catalog.entities import Product
from ...domain.catalog.exceptions import CatalogException
from ...domain.catalog.value_objects import CacheKey
from ..cache.paginated_cache import PaginatedFetchCache

logger = structlog.get_logger()


class ProductFeed:
    """
    Observable flattened product list.

    ``products`` is recomputed from the cache whenever a page or product
    entry changes; ``stale`` turns true when cached pages were invalidated.
    """

    def __init__(self, cache: PaginatedFetchCache):
        self.cache = cache
        self.products: Observable[List[Product]] = Observable([], "products")
        self.loading: Observable[bool] = Observable(False, "loading")
        self.stale: Observable[bool] = Observable(False, "stale")
        self.error: Observable[Optional[CatalogException]] = Observable(None, "error")
        self._unsubscribe = cache.store.changes.subscribe(self._on_store_change)

    @property
    def has_more(self) -> bool:
        return self.cache.has_more

    async def load_more(self) -> bool:
        """
        Fetch the next page.

        Returns:
            True if a page with products was added, False for a no-op
            (already pending, end reached) or a failure published on ``error``
        """
        next_key = CacheKey.page(self.cache.next_page_index)
        if self.cache.is_fetching(next_key) or not self.cache.has_more:
            # Nothing to start; leave ``loading`` to the fetch that owns it
            return False

        self.loading.set(True)
        try:
            page = await self.cache.fetch_next()
        except CatalogException as e:
            logger.warning("Loading next page failed", error_code=e.error_code)
            self.error.set(e)
            return False
        finally:
            self.loading.set(False)

        self.error.set(None)
        return bool(page)

    async def refresh(self) -> List[Product]:
        """Re-fetch stale pages (or the first page when nothing is cached)."""
        self.loading.set(True)
        try:
            if self.cache.page_count == 0:
                await self.cache.fetch_page(0)
            else:
                await self.cache.refresh_stale_pages()
        except CatalogException as e:
            logger.warning("Refreshing product list failed", error_code=e.error_code)
            self.error.set(e)
        else:
            self.error.set(None)
        finally:
            self.loading.set(False)

        return self.products.value

    def close(self) -> None:
        self._unsubscribe()
        for observable in (self.products, self.loading, self.stale, self.error):
            observable.clear_listeners()

    def _on_store_change(self, key: CacheKey) -> None:
        if not (key.is_page or key.is_product):
            return
        self.products.set(self.cache.flattened())
        self.stale.set(bool(self.cache.stale_pages()))
