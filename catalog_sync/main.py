"""
Catalog Sync application root.

Wires the process-wide cache, the product repository and the view-facing
services together and owns their lifecycle:

    app = CatalogApp.from_settings()
    await app.start()
    feed = app.feed
    session = await app.open_editor("new")
    ...
    await app.close()
"""

from typing import List, Optional

import structlog

from .constants import APP_NAME, APP_VERSION
from .core.config import Settings, get_settings
from .core.logging import configure_logging
from .domain.catalog.repository_interfaces import ImageSource, ProductRepository
from .domain.catalog.value_objects import TTL
from .infrastructure.api.product_api import ProductApiRepository
from .services.cache.entity_store import EntityStore
from .services.cache.paginated_cache import PaginatedFetchCache
from .services.catalog.product_feed import ProductFeed
from .services.editing.edit_session import EditSession

logger = structlog.get_logger()


class CatalogApp:
    """Composition root with an explicit start/close lifecycle."""

    def __init__(
        self,
        repository: ProductRepository,
        settings: Optional[Settings] = None,
        image_source: Optional[ImageSource] = None,
    ):
        self.settings = settings or get_settings()
        self.repository = repository
        self.image_source = image_source
        self.store: Optional[EntityStore] = None
        self.cache: Optional[PaginatedFetchCache] = None
        self._feed: Optional[ProductFeed] = None
        self._sessions: List[EditSession] = []

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        image_source: Optional[ImageSource] = None,
    ) -> "CatalogApp":
        """Build an app backed by the REST API configured in settings."""
        settings = settings or get_settings()
        configure_logging(settings)
        return cls(
            ProductApiRepository.from_settings(settings),
            settings=settings,
            image_source=image_source,
        )

    @property
    def started(self) -> bool:
        return self.cache is not None

    @property
    def feed(self) -> ProductFeed:
        if self._feed is None:
            self._feed = ProductFeed(self._require_cache())
        return self._feed

    async def start(self) -> None:
        """Create the process-wide cache store."""
        if self.started:
            return

        self.store = EntityStore()
        self.cache = PaginatedFetchCache(
            self.repository,
            self.store,
            page_ttl=TTL(self.settings.PAGE_STALE_TIME_SECONDS),
            product_ttl=TTL(self.settings.PRODUCT_STALE_TIME_SECONDS),
        )
        logger.info(
            f"{APP_NAME} started",
            version=APP_VERSION,
            environment=self.settings.ENVIRONMENT,
            page_size=self.settings.PAGE_SIZE,
        )

    async def open_editor(self, product_id: str) -> EditSession:
        """Create an edit session and load its product."""
        session = EditSession(
            product_id,
            self._require_cache(),
            self.repository,
            image_source=self.image_source,
        )
        self._sessions.append(session)
        await session.open()
        return session

    def close_editor(self, session: EditSession) -> None:
        session.close()
        if session in self._sessions:
            self._sessions.remove(session)

    async def close(self) -> None:
        """Tear down sessions, the cache store and the repository client."""
        for session in list(self._sessions):
            self.close_editor(session)

        if self._feed is not None:
            self._feed.close()
            self._feed = None

        if self.cache is not None:
            self.cache.clear()
            self.cache = None

        if self.store is not None:
            self.store.clear()
            self.store = None

        close = getattr(self.repository, "close", None)
        if close is not None:
            await close()

        logger.info(f"{APP_NAME} closed")

    def _require_cache(self) -> PaginatedFetchCache:
        if self.cache is None:
            raise RuntimeError("CatalogApp.start() must be awaited first")
        return self.cache
