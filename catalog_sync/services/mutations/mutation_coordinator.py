"""
Mutation Coordinator

Submits create/update operations for one edit session, rebinds the session's
working product id to the server-assigned one and invalidates the cache
regions the mutation may have changed.
"""

from enum import Enum
from typing import Optional

import structlog
from opentelemetry import trace

from ...constants import CREATION_SENTINEL
from ...domain.catalog.entities import Product
from ...domain.catalog.exceptions import CatalogException
from ...domain.catalog.repository_interfaces import ProductRepository
from ..cache.paginated_cache import PaginatedFetchCache

logger = structlog.get_logger()
tracer = trace.get_tracer(__name__)


class SubmitOutcome(str, Enum):
    """Result of a submit attempt."""

    CREATED = "created"
    UPDATED = "updated"
    REJECTED = "rejected"  # another submit was already in flight


class MutationCoordinator:
    """
    Write-through coordinator owned by a single edit session.

    At most one mutation is in flight at a time; a concurrent submit is
    rejected immediately, never queued.
    """

    def __init__(
        self,
        repository: ProductRepository,
        cache: PaginatedFetchCache,
        product_id: str = CREATION_SENTINEL,
    ):
        self.repository = repository
        self.cache = cache
        self._product_id = product_id
        self._pending = False
        self.last_outcome: Optional[SubmitOutcome] = None

    @property
    def product_id(self) -> str:
        """Current working id of the session (rebound after a create)."""
        return self._product_id

    @property
    def pending(self) -> bool:
        return self._pending

    @property
    def is_create(self) -> bool:
        return self._product_id == CREATION_SENTINEL

    def _claim(self) -> bool:
        """Claim the single submit slot. Returns False if already taken."""
        if self._pending:
            self.last_outcome = SubmitOutcome.REJECTED
            logger.info(
                "Submit rejected, another one is in flight",
                product_id=self._product_id,
            )
            return False
        self._pending = True
        return True

    async def submit(self, draft: Product) -> Optional[Product]:
        """
        Create or update the product behind the draft.

        Args:
            draft: Draft to persist; it is sent with the session's working id

        Returns:
            Server-confirmed product, or None when rejected because another
            submit is in flight

        Raises:
            ValidationError: If the server rejected the draft
            NetworkError: If the request failed
        """
        if not self._claim():
            return None

        try:
            return await self._run(draft)
        finally:
            self._pending = False

    async def _run(self, draft: Product) -> Product:
        """Send the draft and apply the confirmed result."""
        creating = self.is_create
        payload = draft.model_copy(update={"id": self._product_id})

        with tracer.start_as_current_span("mutation_coordinator.submit") as span:
            span.set_attribute("product_id", self._product_id)
            span.set_attribute("create", creating)

            try:
                saved = await self.repository.upsert_entity(payload)
            except CatalogException as e:
                # Failed submits leave every cache region untouched
                logger.warning(
                    "Submit failed",
                    product_id=self._product_id,
                    error_code=e.error_code,
                    error=e.message,
                )
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                raise

            self._product_id = saved.id
            self.last_outcome = (
                SubmitOutcome.CREATED if creating else SubmitOutcome.UPDATED
            )

            self.cache.write_product(saved)
            self.cache.invalidate_pages()
            self.cache.invalidate_product(saved.id)

            logger.info(
                "Submit succeeded",
                product_id=saved.id,
                outcome=self.last_outcome.value,
            )
            return saved
