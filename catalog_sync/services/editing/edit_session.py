"""
Edit Session

State machine behind one product edit screen:

    LOADING  -> READY       base product fetched (or new-product template)
    READY    -> SUBMITTING  submit() started, further submits rejected
    SUBMITTING -> READY     success: draft rebased onto the confirmed product
                            failure: draft untouched, error published

Fields stay editable while SUBMITTING. ``close()`` is the only way out; any
fetch or submit completing after it is discarded.
"""

from enum import Enum
from typing import Any, Optional

import structlog

from ...core.observable import Observable
from ...domain.catalog.entities import Product
from ...domain.catalog.exceptions import CatalogException, NotFoundError
from ...domain.catalog.repository_interfaces import ImageSource, ProductRepository
from ..cache.paginated_cache import PaginatedFetchCache
from ..forms.form_reconciler import FormStateReconciler
from ..mutations.mutation_coordinator import MutationCoordinator

logger = structlog.get_logger()


class SessionState(str, Enum):
    """Edit session states."""

    LOADING = "loading"
    READY = "ready"
    SUBMITTING = "submitting"


class SessionNotReadyError(RuntimeError):
    """Raised when the draft is edited before the base product loaded."""


class EditSession:
    """
    Edit session for a single product.

    Exposes observables for the rendering collaborator: ``state``,
    ``pending``, ``error``, ``missing`` and ``draft``.
    """

    def __init__(
        self,
        product_id: str,
        cache: PaginatedFetchCache,
        repository: ProductRepository,
        image_source: Optional[ImageSource] = None,
    ):
        self.cache = cache
        self.image_source = image_source
        self.coordinator = MutationCoordinator(repository, cache, product_id)
        self.reconciler: Optional[FormStateReconciler] = None

        self.state: Observable[SessionState] = Observable(SessionState.LOADING, "state")
        self.pending: Observable[bool] = Observable(False, "pending")
        self.error: Observable[Optional[CatalogException]] = Observable(None, "error")
        self.missing: Observable[bool] = Observable(False, "missing")
        self.draft: Observable[Optional[Product]] = Observable(None, "draft")

        self._closed = False
        self._log = logger.bind(product_id=product_id)

    @property
    def product_id(self) -> str:
        """Working product id; rebound to the server id after a create."""
        return self.coordinator.product_id

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def current_draft(self) -> Product:
        return self._require_reconciler().draft

    @property
    def field_errors(self) -> dict:
        return dict(self._require_reconciler().field_errors)

    # Loading

    async def open(self) -> Optional[Product]:
        """
        Load the base product and create the draft.

        Can be called again to retry after a failure. Failures are published
        on ``error`` (``missing`` for unknown products) and return None.
        """
        if self.reconciler is not None:
            return self.reconciler.base

        self.error.set(None)
        try:
            product = await self.cache.fetch_by_id(self.product_id)
        except NotFoundError as e:
            if not self._closed:
                self.missing.set(True)
                self.error.set(e)
            return None
        except CatalogException as e:
            if not self._closed:
                self.error.set(e)
            return None

        if self._closed:
            self._log.debug("Discarding product loaded after session close")
            return None

        if self.reconciler is not None:
            # A concurrent open() finished first
            return self.reconciler.base

        self.reconciler = FormStateReconciler(product)
        self.reconciler.changes.subscribe(self.draft.set)
        self.draft.set(product)
        self.state.set(SessionState.READY)
        self._log.info("Edit session ready", is_new=product.is_new)
        return product

    # Field setters

    def set_field(self, name: str, value: Any) -> Product:
        return self._require_reconciler().set_field(name, value)

    def toggle_size(self, token: Any) -> Product:
        return self._require_reconciler().toggle_size(token)

    def select_gender(self, token: Any) -> Product:
        return self._require_reconciler().select_gender(token)

    async def add_images(self, source: Optional[ImageSource] = None) -> int:
        """Acquire images from the source and append them to the draft."""
        reconciler = self._require_reconciler()
        source = source or self.image_source
        if source is None:
            raise ValueError("No image source configured for this session")
        return await reconciler.acquire_images(source)

    # Submitting

    async def submit(self) -> Optional[Product]:
        """
        Submit the current draft.

        Returns:
            Server-confirmed product, or None when the submit was rejected
            (already pending, not loaded, closed) or failed (see ``error``)
        """
        if self._closed or self.reconciler is None:
            self._log.info("Submit ignored, session not ready", closed=self._closed)
            return None

        if self.coordinator.pending:
            self._log.info("Submit ignored, another submit is pending")
            return None

        submitted = self.reconciler.draft
        self.error.set(None)
        self.pending.set(True)
        self.state.set(SessionState.SUBMITTING)

        try:
            saved = await self.coordinator.submit(submitted)
        except CatalogException as e:
            if not self._closed:
                self.error.set(e)
                self._settle()
            return None

        if self._closed:
            # The reconciler this result would rebase no longer exists
            self._log.info("Discarding submit result after session close")
            return None

        if saved is not None:
            self.reconciler.rebase(saved, submitted=submitted)
        self._settle()
        return saved

    def _settle(self) -> None:
        self.pending.set(False)
        self.state.set(SessionState.READY)

    # Teardown

    def close(self) -> None:
        """Tear the session down. Pending work is not aborted, its results are dropped."""
        if self._closed:
            return
        self._closed = True
        if self.reconciler is not None:
            self.reconciler.discard()
        for observable in (self.state, self.pending, self.error, self.missing, self.draft):
            observable.clear_listeners()
        self._log.info("Edit session closed", pending=self.coordinator.pending)

    def _require_reconciler(self) -> FormStateReconciler:
        if self.reconciler is None:
            raise SessionNotReadyError("Edit session has not loaded its product yet")
        return self.reconciler
