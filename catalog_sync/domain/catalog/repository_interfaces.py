"""
Catalog Repository Interfaces

Abstract interfaces for the external collaborators the core consumes:
the product backend and the user-interactive image source.
"""

from abc import ABC, abstractmethod
from typing import List

from .entities import Product


class ProductRepository(ABC):
    """
    Abstract repository for product persistence.

    Implementations raise ``NetworkError`` on transport failure,
    ``NotFoundError`` for unknown ids and ``ValidationError`` when the
    backend rejects a product.
    """

    @abstractmethod
    async def get_entities_by_page(self, page_index: int) -> List[Product]:
        """Get ordered products for a zero-based page index."""
        pass

    @abstractmethod
    async def get_entity_by_id(self, product_id: str) -> Product:
        """Get product by id."""
        pass

    @abstractmethod
    async def upsert_entity(self, product: Product) -> Product:
        """Create product when its id is the creation sentinel, else update it."""
        pass


class ImageSource(ABC):
    """
    Abstract user-interactive image source (camera or photo library).

    May raise ``UserCancelled`` or ``PermissionDenied``.
    """

    @abstractmethod
    async def acquire_images(self) -> List[str]:
        """Acquire ordered image references (local pending-upload handles)."""
        pass
