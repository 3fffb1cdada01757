"""
Catalog Domain Module

Products, pages, cache entries, value objects, exceptions and the
collaborator interfaces consumed by the synchronization services.
"""

from .entities import CacheEntry, PageEntry, Product
from .exceptions import (
    CatalogException,
    FieldCoercionError,
    ImageAcquisitionError,
    NetworkError,
    NotFoundError,
    PermissionDenied,
    UserCancelled,
    ValidationError,
)
from .repository_interfaces import ImageSource, ProductRepository
from .value_objects import TTL, CacheEntryStatus, CacheKey, Gender, Size

__all__ = [
    "CacheEntry",
    "CacheEntryStatus",
    "CacheKey",
    "CatalogException",
    "FieldCoercionError",
    "Gender",
    "ImageAcquisitionError",
    "ImageSource",
    "NetworkError",
    "NotFoundError",
    "PageEntry",
    "PermissionDenied",
    "Product",
    "ProductRepository",
    "Size",
    "TTL",
    "UserCancelled",
    "ValidationError",
]
