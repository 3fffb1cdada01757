"""
Catalog Value Objects

Immutable value objects for the catalog cache and product fields.
Provides type safety and validation for cache keys, TTLs and enumerated tokens.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Union

from ...constants import PRODUCT_KIND, PRODUCTS_PAGE_KIND


class CacheEntryStatus(str, Enum):
    """Cache entry status enumeration."""

    ACTIVE = "active"
    EXPIRED = "expired"
    INVALIDATED = "invalidated"


class Size(str, Enum):
    """Size tokens a product can be offered in."""

    XS = "XS"
    S = "S"
    M = "M"
    L = "L"
    XL = "XL"
    XXL = "XXL"


class Gender(str, Enum):
    """Target gender of a product (single select)."""

    KID = "kid"
    MEN = "men"
    WOMEN = "women"
    UNISEX = "unisex"


@dataclass(frozen=True)
class CacheKey:
    """
    Immutable compound cache key.

    ``kind`` names the resource, ``identity`` is a product id or a page index.
    """

    kind: str
    identity: Union[str, int]

    def __post_init__(self) -> None:
        """Validate cache key parts."""
        if not self.kind:
            raise ValueError("Cache key kind cannot be empty")

        if isinstance(self.identity, bool):
            raise ValueError("Cache key identity must be a string or an integer")

        if isinstance(self.identity, int):
            if self.identity < 0:
                raise ValueError("Page index cannot be negative")
        elif isinstance(self.identity, str):
            if not self.identity:
                raise ValueError("Cache key identity cannot be empty")
        else:
            raise ValueError("Cache key identity must be a string or an integer")

    @classmethod
    def page(cls, page_index: int) -> "CacheKey":
        """Create products page cache key."""
        return cls(PRODUCTS_PAGE_KIND, page_index)

    @classmethod
    def product(cls, product_id: str) -> "CacheKey":
        """Create single product cache key."""
        return cls(PRODUCT_KIND, str(product_id))

    @property
    def is_page(self) -> bool:
        return self.kind == PRODUCTS_PAGE_KIND

    @property
    def is_product(self) -> bool:
        return self.kind == PRODUCT_KIND

    def __str__(self) -> str:
        return f"{self.kind}:{self.identity}"


@dataclass(frozen=True)
class TTL:
    """
    Time To Live value object for cache staleness.

    Provides type-safe TTL configuration with validation.
    """

    seconds: int

    def __post_init__(self) -> None:
        """Validate TTL value."""
        if self.seconds <= 0:
            raise ValueError("TTL must be positive")
        if self.seconds > 86400 * 365:  # Max 1 year
            raise ValueError("TTL too large (max 1 year)")

    @classmethod
    def minutes(cls, minutes: int) -> "TTL":
        """Create TTL from minutes."""
        return cls(minutes * 60)

    @classmethod
    def hours(cls, hours: int) -> "TTL":
        """Create TTL from hours."""
        return cls(hours * 3600)

    @classmethod
    def default(cls) -> "TTL":
        """Default staleness window (1 hour)."""
        return cls.hours(1)
