"""
Catalog Domain Entities

Core domain entities for the catalog: the managed Product, the Page Entry
returned by one paginated fetch, and the Cache Entry wrapping either of them.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, FrozenSet, Generic, Optional, Tuple, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from ...constants import CREATION_SENTINEL, SIZES, get_current_timestamp
from .value_objects import CacheEntryStatus, CacheKey, Gender, Size, TTL

V = TypeVar("V")


class Product(BaseModel):
    """
    Product entity.

    Immutable snapshot of one catalog product. Drafts are derived with
    ``model_copy(update=...)``; the cached snapshot itself is never mutated.
    Price and stock are not range-checked here so that a draft can carry a
    flagged negative value until the user corrects it.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default=CREATION_SENTINEL, min_length=1)
    title: str = ""
    slug: str = ""
    description: str = ""
    price: Decimal = Decimal("0")
    stock: int = 0
    sizes: FrozenSet[Size] = Field(default_factory=frozenset)
    gender: Gender = Gender.UNISEX
    images: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()

    @field_validator("description", mode="before")
    @classmethod
    def _none_description(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_serializer("sizes")
    def _serialize_sizes(self, sizes: FrozenSet[Size]) -> list:
        # Stable order for the wire: catalog size order, not set order
        return [size.value for size in sorted(sizes, key=lambda s: SIZES.index(s.value))]

    @classmethod
    def new_template(cls) -> "Product":
        """Create the empty product used when creating a new entry."""
        return cls(id=CREATION_SENTINEL)

    @property
    def is_new(self) -> bool:
        """Check if product does not exist server-side yet."""
        return self.id == CREATION_SENTINEL

    def get_key(self) -> CacheKey:
        """Get cache key for this product."""
        return CacheKey.product(self.id)


@dataclass(frozen=True)
class PageEntry:
    """
    Page entry value.

    The ordered product ids one paginated fetch returned for ``page_index``.
    """

    page_index: int
    product_ids: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        """Validate page index."""
        if self.page_index < 0:
            raise ValueError("Page index cannot be negative")

    @property
    def is_empty(self) -> bool:
        return len(self.product_ids) == 0

    def get_key(self) -> CacheKey:
        """Get cache key for this page."""
        return CacheKey.page(self.page_index)


@dataclass
class CacheEntry(Generic[V]):
    """
    Cache entry entity.

    Wraps a cached value with its fetch timestamp and staleness threshold.
    An entry is stale once its TTL elapsed or after explicit invalidation;
    stale entries keep serving their value until a re-fetch replaces it.
    """

    key: CacheKey
    value: V
    ttl: TTL
    fetched_at: datetime = field(default_factory=get_current_timestamp)
    invalidated: bool = False

    @classmethod
    def create(
        cls, key: CacheKey, value: V, ttl: TTL, now: Optional[datetime] = None
    ) -> "CacheEntry[V]":
        """Create fresh cache entry."""
        return cls(key=key, value=value, ttl=ttl, fetched_at=now or get_current_timestamp())

    @property
    def expires_at(self) -> datetime:
        return self.fetched_at + timedelta(seconds=self.ttl.seconds)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Check if the TTL elapsed."""
        return (now or get_current_timestamp()) >= self.expires_at

    def is_stale(self, now: Optional[datetime] = None) -> bool:
        """Check if the entry needs a re-fetch on next access."""
        return self.invalidated or self.is_expired(now)

    def invalidate(self) -> None:
        """Mark entry stale without dropping its value."""
        self.invalidated = True

    def get_status(self, now: Optional[datetime] = None) -> CacheEntryStatus:
        """Get current status of cache entry."""
        if self.invalidated:
            return CacheEntryStatus.INVALIDATED
        elif self.is_expired(now):
            return CacheEntryStatus.EXPIRED
        else:
            return CacheEntryStatus.ACTIVE
