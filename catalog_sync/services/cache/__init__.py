"""
Catalog Cache Services

Entity store plus the request-coalescing paginated fetch cache on top of it.
"""

from .entity_store import EntityStore
from .paginated_cache import PaginatedFetchCache

__all__ = ["EntityStore", "PaginatedFetchCache"]
