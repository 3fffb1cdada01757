"""
Catalog Sync

Client-side data synchronization layer for the catalog admin app:
paginated fetch-and-cache, coordinated mutations and edit draft reconciliation.
"""

from .constants import APP_NAME, APP_VERSION, CREATION_SENTINEL

__all__ = ["APP_NAME", "APP_VERSION", "CREATION_SENTINEL"]
__version__ = APP_VERSION
