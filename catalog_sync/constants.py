"""
Catalog Sync Global Constants

Centralized location for all system-wide constants used across the library.
"""

from datetime import datetime, timezone

# Identity reserved for products that do not exist server-side yet
CREATION_SENTINEL = "new"

# Size and gender tokens accepted by the catalog backend
SIZES = ("XS", "S", "M", "L", "XL", "XXL")
GENDERS = ("kid", "men", "women", "unisex")
DEFAULT_GENDER = "unisex"

# Cache resource kinds
PRODUCTS_PAGE_KIND = "products:page"
PRODUCT_KIND = "product"


def get_current_timestamp() -> datetime:
    """Get current timestamp with UTC timezone.

    Returns:
        datetime: Current UTC timestamp
    """
    return datetime.now(timezone.utc)


# Application Constants
APP_NAME = "Catalog Sync"
APP_VERSION = "0.1.0"
