"""
Product Mapper

Translates between the catalog REST payloads and Product entities.
The backend stores bare image file names; the app works with full URLs.
"""

import logging
from typing import Any, Dict

from pydantic import ValidationError as PydanticValidationError

from ...constants import SIZES
from ...domain.catalog.entities import Product
from ...domain.catalog.exceptions import CatalogException

logger = logging.getLogger(__name__)

IMAGE_PATH = "/files/product/"


def image_url(base_url: str, image: str) -> str:
    """Expand a stored file name to a URL; URLs and local handles pass through."""
    if is_remote_image(image) or is_local_image(image):
        return image
    return f"{base_url}{IMAGE_PATH}{image}"


def image_name(base_url: str, image: str) -> str:
    """Reduce a catalog image URL back to its stored file name."""
    prefix = f"{base_url}{IMAGE_PATH}"
    if image.startswith(prefix):
        return image[len(prefix):]
    if is_remote_image(image) and IMAGE_PATH in image:
        return image.rsplit("/", 1)[-1]
    return image


def is_remote_image(image: str) -> bool:
    return image.startswith(("http://", "https://"))


def is_local_image(image: str) -> bool:
    """Local pending-upload handle (file URI or absolute path)."""
    return image.startswith(("file://", "/"))


def from_api(payload: Dict[str, Any], base_url: str) -> Product:
    """
    Build a Product from an API payload.

    Raises:
        CatalogException: If the payload does not describe a valid product
    """
    if not isinstance(payload, dict):
        raise _malformed("Expected a product object", {"payload_type": type(payload).__name__})

    data = dict(payload)
    try:
        sizes = list(data.get("sizes") or [])
        unknown = [size for size in sizes if size not in SIZES]
        if unknown:
            logger.warning(
                "Ignoring unknown size tokens",
                extra={"product_id": data.get("id"), "sizes": unknown},
            )
        data["sizes"] = [size for size in sizes if size in SIZES]
        data["images"] = [image_url(base_url, image) for image in data.get("images") or []]
        data["tags"] = data.get("tags") or []

        fields = set(Product.model_fields)
        return Product(**{key: value for key, value in data.items() if key in fields})
    except PydanticValidationError as e:
        raise _malformed(
            "Malformed product payload",
            {"product_id": data.get("id"), "errors": e.errors()},
        ) from e
    except (TypeError, AttributeError) as e:
        raise _malformed(
            "Malformed product payload", {"product_id": data.get("id"), "error": str(e)}
        ) from e


def _malformed(message: str, details: Dict[str, Any]) -> CatalogException:
    return CatalogException(message=message, error_code="MALFORMED_RESPONSE", details=details)


def to_api(product: Product, base_url: str) -> Dict[str, Any]:
    """Build the request body for a create or update (no id)."""
    body = product.model_dump(mode="json", exclude={"id"})
    body["price"] = float(product.price)
    body["images"] = [image_name(base_url, image) for image in product.images]
    return body
