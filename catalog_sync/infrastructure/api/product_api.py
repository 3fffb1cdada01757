"""
Product API Repository

httpx implementation of ProductRepository against the catalog REST API.
Maps transport failures and HTTP statuses onto catalog exceptions and
uploads local images before a product is created or updated.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import unquote, urlparse

import httpx
from opentelemetry import trace

from ...core.config import Settings, get_settings
from ...domain.catalog.entities import Product
from ...domain.catalog.exceptions import (
    CatalogException,
    NetworkError,
    NotFoundError,
    ValidationError,
)
from ...domain.catalog.repository_interfaces import ProductRepository
from .product_mapper import from_api, image_name, is_local_image, to_api

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def build_async_client(settings: Optional[Settings] = None) -> httpx.AsyncClient:
    """Create an ``httpx.AsyncClient`` configured for the catalog API."""
    settings = settings or get_settings()
    headers = {"Accept": "application/json"}
    if settings.API_TOKEN:
        headers["Authorization"] = f"Bearer {settings.API_TOKEN}"

    return httpx.AsyncClient(
        base_url=settings.API_BASE_URL,
        timeout=httpx.Timeout(settings.API_TIMEOUT_SECONDS),
        headers=headers,
    )


class ProductApiRepository(ProductRepository):
    """
    REST repository for catalog products.

    Endpoints:
        GET   /products?offset=&limit=
        GET   /products/{id}
        POST  /products
        PATCH /products/{id}
        POST  /files/product   (multipart image upload)
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        page_size: int = 10,
    ):
        if page_size <= 0:
            raise ValueError("page_size must be positive")

        self._client = client
        self.base_url = base_url.rstrip("/")
        self.page_size = page_size

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "ProductApiRepository":
        settings = settings or get_settings()
        return cls(build_async_client(settings), settings.API_BASE_URL, settings.PAGE_SIZE)

    async def close(self) -> None:
        await self._client.aclose()

    async def get_entities_by_page(self, page_index: int) -> List[Product]:
        """Get ordered products of a zero-based page."""
        if page_index < 0:
            raise ValueError("Page index cannot be negative")

        params = {"offset": page_index * self.page_size, "limit": self.page_size}
        payload = await self._request("GET", "/products", operation="list", params=params)

        if not isinstance(payload, list):
            raise CatalogException(
                message="Expected a list of products",
                error_code="MALFORMED_RESPONSE",
                details={"page_index": page_index},
            )
        return [from_api(item, self.base_url) for item in payload]

    async def get_entity_by_id(self, product_id: str) -> Product:
        """Get product by id."""
        payload = await self._request(
            "GET", f"/products/{product_id}", operation="get", product_id=product_id
        )
        return from_api(payload, self.base_url)

    async def upsert_entity(self, product: Product) -> Product:
        """Upload pending images, then create or update the product."""
        images = await self._prepare_images(product.images)
        body = to_api(product.model_copy(update={"images": tuple(images)}), self.base_url)

        if product.is_new:
            payload = await self._request(
                "POST", "/products", operation="create", json=body
            )
        else:
            payload = await self._request(
                "PATCH",
                f"/products/{product.id}",
                operation="update",
                product_id=product.id,
                json=body,
            )
        return from_api(payload, self.base_url)

    async def upload_image(self, handle: str) -> str:
        """
        Upload one local image.

        Returns:
            Stored file name assigned by the backend
        """
        path = _local_path(handle)
        try:
            content = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise CatalogException(
                message=f"Cannot read local image {handle}",
                error_code="IMAGE_READ_ERROR",
                details={"image": handle},
            ) from e

        files = {"file": (path.name, content, "image/jpeg")}
        payload = await self._request(
            "POST", "/files/product", operation="upload", files=files
        )
        return _uploaded_name(payload, handle)

    async def _prepare_images(self, images) -> List[str]:
        prepared = []
        for image in images:
            if is_local_image(image):
                prepared.append(await self.upload_image(image))
            else:
                prepared.append(image_name(self.base_url, image))
        return prepared

    async def _request(
        self,
        method: str,
        url: str,
        operation: str,
        product_id: Optional[str] = None,
        **kwargs: Any,
    ) -> Any:
        with tracer.start_as_current_span(f"product_api.{operation}") as span:
            span.set_attribute("http.method", method)
            span.set_attribute("http.url", url)

            try:
                response = await self._client.request(method, url, **kwargs)
            except httpx.HTTPError as e:
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                logger.warning(
                    f"Catalog API {operation} failed: {e}",
                    extra={"operation": operation, "url": url},
                )
                raise NetworkError(
                    message=f"Catalog API request failed: {operation}",
                    operation=operation,
                    original_error=e,
                ) from e

            span.set_attribute("http.status_code", response.status_code)
            if response.is_success:
                try:
                    return response.json()
                except ValueError as e:
                    span.set_status(trace.Status(trace.StatusCode.ERROR, "Invalid JSON"))
                    raise CatalogException(
                        message=f"Catalog API returned a non-JSON body: {operation}",
                        error_code="MALFORMED_RESPONSE",
                        details={
                            "operation": operation,
                            "content_type": response.headers.get("content-type"),
                        },
                    ) from e

            span.set_status(
                trace.Status(trace.StatusCode.ERROR, f"HTTP {response.status_code}")
            )
            raise self._error_for(response, operation, product_id)

    @staticmethod
    def _error_for(
        response: httpx.Response, operation: str, product_id: Optional[str]
    ) -> CatalogException:
        status = response.status_code
        body = _json_or_empty(response)

        if status == 404 and product_id:
            return NotFoundError(product_id)

        if status in (400, 422):
            messages = body.get("message", [])
            if isinstance(messages, str):
                messages = [messages]
            return ValidationError(
                message="; ".join(messages) or "Product was rejected by the server",
                errors=messages,
                product_id=product_id,
            )

        logger.warning(
            "Unexpected catalog API status",
            extra={"operation": operation, "status_code": status},
        )
        return NetworkError(
            message=f"Catalog API returned HTTP {status}",
            operation=operation,
            status_code=status,
        )


def _json_or_empty(response: httpx.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _local_path(handle: str) -> Path:
    if handle.startswith("file://"):
        return Path(unquote(urlparse(handle).path))
    return Path(handle)


def _uploaded_name(payload: Any, handle: str) -> str:
    if isinstance(payload, dict):
        for field in ("image", "fileName", "secureUrl"):
            value = payload.get(field)
            if value:
                return str(value).rsplit("/", 1)[-1]
    raise CatalogException(
        message="Upload response did not include a file name",
        error_code="MALFORMED_RESPONSE",
        details={"image": handle},
    )
