"""
Unit tests for the Product API repository.

Uses httpx.MockTransport so no network is involved.
"""

import json
from decimal import Decimal

import httpx
import pytest

from catalog_sync.constants import CREATION_SENTINEL
from catalog_sync.domain.catalog.entities import Product
from catalog_sync.domain.catalog.exceptions import (
    CatalogException,
    NetworkError,
    NotFoundError,
    ValidationError,
)
from catalog_sync.domain.catalog.value_objects import Gender, Size
from catalog_sync.infrastructure.api.product_api import ProductApiRepository
from catalog_sync.infrastructure.api.product_mapper import (
    from_api,
    image_name,
    image_url,
    to_api,
)
from catalog_sync.services.cache.entity_store import EntityStore
from catalog_sync.services.cache.paginated_cache import PaginatedFetchCache
from catalog_sync.services.catalog.product_feed import ProductFeed

BASE_URL = "http://catalog.test/api"


def product_payload(product_id="p1", **fields):
    payload = {
        "id": product_id,
        "title": "Shirt",
        "slug": "shirt",
        "description": None,
        "price": 75,
        "stock": 3,
        "sizes": ["M", "XL"],
        "gender": "men",
        "images": ["1.jpg"],
        "tags": ["shirt"],
        "user": {"id": "u1"},
    }
    payload.update(fields)
    return payload


def make_repository(handler, page_size=10):
    client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return ProductApiRepository(client, BASE_URL, page_size=page_size)


class TestProductMapper:
    """Test payload <-> Product mapping."""

    def test_from_api(self):
        product = from_api(product_payload(), BASE_URL)

        assert product.id == "p1"
        assert product.description == ""
        assert product.price == Decimal("75")
        assert product.sizes == frozenset({Size.M, Size.XL})
        assert product.gender == Gender.MEN
        assert product.images == (f"{BASE_URL}/files/product/1.jpg",)

    def test_unknown_sizes_are_dropped(self):
        product = from_api(product_payload(sizes=["M", "XXXL"]), BASE_URL)
        assert product.sizes == frozenset({Size.M})

    def test_malformed_payload(self):
        with pytest.raises(CatalogException) as exc_info:
            from_api(product_payload(gender="robots"), BASE_URL)
        assert exc_info.value.error_code == "MALFORMED_RESPONSE"

    def test_to_api(self):
        product = Product(
            id="p1",
            title="Shirt",
            price="10.5",
            sizes=["XL", "S"],
            gender="kid",
            images=[f"{BASE_URL}/files/product/1.jpg"],
        )

        body = to_api(product, BASE_URL)

        assert "id" not in body
        assert body["price"] == 10.5
        assert body["sizes"] == ["S", "XL"]
        assert body["gender"] == "kid"
        assert body["images"] == ["1.jpg"]

    def test_image_helpers(self):
        assert image_url(BASE_URL, "a.jpg") == f"{BASE_URL}/files/product/a.jpg"
        assert image_url(BASE_URL, "file:///tmp/a.jpg") == "file:///tmp/a.jpg"
        assert image_url(BASE_URL, "https://cdn/x.jpg") == "https://cdn/x.jpg"
        assert image_name(BASE_URL, f"{BASE_URL}/files/product/a.jpg") == "a.jpg"
        assert image_name(BASE_URL, "a.jpg") == "a.jpg"


class TestProductApiRepository:
    """Test ProductApiRepository."""

    @pytest.mark.asyncio
    async def test_get_page_uses_offset_and_limit(self):
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            seen["path"] = request.url.path
            return httpx.Response(200, json=[product_payload("p1"), product_payload("p2")])

        repository = make_repository(handler, page_size=5)
        products = await repository.get_entities_by_page(2)

        assert [product.id for product in products] == ["p1", "p2"]
        assert seen["path"] == "/api/products"
        assert seen["params"] == {"offset": "10", "limit": "5"}

    @pytest.mark.asyncio
    async def test_get_by_id(self):
        def handler(request):
            assert request.url.path == "/api/products/p1"
            return httpx.Response(200, json=product_payload("p1"))

        product = await make_repository(handler).get_entity_by_id("p1")
        assert product.title == "Shirt"

    @pytest.mark.asyncio
    async def test_not_found(self):
        repository = make_repository(lambda request: httpx.Response(404, json={}))

        with pytest.raises(NotFoundError) as exc_info:
            await repository.get_entity_by_id("ghost")
        assert exc_info.value.product_id == "ghost"

    @pytest.mark.asyncio
    async def test_transport_error_is_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(NetworkError) as exc_info:
            await make_repository(handler).get_entities_by_page(0)
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_server_error_is_network_error(self):
        repository = make_repository(lambda request: httpx.Response(503))

        with pytest.raises(NetworkError) as exc_info:
            await repository.get_entities_by_page(0)
        assert exc_info.value.details["status_code"] == 503

    @pytest.mark.asyncio
    async def test_create_posts_without_id(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json=product_payload("srv-1", images=[]))

        product = Product(id=CREATION_SENTINEL, title="Shirt", slug="shirt")
        saved = await make_repository(handler).upsert_entity(product)

        assert saved.id == "srv-1"
        assert seen["method"] == "POST"
        assert seen["path"] == "/api/products"
        assert "id" not in seen["body"]

    @pytest.mark.asyncio
    async def test_update_patches(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            return httpx.Response(200, json=product_payload("p1"))

        await make_repository(handler).upsert_entity(Product(id="p1", title="Shirt"))

        assert seen["method"] == "PATCH"
        assert seen["path"] == "/api/products/p1"

    @pytest.mark.asyncio
    async def test_validation_error_messages(self):
        def handler(request):
            return httpx.Response(
                400,
                json={"message": ["price must not be less than 0"], "error": "Bad Request"},
            )

        with pytest.raises(ValidationError) as exc_info:
            await make_repository(handler).upsert_entity(Product(id="p1", price="-1"))

        assert exc_info.value.errors == ["price must not be less than 0"]
        assert exc_info.value.details["product_id"] == "p1"

    @pytest.mark.asyncio
    async def test_local_images_are_uploaded_first(self, tmp_path):
        photo = tmp_path / "photo.jpg"
        photo.write_bytes(b"jpeg-bytes")
        calls = []

        def handler(request):
            calls.append((request.method, request.url.path))
            if request.url.path == "/api/files/product":
                assert b"jpeg-bytes" in request.content
                return httpx.Response(201, json={"image": f"{BASE_URL}/files/product/up.jpg"})
            body = json.loads(request.content)
            assert body["images"] == ["1.jpg", "up.jpg"]
            return httpx.Response(200, json=product_payload("p1", images=body["images"]))

        product = Product(
            id="p1",
            images=[f"{BASE_URL}/files/product/1.jpg", photo.as_uri()],
        )
        saved = await make_repository(handler).upsert_entity(product)

        assert calls == [("POST", "/api/files/product"), ("PATCH", "/api/products/p1")]
        assert saved.images == (
            f"{BASE_URL}/files/product/1.jpg",
            f"{BASE_URL}/files/product/up.jpg",
        )

    @pytest.mark.asyncio
    async def test_unreadable_local_image(self):
        repository = make_repository(lambda request: httpx.Response(500))

        with pytest.raises(CatalogException) as exc_info:
            await repository.upload_image("file:///definitely/missing.jpg")
        assert exc_info.value.error_code == "IMAGE_READ_ERROR"

    def test_invalid_page_size(self):
        with pytest.raises(ValueError):
            make_repository(lambda request: httpx.Response(200), page_size=0)


class TestMalformedResponses:
    """Test success responses whose body is not a product payload."""

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        repository = make_repository(
            lambda request: httpx.Response(
                200, text="<html>proxy</html>", headers={"content-type": "text/html"}
            )
        )

        with pytest.raises(CatalogException) as exc_info:
            await repository.get_entities_by_page(0)

        assert exc_info.value.error_code == "MALFORMED_RESPONSE"
        assert exc_info.value.details["content_type"] == "text/html"
        assert isinstance(exc_info.value.__cause__, ValueError)

    @pytest.mark.asyncio
    async def test_list_item_not_an_object(self):
        repository = make_repository(
            lambda request: httpx.Response(200, json=[product_payload("p1"), "p2"])
        )

        with pytest.raises(CatalogException) as exc_info:
            await repository.get_entities_by_page(0)
        assert exc_info.value.error_code == "MALFORMED_RESPONSE"

    def test_image_entry_not_a_string(self):
        with pytest.raises(CatalogException) as exc_info:
            from_api(product_payload(images=[{"url": "1.jpg"}]), BASE_URL)
        assert exc_info.value.error_code == "MALFORMED_RESPONSE"

    @pytest.mark.asyncio
    async def test_feed_publishes_malformed_page(self):
        repository = make_repository(lambda request: httpx.Response(200, text="<html>proxy</html>"))
        feed = ProductFeed(PaginatedFetchCache(repository, EntityStore()))

        assert not await feed.load_more()

        assert feed.error.value.error_code == "MALFORMED_RESPONSE"
        assert feed.products.value == []
        assert feed.loading.value is False
