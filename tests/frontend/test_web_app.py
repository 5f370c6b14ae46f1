from __future__ import annotations

import io
from datetime import UTC, datetime
from typing import Any

import pytest

from iwoot.api.client import ProductLookupClient
from iwoot.config import AppConfig
from iwoot.models import ProductLookupResult
from iwoot.services.product_service import ProductService
from iwoot.services.receipt_service import ReceiptService
from iwoot.storage.files import LocalFileStorage
from iwoot.storage.repository import InMemoryDocumentStore
from iwoot.web.app import bootstrap_app, create_app
from tests.fakes import FlakyDocumentStore

OWNER = {"X-Owner-Id": "user-1"}
INTRUDER = {"X-Owner-Id": "user-2"}


class CannedLookupClient(ProductLookupClient):
    def lookup_product(self, query: str) -> ProductLookupResult | None:
        if query == "0123456789012":
            return ProductLookupResult(name="Apple iPad Pro", brand="Apple")
        return None

    def health_check(self) -> dict[str, Any]:
        return {"ok": True, "checked_at": datetime(2026, 1, 1, tzinfo=UTC)}


def product_body(**overrides: Any) -> dict[str, Any]:
    body: dict[str, Any] = {
        "type": "have",
        "name": "iPhone 15 Pro",
        "brand": "Apple",
        "website": "https://www.apple.com/iphone-15-pro/",
        "original_price": 999.99,
        "price_bought": 949.99,
        "date": "2026-01-10",
    }
    body.update(overrides)
    return body


@pytest.fixture
def product_store() -> FlakyDocumentStore:
    return FlakyDocumentStore()


@pytest.fixture
def client(tmp_path, product_store: FlakyDocumentStore):
    app = create_app(
        ProductService(store=product_store),
        ReceiptService(store=InMemoryDocumentStore()),
        CannedLookupClient(),
        LocalFileStorage(tmp_path / "uploads", "http://localhost/uploads"),
    )
    app.config.update(TESTING=True)
    return app.test_client()


def test_requests_need_an_owner(client) -> None:
    response = client.get("/api/products")

    assert response.status_code == 401


def test_product_lifecycle(client) -> None:
    created = client.post("/api/products", json=product_body(), headers=OWNER)
    assert created.status_code == 201
    product = created.get_json()
    assert product["owner_id"] == "user-1"
    assert product["created_at"] == product["updated_at"]

    listed = client.get("/api/products?type=have", headers=OWNER).get_json()
    assert [item["id"] for item in listed] == [product["id"]]
    assert client.get("/api/products?type=want", headers=OWNER).get_json() == []

    patched = client.patch(f"/api/products/{product['id']}", json={"notes": "ok"}, headers=OWNER)
    assert patched.status_code == 200
    assert patched.get_json()["notes"] == "ok"

    priced = client.post(
        f"/api/products/{product['id']}/prices", json={"price": 800, "source": "eBay"}, headers=OWNER
    )
    assert priced.status_code == 201
    assert priced.get_json()["price_history"][0]["source"] == "eBay"

    assert client.delete(f"/api/products/{product['id']}", headers=OWNER).status_code == 204
    assert client.get(f"/api/products/{product['id']}", headers=OWNER).status_code == 404


def test_validation_errors_are_listed(client) -> None:
    response = client.post("/api/products", json=product_body(original_price=0, website="nope"), headers=OWNER)

    assert response.status_code == 400
    assert response.get_json()["errors"] == [
        "Valid website URL is required",
        "Original price must be greater than 0",
    ]


def test_other_users_cannot_read_products(client) -> None:
    product = client.post("/api/products", json=product_body(), headers=OWNER).get_json()

    response = client.get(f"/api/products/{product['id']}", headers=INTRUDER)

    assert response.status_code == 502
    assert "Failed to fetch product" in response.get_json()["error"]


def test_listing_survives_backend_outage(client, product_store: FlakyDocumentStore) -> None:
    product_store.fail("list", "unavailable")

    response = client.get("/api/products", headers=OWNER)

    assert response.status_code == 200
    assert response.get_json() == []


def test_receipt_creation_links_products(client) -> None:
    product = client.post("/api/products", json=product_body(), headers=OWNER).get_json()
    receipt_body = {
        "receipt_number": "RCPT-2026-001",
        "store_name": "Apple Store",
        "receipt_date": "2026-01-10",
        "items": [{"id": "1", "product_id": product["id"], "quantity": 1, "discounted_price": 949.99}],
        "total_amount": 949.99,
    }

    created = client.post("/api/receipts", json=receipt_body, headers=OWNER)

    assert created.status_code == 201
    receipt = created.get_json()
    assert receipt["linked_products"] == [product["id"]]

    detail = client.get(f"/api/products/{product['id']}", headers=OWNER).get_json()
    assert detail["receipt_id"] == receipt["id"]
    assert detail["receipt"]["receipt_number"] == "RCPT-2026-001"

    by_product = client.get(f"/api/products/{product['id']}/receipts", headers=OWNER).get_json()
    assert [item["id"] for item in by_product] == [receipt["id"]]

    assert client.delete(f"/api/receipts/{receipt['id']}", headers=OWNER).status_code == 204
    detail = client.get(f"/api/products/{product['id']}", headers=OWNER).get_json()
    assert detail["receipt_id"] == receipt["id"]
    assert "receipt" not in detail


def test_lookup_routes(client) -> None:
    by_code = client.get("/api/lookup?q=0123456789012").get_json()
    by_url = client.get("/api/lookup?url=https://www.nike.com/air-max-90").get_json()
    nothing = client.get("/api/lookup?q=unknown").get_json()

    assert by_code == {"result": {"name": "Apple iPad Pro", "brand": "Apple"}}
    assert by_url["result"]["name"] == "air max 90"
    assert nothing == {"result": None}


def test_upload_and_delete_image(client) -> None:
    response = client.post(
        "/api/uploads/products",
        data={"file": (io.BytesIO(b"\x89PNG"), "photo.png", "image/png")},
        headers=OWNER,
        content_type="multipart/form-data",
    )
    assert response.status_code == 201
    (url,) = response.get_json()["urls"]

    served = client.get(url.removeprefix("http://localhost"))
    assert served.status_code == 200
    assert served.data == b"\x89PNG"
    served.close()

    refused = client.delete("/api/uploads", query_string={"ref": url}, headers=INTRUDER)
    assert refused.status_code == 403
    still_there = client.get(url.removeprefix("http://localhost"))
    assert still_there.status_code == 200
    still_there.close()

    assert client.delete("/api/uploads", query_string={"ref": url}, headers=OWNER).status_code == 204


def test_upload_rejects_non_images(client) -> None:
    response = client.post(
        "/api/uploads/products",
        data={"file": (io.BytesIO(b"%PDF"), "scan.pdf", "application/pdf")},
        headers=OWNER,
        content_type="multipart/form-data",
    )

    assert response.status_code == 400
    assert response.get_json()["error"] == "File must be an image"


def test_health(client) -> None:
    assert client.get("/api/health").get_json() == {"ok": True, "checked_at": "2026-01-01T00:00:00+00:00"}


def test_bootstrap_seeds_demo_data(tmp_path) -> None:
    config = AppConfig(seed_demo_data=True)
    config.storage.data_directory = tmp_path / "data"

    app, product_service, receipt_service = bootstrap_app(config)

    assert len(product_service.get_products(config.demo_owner_id)) == 5
    assert receipt_service.get_receipts(config.demo_owner_id)
    assert (tmp_path / "data" / "products.json").exists()
    assert app.config["product_service"] is product_service
