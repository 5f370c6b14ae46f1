"""Flask application exposing the product and receipt services as JSON."""
from __future__ import annotations

import logging
from typing import Any

from flask import Flask, jsonify, request, send_from_directory
from werkzeug.exceptions import HTTPException

from ..api.client import ProductLookupClient, lookup_product_by_url
from ..config import DEFAULT_CONFIG, AppConfig
from ..exceptions import AccessDeniedError, BackendError, NotFoundError, ServiceError, ValidationError
from ..models import Product, Receipt
from ..services.product_service import ProductService
from ..services.receipt_service import ReceiptService
from ..services.seed import seed_demo_data
from ..storage.files import FileStorage, LocalFileStorage
from ..storage.repository import JsonDocumentStore

logger = logging.getLogger(__name__)

OWNER_HEADER = "X-Owner-Id"


def _product_json(product: Product) -> dict[str, Any]:
    return product.to_document(include_id=True)


def _receipt_json(receipt: Receipt) -> dict[str, Any]:
    return receipt.to_document(include_id=True)


def _json_body() -> dict[str, Any]:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError(["Request body must be a JSON object"])
    return payload


def _caller_id() -> str:
    caller_id = (request.headers.get(OWNER_HEADER) or "").strip()
    if not caller_id:
        raise AccessDeniedError("Authentication required")
    return caller_id


def create_app(
    product_service: ProductService,
    receipt_service: ReceiptService,
    lookup_client: ProductLookupClient,
    file_storage: FileStorage,
) -> Flask:
    app = Flask(__name__)

    app.config["product_service"] = product_service
    app.config["receipt_service"] = receipt_service
    app.config["lookup_client"] = lookup_client
    app.config["file_storage"] = file_storage

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError):
        return jsonify({"error": str(exc), "errors": exc.errors}), 400

    @app.errorhandler(NotFoundError)
    def handle_not_found(exc: NotFoundError):
        return jsonify({"error": str(exc)}), 404

    @app.errorhandler(AccessDeniedError)
    def handle_access_denied(exc: AccessDeniedError):
        status = 401 if not request.headers.get(OWNER_HEADER) else 403
        return jsonify({"error": str(exc)}), status

    @app.errorhandler(BackendError)
    def handle_backend_error(exc: BackendError):
        status = 400 if exc.code == "invalid-argument" else 502
        return jsonify({"error": str(exc)}), status

    @app.errorhandler(ServiceError)
    def handle_service_error(exc: ServiceError):
        return jsonify({"error": str(exc)}), 502

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify({"error": exc.description}), exc.code

    @app.route("/api/health")
    def health():
        result = lookup_client.health_check()
        return jsonify({**result, "checked_at": result["checked_at"].isoformat()})

    # --- Products -------------------------------------------------------------

    @app.route("/api/products")
    def list_products():
        product_type = request.args.get("type") or None
        products = product_service.get_products(_caller_id(), product_type)
        return jsonify([_product_json(product) for product in products])

    @app.route("/api/products", methods=["POST"])
    def create_product():
        product = product_service.create_product(_caller_id(), _json_body())
        return jsonify(_product_json(product)), 201

    @app.route("/api/products/<product_id>")
    def get_product(product_id: str):
        caller_id = _caller_id()
        product = product_service.get_product(caller_id, product_id)
        if product is None:
            raise NotFoundError(f"Product {product_id} not found")
        body = _product_json(product)
        receipt = receipt_service.receipt_for_product(caller_id, product)
        if receipt is not None:
            body["receipt"] = _receipt_json(receipt)
        return jsonify(body)

    @app.route("/api/products/<product_id>", methods=["PATCH"])
    def update_product(product_id: str):
        product = product_service.update_product(_caller_id(), product_id, _json_body())
        return jsonify(_product_json(product))

    @app.route("/api/products/<product_id>", methods=["DELETE"])
    def delete_product(product_id: str):
        product_service.delete_product(_caller_id(), product_id)
        return "", 204

    @app.route("/api/products/<product_id>/prices", methods=["POST"])
    def add_price(product_id: str):
        data = _json_body()
        product = product_service.add_price_history(
            _caller_id(),
            product_id,
            data.get("price"),
            source=data.get("source") or "Unknown Store",
            notes=data.get("notes"),
        )
        return jsonify(_product_json(product)), 201

    @app.route("/api/products/<product_id>/receipts")
    def product_receipts(product_id: str):
        receipts = receipt_service.get_receipts_by_product(_caller_id(), product_id)
        return jsonify([_receipt_json(receipt) for receipt in receipts])

    # --- Receipts -------------------------------------------------------------

    @app.route("/api/receipts")
    def list_receipts():
        receipts = receipt_service.get_receipts(_caller_id())
        return jsonify([_receipt_json(receipt) for receipt in receipts])

    @app.route("/api/receipts", methods=["POST"])
    def create_receipt():
        caller_id = _caller_id()
        receipt = receipt_service.create_receipt(caller_id, _json_body())
        linked = receipt_service.link_products(caller_id, receipt, product_service)
        return jsonify({**_receipt_json(receipt), "linked_products": linked}), 201

    @app.route("/api/receipts/<receipt_id>")
    def get_receipt(receipt_id: str):
        receipt = receipt_service.get_receipt(_caller_id(), receipt_id)
        if receipt is None:
            raise NotFoundError(f"Receipt {receipt_id} not found")
        return jsonify(_receipt_json(receipt))

    @app.route("/api/receipts/<receipt_id>", methods=["PATCH"])
    def update_receipt(receipt_id: str):
        receipt = receipt_service.update_receipt(_caller_id(), receipt_id, _json_body())
        return jsonify(_receipt_json(receipt))

    @app.route("/api/receipts/<receipt_id>", methods=["DELETE"])
    def delete_receipt(receipt_id: str):
        receipt_service.delete_receipt(_caller_id(), receipt_id)
        return "", 204

    # --- Lookup and uploads ---------------------------------------------------

    @app.route("/api/lookup")
    def lookup():
        url = request.args.get("url")
        if url:
            result = lookup_product_by_url(url)
        else:
            result = lookup_client.lookup_product(request.args.get("q", ""))
        return jsonify({"result": result.to_dict() if result else None})

    @app.route("/api/uploads/<folder>", methods=["POST"])
    def upload(folder: str):
        caller_id = _caller_id()
        files = request.files.getlist("file")
        if not files:
            raise ValidationError(["No file uploaded"])
        refs = file_storage.upload_many(
            ((handle.read(), handle.filename or "upload", handle.mimetype or "") for handle in files),
            caller_id,
            folder,
        )
        return jsonify({"urls": refs}), 201

    @app.route("/api/uploads", methods=["DELETE"])
    def delete_upload():
        caller_id = _caller_id()
        ref = request.args.get("ref")
        if not ref:
            raise ValidationError(["Missing image reference"])
        file_storage.delete(ref, caller_id)
        return "", 204

    @app.route("/uploads/<path:object_name>")
    def serve_upload(object_name: str):
        if not isinstance(file_storage, LocalFileStorage):
            raise NotFoundError("Uploads are not served by this application")
        return send_from_directory(file_storage.base_path.resolve(), object_name)

    return app


def bootstrap_app(config: AppConfig = DEFAULT_CONFIG) -> tuple[Flask, ProductService, ReceiptService]:
    """Factory used by the entrypoint for running the API."""

    config.ensure_data_directories()
    data_directory = config.storage.data_directory
    product_service = ProductService(
        store=JsonDocumentStore(data_directory / "products.json"),
        list_failure_policy=config.list_failure_policy,
    )
    receipt_service = ReceiptService(
        store=JsonDocumentStore(data_directory / "receipts.json"),
        list_failure_policy=config.list_failure_policy,
    )
    lookup_client = ProductLookupClient(
        api_base_url=config.lookup.api_base_url,
        timeout_seconds=config.lookup.timeout_seconds,
    )
    file_storage = LocalFileStorage(
        config.storage.uploads_directory,
        config.storage.public_base_url,
        max_bytes=config.storage.max_upload_bytes,
    )

    if config.seed_demo_data and not product_service.get_products(config.demo_owner_id):
        seed_demo_data(product_service, receipt_service, config.demo_owner_id)

    app = create_app(product_service, receipt_service, lookup_client, file_storage)
    return app, product_service, receipt_service
