"""The only path through which products are created, changed or removed."""
from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from typing import Any

from ..config import ListFailurePolicy
from ..exceptions import BackendError, NotFoundError, ServiceError, ValidationError
from ..models import (
    HaveProduct,
    PriceHistoryEntry,
    Product,
    ProductType,
    WantProduct,
    parse_product_type,
    product_from_document,
)
from ..storage.repository import DocumentStore
from ..validators.product_validator import validate_product, validate_product_update
from ..validators.rules import is_positive
from .common import handle_list_failure, require_id, utc_now

logger = logging.getLogger(__name__)

SERVICE_ASSIGNED_FIELDS = ("id", "created_at", "updated_at")


@dataclass(slots=True)
class ProductService:
    """Validates product payloads and persists them through ``store``.

    Every call takes the caller's owner id explicitly; the store rejects any
    access to records owned by someone else.
    """

    store: DocumentStore
    list_failure_policy: ListFailurePolicy = ListFailurePolicy.FAIL_OPEN

    def get_products(self, caller_id: str, product_type: ProductType | None = None) -> list[Product]:
        """Return the caller's products, newest first."""

        require_id(caller_id, "owner id")
        filters = {"type": parse_product_type(product_type).value} if product_type else None
        try:
            documents = self.store.list(caller_id, filters)
        except BackendError as exc:
            return handle_list_failure(exc, self.list_failure_policy, logger, "products")

        products: list[Product] = []
        for document in documents:
            document_id = document.pop("id", None)
            try:
                products.append(product_from_document(document, document_id))
            except (ValidationError, TypeError):
                logger.warning("Skipping malformed product document %s", document_id)
        # Records without a creation time sort last.
        products.sort(key=lambda product: product.created_at or "", reverse=True)
        logger.debug("Loaded %s products for %s", len(products), caller_id)
        return products

    def get_product(self, caller_id: str, product_id: str) -> Product | None:
        """Return a single product, or ``None`` when it does not exist."""

        require_id(product_id, "product id")
        try:
            document = self.store.get(caller_id, product_id)
        except BackendError as exc:
            logger.exception("Error fetching product %s", product_id)
            raise ServiceError(f"Failed to fetch product: {exc}") from exc
        if document is None:
            return None
        try:
            return product_from_document(document, product_id)
        except (ValidationError, TypeError) as exc:
            logger.error("Stored product %s is malformed: %s", product_id, exc)
            raise ServiceError("Failed to fetch product: stored record is malformed") from exc

    def create_product(self, caller_id: str, product: Product | Mapping[str, Any]) -> Product:
        """Validate and store a new product.

        Creation and update timestamps are assigned here and are identical on
        the new record. The stored product, carrying its new id, is returned.
        """

        document = product.to_document() if isinstance(product, Product) else dict(product)
        for key in SERVICE_ASSIGNED_FIELDS:
            document.pop(key, None)
        if not document.get("owner_id"):
            document["owner_id"] = caller_id

        validation = validate_product(document)
        if not validation.valid:
            logger.info("Rejected product for %s: %s", caller_id, validation.errors)
            raise ValidationError(validation.errors)

        candidate = product_from_document(document)
        now = utc_now()
        candidate.created_at = now
        candidate.updated_at = now
        try:
            candidate.id = self.store.create(caller_id, candidate.to_document())
        except BackendError as exc:
            logger.exception("Error creating product %r", candidate.name)
            raise ServiceError(f"Failed to create product: {exc}") from exc

        logger.info("Created %s product %s (%s)", candidate.type.value, candidate.id, candidate.name)
        return candidate

    def update_product(self, caller_id: str, product_id: str, updates: Mapping[str, Any]) -> Product:
        """Apply a partial update and refresh ``updated_at``.

        Only the supplied fields are written. The owner, the creation time and
        the product type are outside the update surface.
        """

        existing = self._require_product(caller_id, product_id)
        validation = validate_product_update(updates, existing.type)
        if not validation.valid:
            logger.info("Rejected update for product %s: %s", product_id, validation.errors)
            raise ValidationError(validation.errors)

        changes = dict(updates)
        changes["updated_at"] = utc_now()
        self._write(caller_id, product_id, changes, "update")
        return product_from_document({**existing.to_document(), **changes}, product_id)

    def delete_product(self, caller_id: str, product_id: str) -> None:
        """Delete a product. Receipts that reference it are left alone."""

        require_id(product_id, "product id")
        try:
            self.store.delete(caller_id, product_id)
        except NotFoundError:
            raise NotFoundError(f"Product {product_id} not found") from None
        except BackendError as exc:
            logger.exception("Error deleting product %s", product_id)
            raise ServiceError(f"Failed to delete product: {exc}") from exc
        logger.info("Deleted product %s", product_id)

    def add_price_history(
        self,
        caller_id: str,
        product_id: str,
        price: float,
        source: str = "Unknown Store",
        notes: str | None = None,
    ) -> Product:
        """Record a price observation.

        Want products also take the observed price as their current price, in
        the same write, so the two never drift apart. Have products keep their
        purchase price.
        """

        if not is_positive(price):
            raise ValidationError(["Price must be greater than 0"])
        existing = self._require_product(caller_id, product_id)

        entry = PriceHistoryEntry(price=price, date=utc_now(), source=source or "Unknown Store", notes=notes)
        changes: dict[str, Any] = {
            "price_history": [asdict(item) for item in existing.price_history] + [asdict(entry)],
            "updated_at": entry.date,
        }
        if isinstance(existing, WantProduct):
            changes["current_price"] = price
        elif not isinstance(existing, HaveProduct):
            raise TypeError(f"Unsupported product variant: {type(existing).__name__}")

        self._write(caller_id, product_id, changes, "add price history to")
        logger.info("Recorded price %.2f for product %s from %s", price, product_id, entry.source)
        return product_from_document({**existing.to_document(), **changes}, product_id)

    def _require_product(self, caller_id: str, product_id: str) -> Product:
        product = self.get_product(caller_id, product_id)
        if product is None:
            raise NotFoundError(f"Product {product_id} not found")
        return product

    def _write(self, caller_id: str, product_id: str, changes: Mapping[str, Any], action: str) -> None:
        try:
            self.store.update(caller_id, product_id, changes)
        except NotFoundError:
            raise NotFoundError(f"Product {product_id} not found") from None
        except BackendError as exc:
            logger.exception("Failed to %s product %s", action, product_id)
            raise ServiceError(f"Failed to {action} product: {exc}") from exc
