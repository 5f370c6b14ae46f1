"""Receipt persistence with the same validate-before-write rules as products."""
from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from ..config import ListFailurePolicy
from ..exceptions import BackendError, IwootError, NotFoundError, ServiceError, ValidationError
from ..models import HaveProduct, Product, Receipt, receipt_from_document
from ..storage.repository import DocumentStore
from ..validators.receipt_validator import validate_receipt, validate_receipt_update
from .common import handle_list_failure, require_id, utc_now
from .product_service import ProductService

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ReceiptService:
    """Validates receipts and persists them through ``store``.

    Receipts point at products by id only. Deleting either side leaves the
    other side's reference dangling; readers treat a miss as "unlinked".
    """

    store: DocumentStore
    list_failure_policy: ListFailurePolicy = ListFailurePolicy.FAIL_OPEN

    def get_receipts(self, caller_id: str) -> list[Receipt]:
        """Return the caller's receipts, most recent receipt date first."""

        require_id(caller_id, "owner id")
        try:
            documents = self.store.list(caller_id)
        except BackendError as exc:
            return handle_list_failure(exc, self.list_failure_policy, logger, "receipts")

        receipts = self._to_receipts(documents)
        receipts.sort(key=lambda receipt: receipt.receipt_date or "", reverse=True)
        return receipts

    def get_receipt(self, caller_id: str, receipt_id: str) -> Receipt | None:
        require_id(receipt_id, "receipt id")
        try:
            document = self.store.get(caller_id, receipt_id)
        except BackendError as exc:
            logger.exception("Error fetching receipt %s", receipt_id)
            raise ServiceError(f"Failed to fetch receipt: {exc}") from exc
        if document is None:
            return None
        try:
            return receipt_from_document(document, receipt_id)
        except TypeError as exc:
            logger.error("Stored receipt %s is malformed: %s", receipt_id, exc)
            raise ServiceError("Failed to fetch receipt: stored record is malformed") from exc

    def create_receipt(self, caller_id: str, receipt: Receipt | Mapping[str, Any]) -> Receipt:
        """Validate and store a new receipt.

        ``total_amount`` is stored as given; it is not reconciled with the
        item subtotals.
        """

        document = receipt.to_document() if isinstance(receipt, Receipt) else dict(receipt)
        for key in ("id", "created_at", "updated_at"):
            document.pop(key, None)
        if not document.get("owner_id"):
            document["owner_id"] = caller_id

        validation = validate_receipt(document)
        if not validation.valid:
            logger.info("Rejected receipt for %s: %s", caller_id, validation.errors)
            raise ValidationError(validation.errors)

        candidate = receipt_from_document(document)
        if candidate.items_total() != round(candidate.total_amount, 2):
            logger.debug(
                "Receipt %s total %.2f differs from item sum %.2f",
                candidate.receipt_number,
                candidate.total_amount,
                candidate.items_total(),
            )
        now = utc_now()
        candidate.created_at = now
        candidate.updated_at = now
        try:
            candidate.id = self.store.create(caller_id, candidate.to_document())
        except BackendError as exc:
            logger.exception("Error creating receipt %r", candidate.receipt_number)
            raise ServiceError(f"Failed to create receipt: {exc}") from exc

        logger.info("Created receipt %s (%s)", candidate.id, candidate.receipt_number)
        return candidate

    def update_receipt(self, caller_id: str, receipt_id: str, updates: Mapping[str, Any]) -> Receipt:
        existing = self.get_receipt(caller_id, receipt_id)
        if existing is None:
            raise NotFoundError(f"Receipt {receipt_id} not found")

        validation = validate_receipt_update(updates)
        if not validation.valid:
            logger.info("Rejected update for receipt %s: %s", receipt_id, validation.errors)
            raise ValidationError(validation.errors)

        changes = dict(updates)
        changes["updated_at"] = utc_now()
        try:
            self.store.update(caller_id, receipt_id, changes)
        except NotFoundError:
            raise NotFoundError(f"Receipt {receipt_id} not found") from None
        except BackendError as exc:
            logger.exception("Error updating receipt %s", receipt_id)
            raise ServiceError(f"Failed to update receipt: {exc}") from exc
        return receipt_from_document({**existing.to_document(), **changes}, receipt_id)

    def delete_receipt(self, caller_id: str, receipt_id: str) -> None:
        """Delete a receipt. The products it lists are left alone."""

        require_id(receipt_id, "receipt id")
        try:
            self.store.delete(caller_id, receipt_id)
        except NotFoundError:
            raise NotFoundError(f"Receipt {receipt_id} not found") from None
        except BackendError as exc:
            logger.exception("Error deleting receipt %s", receipt_id)
            raise ServiceError(f"Failed to delete receipt: {exc}") from exc
        logger.info("Deleted receipt %s", receipt_id)

    def get_receipts_by_product(self, caller_id: str, product_id: str) -> list[Receipt]:
        """Return the caller's receipts that list ``product_id``.

        Any store failure yields an empty list.
        """

        require_id(product_id, "product id")
        try:
            documents = self.store.list(caller_id)
        except BackendError as exc:
            logger.warning("Fetching receipts for product %s failed, returning none: %s", product_id, exc)
            return []
        return [receipt for receipt in self._to_receipts(documents) if receipt.contains_product(product_id)]

    def receipt_for_product(self, caller_id: str, product: Product) -> Receipt | None:
        """Resolve the receipt a have product links to, if it still exists."""

        if not isinstance(product, HaveProduct) or not product.receipt_id:
            return None
        receipt = self.get_receipt(caller_id, product.receipt_id)
        if receipt is None:
            logger.info("Product %s links to missing receipt %s", product.id, product.receipt_id)
        return receipt

    def link_products(self, caller_id: str, receipt: Receipt, product_service: ProductService) -> list[str]:
        """Point every have product on ``receipt`` back at it.

        Each product is written separately; a product that is missing, is a
        want product, or fails to update is skipped.
        """

        if not receipt.id:
            raise ValidationError(["Receipt must be saved before linking products"])

        linked: list[str] = []
        for product_id in dict.fromkeys(item.product_id for item in receipt.items):
            try:
                product = product_service.get_product(caller_id, product_id)
                if not isinstance(product, HaveProduct):
                    logger.warning("Not linking receipt %s to product %s: not an owned product", receipt.id, product_id)
                    continue
                product_service.update_product(caller_id, product_id, {"receipt_id": receipt.id})
            except IwootError as exc:
                logger.warning("Could not link receipt %s to product %s: %s", receipt.id, product_id, exc)
                continue
            linked.append(product_id)
        return linked

    @staticmethod
    def _to_receipts(documents: list[dict[str, Any]]) -> list[Receipt]:
        receipts: list[Receipt] = []
        for document in documents:
            document_id = document.pop("id", None)
            try:
                receipts.append(receipt_from_document(document, document_id))
            except TypeError:
                logger.warning("Skipping malformed receipt document %s", document_id)
        return receipts
