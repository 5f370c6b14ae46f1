"""Validation rules for receipts and their line items."""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict
from typing import Any

from ..models import RECEIPT_FIELDS, RECEIPT_ITEM_FIELDS, Receipt, ReceiptItem, ValidationResult
from .rules import is_blank, is_non_negative, is_number, is_valid_date, is_valid_url

IMMUTABLE_FIELDS = ("id", "owner_id", "created_at", "updated_at")


def validate_receipt(candidate: Receipt | Mapping[str, Any]) -> ValidationResult:
    """Check a full receipt payload before it is created."""

    data = candidate.to_document() if isinstance(candidate, Receipt) else candidate
    errors: list[str] = []

    if is_blank(data.get("receipt_number")):
        errors.append("Receipt number is required")
    if is_blank(data.get("store_name")):
        errors.append("Store name is required")
    if not is_valid_date(data.get("receipt_date")):
        errors.append("Valid receipt date is required")

    items = data.get("items")
    if not items:
        errors.append("Receipt must have at least one item")
    else:
        _check_items(items, errors)

    if not is_non_negative(data.get("total_amount")):
        errors.append("Total amount cannot be negative")
    if is_blank(data.get("owner_id")):
        errors.append("Owner ID is required")
    if data.get("receipt_image") and not is_valid_url(data["receipt_image"]):
        errors.append("Receipt image must be a valid URL")

    return ValidationResult.from_errors(errors)


def validate_receipt_update(updates: Mapping[str, Any]) -> ValidationResult:
    """Check a partial receipt update; absent fields are never an error."""

    errors: list[str] = []

    for key in updates:
        if key in IMMUTABLE_FIELDS:
            errors.append(f"Field '{key}' cannot be changed")
        elif key not in RECEIPT_FIELDS:
            errors.append(f"Unknown field '{key}'")

    if "receipt_number" in updates and is_blank(updates["receipt_number"]):
        errors.append("Receipt number cannot be empty")
    if "store_name" in updates and is_blank(updates["store_name"]):
        errors.append("Store name cannot be empty")
    if "receipt_date" in updates and not is_valid_date(updates["receipt_date"]):
        errors.append("Receipt date must be a valid date")
    if "items" in updates:
        if not updates["items"]:
            errors.append("Receipt must have at least one item")
        else:
            _check_items(updates["items"], errors)
    if "total_amount" in updates and not is_non_negative(updates["total_amount"]):
        errors.append("Total amount cannot be negative")
    if updates.get("receipt_image") and not is_valid_url(updates["receipt_image"]):
        errors.append("Receipt image must be a valid URL")

    return ValidationResult.from_errors(errors)


def _check_items(items: Any, errors: list[str]) -> None:
    if not isinstance(items, (list, tuple)):
        errors.append("Receipt items must be a list")
        return

    seen_ids: set[str] = set()
    for index, raw_item in enumerate(items, start=1):
        item = asdict(raw_item) if isinstance(raw_item, ReceiptItem) else raw_item
        if not isinstance(item, Mapping):
            errors.append(f"Item {index}: Invalid item")
            continue

        for key in item:
            if key not in RECEIPT_ITEM_FIELDS:
                errors.append(f"Item {index}: Unknown field '{key}'")

        item_id = item.get("id")
        if is_blank(item_id):
            errors.append(f"Item {index}: Item ID is required")
        elif item_id in seen_ids:
            errors.append(f"Item {index}: Duplicate item ID '{item_id}'")
        else:
            seen_ids.add(item_id)

        if is_blank(item.get("product_id")):
            errors.append(f"Item {index}: Product ID is required")

        quantity = item.get("quantity")
        if not is_number(quantity) or not float(quantity).is_integer() or quantity <= 0:
            errors.append(f"Item {index}: Quantity must be greater than 0")

        if not is_non_negative(item.get("discounted_price")):
            errors.append(f"Item {index}: Price cannot be negative")
