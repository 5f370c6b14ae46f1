"""Validation rules for product create and update payloads.

Both validators collect every problem they find instead of stopping at the
first one, so the caller can show the full list in a single message. They
never raise and never touch storage.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict
from typing import Any

from ..models import (
    COMMON_PRODUCT_FIELDS,
    HAVE_ONLY_FIELDS,
    PRICE_HISTORY_FIELDS,
    WANT_ONLY_FIELDS,
    PriceHistoryEntry,
    Product,
    ProductType,
    ValidationResult,
)
from .rules import is_blank, is_positive, is_valid_date, is_valid_url

IMMUTABLE_FIELDS = ("id", "type", "owner_id", "created_at", "updated_at")
TEXT_FIELDS = (
    "description",
    "category",
    "model",
    "sku",
    "color",
    "size",
    "condition",
    "notes",
    "purchase_location",
    "selling_on",
)


def validate_product(candidate: Product | Mapping[str, Any]) -> ValidationResult:
    """Check a full product payload before it is created."""

    data = _as_mapping(candidate)
    errors: list[str] = []

    if is_blank(data.get("name")):
        errors.append("Product name is required")
    if is_blank(data.get("brand")):
        errors.append("Brand is required")
    if not is_valid_url(data.get("website")):
        errors.append("Valid website URL is required")
    if not is_positive(data.get("original_price")):
        errors.append("Original price must be greater than 0")
    if not is_valid_date(data.get("date")):
        errors.append("Valid date is required")
    if is_blank(data.get("owner_id")):
        errors.append("Owner ID is required")

    product_type = _product_type(data.get("type"))
    if product_type is None:
        errors.append("Product type must be 'want' or 'have'")
    elif product_type is ProductType.WANT:
        _check_optional_price(data, "current_price", "Current price", errors)
        _check_optional_price(data, "target_price", "Target price", errors)
    elif product_type is ProductType.HAVE:
        if not is_positive(data.get("price_bought")):
            errors.append("Price bought must be greater than 0")
        _check_optional_date(data, "warranty_expiry", "Warranty expiry", errors)

    _check_images(data.get("images"), errors)
    _check_price_history(data.get("price_history"), errors)
    _check_details(data, errors)

    return ValidationResult.from_errors(errors)


def validate_product_update(
    updates: Mapping[str, Any],
    product_type: ProductType | None = None,
) -> ValidationResult:
    """Check a partial update; only fields present in ``updates`` are judged.

    When ``product_type`` is known, fields belonging to the other variant are
    rejected so an update can never move a product across variants.
    """

    errors: list[str] = []

    for key in IMMUTABLE_FIELDS:
        if key in updates:
            errors.append(f"Field '{key}' cannot be changed")
    if "price_history" in updates:
        errors.append("Price history can only be extended by recording a price")

    allowed = _update_surface(product_type)
    for key in updates:
        if key in IMMUTABLE_FIELDS or key == "price_history":
            continue
        if key not in allowed:
            if key in WANT_ONLY_FIELDS or key in HAVE_ONLY_FIELDS:
                errors.append(f"Field '{key}' does not apply to {product_type.value} products")
            else:
                errors.append(f"Unknown field '{key}'")

    if "name" in updates and is_blank(updates["name"]):
        errors.append("Product name cannot be empty")
    if "brand" in updates and is_blank(updates["brand"]):
        errors.append("Brand cannot be empty")
    if "website" in updates and not is_valid_url(updates["website"]):
        errors.append("Website must be a valid URL")
    if "original_price" in updates and not is_positive(updates["original_price"]):
        errors.append("Original price must be greater than 0")
    if "date" in updates and not is_valid_date(updates["date"]):
        errors.append("Date must be a valid date")

    _check_optional_price(updates, "current_price", "Current price", errors)
    _check_optional_price(updates, "target_price", "Target price", errors)
    if "price_bought" in updates and not is_positive(updates["price_bought"]):
        errors.append("Price bought must be greater than 0")
    _check_optional_date(updates, "warranty_expiry", "Warranty expiry", errors)

    if "images" in updates:
        if updates["images"] is None:
            errors.append("Images must be a list of URLs")
        else:
            _check_images(updates["images"], errors)
    _check_details(updates, errors)

    return ValidationResult.from_errors(errors)


def _as_mapping(candidate: Product | Mapping[str, Any]) -> Mapping[str, Any]:
    if isinstance(candidate, Product):
        return candidate.to_document()
    return candidate


def _product_type(value: Any) -> ProductType | None:
    try:
        return ProductType(value)
    except ValueError:
        return None


def _update_surface(product_type: ProductType | None) -> frozenset[str]:
    common = COMMON_PRODUCT_FIELDS - set(IMMUTABLE_FIELDS) - {"price_history"}
    if product_type is ProductType.WANT:
        return common | WANT_ONLY_FIELDS
    if product_type is ProductType.HAVE:
        return common | HAVE_ONLY_FIELDS
    return common | WANT_ONLY_FIELDS | HAVE_ONLY_FIELDS


def _check_optional_price(data: Mapping[str, Any], key: str, label: str, errors: list[str]) -> None:
    if data.get(key) is not None and not is_positive(data[key]):
        errors.append(f"{label} must be greater than 0")


def _check_optional_date(data: Mapping[str, Any], key: str, label: str, errors: list[str]) -> None:
    if data.get(key) and not is_valid_date(data[key]):
        errors.append(f"{label} must be a valid date")


def _check_images(images: Any, errors: list[str]) -> None:
    if images is None:
        return
    if not isinstance(images, (list, tuple)):
        errors.append("Images must be a list of URLs")
        return
    for index, url in enumerate(images, start=1):
        if not is_valid_url(url):
            errors.append(f"Image URL {index} is not a valid URL")


def _check_price_history(history: Any, errors: list[str]) -> None:
    if history is None:
        return
    if not isinstance(history, (list, tuple)):
        errors.append("Price history must be a list")
        return
    for index, raw_entry in enumerate(history, start=1):
        entry = asdict(raw_entry) if isinstance(raw_entry, PriceHistoryEntry) else raw_entry
        if not isinstance(entry, Mapping):
            errors.append(f"Price history entry {index} is invalid")
            continue
        for key in entry:
            if key not in PRICE_HISTORY_FIELDS:
                errors.append(f"Price history entry {index}: Unknown field '{key}'")
        if not is_positive(entry.get("price")):
            errors.append(f"Price history entry {index} must have a price greater than 0")
        if not is_valid_date(entry.get("date")):
            errors.append(f"Price history entry {index} must have a valid date")
        if is_blank(entry.get("source")):
            errors.append(f"Price history entry {index} must have a source")
        if entry.get("notes") is not None and not isinstance(entry["notes"], str):
            errors.append(f"Price history entry {index}: Notes must be text")


def _check_details(data: Mapping[str, Any], errors: list[str]) -> None:
    for key in TEXT_FIELDS:
        if data.get(key) is not None and not isinstance(data[key], str):
            errors.append(f"Field '{key}' must be text")
    specifications = data.get("specifications")
    if specifications is not None and not (
        isinstance(specifications, Mapping)
        and all(isinstance(key, str) and isinstance(value, str) for key, value in specifications.items())
    ):
        errors.append("Specifications must map names to text")
    if data.get("is_selling") is not None and not isinstance(data["is_selling"], bool):
        errors.append("Selling flag must be true or false")
