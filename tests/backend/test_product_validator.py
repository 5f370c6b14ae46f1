from __future__ import annotations

from typing import Any

import pytest

from iwoot.models import HaveProduct, ProductType, WantProduct
from iwoot.validators.product_validator import validate_product, validate_product_update


def want_payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "type": "want",
        "name": "Apple iPad Pro 13-inch",
        "brand": "Apple",
        "website": "https://www.apple.com/ipad-pro/",
        "original_price": 999.99,
        "date": "2026-01-15",
        "owner_id": "user-1",
    }
    payload.update(overrides)
    return payload


def test_valid_want_product_passes() -> None:
    result = validate_product(want_payload(current_price=949.0, target_price=900.0))

    assert result.valid is True
    assert result.errors == []


def test_all_violations_are_reported_together() -> None:
    result = validate_product(
        want_payload(name=" ", brand="", website="not-a-url", original_price=0, date="someday", owner_id="")
    )

    assert result.valid is False
    assert result.errors == [
        "Product name is required",
        "Brand is required",
        "Valid website URL is required",
        "Original price must be greater than 0",
        "Valid date is required",
        "Owner ID is required",
    ]


@pytest.mark.parametrize("price", [0, -5, None, "12", True, float("inf"), float("nan")])
def test_original_price_must_be_a_positive_number(price: Any) -> None:
    result = validate_product(want_payload(original_price=price))

    assert "Original price must be greater than 0" in result.errors


def test_want_prices_are_optional_but_positive() -> None:
    result = validate_product(want_payload(current_price=0, target_price=-1))

    assert result.errors == ["Current price must be greater than 0", "Target price must be greater than 0"]


def test_have_product_requires_price_bought() -> None:
    missing = validate_product(want_payload(type="have"))
    present = validate_product(want_payload(type="have", price_bought=899.99))

    assert missing.errors == ["Price bought must be greater than 0"]
    assert present.valid


def test_unknown_type_is_rejected() -> None:
    result = validate_product(want_payload(type="maybe"))

    assert result.errors == ["Product type must be 'want' or 'have'"]


def test_each_bad_image_is_reported_by_position() -> None:
    result = validate_product(
        want_payload(images=["https://cdn.example.com/a.png", "a.png", "ftp://files.example.com/b.png", ""])
    )

    assert result.errors == ["Image URL 2 is not a valid URL", "Image URL 4 is not a valid URL"]


def test_accepts_dataclass_candidates() -> None:
    product = HaveProduct(
        name="Nike Air Max 90",
        brand="Nike",
        website="https://www.nike.com/air-max-90",
        original_price=129.99,
        price_bought=99.99,
        date="2025-11-02T10:30:00+00:00",
        owner_id="user-1",
    )

    assert validate_product(product).valid


def test_validation_is_repeatable() -> None:
    candidate = want_payload(website="nope", images=["bad"])

    assert validate_product(candidate) == validate_product(candidate)


def test_update_only_checks_supplied_fields() -> None:
    assert validate_product_update({"notes": "ok"}).valid
    assert validate_product_update({"website": "not-a-url"}).errors == ["Website must be a valid URL"]


def test_update_rejects_zero_prices_and_empty_names() -> None:
    result = validate_product_update({"name": "", "original_price": 0, "current_price": 0, "price_bought": -3})

    assert result.errors == [
        "Product name cannot be empty",
        "Original price must be greater than 0",
        "Current price must be greater than 0",
        "Price bought must be greater than 0",
    ]


def test_update_surface_excludes_owner_type_and_timestamps() -> None:
    result = validate_product_update(
        {"owner_id": "intruder", "type": "have", "created_at": "2020-01-01", "price_history": []}
    )

    assert result.errors == [
        "Field 'type' cannot be changed",
        "Field 'owner_id' cannot be changed",
        "Field 'created_at' cannot be changed",
        "Price history can only be extended by recording a price",
    ]


def test_update_rejects_fields_from_the_other_variant() -> None:
    result = validate_product_update({"target_price": 10.0}, ProductType.HAVE)

    assert result.errors == ["Field 'target_price' does not apply to have products"]
    assert validate_product_update({"target_price": 10.0}, ProductType.WANT).valid


def test_update_rejects_unknown_fields() -> None:
    assert validate_product_update({"colour": "red"}).errors == ["Unknown field 'colour'"]


def test_want_dataclass_round_trips_through_validator() -> None:
    product = WantProduct(
        name="Beosound A5",
        brand="Bang & Olufsen",
        website="https://www.bang-olufsen.com/en/gb/speakers/beosound-a5",
        original_price=1400.0,
        date="2026-02-01",
        owner_id="user-1",
        images=["https://images.example.com/a5.png"],
    )

    assert validate_product(product).valid


def test_price_history_entries_are_fully_checked() -> None:
    result = validate_product(
        want_payload(
            price_history=[
                {"price": 949.0, "date": "2026-01-20T09:30:00+00:00", "source": "Currys"},
                {"price": 5},
                {"price": 10.0, "date": "2026-01-21", "source": "eBay", "seller": "bob"},
                "949",
            ]
        )
    )

    assert result.errors == [
        "Price history entry 2 must have a valid date",
        "Price history entry 2 must have a source",
        "Price history entry 3: Unknown field 'seller'",
        "Price history entry 4 is invalid",
    ]


def test_free_text_specifications_and_selling_flag_are_type_checked() -> None:
    assert validate_product_update({"specifications": "abc"}).errors == ["Specifications must map names to text"]
    assert validate_product_update({"is_selling": "yes"}, ProductType.HAVE).errors == [
        "Selling flag must be true or false"
    ]
    assert validate_product_update({"color": 7, "notes": None}).errors == ["Field 'color' must be text"]
    assert validate_product_update({"specifications": {"Storage": "256GB"}, "is_selling": True}).valid
    assert validate_product(want_payload(specifications={"Storage": 256})).errors == [
        "Specifications must map names to text"
    ]
