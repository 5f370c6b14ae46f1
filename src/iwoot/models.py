"""Domain models used throughout the IWOOT product tracker."""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, ClassVar, Optional

from .exceptions import ValidationError


class ProductType(str, Enum):
    """Discriminator for the two product variants."""

    WANT = "want"
    HAVE = "have"


@dataclass(slots=True)
class PriceHistoryEntry:
    """Single price observation recorded against a product."""

    price: float
    date: str
    source: str
    notes: Optional[str] = None


PRICE_HISTORY_FIELDS = frozenset(f.name for f in fields(PriceHistoryEntry))


@dataclass(slots=True, kw_only=True)
class Product:
    """Fields shared by every tracked product.

    Only :class:`WantProduct` and :class:`HaveProduct` are ever instantiated;
    the variant is fixed by the concrete class and never changes after the
    record is created.
    """

    type: ClassVar[ProductType]

    name: str
    brand: str
    website: str
    original_price: float
    date: str
    owner_id: str = ""
    id: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    model: Optional[str] = None
    sku: Optional[str] = None
    color: Optional[str] = None
    size: Optional[str] = None
    condition: Optional[str] = None
    notes: Optional[str] = None
    images: list[str] = field(default_factory=list)
    specifications: dict[str, str] = field(default_factory=dict)
    price_history: list[PriceHistoryEntry] = field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def __post_init__(self) -> None:
        if type(self) is Product:
            raise TypeError("Product is abstract; use WantProduct or HaveProduct")

    def to_document(self, include_id: bool = False) -> dict[str, Any]:
        """Return the store representation of the product."""

        document = asdict(self)
        if not include_id:
            document.pop("id", None)
        document["type"] = self.type.value
        return {key: value for key, value in document.items() if value is not None}


@dataclass(slots=True, kw_only=True)
class WantProduct(Product):
    """A product the owner intends to buy."""

    type: ClassVar[ProductType] = ProductType.WANT

    current_price: Optional[float] = None
    target_price: Optional[float] = None


@dataclass(slots=True, kw_only=True)
class HaveProduct(Product):
    """A product the owner already has."""

    type: ClassVar[ProductType] = ProductType.HAVE

    price_bought: Optional[float] = None
    purchase_location: Optional[str] = None
    warranty_expiry: Optional[str] = None
    receipt_id: Optional[str] = None
    is_selling: bool = False
    selling_on: Optional[str] = None


PRODUCT_CLASSES: dict[ProductType, type[Product]] = {
    ProductType.WANT: WantProduct,
    ProductType.HAVE: HaveProduct,
}

COMMON_PRODUCT_FIELDS = frozenset(f.name for f in fields(Product))
WANT_ONLY_FIELDS = frozenset(f.name for f in fields(WantProduct)) - COMMON_PRODUCT_FIELDS
HAVE_ONLY_FIELDS = frozenset(f.name for f in fields(HaveProduct)) - COMMON_PRODUCT_FIELDS


def parse_product_type(value: Any) -> ProductType:
    """Return the :class:`ProductType` for ``value`` or raise ``ValidationError``."""

    try:
        return ProductType(value)
    except ValueError:
        raise ValidationError(["Product type must be 'want' or 'have'"]) from None


def product_from_document(document: Mapping[str, Any], product_id: str | None = None) -> Product:
    """Build the product variant described by ``document``.

    Keys that do not belong to the variant are dropped so a stray field
    (for example ``target_price`` on a have product) never leaks into it.
    ``None`` values count as absent and fall back to the field default.
    """

    product_type = parse_product_type(document.get("type"))
    product_class = PRODUCT_CLASSES[product_type]
    allowed = {f.name for f in fields(product_class)}
    values = {key: value for key, value in document.items() if key in allowed and value is not None}
    values["price_history"] = [
        entry if isinstance(entry, PriceHistoryEntry) else PriceHistoryEntry(**entry)
        for entry in values.get("price_history") or []
    ]
    for required in ("name", "brand", "website", "original_price", "date"):
        values.setdefault(required, None)
    if product_id is not None:
        values["id"] = product_id
    return product_class(**values)


@dataclass(slots=True)
class ReceiptItem:
    """One line of a receipt, pointing at a product by id."""

    id: str
    product_id: str
    quantity: int
    discounted_price: float

    @property
    def subtotal(self) -> float:
        return self.quantity * self.discounted_price


RECEIPT_ITEM_FIELDS = frozenset(f.name for f in fields(ReceiptItem))


@dataclass(slots=True, kw_only=True)
class Receipt:
    """A purchase record linking owned products to a store and date."""

    receipt_number: str
    store_name: str
    receipt_date: str
    items: list[ReceiptItem] = field(default_factory=list)
    total_amount: float = 0.0
    owner_id: str = ""
    id: Optional[str] = None
    receipt_image: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def items_total(self) -> float:
        """Sum of the item subtotals, rounded to cents."""

        return round(sum(item.subtotal for item in self.items), 2)

    def contains_product(self, product_id: str) -> bool:
        return any(item.product_id == product_id for item in self.items)

    def to_document(self, include_id: bool = False) -> dict[str, Any]:
        document = asdict(self)
        if not include_id:
            document.pop("id", None)
        return {key: value for key, value in document.items() if value is not None}


RECEIPT_FIELDS = frozenset(f.name for f in fields(Receipt))


def receipt_from_document(document: Mapping[str, Any], receipt_id: str | None = None) -> Receipt:
    """Build a :class:`Receipt` from its store representation."""

    values = {key: value for key, value in document.items() if key in RECEIPT_FIELDS}
    values["items"] = [
        item if isinstance(item, ReceiptItem) else ReceiptItem(**item) for item in values.get("items") or []
    ]
    for required in ("receipt_number", "store_name", "receipt_date"):
        values.setdefault(required, None)
    if receipt_id is not None:
        values["id"] = receipt_id
    return Receipt(**values)


@dataclass(slots=True)
class ValidationResult:
    """Outcome of validating a candidate record."""

    valid: bool
    errors: list[str] = field(default_factory=list)

    @classmethod
    def from_errors(cls, errors: list[str]) -> "ValidationResult":
        return cls(valid=not errors, errors=list(errors))


@dataclass(slots=True)
class ProductLookupResult:
    """Product details returned by the external lookup service."""

    name: Optional[str] = None
    brand: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    model: Optional[str] = None
    sku: Optional[str] = None
    images: Optional[list[str]] = None
    price: Optional[float] = None
    website: Optional[str] = None
    specifications: Optional[dict[str, str]] = None

    def to_dict(self) -> dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None}
