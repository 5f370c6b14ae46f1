"""Demo catalogue used during development."""
from __future__ import annotations

import logging
from datetime import UTC, date, datetime, timedelta

from ..exceptions import IwootError
from ..models import HaveProduct, Product, Receipt, ReceiptItem, WantProduct
from .product_service import ProductService
from .receipt_service import ReceiptService

logger = logging.getLogger(__name__)


def _days_from_today(days: int) -> str:
    return (date.today() + timedelta(days=days)).isoformat()


def demo_products(owner_id: str) -> list[Product]:
    """Products created by :func:`seed_demo_data`."""

    return [
        WantProduct(
            name="Apple iPad Pro 13-inch M5 WiFi",
            brand="Apple",
            website="https://www.joybuy.co.uk/dp/apple-ipad-pro-13-m5-wifi/10451022",
            original_price=1299.99,
            current_price=1249.99,
            target_price=1100.00,
            date=_days_from_today(0),
            owner_id=owner_id,
            category="Electronics",
            model="iPad Pro 13-inch",
            sku="10451022",
            color="Space Gray",
            specifications={"Display": "13-inch Liquid Retina XDR", "Chip": "Apple M5", "Storage": "256GB"},
            notes="Looking for a good deal on this iPad Pro",
        ),
        HaveProduct(
            name="Apple iPad Pro 11-inch M5 WiFi",
            brand="Apple",
            website="https://www.joybuy.co.uk/dp/apple-ipad-pro-11-m5-wifi/10451000",
            original_price=999.99,
            price_bought=899.99,
            date=_days_from_today(-30),
            owner_id=owner_id,
            category="Electronics",
            model="iPad Pro 11-inch",
            sku="10451000",
            color="Silver",
            purchase_location="Joybuy UK",
            warranty_expiry=_days_from_today(335),
            notes="Great purchase, very happy with the performance",
        ),
        WantProduct(
            name="Bang & Olufsen Beosound A5",
            brand="Bang & Olufsen",
            website="https://www.bang-olufsen.com/en/gb/speakers/beosound-a5",
            original_price=1400.00,
            current_price=1200.00,
            target_price=1000.00,
            date=_days_from_today(0),
            owner_id=owner_id,
            category="Audio",
            model="Beosound A5",
            color="Nordic Weave",
            notes="Beautiful design, waiting for a sale",
        ),
        HaveProduct(
            name="iPhone 15 Pro",
            brand="Apple",
            website="https://www.apple.com/iphone-15-pro/",
            original_price=999.99,
            price_bought=949.99,
            date=_days_from_today(-60),
            owner_id=owner_id,
            category="Electronics",
            model="iPhone 15 Pro",
            sku="IPHONE15PRO256",
            color="Natural Titanium",
            size="256GB",
            purchase_location="Apple Store",
            warranty_expiry=_days_from_today(305),
        ),
        HaveProduct(
            name="Nike Air Max 90",
            brand="Nike",
            website="https://www.nike.com/air-max-90",
            original_price=129.99,
            price_bought=99.99,
            date=_days_from_today(-90),
            owner_id=owner_id,
            category="Footwear",
            model="Air Max 90",
            color="White/Black",
            size="UK 10",
            purchase_location="Nike Store",
            condition="Good",
        ),
    ]


def seed_demo_data(
    product_service: ProductService,
    receipt_service: ReceiptService,
    owner_id: str,
) -> tuple[list[Product], list[Receipt]]:
    """Create the demo catalogue for ``owner_id``.

    Every have product gets a receipt of its own, linked back to it. A record
    that fails to save is logged and skipped.
    """

    products: list[Product] = []
    for candidate in demo_products(owner_id):
        try:
            products.append(product_service.create_product(owner_id, candidate))
        except IwootError:
            logger.exception("Failed to seed product %s", candidate.name)

    receipts: list[Receipt] = []
    year = datetime.now(UTC).year
    owned = [product for product in products if isinstance(product, HaveProduct)]
    for number, product in enumerate(owned, start=1):
        receipt = Receipt(
            receipt_number=f"RCPT-{year}-{number:03d}",
            store_name=product.purchase_location or product.brand,
            receipt_date=product.date,
            items=[
                ReceiptItem(
                    id=str(number),
                    product_id=product.id or "",
                    quantity=1,
                    discounted_price=product.price_bought or 0.0,
                )
            ],
            total_amount=product.price_bought or 0.0,
            owner_id=owner_id,
        )
        try:
            saved = receipt_service.create_receipt(owner_id, receipt)
        except IwootError:
            logger.exception("Failed to seed receipt %s", receipt.receipt_number)
            continue
        receipt_service.link_products(owner_id, saved, product_service)
        receipts.append(saved)

    logger.info("Seeded %s products and %s receipts for %s", len(products), len(receipts), owner_id)
    return products, receipts
