"""Client for the external product lookup service."""
from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from urllib.parse import unquote, urlsplit

import requests

from ..models import ProductLookupResult

logger = logging.getLogger(__name__)

_ASIN_PATTERN = re.compile(r"/(?:dp|gp/product)/([A-Z0-9]{10})(?:[/?]|$)", re.IGNORECASE)


@dataclass(slots=True)
class ProductLookupClient:
    """Fetches product details from UPCitemdb to pre-fill new products.

    Lookups are best effort. Network errors, error responses and unexpected
    payloads all come back as ``None`` so a slow or broken lookup service
    never gets in the way of creating a product by hand.
    """

    api_base_url: str = "https://api.upcitemdb.com/prod/trial"
    timeout_seconds: float = 10.0

    def build_headers(self) -> dict[str, str]:
        """Headers sent with every lookup; the trial endpoint needs no key."""

        return {"Accept": "application/json"}

    def lookup_product(self, query: str) -> ProductLookupResult | None:
        """Search by barcode when ``query`` is all digits, then by name."""

        query = (query or "").strip()
        if not query:
            return None

        if query.isdigit():
            result = self.lookup_by_barcode(query)
            if result is not None:
                return result

        return self.search_by_name(query)

    def lookup_by_barcode(self, barcode: str) -> ProductLookupResult | None:
        return self._first_item("lookup", {"upc": barcode})

    def search_by_name(self, name: str) -> ProductLookupResult | None:
        return self._first_item("search", {"s": name, "match_mode": 0, "type": "product"})

    def _first_item(self, path: str, params: Mapping[str, Any]) -> ProductLookupResult | None:
        endpoint = f"{self.api_base_url.rstrip('/')}/{path}"
        try:
            response = requests.get(
                endpoint,
                headers=self.build_headers(),
                params=params,
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Product %s request failed: %s", path, exc)
            return None

        if not isinstance(payload, Mapping) or payload.get("code") != "OK":
            return None
        items = payload.get("items")
        if not isinstance(items, list) or not items or not isinstance(items[0], Mapping):
            return None
        return self._to_result(items[0])

    @staticmethod
    def _to_result(item: Mapping[str, Any]) -> ProductLookupResult:
        images = item.get("images")
        offers = item.get("offers")
        website = None
        if isinstance(offers, list) and offers and isinstance(offers[0], Mapping):
            website = offers[0].get("link") or None
        specs = item.get("specs")

        return ProductLookupResult(
            name=item.get("title") or item.get("description") or None,
            brand=item.get("brand") or None,
            description=item.get("description") or None,
            category=item.get("category") or None,
            model=item.get("model") or None,
            images=list(images) if isinstance(images, list) and images else None,
            price=_price(item.get("lowest_recorded_price")) or _price(item.get("highest_recorded_price")),
            website=website,
            specifications=_specifications(specs),
        )

    def health_check(self) -> dict[str, Any]:
        """Perform a lightweight request to ensure the API is reachable."""

        try:
            response = requests.get(self.api_base_url, timeout=5)
            response.raise_for_status()
            return {"ok": True, "checked_at": datetime.now(UTC)}
        except requests.RequestException as exc:
            return {"ok": False, "error": str(exc), "checked_at": datetime.now(UTC)}


def lookup_product_by_url(url: str) -> ProductLookupResult | None:
    """Guess a product name from the last segment of a shop URL.

    This never touches the network and is only a fallback; the guess is
    frequently wrong.
    """

    try:
        parts = urlsplit((url or "").strip())
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None

    segments = [unquote(segment) for segment in parts.path.split("/") if segment]
    if not segments:
        return None

    name = re.sub(r"\.html?$", "", segments[-1], flags=re.IGNORECASE)
    name = re.sub(r"[-_+]+", " ", name).strip()
    if not name:
        return None

    sku = None
    if "amazon" in parts.netloc.lower():
        match = _ASIN_PATTERN.search(parts.path)
        if match:
            sku = match.group(1).upper()

    return ProductLookupResult(name=name, sku=sku, website=url.strip())


def _price(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    return price if price > 0 else None


def _specifications(specs: Any) -> dict[str, str] | None:
    # UPCitemdb sends specs either as a mapping or as [[key, value], ...].
    if isinstance(specs, Mapping):
        result = {str(key): str(value) for key, value in specs.items()}
    elif isinstance(specs, list):
        result = {
            str(pair[0]): str(pair[1])
            for pair in specs
            if isinstance(pair, (list, tuple)) and len(pair) == 2
        }
    else:
        return None
    return result or None
