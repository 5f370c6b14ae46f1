"""Field-level checks shared by the product and receipt validators."""
from __future__ import annotations

import math
from datetime import datetime
from numbers import Real
from typing import Any
from urllib.parse import urlsplit


def is_blank(value: Any) -> bool:
    """``True`` when ``value`` is not a string with visible characters."""

    return not isinstance(value, str) or not value.strip()


def is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


def is_positive(value: Any) -> bool:
    return is_number(value) and value > 0


def is_non_negative(value: Any) -> bool:
    return is_number(value) and value >= 0


def is_valid_url(value: Any) -> bool:
    """Accept absolute URLs: a scheme followed by a network location."""

    if not isinstance(value, str) or not value or value != value.strip():
        return False
    try:
        parts = urlsplit(value)
        _ = parts.port  # raises on a malformed port
    except ValueError:
        return False
    return bool(parts.scheme) and bool(parts.netloc)


def is_valid_date(value: Any) -> bool:
    """Accept ISO-8601 calendar dates and timestamps."""

    if not isinstance(value, str) or not value.strip():
        return False
    try:
        datetime.fromisoformat(value.strip())
    except ValueError:
        return False
    return True
