"""Helpers shared by the product and receipt services."""
from __future__ import annotations

import logging
from datetime import UTC, datetime

from ..config import ListFailurePolicy
from ..exceptions import BackendError, ServiceError, ValidationError

# Store failures that a list call may downgrade to an empty result.
TRANSIENT_LIST_CODES = frozenset({"failed-precondition", "unavailable", "permission-denied"})


def utc_now() -> str:
    """Current time as an ISO-8601 UTC timestamp."""

    return datetime.now(UTC).isoformat()


def require_id(value: str, label: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError([f"Valid {label} is required"])
    return value


def handle_list_failure(
    exc: BackendError,
    policy: ListFailurePolicy,
    logger: logging.Logger,
    what: str,
) -> list:
    """Apply the list failure policy to ``exc``.

    Under ``FAIL_OPEN`` a transient store failure becomes an empty list so the
    presentation layer keeps working; the failure is only visible in the logs.
    """

    if policy is ListFailurePolicy.FAIL_OPEN and exc.code in TRANSIENT_LIST_CODES:
        logger.warning("Listing %s failed (%s), returning an empty list: %s", what, exc.code, exc)
        return []
    logger.error("Listing %s failed (%s): %s", what, exc.code, exc)
    raise ServiceError(f"Failed to fetch {what}: {exc}") from exc
