"""Configuration settings for the IWOOT product tracker."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Literal

from dotenv import find_dotenv, load_dotenv

MAX_UPLOAD_BYTES = 5 * 1024 * 1024


class ListFailurePolicy(str, Enum):
    """How list operations react when the document store is unavailable."""

    FAIL_OPEN = "fail_open"
    """Log the failure and return an empty list so the UI stays usable."""

    FAIL_CLOSED = "fail_closed"
    """Surface the failure to the caller."""


@dataclass(slots=True)
class LookupConfig:
    """Settings for the external product lookup API."""

    api_base_url: str = "https://api.upcitemdb.com/prod/trial"
    timeout_seconds: float = 10.0


@dataclass(slots=True)
class StorageConfig:
    """Where records and uploaded images live."""

    data_directory: Path = field(default_factory=lambda: Path("data"))
    public_base_url: str = "http://localhost:5000/uploads"
    max_upload_bytes: int = MAX_UPLOAD_BYTES

    @property
    def uploads_directory(self) -> Path:
        return self.data_directory / "uploads"


@dataclass(slots=True)
class AppConfig:
    """Top-level configuration for the application."""

    environment: Literal["development", "production"] = "development"
    log_level: str = "INFO"
    list_failure_policy: ListFailurePolicy = ListFailurePolicy.FAIL_OPEN
    seed_demo_data: bool = False
    demo_owner_id: str = "demo-user"
    lookup: LookupConfig = field(default_factory=LookupConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Build a configuration from ``IWOOT_*`` environment variables.

        A ``.env`` file in the working directory is honoured.
        """

        load_dotenv(find_dotenv(usecwd=True))
        defaults = cls()
        environment = os.getenv("IWOOT_ENV", defaults.environment)
        if environment not in ("development", "production"):
            raise ValueError(f"Unsupported IWOOT_ENV: {environment}")
        return cls(
            environment=environment,
            log_level=os.getenv("IWOOT_LOG_LEVEL", defaults.log_level).upper(),
            list_failure_policy=ListFailurePolicy(
                os.getenv("IWOOT_LIST_FAILURE_POLICY", defaults.list_failure_policy.value)
            ),
            seed_demo_data=os.getenv("IWOOT_SEED_DEMO_DATA", "").lower() in ("1", "true", "yes"),
            demo_owner_id=os.getenv("IWOOT_DEMO_OWNER_ID", defaults.demo_owner_id),
            lookup=LookupConfig(
                api_base_url=os.getenv("IWOOT_LOOKUP_API_URL", defaults.lookup.api_base_url),
                timeout_seconds=float(os.getenv("IWOOT_LOOKUP_TIMEOUT", defaults.lookup.timeout_seconds)),
            ),
            storage=StorageConfig(
                data_directory=Path(os.getenv("IWOOT_DATA_DIR", str(defaults.storage.data_directory))),
                public_base_url=os.getenv("IWOOT_PUBLIC_UPLOAD_URL", defaults.storage.public_base_url),
            ),
        )

    def ensure_data_directories(self) -> None:
        """Create data directories required by the application."""

        self.storage.data_directory.mkdir(parents=True, exist_ok=True)
        self.storage.uploads_directory.mkdir(parents=True, exist_ok=True)


DEFAULT_CONFIG = AppConfig()
