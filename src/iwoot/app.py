"""Application bootstrapper for the IWOOT product tracker."""
from __future__ import annotations

import logging

from .config import AppConfig
from .web.app import bootstrap_app

logger = logging.getLogger(__name__)


def run() -> None:
    """Entrypoint used by the CLI to launch the JSON API."""

    config = AppConfig.from_env()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )
    app, _, _ = bootstrap_app(config)
    logger.info(
        "Serving IWOOT from %s (list failure policy: %s)",
        config.storage.data_directory,
        config.list_failure_policy.value,
    )
    app.run(debug=config.environment == "development")


if __name__ == "__main__":  # pragma: no cover - manual execution only
    run()
