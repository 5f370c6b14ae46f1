"""Image storage for product photos and receipt scans."""
from __future__ import annotations

import logging
import re
import time
from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path
from urllib.parse import quote, unquote

from ..config import MAX_UPLOAD_BYTES
from ..exceptions import AccessDeniedError, BackendError, NotFoundError

logger = logging.getLogger(__name__)

FOLDERS = ("products", "receipts")


class FileStorage(ABC):
    """Upload and delete owner-scoped image objects."""

    @abstractmethod
    def upload(
        self,
        data: bytes,
        owner_id: str,
        folder: str,
        filename: str,
        content_type: str,
    ) -> str:
        """Store ``data`` and return its public reference."""

    @abstractmethod
    def delete(self, public_ref: str, owner_id: str) -> None:
        """Remove the object behind ``public_ref`` if ``owner_id`` uploaded it."""

    def upload_many(
        self,
        files: Iterable[tuple[bytes, str, str]],
        owner_id: str,
        folder: str,
    ) -> list[str]:
        """Upload ``(data, filename, content_type)`` tuples in order."""

        return [
            self.upload(data, owner_id, folder, filename, content_type)
            for data, filename, content_type in files
        ]


class LocalFileStorage(FileStorage):
    """Keeps uploads in a local directory served under ``public_base_url``.

    Objects live at ``<folder>/<owner_id>/<timestamp>-<name>``, so owners never
    share a directory.
    """

    def __init__(self, base_path: Path, public_base_url: str, max_bytes: int = MAX_UPLOAD_BYTES) -> None:
        self._base_path = base_path
        self._public_base_url = public_base_url.rstrip("/")
        self._max_bytes = max_bytes
        self._base_path.mkdir(parents=True, exist_ok=True)

    @property
    def base_path(self) -> Path:
        return self._base_path

    def upload(
        self,
        data: bytes,
        owner_id: str,
        folder: str,
        filename: str,
        content_type: str,
    ) -> str:
        if not owner_id or "/" in owner_id or owner_id in (".", ".."):
            raise AccessDeniedError("Uploads require a signed-in user")
        if folder not in FOLDERS:
            raise BackendError(f"Unknown upload folder: {folder}", code="invalid-argument")
        if not (content_type or "").startswith("image/"):
            raise BackendError("File must be an image", code="invalid-argument")
        if len(data) > self._max_bytes:
            raise BackendError("Image size must be less than 5MB", code="invalid-argument")

        object_name = f"{int(time.time() * 1000)}-{self._safe_name(filename)}"
        relative = Path(folder) / owner_id / object_name
        target = self._base_path / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            target.write_bytes(data)
        except OSError as exc:
            raise BackendError(f"Failed to upload image: {exc.strerror}", code="unavailable") from exc

        logger.info("Stored %s bytes at %s", len(data), relative.as_posix())
        return f"{self._public_base_url}/{quote(relative.as_posix())}"

    def delete(self, public_ref: str, owner_id: str) -> None:
        target = self.path_for(public_ref)
        parts = target.relative_to(self._base_path.resolve()).parts
        if not owner_id or len(parts) < 3 or parts[1] != owner_id:
            raise AccessDeniedError("Images can only be deleted by their owner")
        if not target.is_file():
            raise NotFoundError(f"No stored image for {public_ref}")
        target.unlink()

    def path_for(self, public_ref: str) -> Path:
        """Map a public reference back to its file under ``base_path``."""

        prefix = f"{self._public_base_url}/"
        if not public_ref.startswith(prefix):
            raise BackendError("Invalid image URL format", code="invalid-argument")

        relative = unquote(public_ref[len(prefix):])
        target = (self._base_path / relative).resolve()
        if not target.is_relative_to(self._base_path.resolve()):
            raise BackendError("Invalid image URL format", code="invalid-argument")
        return target

    @staticmethod
    def _safe_name(filename: str) -> str:
        name = Path(filename or "upload").name
        return re.sub(r"[^a-zA-Z0-9.-]", "_", name) or "upload"
