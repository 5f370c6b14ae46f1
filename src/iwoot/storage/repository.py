"""Document store contract and the implementations shipped with IWOOT.

A store holds one collection of JSON-like documents keyed by id. It is also
the access-control boundary: every operation is checked against the caller's
owner id, the same way the hosted backend's security rules would.
"""
from __future__ import annotations

import copy
import json
import logging
import uuid
from abc import ABC, abstractmethod
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from ..exceptions import AccessDeniedError, BackendError, NotFoundError

logger = logging.getLogger(__name__)

Document = dict[str, Any]


class DocumentStore(ABC):
    """Create/read/update/delete by id and query by equality filter."""

    @abstractmethod
    def create(self, caller_id: str, payload: Mapping[str, Any]) -> str:
        """Persist ``payload`` and return the new document id.

        The payload's ``owner_id`` must equal ``caller_id``.
        """

    @abstractmethod
    def get(self, caller_id: str, document_id: str) -> Document | None:
        """Return the document, or ``None`` if it does not exist."""

    @abstractmethod
    def list(self, caller_id: str, filters: Mapping[str, Any] | None = None) -> list[Document]:
        """Return the caller's documents whose fields equal ``filters``."""

    @abstractmethod
    def update(self, caller_id: str, document_id: str, changes: Mapping[str, Any]) -> None:
        """Merge ``changes`` into an existing document."""

    @abstractmethod
    def delete(self, caller_id: str, document_id: str) -> None:
        """Remove a document."""


class InMemoryDocumentStore(DocumentStore):
    """Dictionary backed store; also the base for file backed stores."""

    def __init__(self, documents: Mapping[str, Mapping[str, Any]] | None = None) -> None:
        self._documents: dict[str, Document] = {
            key: copy.deepcopy(dict(value)) for key, value in (documents or {}).items()
        }

    # --- DocumentStore interface ----------------------------------------------

    def create(self, caller_id: str, payload: Mapping[str, Any]) -> str:
        self._require_caller(caller_id)
        if payload.get("owner_id") != caller_id:
            raise AccessDeniedError("Records can only be created for the signed-in user")

        documents = self._load()
        document_id = uuid.uuid4().hex[:20]
        documents[document_id] = copy.deepcopy(dict(payload))
        self._persist(documents)
        return document_id

    def get(self, caller_id: str, document_id: str) -> Document | None:
        self._require_caller(caller_id)
        document = self._load().get(document_id)
        if document is None:
            return None
        self._require_owner(caller_id, document)
        return copy.deepcopy(document)

    def list(self, caller_id: str, filters: Mapping[str, Any] | None = None) -> list[Document]:
        self._require_caller(caller_id)
        criteria = {"owner_id": caller_id, **(filters or {})}
        results: list[Document] = []
        for document_id, document in self._load().items():
            if all(document.get(key) == value for key, value in criteria.items()):
                results.append({"id": document_id, **copy.deepcopy(document)})
        return results

    def update(self, caller_id: str, document_id: str, changes: Mapping[str, Any]) -> None:
        self._require_caller(caller_id)
        documents = self._load()
        document = documents.get(document_id)
        if document is None:
            raise NotFoundError(f"No document to update: {document_id}")
        self._require_owner(caller_id, document)
        if "owner_id" in changes and changes["owner_id"] != document.get("owner_id"):
            raise AccessDeniedError("The owner of a record cannot be changed")

        document.update(copy.deepcopy(dict(changes)))
        self._persist(documents)

    def delete(self, caller_id: str, document_id: str) -> None:
        self._require_caller(caller_id)
        documents = self._load()
        document = documents.get(document_id)
        if document is None:
            raise NotFoundError(f"No document to delete: {document_id}")
        self._require_owner(caller_id, document)
        del documents[document_id]
        self._persist(documents)

    # --- Storage hooks --------------------------------------------------------

    def _load(self) -> dict[str, Document]:
        return self._documents

    def _persist(self, documents: dict[str, Document]) -> None:
        self._documents = documents

    # --- Access rules ---------------------------------------------------------

    @staticmethod
    def _require_caller(caller_id: str) -> None:
        if not caller_id:
            raise AccessDeniedError("Authentication required")

    @staticmethod
    def _require_owner(caller_id: str, document: Mapping[str, Any]) -> None:
        if document.get("owner_id") != caller_id:
            raise AccessDeniedError()


class JsonDocumentStore(InMemoryDocumentStore):
    """Persists one collection to a JSON file, rewritten on every write."""

    def __init__(self, file_path: Path) -> None:
        super().__init__()
        self._file_path = file_path
        self._ensure_file()

    @property
    def file_path(self) -> Path:
        return self._file_path

    def _load(self) -> dict[str, Document]:
        try:
            raw = json.loads(self._file_path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise BackendError(f"Could not read {self._file_path.name}", code="unavailable") from exc
        except ValueError as exc:
            logger.error("Collection file %s is not valid JSON", self._file_path)
            raise BackendError(f"Collection {self._file_path.stem} is corrupt", code="data-loss") from exc
        if not isinstance(raw, dict):
            raise BackendError(f"Collection {self._file_path.stem} is corrupt", code="data-loss")
        return raw

    def _persist(self, documents: dict[str, Document]) -> None:
        try:
            self._file_path.write_text(json.dumps(documents, indent=2) + "\n", encoding="utf-8")
        except OSError as exc:
            raise BackendError(f"Could not write {self._file_path.name}", code="unavailable") from exc

    def _ensure_file(self) -> None:
        if not self._file_path.exists():
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            self._file_path.write_text("{}", encoding="utf-8")
