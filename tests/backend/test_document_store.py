from __future__ import annotations

import json
from pathlib import Path

import pytest

from iwoot.exceptions import AccessDeniedError, BackendError, NotFoundError
from iwoot.storage.repository import InMemoryDocumentStore, JsonDocumentStore


@pytest.fixture(params=["memory", "json"])
def store(request: pytest.FixtureRequest, tmp_path: Path) -> InMemoryDocumentStore:
    if request.param == "memory":
        return InMemoryDocumentStore()
    return JsonDocumentStore(tmp_path / "products.json")


def test_create_get_update_delete(store: InMemoryDocumentStore) -> None:
    document_id = store.create("user-1", {"owner_id": "user-1", "name": "Speaker", "tags": ["audio"]})

    assert store.get("user-1", document_id) == {"owner_id": "user-1", "name": "Speaker", "tags": ["audio"]}

    store.update("user-1", document_id, {"name": "Beosound A5"})
    assert store.get("user-1", document_id)["name"] == "Beosound A5"

    store.delete("user-1", document_id)
    assert store.get("user-1", document_id) is None


def test_list_filters_by_owner_and_equality(store: InMemoryDocumentStore) -> None:
    want_id = store.create("user-1", {"owner_id": "user-1", "type": "want"})
    store.create("user-1", {"owner_id": "user-1", "type": "have"})
    store.create("user-2", {"owner_id": "user-2", "type": "want"})

    assert len(store.list("user-1")) == 2
    assert store.list("user-1", {"type": "want"}) == [{"id": want_id, "owner_id": "user-1", "type": "want"}]


def test_ownership_is_enforced(store: InMemoryDocumentStore) -> None:
    document_id = store.create("user-1", {"owner_id": "user-1"})

    with pytest.raises(AccessDeniedError):
        store.create("user-1", {"owner_id": "user-2"})
    with pytest.raises(AccessDeniedError):
        store.get("user-2", document_id)
    with pytest.raises(AccessDeniedError):
        store.update("user-2", document_id, {"name": "mine now"})
    with pytest.raises(AccessDeniedError):
        store.update("user-1", document_id, {"owner_id": "user-2"})
    with pytest.raises(AccessDeniedError):
        store.delete("user-2", document_id)
    with pytest.raises(AccessDeniedError):
        store.list("")


def test_missing_documents(store: InMemoryDocumentStore) -> None:
    with pytest.raises(NotFoundError):
        store.update("user-1", "missing", {"name": "x"})
    with pytest.raises(NotFoundError):
        store.delete("user-1", "missing")


def test_returned_documents_are_copies(store: InMemoryDocumentStore) -> None:
    document_id = store.create("user-1", {"owner_id": "user-1", "images": []})

    store.get("user-1", document_id)["images"].append("https://example.com/a.png")

    assert store.get("user-1", document_id)["images"] == []


def test_json_store_persists_between_instances(tmp_path: Path) -> None:
    path = tmp_path / "data" / "receipts.json"
    document_id = JsonDocumentStore(path).create("user-1", {"owner_id": "user-1", "store_name": "Nike Store"})

    reopened = JsonDocumentStore(path)

    assert reopened.get("user-1", document_id)["store_name"] == "Nike Store"
    assert json.loads(path.read_text(encoding="utf-8"))[document_id]["owner_id"] == "user-1"


def test_json_store_reports_corrupt_file(tmp_path: Path) -> None:
    path = tmp_path / "products.json"
    store = JsonDocumentStore(path)
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(BackendError) as excinfo:
        store.list("user-1")
    assert excinfo.value.code == "data-loss"
