"""Document store port.

Core modules talk to the document database only through DocumentStore.
The Firestore adapter lives in internquest.core.firebase.documents; tests
use an in-memory implementation.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional


class _Sentinel:
    """Marker value resolved by the store adapter at write time."""

    def __init__(self, name: str):
        self.name = name

    def __repr__(self) -> str:
        return f"<{self.name}>"


# Remove the field from the document
DELETE_FIELD = _Sentinel("DELETE_FIELD")
# Server-assigned write timestamp
SERVER_TIMESTAMP = _Sentinel("SERVER_TIMESTAMP")


@dataclass
class Document:
    id: str
    data: dict[str, Any] = field(default_factory=dict)


class DocumentStore:
    """Minimal document database interface used by InternQuest operations."""

    def get(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        """Return document data, or None if the document does not exist."""
        raise NotImplementedError

    def set(self, collection: str, doc_id: str, data: dict[str, Any], merge: bool = False) -> None:
        raise NotImplementedError

    def find_first(self, collection: str, field_name: str, value: Any) -> Optional[Document]:
        """Return the first document whose field equals value (exact match)."""
        raise NotImplementedError

    def where_in(self, collection: str, field_name: str, values: Iterable[Any]) -> list[Document]:
        raise NotImplementedError

    def page_by_id(self, collection: str, limit: int, start_after: Optional[str] = None) -> list[Document]:
        """Return up to limit documents ordered by document id ascending.

        Keyset pagination: only documents whose id sorts strictly after
        start_after are returned.
        """
        raise NotImplementedError

    def commit_updates(self, collection: str, updates: dict[str, dict[str, Any]]) -> None:
        """Apply field updates to several documents as one atomic batch.

        Values may be DELETE_FIELD or SERVER_TIMESTAMP.
        """
        raise NotImplementedError
