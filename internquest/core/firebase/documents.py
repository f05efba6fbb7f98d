"""Cloud Firestore adapter for the DocumentStore port."""
from __future__ import annotations
import logging
from typing import Any, Iterable, Optional

from firebase_admin import firestore
from google.cloud.firestore_v1.base_query import FieldFilter
from google.cloud.firestore_v1.field_path import FieldPath

from internquest.core.store import DELETE_FIELD, SERVER_TIMESTAMP, Document, DocumentStore

logger = logging.getLogger(__name__)


def _translate_value(value: Any) -> Any:
    if value is DELETE_FIELD:
        return firestore.DELETE_FIELD
    if value is SERVER_TIMESTAMP:
        return firestore.SERVER_TIMESTAMP
    return value


def _translate(data: dict[str, Any]) -> dict[str, Any]:
    return {key: _translate_value(value) for key, value in data.items()}


def _to_document(snapshot) -> Document:
    return Document(id=snapshot.id, data=snapshot.to_dict() or {})


class FirestoreDocumentStore(DocumentStore):
    """DocumentStore backed by a firestore.Client."""

    def __init__(self, client=None):
        self.client = client if client is not None else firestore.client()

    def get(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        snapshot = self.client.collection(collection).document(doc_id).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict() or {}

    def set(self, collection: str, doc_id: str, data: dict[str, Any], merge: bool = False) -> None:
        self.client.collection(collection).document(doc_id).set(_translate(data), merge=merge)

    def find_first(self, collection: str, field_name: str, value: Any) -> Optional[Document]:
        query = self.client.collection(collection).where(filter=FieldFilter(field_name, "==", value)).limit(1)
        for snapshot in query.get():
            return _to_document(snapshot)
        return None

    def where_in(self, collection: str, field_name: str, values: Iterable[Any]) -> list[Document]:
        values = list(values)
        if not values:
            return []
        query = self.client.collection(collection).where(filter=FieldFilter(field_name, "in", values))
        return [_to_document(snapshot) for snapshot in query.get()]

    def page_by_id(self, collection: str, limit: int, start_after: Optional[str] = None) -> list[Document]:
        ref = self.client.collection(collection)
        query = ref.order_by(FieldPath.document_id()).limit(limit)
        if start_after:
            query = query.start_after({"__name__": ref.document(start_after)})
        return [_to_document(snapshot) for snapshot in query.get()]

    def commit_updates(self, collection: str, updates: dict[str, dict[str, Any]]) -> None:
        if not updates:
            return
        ref = self.client.collection(collection)
        batch = self.client.batch()
        for doc_id, update in updates.items():
            batch.update(ref.document(doc_id), _translate(update))
        batch.commit()
        logger.debug("Committed batch of %d updates to %s", len(updates), collection)
