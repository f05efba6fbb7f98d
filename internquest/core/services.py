"""Collaborator bundle injected into every operation.

The application factory builds one Services per process (Firebase adapters,
SMTP relay, Expo gateway); tests build one from in-memory fakes.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Optional

from internquest.core.store import DocumentStore

DELETED_STUDENTS_COLLECTION = "deleted_students"
NOTIFICATIONS_COLLECTION = "notifications"


@dataclass
class Services:
    identity: Any
    store: DocumentStore
    mailer: Any
    push: Any
    users_collection: str = "users"
    student_id_field: str = "studentId"
    app_base_url: Optional[str] = None
