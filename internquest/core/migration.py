"""Student-id migration engine.

Backfills the canonical student-id field from the legacy ``studentNumber``
field across the student collections, optionally removing the legacy field.

Properties:
    - Keyset pagination by document id (stable under concurrent writes)
    - One atomic batch per page; committed pages survive a crash
    - Idempotent: a second run over migrated data changes nothing
    - Dry-run executes the same decisions and only suppresses the write
    - Hard cap of MAX_DOCS_PER_RUN scanned documents per invocation; hitting
      it is a normal, reported stop with a resume cursor
"""
from __future__ import annotations
import datetime
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Optional

from internquest.core import audit
from internquest.core.authz import authorize
from internquest.core.services import DELETED_STUDENTS_COLLECTION
from internquest.core.store import DELETE_FIELD, Document, DocumentStore

logger = logging.getLogger(__name__)

LEGACY_FIELD = "studentNumber"
DEFAULT_CANONICAL_FIELD = "studentId"
DEFAULT_COLLECTIONS = ("users", DELETED_STUDENTS_COLLECTION)

DEFAULT_BATCH_SIZE = 300
MIN_BATCH_SIZE = 50
MAX_BATCH_SIZE = 450
MAX_DOCS_PER_RUN = 5000


def _to_non_empty_string(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def clamp_batch_size(raw: Any) -> int:
    """Clamp a requested batch size to [MIN_BATCH_SIZE, MAX_BATCH_SIZE].

    Non-numeric input falls back to DEFAULT_BATCH_SIZE.
    """
    if raw is None or isinstance(raw, bool):
        return DEFAULT_BATCH_SIZE
    try:
        requested = float(raw)
    except (TypeError, ValueError):
        return DEFAULT_BATCH_SIZE
    if not math.isfinite(requested):
        return DEFAULT_BATCH_SIZE
    return int(min(max(requested, MIN_BATCH_SIZE), MAX_BATCH_SIZE))


@dataclass(frozen=True)
class ResumeCursor:
    collection: str
    after_id: str

    def to_dict(self) -> dict:
        return {"collection": self.collection, "afterId": self.after_id}

    @classmethod
    def from_payload(cls, raw: Any) -> Optional["ResumeCursor"]:
        if not isinstance(raw, dict):
            return None
        collection = _to_non_empty_string(raw.get("collection"))
        after_id = _to_non_empty_string(raw.get("afterId"))
        if not collection or not after_id:
            return None
        return cls(collection, after_id)


@dataclass(frozen=True)
class MigrationOptions:
    dry_run: bool = False
    delete_legacy_field: bool = True
    batch_size: int = DEFAULT_BATCH_SIZE
    resume_from: Optional[ResumeCursor] = None

    @classmethod
    def from_payload(cls, data: Optional[dict]) -> "MigrationOptions":
        """Build options from a callable payload, applying defaults and clamps."""
        data = data if isinstance(data, dict) else {}
        if "deleteLegacyField" in data:
            delete_raw = data.get("deleteLegacyField")
        else:
            delete_raw = data.get("deleteStudentNumber")
        return cls(
            dry_run=bool(data.get("dryRun")),
            delete_legacy_field=True if delete_raw is None else bool(delete_raw),
            batch_size=clamp_batch_size(data.get("batchSize")),
            resume_from=ResumeCursor.from_payload(data.get("resumeFrom")),
        )


@dataclass
class CollectionResult:
    scanned: int = 0
    updated_student_id: int = 0
    removed_student_number: int = 0
    skipped: int = 0

    def to_dict(self) -> dict:
        return {
            "scanned": self.scanned,
            "updatedStudentId": self.updated_student_id,
            "removedStudentNumber": self.removed_student_number,
            "skipped": self.skipped,
        }


@dataclass
class MigrationReport:
    options: MigrationOptions
    collections: list[str]
    results: dict[str, CollectionResult] = field(default_factory=dict)
    stopped_early: bool = False
    resume_from: Optional[ResumeCursor] = None

    def total(self, attr: str) -> int:
        return sum(getattr(result, attr) for result in self.results.values())

    def to_dict(self) -> dict:
        if self.stopped_early:
            note = f"Stopped early at {MAX_DOCS_PER_RUN} docs for safety. Call again to continue."
        else:
            note = "Completed."
        return {
            "success": True,
            "dryRun": self.options.dry_run,
            "deleteLegacyField": self.options.delete_legacy_field,
            "deleteStudentNumber": self.options.delete_legacy_field,
            "batchSize": self.options.batch_size,
            "collections": list(self.collections),
            "resultsByCollection": {name: result.to_dict() for name, result in self.results.items()},
            "scanned": self.total("scanned"),
            "updatedStudentId": self.total("updated_student_id"),
            "removedStudentNumber": self.total("removed_student_number"),
            "skipped": self.total("skipped"),
            "stoppedEarly": self.stopped_early,
            "resumeFrom": self.resume_from.to_dict() if self.resume_from else None,
            "note": note,
        }


def plan_update(
    data: dict[str, Any],
    *,
    canonical_field: str,
    legacy_field: str,
    delete_legacy_field: bool,
) -> tuple[dict[str, Any], bool, bool]:
    """Decide the change for one document.

    Returns:
        Tuple of (update fields, backfilled, removed_legacy). An empty update
        means the document is skipped.
    """
    canonical = _to_non_empty_string(data.get(canonical_field))
    legacy = _to_non_empty_string(data.get(legacy_field))

    if not canonical and not legacy:
        return {}, False, False

    update: dict[str, Any] = {}
    backfilled = False
    removed = False

    if not canonical and legacy:
        update[canonical_field] = legacy
        backfilled = True

    if delete_legacy_field and legacy_field in data:
        update[legacy_field] = DELETE_FIELD
        removed = True

    return update, backfilled, removed


class StudentIdMigration:
    """Paginated, resumable backfill of the canonical student-id field."""

    def __init__(
        self,
        store: DocumentStore,
        collections: tuple[str, ...] | list[str] = DEFAULT_COLLECTIONS,
        canonical_field: str = DEFAULT_CANONICAL_FIELD,
        legacy_field: str = LEGACY_FIELD,
        max_docs: int = MAX_DOCS_PER_RUN,
    ):
        self.store = store
        self.collections = list(collections)
        self.canonical_field = canonical_field
        self.legacy_field = legacy_field
        self.max_docs = max_docs

    def run(self, options: MigrationOptions) -> MigrationReport:
        report = MigrationReport(options=options, collections=self.collections)
        scanned_total = 0

        start_index, start_after = self._resume_point(options.resume_from)

        for index, collection in enumerate(self.collections):
            if index < start_index:
                continue
            result = CollectionResult()
            report.results[collection] = result
            cursor = start_after if index == start_index else None

            while True:
                page = self.store.page_by_id(collection, options.batch_size, start_after=cursor)
                if not page:
                    break

                staged: dict[str, dict[str, Any]] = {}
                for doc in page:
                    if scanned_total >= self.max_docs:
                        report.stopped_early = True
                        break
                    scanned_total += 1
                    result.scanned += 1
                    cursor = doc.id
                    self._process(doc, options, result, staged)

                if staged and not options.dry_run:
                    self.store.commit_updates(collection, staged)
                logger.debug(
                    "Migration page committed: collection=%s docs=%d staged=%d dry_run=%s",
                    collection, len(page), len(staged), options.dry_run,
                )

                if report.stopped_early or scanned_total >= self.max_docs:
                    report.stopped_early = True
                    report.resume_from = ResumeCursor(collection, cursor) if cursor else None
                    break

            if report.stopped_early:
                break

        logger.info(
            "Student-id migration finished: scanned=%d updated=%d removed=%d skipped=%d stopped_early=%s dry_run=%s",
            report.total("scanned"),
            report.total("updated_student_id"),
            report.total("removed_student_number"),
            report.total("skipped"),
            report.stopped_early,
            options.dry_run,
        )
        return report

    def _resume_point(self, resume_from: Optional[ResumeCursor]) -> tuple[int, Optional[str]]:
        if resume_from is None or resume_from.collection not in self.collections:
            return 0, None
        return self.collections.index(resume_from.collection), resume_from.after_id

    def _process(
        self,
        doc: Document,
        options: MigrationOptions,
        result: CollectionResult,
        staged: dict[str, dict[str, Any]],
    ) -> None:
        update, backfilled, removed = plan_update(
            doc.data or {},
            canonical_field=self.canonical_field,
            legacy_field=self.legacy_field,
            delete_legacy_field=options.delete_legacy_field,
        )
        if not update:
            result.skipped += 1
            return
        if backfilled:
            result.updated_student_id += 1
        if removed:
            result.removed_student_number += 1
        update["updatedAt"] = datetime.datetime.now(datetime.timezone.utc).isoformat()
        staged[doc.id] = update


def migrate_student_ids(
    store: DocumentStore,
    options: MigrationOptions,
    *,
    users_collection: str = "users",
    canonical_field: str = DEFAULT_CANONICAL_FIELD,
) -> MigrationReport:
    """Run the migration over the configured users collection and deleted_students."""
    collections = [users_collection, DELETED_STUDENTS_COLLECTION]
    engine = StudentIdMigration(store, collections=collections, canonical_field=canonical_field)
    return engine.run(options)


def run_student_id_migration(services, caller, payload: Optional[dict]) -> dict:
    """Gated migration entry point used by the migrateStudentIds callable.

    Raises:
        ServiceError: UNAUTHENTICATED or PERMISSION_DENIED for non-admin callers
    """
    authorize(caller, "migrate_student_ids")
    options = MigrationOptions.from_payload(payload)
    report = migrate_student_ids(
        services.store,
        options,
        users_collection=services.users_collection,
        canonical_field=services.student_id_field,
    )
    result = report.to_dict()
    if not options.dry_run:
        audit.safe_log_event(
            "migrate_student_ids",
            ",".join(report.collections),
            operator=caller.uid,
            details={
                "scanned": result["scanned"],
                "updatedStudentId": result["updatedStudentId"],
                "removedStudentNumber": result["removedStudentNumber"],
                "stoppedEarly": result["stoppedEarly"],
            },
        )
    return result
