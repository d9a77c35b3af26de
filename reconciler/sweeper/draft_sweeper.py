"""Garbage collection of abandoned draft documents.

There is no lock between the sweeper and the webhook handler. Each deletion
re-reads the document and its session first, and the final ``DELETE`` only
matches rows that are still drafts, so a payment landing mid-sweep wins.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from reconciler.audit.actions import AuditAction
from reconciler.audit.audit_log import AuditLog
from reconciler.config.settings import Settings
from reconciler.database.models import DocumentRecord
from reconciler.database.repositories.documents_repository import DocumentsRepository
from reconciler.database.repositories.payment_sessions_repository import (
    PaymentSessionsRepository,
)
from reconciler.database.repositories.payments_repository import PaymentsRepository
from reconciler.exceptions import DocumentNotFoundError
from reconciler.logging.logger import Log
from reconciler.payments.state_machine import DocumentStatus
from reconciler.storage.base import BaseObjectStore
from reconciler.storage.exceptions import StorageError
from reconciler.storage.paths import object_key_from_reference
from reconciler.sweeper.safety import Classification, classify_draft, keep


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class DraftCandidate:
    document: DocumentRecord
    reason: str
    session_status: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.document.id,
            "filename": self.document.filename,
            "userId": self.document.user_id,
            "fileUrl": self.document.file_url,
            "createdAt": self.document.created_at.isoformat() if self.document.created_at else None,
            "sessionStatus": self.session_status,
            "reason": self.reason,
        }


@dataclass
class DraftReview:
    documents_to_cleanup: list[DraftCandidate] = field(default_factory=list)
    documents_to_keep: list[DraftCandidate] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "documentsToCleanup": [c.to_dict() for c in self.documents_to_cleanup],
            "documentsToKeep": [c.to_dict() for c in self.documents_to_keep],
            "totalToCleanup": len(self.documents_to_cleanup),
            "totalToKeep": len(self.documents_to_keep),
        }


@dataclass
class SweepSummary:
    checked: int = 0
    deleted: int = 0
    storage_deleted: int = 0
    sessions_deleted: int = 0
    errors: list[dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "checked": self.checked,
            "deleted": self.deleted,
            "storageDeleted": self.storage_deleted,
            "sessionsDeleted": self.sessions_deleted,
            "errors": self.errors,
        }


class DraftSweeper:
    def __init__(
        self,
        settings: Settings,
        documents_repo: DocumentsRepository,
        sessions_repo: PaymentSessionsRepository,
        payments_repo: PaymentsRepository,
        store: BaseObjectStore,
        audit: AuditLog,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._settings = settings
        self._documents_repo = documents_repo
        self._sessions_repo = sessions_repo
        self._payments_repo = payments_repo
        self._store = store
        self._audit = audit
        self._clock = clock

    def review(self) -> DraftReview:
        """Classify every draft in the sweep window without deleting anything."""
        now = self._clock()
        drafts = self._documents_repo.list_drafts_created_between(
            created_after=now - timedelta(days=self._settings.sweeper_max_draft_age_days),
            created_before=now - timedelta(minutes=self._settings.sweeper_min_draft_age_minutes),
        )
        review = DraftReview()
        for document in drafts:
            classification, session_status = self._classify(document, now)
            candidate = DraftCandidate(document, classification.reason, session_status)
            if classification.safe_to_delete:
                review.documents_to_cleanup.append(candidate)
            else:
                review.documents_to_keep.append(candidate)

        Log.info(
            "Draft review finished",
            to_cleanup=len(review.documents_to_cleanup),
            to_keep=len(review.documents_to_keep),
        )
        return review

    def sweep(self) -> SweepSummary:
        """Delete the drafts that are safe to delete, at most one batch per run."""
        review = self.review()
        summary = SweepSummary(checked=len(review.documents_to_cleanup) + len(review.documents_to_keep))

        batch = review.documents_to_cleanup[: self._settings.sweeper_batch_limit]
        if len(review.documents_to_cleanup) > len(batch):
            Log.warning(
                f"Batch limit reached, deleting {len(batch)} of "
                f"{len(review.documents_to_cleanup)} drafts"
            )

        for candidate in batch:
            document = self._reread_draft(candidate.document.id)
            if document is None:
                continue
            classification, _ = self._classify(document, self._clock())
            if not classification.safe_to_delete:
                Log.info(
                    "Draft no longer safe to delete, keeping it",
                    document_id=document.id,
                    reason=classification.reason,
                )
                continue
            self._delete(document, summary, reason=classification.reason)

        Log.info(
            "Draft sweep finished",
            checked=summary.checked,
            deleted=summary.deleted,
            errors=len(summary.errors),
        )
        return summary

    def delete_approved(self, document_ids: list[str], actor: str = "system") -> SweepSummary:
        """Delete drafts a staff member picked from the review list."""
        summary = SweepSummary(checked=len(document_ids))
        for document_id in document_ids:
            document = self._reread_draft(document_id)
            if document is None:
                summary.errors.append(
                    {"documentId": document_id, "error": "Document not found or not a draft"}
                )
                continue
            self._delete(document, summary, reason="Approved for cleanup", actor=actor)

        Log.info(
            "Approved draft cleanup finished",
            requested=len(document_ids),
            deleted=summary.deleted,
            errors=len(summary.errors),
        )
        return summary

    def _classify(self, document: DocumentRecord, now: datetime) -> tuple[Classification, str | None]:
        try:
            has_payment = self._payments_repo.exists_for_document(document.id)
            session = self._sessions_repo.find_for_document(document.id)
        except Exception as exc:
            Log.warning(f"Lookup failed while classifying draft: {exc}", document_id=document.id)
            return keep("Could not check payment state"), None
        abandoned_after = timedelta(hours=self._settings.sweeper_abandoned_session_hours)
        classification = classify_draft(has_payment, session, now, abandoned_after)
        return classification, session.payment_status if session else None

    def _reread_draft(self, document_id: str) -> DocumentRecord | None:
        try:
            document = self._documents_repo.find_by_id(document_id)
        except DocumentNotFoundError:
            return None
        if document.status != DocumentStatus.DRAFT.value:
            Log.info("Document is no longer a draft", document_id=document_id, status=document.status)
            return None
        return document

    def _delete(
        self,
        document: DocumentRecord,
        summary: SweepSummary,
        reason: str,
        actor: str = "system",
    ) -> None:
        try:
            sessions_deleted = self._documents_repo.delete_draft(document.id)
        except Exception as exc:
            Log.error(f"Deleting draft failed: {exc}", document_id=document.id)
            summary.errors.append({"documentId": document.id, "type": "general", "error": str(exc)})
            return
        if sessions_deleted is None:
            summary.errors.append(
                {"documentId": document.id, "type": "delete", "error": "Document is no longer a draft"}
            )
            return
        summary.sessions_deleted += sessions_deleted

        # The row is gone, so an object left behind here is only an orphan.
        if document.file_url:
            key = object_key_from_reference(document.file_url, self._settings.storage_bucket)
            try:
                self._store.delete(key)
                summary.storage_deleted += 1
            except StorageError as exc:
                Log.warning(f"Could not delete stored file: {exc}", document_id=document.id)
                summary.errors.append(
                    {"documentId": document.id, "type": "storage", "error": str(exc)}
                )

        summary.deleted += 1
        self._audit.record(
            AuditAction.DRAFT_DELETED,
            f"Draft document {document.id} deleted",
            entity_type="document",
            entity_id=document.id,
            actor=actor,
            affected_user_id=document.user_id,
            metadata={"filename": document.filename, "reason": reason},
        )
