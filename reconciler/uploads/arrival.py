from reconciler.audit.actions import AuditAction
from reconciler.audit.audit_log import AuditLog
from reconciler.database.repositories.documents_repository import DocumentsRepository
from reconciler.delivery.models import DeliveryRequest
from reconciler.delivery.notifier import DeliveryNotifier
from reconciler.exceptions import DocumentNotFoundError
from reconciler.logging.logger import Log
from reconciler.payments.state_machine import DocumentStatus
from reconciler.storage.exceptions import StorageError
from reconciler.storage.paths import object_key
from reconciler.uploads.models import ArrivalResult, UploadedFile
from reconciler.uploads.uploader import RetryingUploader


class FileArrivalService:
    """First upload of a paid document's file.

    Payment and file storage are independent: if storing fails the document
    stays ``pending`` with ``upload_failed_at`` set, and the customer is sent
    to the recovery flow.
    """

    def __init__(
        self,
        documents_repo: DocumentsRepository,
        uploader: RetryingUploader,
        notifier: DeliveryNotifier,
        audit: AuditLog,
    ) -> None:
        self._documents_repo = documents_repo
        self._uploader = uploader
        self._notifier = notifier
        self._audit = audit

    def receive(self, document_id: str, upload: UploadedFile) -> ArrivalResult:
        try:
            document = self._documents_repo.find_by_id(document_id)
        except DocumentNotFoundError:
            return ArrivalResult(success=False, document_id=document_id, error="Document not found")

        if document.status != DocumentStatus.PENDING.value:
            Log.warning(
                "File arrival rejected, document is not pending",
                document_id=document_id,
                status=document.status,
            )
            return ArrivalResult(
                success=False,
                document_id=document_id,
                error=f"Document is {document.status}, expected pending",
            )

        key = object_key(document.user_id, document.filename)
        try:
            if not upload.content:
                raise StorageError("No file content received")
            reference = self._uploader.upload(
                key, upload.content, upload.content_type or "application/pdf"
            )
        except StorageError as exc:
            return self._record_failure(document_id, document.user_id, key, exc)

        if not self._documents_repo.attach_file(document_id, reference):
            Log.warning("Document left pending before the file was attached", document_id=document_id)
            return ArrivalResult(
                success=False,
                document_id=document_id,
                error="Document is no longer pending",
            )

        self._audit.record(
            AuditAction.DOCUMENT_UPLOADED,
            f"File stored for document {document_id}",
            entity_type="document",
            entity_id=document_id,
            actor=document.user_id,
            affected_user_id=document.user_id,
            metadata={"file_url": reference, "size": upload.size, "is_retry": False},
        )

        try:
            self._notifier.notify(
                DeliveryRequest.for_document(document, reference, size=upload.size)
            )
        except Exception as exc:
            Log.error(f"Delivery notification failed: {exc}", document_id=document_id)

        return ArrivalResult(success=True, document_id=document_id, file_url=reference)

    def _record_failure(
        self, document_id: str, user_id: str, key: str, exc: StorageError
    ) -> ArrivalResult:
        Log.error(f"Storing file failed, flagging for recovery: {exc}", document_id=document_id)
        self._documents_repo.mark_upload_failed(document_id)
        self._audit.record(
            AuditAction.DOCUMENT_UPLOAD_FAILED,
            f"File upload failed for document {document_id}",
            entity_type="document",
            entity_id=document_id,
            actor=user_id,
            affected_user_id=user_id,
            metadata={"key": key, "error": str(exc)},
        )
        return ArrivalResult(
            success=False,
            document_id=document_id,
            error="Upload failed. Please retry from your dashboard.",
            needs_recovery=True,
        )
