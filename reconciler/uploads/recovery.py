from reconciler.audit.actions import AuditAction
from reconciler.audit.audit_log import AuditLog
from reconciler.config.settings import Settings
from reconciler.database.models import MissingFileDocument
from reconciler.database.repositories.documents_repository import DocumentsRepository
from reconciler.database.repositories.payments_repository import PaymentsRepository
from reconciler.delivery.models import DeliveryRequest
from reconciler.delivery.notifier import DeliveryNotifier
from reconciler.exceptions import DocumentNotFoundError
from reconciler.logging.logger import Log
from reconciler.pdf.base import BasePageCounter
from reconciler.pdf.exceptions import PageCountError
from reconciler.storage.exceptions import StorageError
from reconciler.storage.paths import object_key
from reconciler.uploads.exceptions import UploadValidationError
from reconciler.uploads.models import RetryUploadResult, UploadedFile
from reconciler.uploads.uploader import RetryingUploader
from reconciler.uploads.validator import PDF_CONTENT_TYPE, validate_page_count, validate_pdf_upload


class RecoveryService:
    """Lets a customer or staff member supply the file of a paid document.

    Every check runs before anything is written, so a rejected retry leaves
    the document exactly as it was.
    """

    def __init__(
        self,
        settings: Settings,
        documents_repo: DocumentsRepository,
        payments_repo: PaymentsRepository,
        page_counter: BasePageCounter,
        uploader: RetryingUploader,
        notifier: DeliveryNotifier,
        audit: AuditLog,
    ) -> None:
        self._settings = settings
        self._documents_repo = documents_repo
        self._payments_repo = payments_repo
        self._page_counter = page_counter
        self._uploader = uploader
        self._notifier = notifier
        self._audit = audit

    def list_missing_file_documents(self, user_id: str | None = None) -> list[MissingFileDocument]:
        documents = self._documents_repo.list_missing_files(user_id)
        Log.info(f"Found {len(documents)} paid document(s) without a file", user_id=user_id)
        return documents

    def retry_upload(
        self,
        document_id: str,
        upload: UploadedFile,
        actor: str | None = None,
    ) -> RetryUploadResult:
        Log.info("Retrying upload", document_id=document_id, filename=upload.filename)
        try:
            validate_pdf_upload(upload, self._settings.max_upload_bytes)

            if not self._payments_repo.has_completed_payment(document_id):
                raise UploadValidationError("Payment not found or not confirmed")

            try:
                document = self._documents_repo.find_by_id(document_id)
            except DocumentNotFoundError as exc:
                raise UploadValidationError("Document not found") from exc

            try:
                actual_pages = self._page_counter.count_pages(upload.content)
            except PageCountError as exc:
                raise UploadValidationError(
                    "Could not read the PDF file. Please check that it is not corrupted."
                ) from exc
            validate_page_count(actual_pages, document.pages)
        except UploadValidationError as exc:
            Log.warning(f"Retry upload rejected: {exc}", document_id=document_id)
            return RetryUploadResult(success=False, error=str(exc), document_id=document_id)

        key = object_key(document.user_id, document.filename)
        try:
            reference = self._store_file(key, upload)
        except StorageError as exc:
            Log.error(f"Retry upload could not store the file: {exc}", document_id=document_id)
            return RetryUploadResult(
                success=False,
                error="File upload failed. Please try again in a few minutes.",
                document_id=document_id,
            )

        if not self._documents_repo.record_resubmission(document_id, reference):
            Log.warning(
                "Document can no longer take a file",
                document_id=document_id,
                status=document.status,
            )
            return RetryUploadResult(
                success=False,
                error=f"Document is {document.status} and cannot receive a new file",
                document_id=document_id,
            )

        self._audit.record(
            AuditAction.DOCUMENT_UPLOADED,
            f"File re-uploaded for document {document_id}",
            entity_type="document",
            entity_id=document_id,
            actor=actor or document.user_id,
            affected_user_id=document.user_id,
            metadata={
                "file_url": reference,
                "pages": actual_pages,
                "size": upload.size,
                "retry_count": document.upload_retry_count + 1,
                "is_retry": True,
            },
        )

        try:
            self._notifier.notify(
                DeliveryRequest.for_document(document, reference, size=upload.size)
            )
        except Exception as exc:
            Log.error(f"Delivery notification after retry failed: {exc}", document_id=document_id)

        Log.info("Retry upload succeeded", document_id=document_id)
        return RetryUploadResult(success=True, file_url=reference, document_id=document_id)

    def _store_file(self, key: str, upload: UploadedFile) -> str:
        try:
            if self._uploader.store.exists(key):
                Log.info("File already in storage, reusing it", key=key)
                return key
        except StorageError as exc:
            Log.warning(f"Could not check for an existing file, uploading anyway: {exc}", key=key)
        return self._uploader.upload(key, upload.content, upload.content_type or PDF_CONTENT_TYPE)
