from datetime import datetime
from typing import Any

from psycopg.rows import dict_row

from reconciler.database.connection import get_connection
from reconciler.database.models import DocumentRecord, MissingFileDocument
from reconciler.exceptions import DocumentNotFoundError
from reconciler.payments.state_machine import (
    DocumentEvent,
    DocumentStatus,
    SessionStatus,
    document_sources_for,
    document_target_for,
)

_DOCUMENT_COLUMNS = """
    id, user_id, filename, original_filename, status, file_url, pages,
    upload_failed_at, upload_retry_count, total_cost, document_type,
    is_bank_statement, source_language, target_language, source_currency,
    target_currency, client_name, created_at, updated_at
"""


def _sources(event: DocumentEvent) -> list[str]:
    return [status.value for status in document_sources_for(event)]


def _row_to_document(row: dict[str, Any]) -> DocumentRecord:
    return DocumentRecord(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        filename=row["filename"],
        original_filename=row["original_filename"],
        status=row["status"],
        file_url=row["file_url"],
        pages=row["pages"] or 1,
        upload_failed_at=row["upload_failed_at"],
        upload_retry_count=row["upload_retry_count"] or 0,
        total_cost=row["total_cost"],
        document_type=row["document_type"],
        is_bank_statement=bool(row["is_bank_statement"]),
        source_language=row["source_language"],
        target_language=row["target_language"],
        source_currency=row["source_currency"],
        target_currency=row["target_currency"],
        client_name=row["client_name"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class DocumentsRepository:
    """Database operations for the documents table.

    Status changes are conditional on the source states allowed by the
    lifecycle table and report whether the row actually moved.
    """

    def find_by_id(self, document_id: str) -> DocumentRecord:
        """Find a document by ID.

        Raises:
            DocumentNotFoundError: if no document with this ID exists.
        """
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE id = %s",
                    (document_id,),
                )
                row = cur.fetchone()

        if row is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        return _row_to_document(row)

    def confirm_payment(self, document_id: str, user_id: str) -> bool:
        """Move a paid draft to pending. False if it was not a draft anymore."""
        event = DocumentEvent.PAYMENT_CONFIRMED
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE documents
                    SET status = %s, updated_at = NOW()
                    WHERE id = %s AND user_id = %s AND status = ANY(%s)
                    """,
                    (document_target_for(event).value, document_id, user_id, _sources(event)),
                )
                moved = cur.rowcount == 1
            conn.commit()
        return moved

    def attach_file(self, document_id: str, file_url: str) -> bool:
        """Set the stored file and advance pending -> processing in one statement."""
        event = DocumentEvent.FILE_STORED
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE documents
                    SET status = %s, file_url = %s, upload_failed_at = NULL,
                        updated_at = NOW()
                    WHERE id = %s AND status = ANY(%s)
                    """,
                    (document_target_for(event).value, file_url, document_id, _sources(event)),
                )
                moved = cur.rowcount == 1
            conn.commit()
        return moved

    def record_resubmission(self, document_id: str, file_url: str) -> bool:
        """Store a recovered file: clear the failure flag and count the retry."""
        event = DocumentEvent.FILE_RESUBMITTED
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE documents
                    SET status = %s, file_url = %s, upload_failed_at = NULL,
                        upload_retry_count = upload_retry_count + 1,
                        updated_at = NOW()
                    WHERE id = %s AND status = ANY(%s)
                    """,
                    (document_target_for(event).value, file_url, document_id, _sources(event)),
                )
                moved = cur.rowcount == 1
            conn.commit()
        return moved

    def mark_upload_failed(self, document_id: str) -> bool:
        """Flag a paid, fileless document for recovery. Status is left alone."""
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE documents
                    SET upload_failed_at = NOW(), updated_at = NOW()
                    WHERE id = %s AND status = %s AND file_url IS NULL
                    """,
                    (document_id, DocumentStatus.PENDING.value),
                )
                flagged = cur.rowcount == 1
            conn.commit()
        return flagged

    def list_missing_files(self, user_id: str | None = None) -> list[MissingFileDocument]:
        """Paid documents without a retrievable file, newest failure first."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT d.id AS document_id, d.user_id, d.filename,
                           d.original_filename, d.status, d.pages, d.total_cost,
                           d.upload_failed_at, d.upload_retry_count, d.created_at,
                           p.id AS payment_id, p.status AS payment_status,
                           p.amount, p.gross_amount, p.fee_amount, p.payment_date,
                           pr.name AS user_name, pr.email AS user_email
                    FROM documents d
                    JOIN payments p ON p.document_id = d.id AND p.status = 'completed'
                    LEFT JOIN profiles pr ON pr.id = d.user_id
                    WHERE d.status = ANY(%s)
                      AND (d.file_url IS NULL OR d.upload_failed_at IS NOT NULL)
                      AND (%s::text IS NULL OR d.user_id::text = %s::text)
                    ORDER BY d.upload_failed_at DESC NULLS LAST, d.created_at DESC
                    """,
                    (
                        [DocumentStatus.PENDING.value, DocumentStatus.PROCESSING.value],
                        user_id,
                        user_id,
                    ),
                )
                rows = cur.fetchall()

        return [
            MissingFileDocument(
                document_id=str(row["document_id"]),
                user_id=str(row["user_id"]),
                filename=row["filename"],
                original_filename=row["original_filename"],
                status=row["status"],
                pages=row["pages"] or 1,
                total_cost=row["total_cost"],
                upload_failed_at=row["upload_failed_at"],
                upload_retry_count=row["upload_retry_count"] or 0,
                created_at=row["created_at"],
                payment_id=str(row["payment_id"]),
                payment_status=row["payment_status"],
                payment_amount=row["amount"],
                payment_gross_amount=row["gross_amount"],
                payment_fee_amount=row["fee_amount"],
                payment_date=row["payment_date"],
                user_name=row["user_name"],
                user_email=row["user_email"],
            )
            for row in rows
        ]

    def list_drafts_created_between(
        self, created_after: datetime, created_before: datetime
    ) -> list[DocumentRecord]:
        """Drafts created inside the (created_after, created_before) window."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_DOCUMENT_COLUMNS}
                    FROM documents
                    WHERE status = %s
                      AND created_at < %s
                      AND created_at > %s
                    ORDER BY created_at
                    """,
                    (DocumentStatus.DRAFT.value, created_before, created_after),
                )
                rows = cur.fetchall()
        return [_row_to_document(row) for row in rows]

    def delete_draft(self, document_id: str) -> int | None:
        """Delete a draft document together with its unfinished payment sessions.

        The document row is locked first and both deletes share one
        transaction, so a document confirmed in the meantime keeps its
        sessions. Completed sessions are never removed.

        Returns the number of session rows deleted, or None if the document
        is no longer a draft.
        """
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT id FROM documents WHERE id = %s AND status = ANY(%s) FOR UPDATE",
                    (document_id, _sources(DocumentEvent.DRAFT_DELETED)),
                )
                if cur.fetchone() is None:
                    conn.rollback()
                    return None
                cur.execute(
                    "DELETE FROM payment_sessions WHERE document_id = %s AND payment_status <> %s",
                    (document_id, SessionStatus.COMPLETED.value),
                )
                sessions_deleted = cur.rowcount
                cur.execute("DELETE FROM documents WHERE id = %s", (document_id,))
            conn.commit()
        return sessions_deleted
