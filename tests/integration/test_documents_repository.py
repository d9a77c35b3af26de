from collections.abc import Callable

import psycopg
import pytest

from reconciler.database.repositories.documents_repository import DocumentsRepository
from reconciler.database.repositories.payment_sessions_repository import (
    PaymentSessionsRepository,
)
from reconciler.exceptions import DocumentNotFoundError


@pytest.mark.integration
class TestDocumentLifecycle:
    def test_confirm_payment_moves_draft_once(self, seed_document: Callable[..., str]) -> None:
        document_id = seed_document()
        repo = DocumentsRepository()
        user_id = repo.find_by_id(document_id).user_id

        assert repo.confirm_payment(document_id, user_id) is True
        assert repo.confirm_payment(document_id, user_id) is False
        assert repo.find_by_id(document_id).status == "pending"

    def test_confirm_payment_checks_owner(self, seed_document: Callable[..., str]) -> None:
        document_id = seed_document()

        moved = DocumentsRepository().confirm_payment(
            document_id, "00000000-0000-0000-0000-000000000000"
        )

        assert moved is False

    def test_attach_file_sets_url_and_status(self, seed_document: Callable[..., str]) -> None:
        document_id = seed_document(status="pending")
        repo = DocumentsRepository()

        assert repo.attach_file(document_id, "user/contract.pdf") is True

        document = repo.find_by_id(document_id)
        assert document.status == "processing"
        assert document.file_url == "user/contract.pdf"

    def test_upload_failure_then_resubmission(self, seed_document: Callable[..., str]) -> None:
        document_id = seed_document(status="pending")
        repo = DocumentsRepository()

        assert repo.mark_upload_failed(document_id) is True
        assert repo.find_by_id(document_id).upload_failed_at is not None

        assert repo.record_resubmission(document_id, "user/contract.pdf") is True
        document = repo.find_by_id(document_id)
        assert document.upload_failed_at is None
        assert document.upload_retry_count == 1
        assert document.status == "pending"

    def test_completed_document_refuses_new_file(self, seed_document: Callable[..., str]) -> None:
        document_id = seed_document(status="completed", file_url="user/done.pdf")

        assert DocumentsRepository().record_resubmission(document_id, "user/other.pdf") is False

    def test_delete_draft_only_deletes_drafts(self, seed_document: Callable[..., str]) -> None:
        draft_id = seed_document()
        pending_id = seed_document(status="pending")
        repo = DocumentsRepository()

        assert repo.delete_draft(pending_id) is None
        assert repo.delete_draft(draft_id) == 0
        with pytest.raises(DocumentNotFoundError):
            repo.find_by_id(draft_id)

    def test_delete_draft_removes_its_sessions(
        self, seed_document: Callable[..., str], seed_session: Callable[..., str]
    ) -> None:
        draft_id = seed_document()
        seed_session(draft_id, status="expired")
        seed_session(draft_id, status="pending")

        assert DocumentsRepository().delete_draft(draft_id) == 2
        assert PaymentSessionsRepository().find_for_document(draft_id) is None

    def test_confirmed_document_keeps_its_sessions(
        self, seed_document: Callable[..., str], seed_session: Callable[..., str]
    ) -> None:
        document_id = seed_document()
        session_id = seed_session(document_id)
        repo = DocumentsRepository()
        repo.confirm_payment(document_id, repo.find_by_id(document_id).user_id)

        assert repo.delete_draft(document_id) is None
        assert PaymentSessionsRepository().find_by_session_id(session_id) is not None

    def test_draft_cannot_hold_a_file(self, seed_document: Callable[..., str]) -> None:
        with pytest.raises(psycopg.errors.CheckViolation):
            seed_document(status="draft", file_url="user/contract.pdf")
