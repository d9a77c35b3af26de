"""Routing of verified Stripe events to their handlers.

Every handler is safe to run more than once for the same event: state changes
are conditional updates, the payment insert is keyed on the document, and the
completion audit entry is written at most once per document.

Slow side effects such as staff notifications are not run here. Handlers
return them in ``DispatchResult.deferred`` for the caller to run after the
webhook has been acknowledged.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from functools import partial
from typing import Any

from reconciler.audit.actions import AuditAction
from reconciler.audit.audit_log import AuditLog
from reconciler.config.settings import Settings
from reconciler.database.models import PaymentRecord
from reconciler.database.repositories.documents_repository import DocumentsRepository
from reconciler.database.repositories.payment_sessions_repository import (
    PaymentSessionsRepository,
)
from reconciler.database.repositories.payments_repository import PaymentsRepository
from reconciler.delivery.staff_notifier import StaffNotifier
from reconciler.exceptions import DocumentNotFoundError
from reconciler.logging.logger import Log
from reconciler.payments.fees import breakdown_from_cents
from reconciler.payments.signature import VerifiedEvent
from reconciler.payments.state_machine import SessionStatus
from reconciler.payments.stripe_client import PaymentProcessorClient


@dataclass
class DispatchResult:
    event_type: str
    handled: bool
    changed: bool = False
    message: str = ""
    deferred: list[Callable[[], object]] = field(default_factory=list)


class EventDispatcher:
    def __init__(
        self,
        settings: Settings,
        documents_repo: DocumentsRepository,
        sessions_repo: PaymentSessionsRepository,
        payments_repo: PaymentsRepository,
        audit: AuditLog,
        processor: PaymentProcessorClient,
        staff_notifier: StaffNotifier,
    ) -> None:
        self._settings = settings
        self._documents_repo = documents_repo
        self._sessions_repo = sessions_repo
        self._payments_repo = payments_repo
        self._audit = audit
        self._processor = processor
        self._staff_notifier = staff_notifier
        self._handlers: dict[str, Callable[[VerifiedEvent], DispatchResult]] = {
            "checkout.session.completed": self._on_checkout_completed,
            "checkout.session.async_payment_processing": self._on_payment_processing,
            "checkout.session.expired": self._on_checkout_expired,
            "payment_intent.payment_failed": self._on_payment_intent_failed,
            "payment_intent.succeeded": self._on_payment_intent_succeeded,
        }

    def dispatch(self, verified: VerifiedEvent) -> DispatchResult:
        handler = self._handlers.get(verified.type)
        if handler is None:
            Log.info(f"Unhandled event type: {verified.type}", event_id=verified.id)
            return DispatchResult(event_type=verified.type, handled=False, message="unhandled")
        Log.info(
            f"Dispatching {verified.type}",
            event_id=verified.id,
            environment=verified.environment,
        )
        return handler(verified)

    def _on_checkout_completed(self, verified: VerifiedEvent) -> DispatchResult:
        session = verified.data_object
        session_id = session.get("id")
        metadata = session.get("metadata") or {}
        document_id = metadata.get("documentId")
        user_id = metadata.get("userId")

        # A completed checkout is not necessarily a settled one.
        if session.get("payment_status") != "paid" or session.get("status") != "complete":
            Log.warning(
                "Checkout completed without settled payment",
                session_id=session_id,
                payment_status=session.get("payment_status"),
                status=session.get("status"),
            )
            self._audit.record(
                AuditAction.PAYMENT_FAILED,
                "Checkout session completed but payment is not settled",
                entity_type="payment_session",
                entity_id=session_id,
                affected_user_id=user_id,
                metadata={
                    "session_id": session_id,
                    "document_id": document_id,
                    "payment_status": session.get("payment_status"),
                    "status": session.get("status"),
                    "environment": verified.environment,
                },
            )
            return DispatchResult(
                event_type=verified.type, handled=True, message="payment not settled"
            )

        if not document_id or not user_id:
            Log.warning(
                "Checkout session is missing documentId/userId metadata, skipping",
                session_id=session_id,
            )
            return DispatchResult(
                event_type=verified.type, handled=True, message="missing metadata"
            )

        try:
            document = self._documents_repo.find_by_id(document_id)
        except DocumentNotFoundError:
            Log.warning(
                "Checkout session names an unknown document, skipping",
                session_id=session_id,
                document_id=document_id,
            )
            return DispatchResult(
                event_type=verified.type, handled=True, message="document not found"
            )
        if document.user_id != user_id:
            Log.warning(
                "Checkout session user does not own the document, skipping",
                session_id=session_id,
                document_id=document_id,
                session_user_id=user_id,
                owner_id=document.user_id,
            )
            return DispatchResult(event_type=verified.type, handled=True, message="owner mismatch")

        fees = breakdown_from_cents(session.get("amount_total"))
        document_moved = self._documents_repo.confirm_payment(document_id, user_id)
        payment = PaymentRecord(
            document_id=document_id,
            user_id=user_id,
            stripe_session_id=session_id,
            amount=fees.net,
            gross_amount=fees.gross,
            fee_amount=fees.fee,
            currency=(session.get("currency") or "usd").upper(),
        )
        payment_created = self._payments_repo.create_once(payment)
        session_moved = self._sessions_repo.transition(session_id, SessionStatus.COMPLETED)

        # Written on every delivery until it lands, so a redelivery after a
        # failed audit write still records the completion.
        audit_written = self._audit.record_once(
            AuditAction.PAYMENT_COMPLETED,
            f"Stripe payment completed for document {document_id}",
            entity_type="document",
            entity_id=document_id,
            affected_user_id=user_id,
            metadata={
                "session_id": session_id,
                "payment_id": payment.id,
                "gross_amount": str(fees.gross),
                "fee_amount": str(fees.fee),
                "net_amount": str(fees.net),
                "currency": payment.currency,
                "environment": verified.environment,
                "document_moved": document_moved,
                "payment_created": payment_created,
                "session_moved": session_moved,
            },
        )

        changed = document_moved or payment_created or session_moved or audit_written
        if not changed:
            Log.info("Checkout completion already applied", session_id=session_id)
            return DispatchResult(event_type=verified.type, handled=True, message="already applied")

        Log.info(
            "Payment confirmed",
            document_id=document_id,
            payment_created=payment_created,
            gross=fees.gross,
        )

        result = DispatchResult(event_type=verified.type, handled=True, changed=True)
        # Staff hear about the payment only from the delivery that wrote the completion entry.
        if audit_written:
            filename = metadata.get("filename") or document.filename
            result.deferred.append(
                partial(self._staff_notifier.payment_confirmed, document_id, user_id, filename)
            )
        return result

    def _on_payment_processing(self, verified: VerifiedEvent) -> DispatchResult:
        session = verified.data_object
        metadata = session.get("metadata") or {}
        self._audit.record(
            AuditAction.PAYMENT_PROCESSING,
            "Asynchronous payment is processing",
            entity_type="payment_session",
            entity_id=session.get("id"),
            affected_user_id=metadata.get("userId"),
            metadata={
                "document_id": metadata.get("documentId"),
                "environment": verified.environment,
            },
        )
        return DispatchResult(event_type=verified.type, handled=True)

    def _on_checkout_expired(self, verified: VerifiedEvent) -> DispatchResult:
        session = verified.data_object
        session_id = session.get("id")
        metadata = session.get("metadata") or {}
        document_id = metadata.get("documentId")

        moved = self._sessions_repo.transition(session_id, SessionStatus.EXPIRED)
        self._audit.record_unless_recent(
            AuditAction.CHECKOUT_ABANDONED,
            "Checkout session expired without payment",
            entity_type="document" if document_id else "payment_session",
            entity_id=document_id or session_id,
            within_seconds=self._settings.expired_log_dedup_seconds,
            affected_user_id=metadata.get("userId"),
            metadata={"session_id": session_id, "environment": verified.environment},
        )
        return DispatchResult(event_type=verified.type, handled=True, changed=moved)

    def _on_payment_intent_failed(self, verified: VerifiedEvent) -> DispatchResult:
        intent = verified.data_object
        session_id = self._session_for_intent(intent, verified.environment)
        if session_id is None:
            Log.warning("No checkout session found for failed payment intent", intent_id=intent.get("id"))
            return DispatchResult(event_type=verified.type, handled=True, message="session not found")

        moved = self._sessions_repo.transition(session_id, SessionStatus.FAILED)
        if moved:
            error = intent.get("last_payment_error") or {}
            metadata = intent.get("metadata") or {}
            self._audit.record(
                AuditAction.PAYMENT_FAILED,
                f"Payment failed: {error.get('message') or 'unknown reason'}",
                entity_type="payment_session",
                entity_id=session_id,
                affected_user_id=metadata.get("userId"),
                metadata={
                    "payment_intent": intent.get("id"),
                    "error_code": error.get("code"),
                    "error_message": error.get("message"),
                    "decline_code": error.get("decline_code"),
                    "environment": verified.environment,
                },
            )
        return DispatchResult(event_type=verified.type, handled=True, changed=moved)

    def _on_payment_intent_succeeded(self, verified: VerifiedEvent) -> DispatchResult:
        Log.info("Payment intent succeeded", intent_id=verified.data_object.get("id"))
        return DispatchResult(event_type=verified.type, handled=True)

    def _session_for_intent(self, intent: dict[str, Any], environment: str) -> str | None:
        metadata = intent.get("metadata") or {}
        if metadata.get("session_id"):
            return str(metadata["session_id"])
        if metadata.get("documentId"):
            session = self._sessions_repo.find_for_document(metadata["documentId"])
            if session is not None:
                return session.session_id
        if intent.get("id"):
            return self._processor.find_session_for_payment_intent(intent["id"], environment)
        return None
