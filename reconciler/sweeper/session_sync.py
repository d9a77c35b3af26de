import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

import stripe

from reconciler.audit.actions import AuditAction
from reconciler.audit.audit_log import AuditLog
from reconciler.config.settings import Settings
from reconciler.database.repositories.payment_sessions_repository import (
    PaymentSessionsRepository,
)
from reconciler.logging.logger import Log
from reconciler.payments.state_machine import SessionStatus
from reconciler.payments.stripe_client import PaymentProcessorClient, environment_of


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SyncSummary:
    checked: int = 0
    updated: int = 0
    expired: int = 0
    completed: int = 0
    skipped: int = 0
    errors: list[dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "checked": self.checked,
            "updated": self.updated,
            "expired": self.expired,
            "completed": self.completed,
            "skipped": self.skipped,
            "errors": self.errors,
        }


def remote_target_status(remote: dict[str, Any], now: datetime) -> SessionStatus | None:
    """Local status implied by the processor's view of a checkout session."""
    status = remote.get("status")
    if status == "expired":
        return SessionStatus.EXPIRED
    if status == "complete" and remote.get("payment_status") == "paid":
        return SessionStatus.COMPLETED
    expires_at = remote.get("expires_at")
    if status == "open" and expires_at and int(expires_at) < now.timestamp():
        return SessionStatus.EXPIRED
    return None


class SessionSynchronizer:
    """Brings stale pending sessions in line with Stripe before any draft is swept."""

    def __init__(
        self,
        settings: Settings,
        sessions_repo: PaymentSessionsRepository,
        processor: PaymentProcessorClient,
        audit: AuditLog,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._settings = settings
        self._sessions_repo = sessions_repo
        self._processor = processor
        self._audit = audit
        self._sleep = sleep
        self._clock = clock

    def sync(self) -> SyncSummary:
        now = self._clock()
        stale_before = now - timedelta(minutes=self._settings.sweeper_stale_session_minutes)
        sessions = self._sessions_repo.list_stale_pending(stale_before)
        summary = SyncSummary()
        Log.info(f"Synchronizing {len(sessions)} stale pending session(s)")

        first_call = True
        for session in sessions:
            summary.checked += 1
            environment = environment_of(session.session_id)
            if environment != self._processor.environment:
                Log.debug(
                    "Skipping session from another environment",
                    session_id=session.session_id,
                    environment=environment,
                )
                summary.skipped += 1
                continue

            if not first_call:
                self._sleep(self._settings.sweeper_request_delay_seconds)
            first_call = False

            try:
                remote = self._processor.retrieve_checkout_session(session.session_id, environment)
            except stripe.StripeError as exc:
                Log.warning(f"Could not retrieve session: {exc}", session_id=session.session_id)
                summary.errors.append({"sessionId": session.session_id, "error": str(exc)})
                continue

            target = remote_target_status(remote, now)
            if target is None:
                continue
            if not self._sessions_repo.transition(session.session_id, target):
                continue

            summary.updated += 1
            if target is SessionStatus.EXPIRED:
                summary.expired += 1
            else:
                summary.completed += 1
                Log.warning(
                    "Session paid at Stripe but still pending locally",
                    session_id=session.session_id,
                    document_id=session.document_id,
                )
            self._audit.record(
                AuditAction.SESSION_SYNCED,
                f"Payment session marked {target.value} from Stripe",
                entity_type="payment_session",
                entity_id=session.session_id,
                metadata={
                    "document_id": session.document_id,
                    "stripe_status": remote.get("status"),
                    "stripe_payment_status": remote.get("payment_status"),
                    "new_status": target.value,
                },
            )

        Log.info(
            "Session synchronization finished",
            checked=summary.checked,
            updated=summary.updated,
            skipped=summary.skipped,
            errors=len(summary.errors),
        )
        return summary
