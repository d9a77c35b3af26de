"""Decides whether an abandoned draft can be deleted.

Anything that might still turn into a paid order is kept. An unknown
session status is treated the same way.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from reconciler.database.models import PaymentSessionRecord
from reconciler.payments.state_machine import SessionStatus


@dataclass(frozen=True)
class Classification:
    safe_to_delete: bool
    reason: str


def keep(reason: str) -> Classification:
    return Classification(safe_to_delete=False, reason=reason)


def delete(reason: str) -> Classification:
    return Classification(safe_to_delete=True, reason=reason)


def classify_draft(
    has_payment: bool,
    session: PaymentSessionRecord | None,
    now: datetime,
    abandoned_after: timedelta,
) -> Classification:
    if has_payment:
        return keep("Has a payment record")
    if session is None:
        return delete("No payment session")

    status = session.payment_status
    if status in (SessionStatus.EXPIRED.value, SessionStatus.FAILED.value):
        return delete(f"Payment session {status}")
    if status == SessionStatus.COMPLETED.value:
        return keep("Payment session completed")
    if status == SessionStatus.PENDING.value:
        if session.updated_at is None:
            return keep("Payment session pending, last update unknown")
        if session.updated_at <= now - abandoned_after:
            return delete("Payment session pending and untouched for over an hour")
        return keep("Payment session updated within the last hour")
    return keep(f"Unknown payment session status '{status}'")
