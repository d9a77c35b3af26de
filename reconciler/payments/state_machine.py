"""Document and payment-session lifecycles.

Every status change in the store goes through this table. Repositories turn
the allowed source states into the ``WHERE`` clause of a conditional update,
so two deliveries of the same event commute: the second one finds the row
already moved and changes nothing.
"""

from enum import Enum

from reconciler.exceptions import InvalidTransitionError


class DocumentStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    DELETED = "deleted"


class SessionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    EXPIRED = "expired"
    FAILED = "failed"


class DocumentEvent(str, Enum):
    PAYMENT_CONFIRMED = "payment_confirmed"
    FILE_STORED = "file_stored"
    FILE_RESUBMITTED = "file_resubmitted"
    TRANSLATION_DELIVERED = "translation_delivered"
    PAYMENT_CANCELLED = "payment_cancelled"
    DRAFT_DELETED = "draft_deleted"


DOCUMENT_TRANSITIONS: dict[tuple[DocumentStatus, DocumentEvent], DocumentStatus] = {
    (DocumentStatus.DRAFT, DocumentEvent.PAYMENT_CONFIRMED): DocumentStatus.PENDING,
    (DocumentStatus.PENDING, DocumentEvent.FILE_STORED): DocumentStatus.PROCESSING,
    (DocumentStatus.PENDING, DocumentEvent.FILE_RESUBMITTED): DocumentStatus.PENDING,
    (DocumentStatus.PROCESSING, DocumentEvent.FILE_RESUBMITTED): DocumentStatus.PENDING,
    (DocumentStatus.PROCESSING, DocumentEvent.TRANSLATION_DELIVERED): DocumentStatus.COMPLETED,
    (DocumentStatus.DRAFT, DocumentEvent.PAYMENT_CANCELLED): DocumentStatus.FAILED,
    (DocumentStatus.PENDING, DocumentEvent.PAYMENT_CANCELLED): DocumentStatus.FAILED,
    (DocumentStatus.PROCESSING, DocumentEvent.PAYMENT_CANCELLED): DocumentStatus.FAILED,
    (DocumentStatus.DRAFT, DocumentEvent.DRAFT_DELETED): DocumentStatus.DELETED,
}

SESSION_TRANSITIONS: frozenset[tuple[SessionStatus, SessionStatus]] = frozenset(
    {
        (SessionStatus.PENDING, SessionStatus.COMPLETED),
        (SessionStatus.PENDING, SessionStatus.EXPIRED),
        (SessionStatus.PENDING, SessionStatus.FAILED),
    }
)

# A stored file reference is only meaningful once the document is paid for.
FILE_BEARING_STATUSES: frozenset[DocumentStatus] = frozenset(
    {DocumentStatus.PENDING, DocumentStatus.PROCESSING, DocumentStatus.COMPLETED}
)


def next_document_status(current: DocumentStatus | str, event: DocumentEvent) -> DocumentStatus:
    """Return the status reached from ``current`` on ``event``.

    Raises:
        InvalidTransitionError: if the table has no such transition.
    """
    status = DocumentStatus(current)
    target = DOCUMENT_TRANSITIONS.get((status, event))
    if target is None:
        raise InvalidTransitionError(
            f"Document cannot go through '{event.value}' from '{status.value}'"
        )
    return target


def document_sources_for(event: DocumentEvent) -> list[DocumentStatus]:
    """All statuses from which ``event`` is a legal transition."""
    return [source for (source, ev) in DOCUMENT_TRANSITIONS if ev is event]


def document_target_for(event: DocumentEvent) -> DocumentStatus:
    """The single status that ``event`` leads to."""
    targets = {target for (_, ev), target in DOCUMENT_TRANSITIONS.items() if ev is event}
    if len(targets) != 1:
        raise InvalidTransitionError(f"Event '{event.value}' has no single target status")
    return targets.pop()


def can_transition_session(current: SessionStatus | str, target: SessionStatus | str) -> bool:
    return (SessionStatus(current), SessionStatus(target)) in SESSION_TRANSITIONS


def ensure_session_transition(current: SessionStatus | str, target: SessionStatus | str) -> None:
    """Raises InvalidTransitionError unless ``current -> target`` is allowed."""
    if not can_transition_session(current, target):
        raise InvalidTransitionError(
            f"Payment session cannot move from '{SessionStatus(current).value}' "
            f"to '{SessionStatus(target).value}'"
        )


def file_url_allowed(status: DocumentStatus | str) -> bool:
    return DocumentStatus(status) in FILE_BEARING_STATUSES
