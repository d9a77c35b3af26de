from enum import Enum


class AuditAction(str, Enum):
    """Action types written to action_logs.

    Values match what the staff dashboards already filter on, hence the
    mixed casing.
    """

    PAYMENT_COMPLETED = "stripe_payment_completed"
    PAYMENT_FAILED = "payment_failed"
    PAYMENT_PROCESSING = "PAYMENT_PROCESSING"
    CHECKOUT_ABANDONED = "CHECKOUT_ABANDONED"
    SESSION_SYNCED = "PAYMENT_SESSION_SYNCED"
    DOCUMENT_UPLOADED = "DOCUMENT_UPLOADED"
    DOCUMENT_UPLOAD_FAILED = "DOCUMENT_UPLOAD_FAILED"
    DRAFT_DELETED = "DRAFT_DELETED"
