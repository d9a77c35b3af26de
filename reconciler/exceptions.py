class ReconcilerError(Exception):
    """Base exception for all reconciliation errors."""


class DocumentNotFoundError(ReconcilerError):
    """Raised when a document cannot be found in the database."""


class InvalidTransitionError(ReconcilerError):
    """Raised when a status change is not in the lifecycle table."""


class SignatureVerificationFailed(ReconcilerError):
    """Raised when a webhook payload verifies under none of the candidate secrets."""
