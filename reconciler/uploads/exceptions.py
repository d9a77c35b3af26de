from reconciler.exceptions import ReconcilerError


class UploadValidationError(ReconcilerError):
    """Raised when a submitted file is rejected before anything is stored.

    The message is shown to the customer as-is.
    """
