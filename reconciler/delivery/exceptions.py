from reconciler.exceptions import ReconcilerError


class DeliveryError(ReconcilerError):
    """Raised when the automation service cannot be reached or refuses a payload."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
