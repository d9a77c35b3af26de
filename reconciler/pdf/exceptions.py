from reconciler.exceptions import ReconcilerError


class PageCountError(ReconcilerError):
    """Raised when a PDF cannot be opened to count its pages."""
