"""Checks applied to a customer file before it may replace a missing upload."""

from reconciler.uploads.exceptions import UploadValidationError
from reconciler.uploads.models import UploadedFile

PDF_CONTENT_TYPE = "application/pdf"


def is_pdf(filename: str, content_type: str | None) -> bool:
    return content_type == PDF_CONTENT_TYPE or filename.lower().endswith(".pdf")


def validate_pdf_upload(upload: UploadedFile, max_bytes: int) -> None:
    """Reject anything that is not a non-empty PDF within the size limit.

    Raises:
        UploadValidationError: with a customer-facing message.
    """
    if not is_pdf(upload.filename, upload.content_type):
        raise UploadValidationError("Only PDF files are allowed")
    if upload.size > max_bytes:
        raise UploadValidationError(
            f"File is too large. Maximum size: {max_bytes // (1024 * 1024)}MB"
        )
    if upload.size == 0:
        raise UploadValidationError("File is empty")


def _pages(count: int) -> str:
    return f"{count} page" if count == 1 else f"{count} pages"


def validate_page_count(actual: int, expected: int) -> None:
    """The uploaded file must have exactly the number of pages that was paid for."""
    if actual != expected:
        raise UploadValidationError(
            f"The file has {_pages(actual)}, but you paid for {_pages(expected)}. "
            f"Please upload a file with exactly {_pages(expected)}."
        )
