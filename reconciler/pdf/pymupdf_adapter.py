import pymupdf

from reconciler.pdf.base import BasePageCounter
from reconciler.pdf.exceptions import PageCountError


class PyMuPdfAdapter(BasePageCounter):
    """Counts PDF pages using PyMuPDF."""

    def count_pages(self, pdf_bytes: bytes) -> int:
        try:
            with pymupdf.open(stream=pdf_bytes, filetype="pdf") as doc:  # type: ignore[no-untyped-call]
                return int(doc.page_count)
        except Exception as exc:
            raise PageCountError(f"pymupdf could not read the PDF: {exc}") from exc
