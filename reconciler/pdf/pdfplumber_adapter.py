import io

import pdfplumber

from reconciler.pdf.base import BasePageCounter
from reconciler.pdf.exceptions import PageCountError


class PdfPlumberAdapter(BasePageCounter):
    """Counts PDF pages using pdfplumber."""

    def count_pages(self, pdf_bytes: bytes) -> int:
        try:
            with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
                return len(pdf.pages)
        except Exception as exc:
            raise PageCountError(f"pdfplumber could not read the PDF: {exc}") from exc
