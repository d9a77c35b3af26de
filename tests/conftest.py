import io
from collections.abc import Callable

import pytest
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas


def build_pdf(pages: int) -> bytes:
    """Generate a PDF with ``pages`` pages, each carrying its page number."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    for number in range(1, pages + 1):
        c.drawString(72, 720, f"Page {number}")
        c.showPage()
    c.save()
    return buf.getvalue()


@pytest.fixture()
def sample_pdf_bytes() -> bytes:
    """A minimal single-page PDF."""
    return build_pdf(1)


@pytest.fixture()
def multi_page_pdf_bytes() -> bytes:
    """A two-page PDF."""
    return build_pdf(2)


@pytest.fixture()
def make_pdf() -> Callable[[int], bytes]:
    return build_pdf
