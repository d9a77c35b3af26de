from abc import ABC, abstractmethod


class BasePageCounter(ABC):
    """Contract for all PDF page counting adapters."""

    @abstractmethod
    def count_pages(self, pdf_bytes: bytes) -> int:
        """Count the pages of a PDF.

        Args:
            pdf_bytes: Raw PDF file content.

        Returns:
            Number of pages in the document.

        Raises:
            PageCountError: if the bytes cannot be opened as a PDF.
        """
