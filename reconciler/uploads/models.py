from dataclasses import dataclass


@dataclass
class UploadedFile:
    filename: str
    content: bytes
    content_type: str | None = None

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass
class RetryUploadResult:
    success: bool
    file_url: str | None = None
    error: str | None = None
    document_id: str | None = None


@dataclass
class ArrivalResult:
    """Outcome of the first upload after payment.

    ``needs_recovery`` tells the caller to send the customer to the retry flow.
    """

    success: bool
    document_id: str
    file_url: str | None = None
    error: str | None = None
    needs_recovery: bool = False
