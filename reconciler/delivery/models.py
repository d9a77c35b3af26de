from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from reconciler.database.models import DocumentRecord

PDF_MIMETYPE = "application/pdf"


@dataclass
class DeliveryRequest:
    """A stored file to hand over to the translation automation service."""

    user_id: str
    filename: str
    file_reference: str
    document_id: str | None = None
    pages: int = 1
    mimetype: str = PDF_MIMETYPE
    size: int | None = None
    original_filename: str | None = None
    original_document_id: str | None = None
    document_type: str | None = None
    total_cost: Decimal | None = None
    source_language: str | None = None
    target_language: str | None = None
    is_bank_statement: bool = False
    client_name: str | None = None
    source_currency: str | None = None
    target_currency: str | None = None

    @classmethod
    def for_document(
        cls,
        document: DocumentRecord,
        file_reference: str,
        size: int | None = None,
        mimetype: str = PDF_MIMETYPE,
    ) -> "DeliveryRequest":
        return cls(
            user_id=document.user_id,
            filename=document.filename,
            file_reference=file_reference,
            document_id=document.id,
            pages=document.pages,
            mimetype=mimetype,
            size=size,
            original_filename=document.original_filename or document.filename,
            original_document_id=document.id,
            document_type=document.document_type,
            total_cost=document.total_cost,
            source_language=document.source_language,
            target_language=document.target_language,
            is_bank_statement=document.is_bank_statement,
            client_name=document.client_name,
            source_currency=document.source_currency,
            target_currency=document.target_currency,
        )

    @property
    def dedup_key(self) -> str:
        return f"{self.user_id}_{self.filename}"

    def to_payload(self, url: str) -> dict[str, Any]:
        extension = self.filename.rsplit(".", 1)[-1].lower() if "." in self.filename else ""
        return {
            "filename": self.filename,
            "url": url,
            "mimetype": self.mimetype,
            "size": self.size,
            "user_id": self.user_id,
            "pages": self.pages or 1,
            "document_type": self.document_type,
            "total_cost": str(self.total_cost) if self.total_cost is not None else "0",
            "source_language": self.source_language,
            "target_language": self.target_language,
            "is_bank_statement": self.is_bank_statement,
            "client_name": self.client_name,
            "source_currency": self.source_currency,
            "target_currency": self.target_currency,
            "document_id": self.document_id,
            "original_document_id": self.original_document_id or self.document_id,
            "original_filename": self.original_filename or self.filename,
            "isPdf": self.mimetype == PDF_MIMETYPE or extension == "pdf",
            "fileExtension": extension,
        }


@dataclass
class DeliveryResult:
    success: bool
    already_processed: bool = False
    status_code: int | None = None
    message: str = ""
    url: str | None = None
