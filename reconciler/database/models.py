from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any


@dataclass
class DocumentRecord:
    """Represents a row from the documents table."""

    id: str
    user_id: str
    filename: str
    status: str
    pages: int
    original_filename: str | None = None
    file_url: str | None = None
    upload_failed_at: datetime | None = None
    upload_retry_count: int = 0
    total_cost: Decimal | None = None
    document_type: str | None = None
    is_bank_statement: bool = False
    source_language: str | None = None
    target_language: str | None = None
    source_currency: str | None = None
    target_currency: str | None = None
    client_name: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class PaymentSessionRecord:
    """Represents a row from the payment_sessions table."""

    session_id: str
    document_id: str
    payment_status: str
    updated_at: datetime | None = None
    created_at: datetime | None = None


@dataclass
class PaymentRecord:
    """Represents a row from the payments table."""

    document_id: str
    user_id: str
    stripe_session_id: str
    amount: Decimal
    gross_amount: Decimal
    fee_amount: Decimal
    currency: str
    status: str = "completed"
    id: str | None = None
    payment_date: datetime | None = None


@dataclass
class ActionLogRecord:
    """Represents a row from the append-only action_logs table."""

    action_type: str
    description: str
    entity_type: str
    entity_id: str | None = None
    actor: str = "system"
    affected_user_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    id: int | None = None
    created_at: datetime | None = None


@dataclass
class MissingFileDocument:
    """A paid document whose file never landed in storage."""

    document_id: str
    user_id: str
    filename: str
    status: str
    pages: int
    payment_id: str
    payment_status: str
    payment_amount: Decimal
    payment_gross_amount: Decimal
    payment_fee_amount: Decimal | None
    payment_date: datetime | None
    original_filename: str | None = None
    user_name: str | None = None
    user_email: str | None = None
    total_cost: Decimal | None = None
    upload_failed_at: datetime | None = None
    upload_retry_count: int = 0
    created_at: datetime | None = None


@dataclass
class StaffContact:
    """Name and email of a staff member to notify."""

    id: str
    email: str
    name: str | None = None
