from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock

from reconciler.config.settings import Settings
from reconciler.database.models import DocumentRecord, PaymentSessionRecord

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def mock_connection(mock_get_conn: MagicMock) -> tuple[MagicMock, MagicMock]:
    """Wire up a mock connection + cursor and return (mock_conn, mock_cursor)."""
    mock_cursor = MagicMock()
    mock_conn = MagicMock()
    mock_conn.cursor.return_value.__enter__ = MagicMock(return_value=mock_cursor)
    mock_conn.cursor.return_value.__exit__ = MagicMock(return_value=False)
    mock_get_conn.return_value.__enter__ = MagicMock(return_value=mock_conn)
    mock_get_conn.return_value.__exit__ = MagicMock(return_value=False)
    return mock_conn, mock_cursor


def make_settings(**overrides: object) -> Settings:
    values: dict[str, object] = {
        "stripe_environment": "test",
        "stripe_secret_key_test": "sk_test_key",
        "stripe_secret_key_production": "sk_live_key",
        "stripe_webhook_secret_test": "whsec_test",
        "stripe_webhook_secret_production": "whsec_live",
        "automation_webhook_url": "https://automation.example.com/hook",
        "notification_webhook_url": "https://notify.example.com/hook",
        "storage_bucket": "documents",
    }
    values.update(overrides)
    return Settings(**values)  # type: ignore[arg-type]


def make_document(**overrides: object) -> DocumentRecord:
    values: dict[str, object] = {
        "id": "doc-1",
        "user_id": "user-1",
        "filename": "contract_abc123.pdf",
        "original_filename": "contract.pdf",
        "status": "pending",
        "pages": 3,
        "total_cost": Decimal("60.00"),
        "document_type": "Certified",
        "source_language": "Portuguese",
        "target_language": "English",
        "created_at": NOW,
    }
    values.update(overrides)
    return DocumentRecord(**values)  # type: ignore[arg-type]


def make_session(**overrides: object) -> PaymentSessionRecord:
    values: dict[str, object] = {
        "session_id": "cs_test_123",
        "document_id": "doc-1",
        "payment_status": "pending",
        "updated_at": NOW,
        "created_at": NOW,
    }
    values.update(overrides)
    return PaymentSessionRecord(**values)  # type: ignore[arg-type]
