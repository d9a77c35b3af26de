from datetime import datetime
from typing import Any

from psycopg.rows import dict_row

from reconciler.database.connection import get_connection
from reconciler.database.models import PaymentSessionRecord
from reconciler.payments.state_machine import SESSION_TRANSITIONS, DocumentStatus, SessionStatus

_SESSION_COLUMNS = "session_id, document_id, payment_status, created_at, updated_at"


def _row_to_session(row: dict[str, Any]) -> PaymentSessionRecord:
    return PaymentSessionRecord(
        session_id=row["session_id"],
        document_id=str(row["document_id"]),
        payment_status=row["payment_status"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class PaymentSessionsRepository:
    """Database operations for the payment_sessions table."""

    def find_by_session_id(self, session_id: str) -> PaymentSessionRecord | None:
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"SELECT {_SESSION_COLUMNS} FROM payment_sessions WHERE session_id = %s",
                    (session_id,),
                )
                row = cur.fetchone()
        return _row_to_session(row) if row is not None else None

    def find_for_document(self, document_id: str) -> PaymentSessionRecord | None:
        """The authoritative (most recently created) session of a document."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_SESSION_COLUMNS}
                    FROM payment_sessions
                    WHERE document_id = %s
                    ORDER BY created_at DESC
                    LIMIT 1
                    """,
                    (document_id,),
                )
                row = cur.fetchone()
        return _row_to_session(row) if row is not None else None

    def transition(self, session_id: str, target: SessionStatus) -> bool:
        """Move a session to ``target`` if its current status allows it.

        Terminal statuses never move again, so redelivered or racing events
        cannot send a session back to pending.
        """
        sources = [src.value for (src, dst) in SESSION_TRANSITIONS if dst is target]
        if not sources:
            return False
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE payment_sessions
                    SET payment_status = %s, updated_at = NOW()
                    WHERE session_id = %s AND payment_status = ANY(%s)
                    """,
                    (target.value, session_id, sources),
                )
                moved = cur.rowcount == 1
            conn.commit()
        return moved

    def list_stale_pending(self, untouched_since: datetime) -> list[PaymentSessionRecord]:
        """Pending sessions whose last update is older than ``untouched_since``."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_SESSION_COLUMNS}
                    FROM payment_sessions
                    WHERE payment_status = %s AND updated_at <= %s
                    ORDER BY updated_at
                    """,
                    (SessionStatus.PENDING.value, untouched_since),
                )
                rows = cur.fetchall()
        return [_row_to_session(row) for row in rows]
