from reconciler.database.connection import get_connection
from reconciler.database.models import PaymentRecord


class PaymentsRepository:
    """Database operations for the payments table."""

    def create_once(self, payment: PaymentRecord) -> bool:
        """Insert the settled payment for a document.

        Relies on the unique constraint on ``payments.document_id``: a
        redelivered confirmation inserts nothing and returns False.
        """
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO payments
                    (document_id, user_id, stripe_session_id, amount, gross_amount,
                     fee_amount, currency, status, payment_method, payment_date)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, 'card', NOW())
                    ON CONFLICT (document_id) DO NOTHING
                    RETURNING id
                    """,
                    (
                        payment.document_id,
                        payment.user_id,
                        payment.stripe_session_id,
                        payment.amount,
                        payment.gross_amount,
                        payment.fee_amount,
                        payment.currency,
                        payment.status,
                    ),
                )
                row = cur.fetchone()
            conn.commit()

        if row is None:
            return False
        payment.id = str(row[0])
        return True

    def has_completed_payment(self, document_id: str) -> bool:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT 1 FROM payments
                    WHERE document_id = %s AND status = 'completed'
                    LIMIT 1
                    """,
                    (document_id,),
                )
                row = cur.fetchone()
        return row is not None

    def exists_for_document(self, document_id: str) -> bool:
        """Any payment row at all, whatever its status."""
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT 1 FROM payments WHERE document_id = %s LIMIT 1",
                    (document_id,),
                )
                row = cur.fetchone()
        return row is not None
