from reconciler.database.connection import get_connection


def claim_lock_key(user_id: str, filename: str) -> str:
    """Advisory lock key serializing claims for one (user, filename)."""
    return f"{user_id}:{filename}"


class DeliveriesRepository:
    """Database operations for the translation_deliveries table.

    One row per outbound call to the automation service. A row younger than
    the dedup window for the same (user, filename) means the file was
    already forwarded.
    """

    def claim(
        self,
        user_id: str,
        filename: str,
        document_id: str | None,
        window_seconds: int,
    ) -> int | None:
        """Record an outbound delivery unless one exists inside the window.

        The check and the insert run under a transaction-scoped advisory lock,
        so concurrent claims for the same file see each other's rows.

        Returns the new row ID, or None when a recent delivery already exists.
        """
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT pg_advisory_xact_lock(hashtext(%s))",
                    (claim_lock_key(user_id, filename),),
                )
                cur.execute(
                    """
                    INSERT INTO translation_deliveries
                    (user_id, filename, document_id, status, created_at)
                    SELECT %s, %s, %s, 'sending', NOW()
                    WHERE NOT EXISTS (
                        SELECT 1 FROM translation_deliveries
                        WHERE user_id = %s
                          AND filename = %s
                          AND created_at >= NOW() - make_interval(secs => %s)
                    )
                    RETURNING id
                    """,
                    (user_id, filename, document_id, user_id, filename, window_seconds),
                )
                row = cur.fetchone()
            conn.commit()
        return int(row[0]) if row is not None else None

    def mark_sent(self, delivery_id: int, response_status: int) -> None:
        self._finish(delivery_id, "sent", response_status)

    def mark_failed(self, delivery_id: int, response_status: int | None) -> None:
        self._finish(delivery_id, "failed", response_status)

    def _finish(self, delivery_id: int, status: str, response_status: int | None) -> None:
        with get_connection() as conn:
            conn.execute(
                """
                UPDATE translation_deliveries
                SET status = %s, response_status = %s
                WHERE id = %s
                """,
                (status, response_status, delivery_id),
            )
            conn.commit()
