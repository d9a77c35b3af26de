from psycopg.types.json import Jsonb

from reconciler.database.connection import get_connection
from reconciler.database.models import ActionLogRecord


class ActionLogsRepository:
    """Append-only access to the action_logs table. Rows are never updated."""

    def append(self, entry: ActionLogRecord) -> None:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO action_logs
                    (action_type, actor, entity_type, entity_id, affected_user_id,
                     description, metadata, created_at)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, NOW())
                    """,
                    (
                        entry.action_type,
                        entry.actor,
                        entry.entity_type,
                        entry.entity_id,
                        entry.affected_user_id,
                        entry.description,
                        Jsonb(entry.metadata),
                    ),
                )
            conn.commit()

    def append_once(self, entry: ActionLogRecord) -> bool:
        """Append the entry unless one with the same action and entity already exists.

        The check and the insert run under a transaction-scoped advisory lock
        on (action, entity), so concurrent callers write at most one row.
        Returns True if this call wrote the row.
        """
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT pg_advisory_xact_lock(hashtext(%s))",
                    (f"{entry.action_type}:{entry.entity_id}",),
                )
                cur.execute(
                    """
                    INSERT INTO action_logs
                    (action_type, actor, entity_type, entity_id, affected_user_id,
                     description, metadata, created_at)
                    SELECT %s, %s, %s, %s, %s, %s, %s, NOW()
                    WHERE NOT EXISTS (
                        SELECT 1 FROM action_logs
                        WHERE action_type = %s AND entity_id = %s
                    )
                    RETURNING id
                    """,
                    (
                        entry.action_type,
                        entry.actor,
                        entry.entity_type,
                        entry.entity_id,
                        entry.affected_user_id,
                        entry.description,
                        Jsonb(entry.metadata),
                        entry.action_type,
                        entry.entity_id,
                    ),
                )
                row = cur.fetchone()
            conn.commit()
        return row is not None

    def exists_recent(self, action_type: str, entity_id: str, within_seconds: int) -> bool:
        """True if the same action was logged for the entity inside the window."""
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT 1 FROM action_logs
                    WHERE action_type = %s
                      AND entity_id = %s
                      AND created_at >= NOW() - make_interval(secs => %s)
                    LIMIT 1
                    """,
                    (action_type, entity_id, within_seconds),
                )
                row = cur.fetchone()
        return row is not None
