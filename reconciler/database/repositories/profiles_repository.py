from psycopg.rows import dict_row

from reconciler.database.connection import get_connection
from reconciler.database.models import StaffContact


class ProfilesRepository:
    """Read-only lookups in the profiles table."""

    def find_contact(self, user_id: str) -> StaffContact | None:
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    "SELECT id, name, email FROM profiles WHERE id = %s",
                    (user_id,),
                )
                row = cur.fetchone()
        if row is None:
            return None
        return StaffContact(id=str(row["id"]), name=row["name"], email=row["email"])

    def list_by_roles(self, roles: list[str]) -> list[StaffContact]:
        """Profiles holding any of ``roles`` that have an email address."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT id, name, email FROM profiles
                    WHERE role = ANY(%s) AND email IS NOT NULL
                    ORDER BY email
                    """,
                    (roles,),
                )
                rows = cur.fetchall()
        return [
            StaffContact(id=str(row["id"]), name=row["name"], email=row["email"])
            for row in rows
        ]
