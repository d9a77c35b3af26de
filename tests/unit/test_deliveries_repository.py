from unittest.mock import MagicMock, patch

from reconciler.database.repositories.deliveries_repository import (
    DeliveriesRepository,
    claim_lock_key,
)
from tests.unit.helpers import mock_connection

MODULE = "reconciler.database.repositories.deliveries_repository.get_connection"


class TestClaim:
    @patch(MODULE)
    def test_returns_new_row_id(self, mock_get_conn: MagicMock) -> None:
        mock_conn, mock_cursor = mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = (42,)

        assert DeliveriesRepository().claim("user-1", "a.pdf", "doc-1", 120) == 42

        sql, params = mock_cursor.execute.call_args[0]
        assert "WHERE NOT EXISTS" in sql
        assert params == ("user-1", "a.pdf", "doc-1", "user-1", "a.pdf", 120)
        mock_conn.commit.assert_called_once()

    @patch(MODULE)
    def test_takes_file_lock_before_checking_window(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = (42,)

        DeliveriesRepository().claim("user-1", "a.pdf", "doc-1", 120)

        assert mock_cursor.execute.call_count == 2
        lock_sql, lock_params = mock_cursor.execute.call_args_list[0][0]
        assert lock_sql == "SELECT pg_advisory_xact_lock(hashtext(%s))"
        assert lock_params == ("user-1:a.pdf",)

    def test_lock_key_is_per_user_and_file(self) -> None:
        assert claim_lock_key("user-1", "a.pdf") != claim_lock_key("user-2", "a.pdf")
        assert claim_lock_key("user-1", "a.pdf") != claim_lock_key("user-1", "b.pdf")

    @patch(MODULE)
    def test_returns_none_inside_window(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = None

        assert DeliveriesRepository().claim("user-1", "a.pdf", "doc-1", 120) is None


class TestFinish:
    @patch(MODULE)
    def test_mark_sent(self, mock_get_conn: MagicMock) -> None:
        mock_conn, _cursor = mock_connection(mock_get_conn)

        DeliveriesRepository().mark_sent(42, 200)

        assert mock_conn.execute.call_args[0][1] == ("sent", 200, 42)
        mock_conn.commit.assert_called_once()

    @patch(MODULE)
    def test_mark_failed_without_status(self, mock_get_conn: MagicMock) -> None:
        mock_conn, _cursor = mock_connection(mock_get_conn)

        DeliveriesRepository().mark_failed(42, None)

        assert mock_conn.execute.call_args[0][1] == ("failed", None, 42)
