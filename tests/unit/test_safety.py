from datetime import timedelta

from reconciler.sweeper.safety import classify_draft
from tests.unit.helpers import NOW, make_session

HOUR = timedelta(hours=1)


class TestClassifyDraft:
    def test_payment_record_always_kept(self) -> None:
        result = classify_draft(True, None, NOW, HOUR)
        assert result.safe_to_delete is False
        assert result.reason == "Has a payment record"

    def test_completed_session_never_deleted(self) -> None:
        session = make_session(payment_status="completed", updated_at=NOW - timedelta(days=3))
        assert classify_draft(False, session, NOW, HOUR).safe_to_delete is False

    def test_no_session_is_deleted(self) -> None:
        assert classify_draft(False, None, NOW, HOUR).safe_to_delete is True

    def test_expired_and_failed_sessions_are_deleted(self) -> None:
        for status in ("expired", "failed"):
            result = classify_draft(False, make_session(payment_status=status), NOW, HOUR)
            assert result.safe_to_delete is True
            assert result.reason == f"Payment session {status}"

    def test_pending_untouched_for_an_hour_is_deleted(self) -> None:
        session = make_session(updated_at=NOW - timedelta(hours=1, minutes=1))
        assert classify_draft(False, session, NOW, HOUR).safe_to_delete is True

    def test_recently_updated_pending_is_kept(self) -> None:
        session = make_session(updated_at=NOW - timedelta(minutes=20))
        result = classify_draft(False, session, NOW, HOUR)
        assert result.safe_to_delete is False
        assert result.reason == "Payment session updated within the last hour"

    def test_pending_without_timestamp_is_kept(self) -> None:
        session = make_session(updated_at=None)
        assert classify_draft(False, session, NOW, HOUR).safe_to_delete is False

    def test_unknown_status_is_kept(self) -> None:
        session = make_session(payment_status="requires_action")
        assert classify_draft(False, session, NOW, HOUR).safe_to_delete is False
