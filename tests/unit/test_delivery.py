import json
from unittest.mock import MagicMock

import httpx

from reconciler.database.models import StaffContact
from reconciler.delivery.cache import RecentRequestCache
from reconciler.delivery.models import DeliveryRequest
from reconciler.delivery.notifier import DeliveryNotifier
from reconciler.delivery.staff_notifier import StaffNotifier
from reconciler.storage.exceptions import StorageError
from tests.unit.helpers import make_document, make_settings


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _recording_client(status_code: int = 200) -> tuple[httpx.Client, list[dict]]:
    sent: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(json.loads(request.content))
        return httpx.Response(status_code, text="ok")

    return httpx.Client(transport=httpx.MockTransport(handler)), sent


def _notifier(
    http_client: httpx.Client,
    claim_ids: list[int | None] | None = None,
    cache: RecentRequestCache | None = None,
) -> tuple[DeliveryNotifier, MagicMock, MagicMock]:
    repo = MagicMock()
    repo.claim.side_effect = claim_ids or [1]
    store = MagicMock()
    store.signed_url.return_value = "https://signed.example.com/user-1/a.pdf?X-Amz-Signature=x"
    notifier = DeliveryNotifier(
        make_settings(),
        repo,
        store,
        cache or RecentRequestCache(),
        http_client=http_client,
    )
    return notifier, repo, store


class TestRecentRequestCache:
    def test_seen_inside_window(self) -> None:
        clock = FakeClock()
        cache = RecentRequestCache(window_seconds=120, evict_after_seconds=300, clock=clock)
        cache.mark("user-1_a.pdf")

        clock.now += 119
        assert cache.seen_recently("user-1_a.pdf") is True

        clock.now += 2
        assert cache.seen_recently("user-1_a.pdf") is False

    def test_old_entries_are_evicted(self) -> None:
        clock = FakeClock()
        cache = RecentRequestCache(window_seconds=120, evict_after_seconds=300, clock=clock)
        cache.mark("old")
        clock.now += 301

        cache.mark("new")

        assert len(cache) == 1


class TestDeliveryRequest:
    def test_payload_carries_document_fields(self) -> None:
        request = DeliveryRequest.for_document(make_document(), "user-1/contract_abc123.pdf", size=2048)

        payload = request.to_payload("https://signed")

        assert payload["url"] == "https://signed"
        assert payload["pages"] == 3
        assert payload["total_cost"] == "60.00"
        assert payload["isPdf"] is True
        assert payload["fileExtension"] == "pdf"
        assert payload["original_document_id"] == "doc-1"
        assert request.dedup_key == "user-1_contract_abc123.pdf"

    def test_missing_cost_defaults_to_zero(self) -> None:
        request = DeliveryRequest(user_id="u", filename="scan", file_reference="u/scan", total_cost=None)
        payload = request.to_payload("https://signed")
        assert payload["total_cost"] == "0"
        assert payload["fileExtension"] == ""


class TestDeliveryNotifier:
    def test_sends_once_within_window(self) -> None:
        client, sent = _recording_client()
        notifier, repo, _store = _notifier(client, claim_ids=[7, None])
        request = DeliveryRequest.for_document(make_document(), "user-1/contract_abc123.pdf")

        first = notifier.notify(request)
        second = notifier.notify(request)

        assert first.success is True and first.already_processed is False
        assert second.success is True and second.already_processed is True
        assert len(sent) == 1
        repo.claim.assert_called_once()
        repo.mark_sent.assert_called_once_with(7, 200)

    def test_durable_claim_blocks_other_process(self) -> None:
        client, sent = _recording_client()
        notifier, repo, _store = _notifier(client, claim_ids=[None])

        result = notifier.notify(
            DeliveryRequest.for_document(make_document(), "user-1/contract_abc123.pdf")
        )

        assert result.already_processed is True
        assert result.message == "Document already processed recently"
        assert sent == []

    def test_presigns_stored_key(self) -> None:
        client, sent = _recording_client()
        notifier, _repo, store = _notifier(client)

        notifier.notify(DeliveryRequest.for_document(make_document(), "user-1/contract_abc123.pdf"))

        store.signed_url.assert_called_once_with("user-1/contract_abc123.pdf", 86400)
        assert sent[0]["url"].startswith("https://signed.example.com/")

    def test_already_signed_url_is_forwarded_as_is(self) -> None:
        client, sent = _recording_client()
        notifier, _repo, store = _notifier(client)
        url = "https://documents.s3.amazonaws.com/user-1/a.pdf?X-Amz-Signature=abc"

        notifier.notify(DeliveryRequest(user_id="user-1", filename="a.pdf", file_reference=url))

        store.signed_url.assert_not_called()
        assert sent[0]["url"] == url

    def test_non_success_status_marks_failed(self) -> None:
        client, _sent = _recording_client(status_code=502)
        notifier, repo, _store = _notifier(client, claim_ids=[3])

        result = notifier.notify(
            DeliveryRequest.for_document(make_document(), "user-1/contract_abc123.pdf")
        )

        assert result.success is False
        assert result.status_code == 502
        repo.mark_failed.assert_called_once_with(3, 502)
        repo.mark_sent.assert_not_called()

    def test_storage_failure_marks_failed(self) -> None:
        client, sent = _recording_client()
        notifier, repo, store = _notifier(client, claim_ids=[4])
        store.signed_url.side_effect = StorageError("denied")

        result = notifier.notify(
            DeliveryRequest.for_document(make_document(), "user-1/contract_abc123.pdf")
        )

        assert result.success is False
        assert sent == []
        repo.mark_failed.assert_called_once_with(4, None)


class TestStaffNotifier:
    def _contacts(self) -> MagicMock:
        profiles = MagicMock()
        profiles.find_contact.return_value = StaffContact(id="user-1", name="Ana", email="ana@example.com")
        profiles.list_by_roles.side_effect = [
            [StaffContact(id="a-1", name="Admin", email="admin@example.com")],
            [StaffContact(id="t-1", name=None, email="auth@example.com")],
        ]
        return profiles

    def test_notifies_reviewers_and_authenticators(self) -> None:
        client, sent = _recording_client()
        notifier = StaffNotifier(make_settings(), self._contacts(), http_client=client)

        count = notifier.payment_confirmed("doc-1", "user-1", "contract.pdf")

        assert count == 2
        assert sent[0]["notification_type"] == "Payment Stripe"
        assert sent[0]["user_name"] == "Ana"
        assert sent[1]["status"] == "pending_authentication"
        assert sent[1]["user_name"] == "auth@example.com"
        assert sent[1]["client_email"] == "ana@example.com"

    def test_rejections_are_swallowed(self) -> None:
        client, _sent = _recording_client(status_code=500)
        notifier = StaffNotifier(make_settings(), self._contacts(), http_client=client)

        assert notifier.payment_confirmed("doc-1", "user-1", None) == 0

    def test_skipped_without_webhook_url(self) -> None:
        profiles = MagicMock()
        notifier = StaffNotifier(make_settings(notification_webhook_url=""), profiles)

        assert notifier.payment_confirmed("doc-1", "user-1", None) == 0
        profiles.list_by_roles.assert_not_called()
