import httpx

from reconciler.config.settings import Settings
from reconciler.database.repositories.deliveries_repository import DeliveriesRepository
from reconciler.delivery.cache import RecentRequestCache
from reconciler.delivery.exceptions import DeliveryError
from reconciler.delivery.models import DeliveryRequest, DeliveryResult
from reconciler.logging.logger import Log
from reconciler.storage.base import BaseObjectStore
from reconciler.storage.exceptions import StorageError
from reconciler.storage.paths import is_signed_url, object_key_from_reference


class DeliveryNotifier:
    """Forwards stored files to the translation automation service.

    A delivery for the same (user, filename) is sent at most once per dedup
    window. The claim row is written under a per-file advisory lock before
    the outbound call, so two processes racing on the same file cannot both
    send it.
    """

    def __init__(
        self,
        settings: Settings,
        deliveries_repo: DeliveriesRepository,
        store: BaseObjectStore,
        cache: RecentRequestCache,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._settings = settings
        self._deliveries_repo = deliveries_repo
        self._store = store
        self._cache = cache
        self._http = http_client or httpx.Client(timeout=settings.outbound_timeout_seconds)

    def notify(self, request: DeliveryRequest) -> DeliveryResult:
        if self._cache.seen_recently(request.dedup_key):
            Log.info("Delivery skipped, seen in this process", key=request.dedup_key)
            return DeliveryResult(success=True, already_processed=True, message="Duplicate (cache)")

        delivery_id = self._deliveries_repo.claim(
            request.user_id,
            request.filename,
            request.document_id,
            self._settings.delivery_dedup_seconds,
        )
        if delivery_id is None:
            Log.info("Delivery skipped, already sent recently", key=request.dedup_key)
            return DeliveryResult(
                success=True,
                already_processed=True,
                message="Document already processed recently",
            )
        self._cache.mark(request.dedup_key)

        try:
            url = self._resolve_url(request.file_reference)
            status_code = self._post(request.to_payload(url))
        except (StorageError, DeliveryError) as exc:
            Log.error(f"Delivery failed: {exc}", document_id=request.document_id)
            status_code = exc.status_code if isinstance(exc, DeliveryError) else None
            self._deliveries_repo.mark_failed(delivery_id, status_code)
            return DeliveryResult(success=False, status_code=status_code, message=str(exc))

        self._deliveries_repo.mark_sent(delivery_id, status_code)
        Log.info(
            "Delivered file to automation service",
            document_id=request.document_id,
            status=status_code,
        )
        return DeliveryResult(success=True, status_code=status_code, url=url)

    def _resolve_url(self, reference: str) -> str:
        if is_signed_url(reference):
            return reference
        key = object_key_from_reference(reference, self._settings.storage_bucket)
        return self._store.signed_url(key, self._settings.signed_url_ttl_seconds)

    def _post(self, payload: dict[str, object]) -> int:
        if not self._settings.automation_webhook_url:
            raise DeliveryError("Automation webhook URL is not configured")
        try:
            response = self._http.post(self._settings.automation_webhook_url, json=payload)
        except httpx.HTTPError as exc:
            raise DeliveryError(f"Automation service unreachable: {exc}") from exc
        if not response.is_success:
            raise DeliveryError(
                f"Automation service answered {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        return response.status_code
