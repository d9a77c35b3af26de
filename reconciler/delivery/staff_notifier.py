from datetime import datetime, timezone

import httpx

from reconciler.config.settings import Settings
from reconciler.database.repositories.profiles_repository import ProfilesRepository
from reconciler.logging.logger import Log

PAYMENT_REVIEWER_ROLES = ["admin", "finance"]
AUTHENTICATOR_ROLES = ["authenticator"]


class StaffNotifier:
    """Tells staff about a newly confirmed payment. Every failure is swallowed.

    One notification goes to each admin/finance user and one to each
    authenticator, who now has a document waiting for review.
    """

    def __init__(
        self,
        settings: Settings,
        profiles_repo: ProfilesRepository,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._settings = settings
        self._profiles_repo = profiles_repo
        self._http = http_client or httpx.Client(timeout=settings.outbound_timeout_seconds)

    def payment_confirmed(self, document_id: str, user_id: str, filename: str | None) -> int:
        """Send the notifications. Returns how many were accepted."""
        if not self._settings.notification_webhook_url:
            Log.debug("Notification webhook not configured, skipping staff notifications")
            return 0

        try:
            client = self._profiles_repo.find_contact(user_id)
            reviewers = self._profiles_repo.list_by_roles(PAYMENT_REVIEWER_ROLES)
            authenticators = self._profiles_repo.list_by_roles(AUTHENTICATOR_ROLES)
        except Exception as exc:
            Log.warning(f"Could not load staff recipients: {exc}", document_id=document_id)
            return 0

        timestamp = datetime.now(timezone.utc).isoformat()
        client_name = (client.name if client else None) or "Unknown Client"
        document_name = filename or "Unknown Document"
        sent = 0

        for reviewer in reviewers:
            sent += self._send(
                {
                    "user_name": client_name,
                    "user_email": reviewer.email,
                    "notification_type": "Payment Stripe",
                    "timestamp": timestamp,
                    "filename": document_name,
                    "document_id": document_id,
                    "status": "payment approved automatically",
                }
            )

        for authenticator in authenticators:
            sent += self._send(
                {
                    "user_name": authenticator.name or authenticator.email,
                    "user_email": authenticator.email,
                    "notification_type": "Authenticator Pending Documents Notification",
                    "timestamp": timestamp,
                    "filename": document_name,
                    "document_id": document_id,
                    "status": "pending_authentication",
                    "client_name": client_name,
                    "client_email": client.email if client else None,
                }
            )

        Log.info(
            f"Sent {sent} staff notification(s)",
            document_id=document_id,
            reviewers=len(reviewers),
            authenticators=len(authenticators),
        )
        return sent

    def _send(self, payload: dict[str, object]) -> int:
        try:
            response = self._http.post(self._settings.notification_webhook_url, json=payload)
        except httpx.HTTPError as exc:
            Log.warning(f"Staff notification to {payload['user_email']} failed: {exc}")
            return 0
        if not response.is_success:
            Log.warning(
                f"Staff notification to {payload['user_email']} rejected",
                status=response.status_code,
            )
            return 0
        return 1
