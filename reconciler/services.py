from dataclasses import dataclass

from reconciler.audit.audit_log import AuditLog
from reconciler.config.settings import Settings
from reconciler.database.repositories.action_logs_repository import ActionLogsRepository
from reconciler.database.repositories.deliveries_repository import DeliveriesRepository
from reconciler.database.repositories.documents_repository import DocumentsRepository
from reconciler.database.repositories.payment_sessions_repository import (
    PaymentSessionsRepository,
)
from reconciler.database.repositories.payments_repository import PaymentsRepository
from reconciler.database.repositories.profiles_repository import ProfilesRepository
from reconciler.delivery.cache import RecentRequestCache
from reconciler.delivery.notifier import DeliveryNotifier
from reconciler.delivery.staff_notifier import StaffNotifier
from reconciler.payments.signature import SignatureVerifier
from reconciler.payments.stripe_client import PaymentProcessorClient
from reconciler.pdf.factory import PageCounterFactory
from reconciler.storage.base import BaseObjectStore
from reconciler.storage.s3_adapter import S3ObjectStore
from reconciler.sweeper.draft_sweeper import DraftSweeper
from reconciler.sweeper.session_sync import SessionSynchronizer
from reconciler.uploads.arrival import FileArrivalService
from reconciler.uploads.recovery import RecoveryService
from reconciler.uploads.uploader import RetryingUploader
from reconciler.webhook.dispatcher import EventDispatcher


@dataclass
class Services:
    """Everything the HTTP surface and the sweep worker call into."""

    verifier: SignatureVerifier
    dispatcher: EventDispatcher
    arrival: FileArrivalService
    recovery: RecoveryService
    synchronizer: SessionSynchronizer
    sweeper: DraftSweeper


def build_services(settings: Settings, store: BaseObjectStore | None = None) -> Services:
    """Wire repositories, adapters and services from settings."""
    store = store or S3ObjectStore(settings)
    documents_repo = DocumentsRepository()
    sessions_repo = PaymentSessionsRepository()
    payments_repo = PaymentsRepository()
    audit = AuditLog(ActionLogsRepository())
    processor = PaymentProcessorClient(settings)

    notifier = DeliveryNotifier(
        settings,
        DeliveriesRepository(),
        store,
        RecentRequestCache(
            window_seconds=settings.delivery_dedup_seconds,
            evict_after_seconds=settings.delivery_cache_ttl_seconds,
        ),
    )
    uploader = RetryingUploader(
        store,
        max_attempts=settings.upload_max_attempts,
        backoff_seconds=settings.upload_backoff_seconds,
    )

    return Services(
        verifier=SignatureVerifier(settings.webhook_secrets()),
        dispatcher=EventDispatcher(
            settings,
            documents_repo,
            sessions_repo,
            payments_repo,
            audit,
            processor,
            StaffNotifier(settings, ProfilesRepository()),
        ),
        arrival=FileArrivalService(documents_repo, uploader, notifier, audit),
        recovery=RecoveryService(
            settings,
            documents_repo,
            payments_repo,
            PageCounterFactory.create(settings),
            uploader,
            notifier,
            audit,
        ),
        synchronizer=SessionSynchronizer(settings, sessions_repo, processor, audit),
        sweeper=DraftSweeper(settings, documents_repo, sessions_repo, payments_repo, store, audit),
    )
