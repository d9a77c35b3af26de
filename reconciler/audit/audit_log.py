from typing import Any

from reconciler.audit.actions import AuditAction
from reconciler.database.models import ActionLogRecord
from reconciler.database.repositories.action_logs_repository import ActionLogsRepository
from reconciler.logging.logger import Log


class AuditLog:
    """Writes entries to the append-only action log.

    Write errors propagate and fail the handler. Entries that must survive a
    redelivery are written with ``record_once``, which the retried handler
    calls again even when its state changes were already applied.
    """

    def __init__(self, repository: ActionLogsRepository) -> None:
        self._repository = repository

    def record(
        self,
        action: AuditAction,
        description: str,
        entity_type: str,
        entity_id: str | None,
        affected_user_id: str | None = None,
        actor: str = "system",
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self._repository.append(
            ActionLogRecord(
                action_type=action.value,
                description=description,
                entity_type=entity_type,
                entity_id=entity_id,
                actor=actor,
                affected_user_id=affected_user_id,
                metadata=metadata or {},
            )
        )
        Log.debug(f"Audit entry {action.value} written", entity_id=entity_id)

    def record_once(
        self,
        action: AuditAction,
        description: str,
        entity_type: str,
        entity_id: str,
        affected_user_id: str | None = None,
        actor: str = "system",
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        """Write the entry unless this action was ever logged for the entity.

        Returns True if this call wrote it.
        """
        written = self._repository.append_once(
            ActionLogRecord(
                action_type=action.value,
                description=description,
                entity_type=entity_type,
                entity_id=entity_id,
                actor=actor,
                affected_user_id=affected_user_id,
                metadata=metadata or {},
            )
        )
        if not written:
            Log.debug(f"Audit entry {action.value} already present", entity_id=entity_id)
        return written

    def record_unless_recent(
        self,
        action: AuditAction,
        description: str,
        entity_type: str,
        entity_id: str,
        within_seconds: int,
        affected_user_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        """Write the entry unless the same action/entity was logged inside the window.

        Returns True if an entry was written.
        """
        if self._repository.exists_recent(action.value, entity_id, within_seconds):
            Log.info(
                f"Skipping duplicate {action.value} entry",
                entity_id=entity_id,
                window_seconds=within_seconds,
            )
            return False
        self.record(
            action,
            description,
            entity_type=entity_type,
            entity_id=entity_id,
            affected_user_id=affected_user_id,
            metadata=metadata,
        )
        return True
