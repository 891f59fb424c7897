"""
Audit Logger

DESIGN DECISION: Every money movement and every rejected attempt is logged.
This provides:
1. Complete traceability of balance changes
2. Debugging capability
3. The evidence needed for manual reconciliation
4. Compliance readiness

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (never fails a committed movement because logging failed)
- Supports correlation IDs to trace related events
"""

from decimal import Decimal
from typing import Any, Optional
from uuid import UUID, uuid4

import structlog

from pocketledger.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from pocketledger.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and reconciliation)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("pocketledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value == "critical":
            self._logger.critical("audit_event", **log_dict)
        elif event.severity.value == "error":
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_identity_registered(
        self,
        identity_id: UUID,
        public_code: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.identity_registered(
            identity_id=identity_id,
            public_code=public_code,
            correlation_id=correlation_id,
        ))

    async def log_authentication_failed(
        self,
        actor_id: Optional[UUID],
        error_code: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.authentication_failed(
            actor_id=actor_id,
            error_code=error_code,
            correlation_id=correlation_id,
        ))

    async def log_movement(
        self,
        event_type: AuditEventType,
        record_id: UUID,
        actor_id: UUID,
        amount: Decimal,
        idempotency_key: str,
        correlation_id: Optional[UUID] = None,
        **extra: Any,
    ) -> None:
        """Log a completed deposit, withdrawal or transfer."""
        await self.log(AuditEventBuilder.movement_completed(
            event_type=event_type,
            record_id=record_id,
            actor_id=actor_id,
            amount=amount,
            idempotency_key=idempotency_key,
            correlation_id=correlation_id,
            **extra,
        ))

    async def log_transfer_aborted(
        self,
        actor_id: UUID,
        stage: str,
        error_code: str,
        idempotency_key: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.transfer_aborted(
            actor_id=actor_id,
            stage=stage,
            error_code=error_code,
            idempotency_key=idempotency_key,
            correlation_id=correlation_id,
        ))

    async def log_reconciliation_required(
        self,
        actor_id: UUID,
        details: dict[str, Any],
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.reconciliation_required(
            actor_id=actor_id,
            details=details,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_duplicate_rejected(
        self,
        actor_id: Optional[UUID],
        idempotency_key: str,
        operation: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.duplicate_rejected(
            actor_id=actor_id,
            idempotency_key=idempotency_key,
            operation=operation,
            correlation_id=correlation_id,
        ))

    async def log_goal_event(
        self,
        event_type: AuditEventType,
        goal_id: UUID,
        owner_id: UUID,
        description: str,
        correlation_id: Optional[UUID] = None,
        **details: Any,
    ) -> None:
        await self.log(AuditEventBuilder.goal_event(
            event_type=event_type,
            goal_id=goal_id,
            owner_id=owner_id,
            description=description,
            correlation_id=correlation_id,
            **details,
        ))

    async def log_concurrent_modification(
        self,
        actor_id: Optional[UUID],
        operation: str,
        attempts: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.concurrent_modification(
            actor_id=actor_id,
            operation=operation,
            attempts=attempts,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new caller request.
    Pass it through all subsequent operations.
    """
    return uuid4()
