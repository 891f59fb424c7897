"""
Audit Models for Pocket Ledger

Every money movement and every rejected attempt is logged for audit purposes.
This provides:
1. Complete traceability of all balance changes
2. Debugging information when things go wrong
3. The raw material for manual reconciliation
4. Ability to reconstruct history

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every stage of a money movement has its own event type.
    """
    # Registration
    IDENTITY_REGISTERED = "identity_registered"

    # Authentication
    AUTHENTICATION_FAILED = "authentication_failed"

    # Money movements
    DEPOSIT_COMPLETED = "deposit_completed"
    WITHDRAWAL_COMPLETED = "withdrawal_completed"
    TRANSFER_COMPLETED = "transfer_completed"
    TRANSFER_ABORTED = "transfer_aborted"
    RECONCILIATION_REQUIRED = "reconciliation_required"

    # Idempotency
    DUPLICATE_OPERATION_REJECTED = "duplicate_operation_rejected"

    # Savings goals
    GOAL_CREATED = "goal_created"
    GOAL_FUNDED = "goal_funded"
    GOAL_BROKEN = "goal_broken"

    # System events
    CONCURRENT_MODIFICATION = "concurrent_modification"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'goal', 'identity')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    actor_id: Optional[UUID] = Field(
        default=None,
        description="Identity that triggered the event"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all stages of one transfer)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "actor_id": str(self.actor_id) if self.actor_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.movement_completed(
            AuditEventType.DEPOSIT_COMPLETED, record_id, owner_id, amount, key
        )
        event = AuditEventBuilder.goal_event(
            AuditEventType.GOAL_BROKEN, goal_id, owner_id, "Savings goal broken"
        )
    """

    @staticmethod
    def identity_registered(
        identity_id: UUID,
        public_code: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IDENTITY_REGISTERED,
            entity_type="identity",
            entity_id=identity_id,
            actor_id=identity_id,
            correlation_id=correlation_id,
            description="Identity registered with a zero-balance account",
            details={"public_code": public_code},
        )

    @staticmethod
    def authentication_failed(
        actor_id: Optional[UUID],
        error_code: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AUTHENTICATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="identity",
            entity_id=actor_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description="Secret re-validation failed",
            error_code=error_code,
        )

    @staticmethod
    def movement_completed(
        event_type: AuditEventType,
        record_id: UUID,
        actor_id: UUID,
        amount: Decimal,
        idempotency_key: str,
        correlation_id: Optional[UUID] = None,
        **extra: Any,
    ) -> AuditEvent:
        label = event_type.value.replace("_completed", "")
        return AuditEvent(
            event_type=event_type,
            entity_type="transaction",
            entity_id=record_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"{label.capitalize()} of {amount} completed",
            details={
                "amount": str(amount),
                "idempotency_key": idempotency_key,
                **{k: str(v) for k, v in extra.items()},
            },
        )

    @staticmethod
    def transfer_aborted(
        actor_id: UUID,
        stage: str,
        error_code: str,
        idempotency_key: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_ABORTED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Transfer aborted while {stage}",
            details={"stage": stage, "idempotency_key": idempotency_key},
            error_code=error_code,
        )

    @staticmethod
    def reconciliation_required(
        actor_id: UUID,
        details: dict[str, Any],
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECONCILIATION_REQUIRED,
            severity=AuditSeverity.CRITICAL,
            entity_type="transaction",
            actor_id=actor_id,
            correlation_id=correlation_id,
            description="Transfer commit could not be confirmed",
            details=details,
            error_code="RECONCILIATION_REQUIRED",
            error_message=error_message,
        )

    @staticmethod
    def duplicate_rejected(
        actor_id: Optional[UUID],
        idempotency_key: str,
        operation: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DUPLICATE_OPERATION_REJECTED,
            entity_type="transaction",
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Replayed {operation} rejected",
            details={"idempotency_key": idempotency_key, "operation": operation},
            error_code="DUPLICATE_OPERATION",
        )

    @staticmethod
    def goal_event(
        event_type: AuditEventType,
        goal_id: UUID,
        owner_id: UUID,
        description: str,
        correlation_id: Optional[UUID] = None,
        **details: Any,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type="goal",
            entity_id=goal_id,
            actor_id=owner_id,
            correlation_id=correlation_id,
            description=description,
            details={k: str(v) for k, v in details.items()},
        )

    @staticmethod
    def concurrent_modification(
        actor_id: Optional[UUID],
        operation: str,
        attempts: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONCURRENT_MODIFICATION,
            severity=AuditSeverity.WARNING,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"{operation} gave up after {attempts} conflicting commits",
            details={"operation": operation, "attempts": attempts},
            error_code="CONCURRENT_MODIFICATION",
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
