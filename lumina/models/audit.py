"""
Audit Models for Lumina

Every significant action in the system is logged for audit purposes.
This provides:
1. Complete traceability of all ledger transitions
2. Debugging information when things go wrong
3. A history the user can inspect after an import or reset

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from lumina.models.ledger import utc_now


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every ledger transition and every collaborator call has its own type.
    """
    # Ledger transitions
    TRANSACTION_COMMITTED = "transaction_committed"
    TRANSACTION_REJECTED = "transaction_rejected"
    SETTINGS_UPDATED = "settings_updated"
    STATE_RESET = "state_reset"

    # Import / export
    STATE_IMPORTED = "state_imported"
    IMPORT_REJECTED = "import_rejected"
    IMPORT_DECLINED = "import_declined"
    EXPORT_CREATED = "export_created"

    # Persistence
    STATE_LOADED = "state_loaded"
    STATE_LOAD_FAILED = "state_load_failed"
    STATE_SAVED = "state_saved"
    SAVE_FAILED = "save_failed"

    # Collaborators
    RECEIPT_ANALYZED = "receipt_analyzed"
    RECEIPT_ANALYSIS_FAILED = "receipt_analysis_failed"
    INSIGHTS_GENERATED = "insights_generated"
    INSIGHTS_FAILED = "insights_failed"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


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
        default_factory=utc_now,
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
        description="Type of entity (e.g., 'transaction', 'ledger', 'receipt')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., commit and save of one entry)"
    )

    # Event details
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

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

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
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_json_line(self) -> str:
        """One line of the append-only JSON-lines audit file."""
        return json.dumps(self.to_log_dict(), sort_keys=True, default=str)

    @classmethod
    def from_json_line(cls, line: str) -> "AuditEvent":
        return cls.model_validate_json(line)


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_committed(tx_id, "EXPENSE", "30.00", 4, cid)
        event = AuditEventBuilder.state_reset(version, cid)
    """

    @staticmethod
    def transaction_committed(
        transaction_id: str,
        transaction_type: str,
        amount: str,
        version: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_COMMITTED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"{transaction_type.capitalize()} of {amount} committed",
            details={
                "transaction_type": transaction_type,
                "amount": amount,
                "version": version,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_rejected(
        issues: list[dict],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction_draft",
            correlation_id=correlation_id,
            description=f"Transaction draft rejected with {len(issues)} issues",
            details={
                "issues": issues,
            },
            is_user_action=True,
        )

    @staticmethod
    def settings_updated(
        changes: dict[str, Any],
        version: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTINGS_UPDATED,
            entity_type="settings",
            correlation_id=correlation_id,
            description=f"Settings updated: {', '.join(sorted(changes)) or 'nothing'}",
            details={
                "changes": {key: str(value) for key, value in changes.items()},
                "version": version,
            },
            is_user_action=True,
        )

    @staticmethod
    def state_reset(
        version: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATE_RESET,
            severity=AuditSeverity.WARNING,
            entity_type="ledger",
            correlation_id=correlation_id,
            description="Ledger reset to default data",
            details={
                "version": version,
            },
            is_user_action=True,
        )

    @staticmethod
    def state_imported(
        wallet_count: int,
        transaction_count: int,
        version: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATE_IMPORTED,
            severity=AuditSeverity.WARNING,
            entity_type="ledger",
            correlation_id=correlation_id,
            description=(
                f"Ledger replaced by import: {wallet_count} wallets, "
                f"{transaction_count} transactions"
            ),
            details={
                "wallet_count": wallet_count,
                "transaction_count": transaction_count,
                "version": version,
            },
            is_user_action=True,
        )

    @staticmethod
    def import_rejected(
        reason: str,
        issues: list[dict],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="ledger",
            correlation_id=correlation_id,
            description="Import rejected: invalid file format",
            error_message=reason,
            details={
                "issues": issues,
            },
            is_user_action=True,
        )

    @staticmethod
    def import_declined(
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_DECLINED,
            entity_type="ledger",
            correlation_id=correlation_id,
            description="User declined to overwrite data with import",
            is_user_action=True,
        )

    @staticmethod
    def export_created(
        export_format: str,
        filename: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPORT_CREATED,
            entity_type="export",
            correlation_id=correlation_id,
            description=f"Exported {export_format.upper()}: {filename}",
            details={
                "format": export_format,
                "filename": filename,
            },
            is_user_action=True,
        )

    @staticmethod
    def state_loaded(
        version: int,
        from_seed: bool,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATE_LOADED,
            entity_type="ledger",
            correlation_id=correlation_id,
            description=(
                "No saved ledger found, started from default data"
                if from_seed
                else f"Ledger loaded at version {version}"
            ),
            details={
                "version": version,
                "from_seed": from_seed,
            },
        )

    @staticmethod
    def state_load_failed(
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATE_LOAD_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="ledger",
            correlation_id=correlation_id,
            description="Saved ledger could not be read",
            error_message=error_message,
        )

    @staticmethod
    def state_saved(
        version: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATE_SAVED,
            severity=AuditSeverity.DEBUG,
            entity_type="ledger",
            correlation_id=correlation_id,
            description=f"Ledger version {version} saved",
            details={
                "version": version,
            },
        )

    @staticmethod
    def save_failed(
        version: int,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="ledger",
            correlation_id=correlation_id,
            description=f"Saving ledger version {version} failed",
            error_message=error_message,
            details={
                "version": version,
            },
        )

    @staticmethod
    def receipt_analyzed(
        fields_found: list[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_ANALYZED,
            entity_type="receipt",
            correlation_id=correlation_id,
            description=f"Receipt analyzed, found: {', '.join(fields_found) or 'nothing'}",
            details={
                "fields_found": fields_found,
            },
            is_user_action=True,
        )

    @staticmethod
    def receipt_analysis_failed(
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_ANALYSIS_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="receipt",
            correlation_id=correlation_id,
            description="Receipt analysis failed, falling back to manual entry",
            error_message=error_message,
        )

    @staticmethod
    def insights_generated(
        transaction_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INSIGHTS_GENERATED,
            entity_type="insights",
            correlation_id=correlation_id,
            description=f"Insights generated from {transaction_count} transactions",
            details={
                "transaction_count": transaction_count,
            },
        )

    @staticmethod
    def insights_failed(
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INSIGHTS_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="insights",
            correlation_id=correlation_id,
            description="Insight generation failed",
            error_message=error_message,
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

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
