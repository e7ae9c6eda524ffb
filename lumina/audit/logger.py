"""
Audit Logger

DESIGN DECISION: Every ledger transition and collaborator call is logged.
This provides:
1. Complete traceability of how the ledger reached its current version
2. Debugging capability
3. User can see history of imports, resets and exports

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Any, Optional
from uuid import UUID, uuid4

import structlog

from lumina.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from lumina.services.storage import AuditStorageInterface


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
    2. Audit storage (JSON lines next to the ledger file)
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
        self._logger = structlog.get_logger("lumina.audit")

    @property
    def storage(self) -> Optional[AuditStorageInterface]:
        return self._storage

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        # Always log locally
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        # Persist to storage if available
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

    async def log_transaction_committed(
        self,
        transaction_id: str,
        transaction_type: str,
        amount: str,
        version: int,
        correlation_id: UUID,
    ) -> None:
        """Log a committed transaction."""
        event = AuditEventBuilder.transaction_committed(
            transaction_id=transaction_id,
            transaction_type=transaction_type,
            amount=amount,
            version=version,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transaction_rejected(
        self,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        """Log a draft that failed validation."""
        event = AuditEventBuilder.transaction_rejected(
            issues=issues,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_settings_updated(
        self,
        changes: dict[str, Any],
        version: int,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.settings_updated(
            changes=changes,
            version=version,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_state_reset(
        self,
        version: int,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.state_reset(
            version=version,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_state_imported(
        self,
        wallet_count: int,
        transaction_count: int,
        version: int,
        correlation_id: UUID,
    ) -> None:
        """Log a successful import."""
        event = AuditEventBuilder.state_imported(
            wallet_count=wallet_count,
            transaction_count=transaction_count,
            version=version,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_import_rejected(
        self,
        reason: str,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        """Log an import whose document failed decoding or validation."""
        event = AuditEventBuilder.import_rejected(
            reason=reason,
            issues=issues,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_import_declined(
        self,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.import_declined(correlation_id=correlation_id)
        await self.log(event)

    async def log_export_created(
        self,
        export_format: str,
        filename: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.export_created(
            export_format=export_format,
            filename=filename,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_state_loaded(
        self,
        version: int,
        from_seed: bool,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.state_loaded(
            version=version,
            from_seed=from_seed,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_state_load_failed(
        self,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.state_load_failed(
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_state_saved(
        self,
        version: int,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.state_saved(
            version=version,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_save_failed(
        self,
        version: int,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log a durable write that failed after an in-memory commit."""
        event = AuditEventBuilder.save_failed(
            version=version,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_receipt_analyzed(
        self,
        fields_found: list[str],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.receipt_analyzed(
            fields_found=fields_found,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_receipt_analysis_failed(
        self,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.receipt_analysis_failed(
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_insights_generated(
        self,
        transaction_count: int,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.insights_generated(
            transaction_count=transaction_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_insights_failed(
        self,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.insights_failed(
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., committing an entry).
    Pass it through all subsequent operations.
    """
    return uuid4()
