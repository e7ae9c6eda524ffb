"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap the JSON file for a real database later
2. Use in-memory storage for testing
3. Keep the ledger core decoupled from storage implementation

The ledger is persisted as ONE blob: the whole AppData aggregate.
There is no per-transaction storage, so a save can never leave wallets
and transactions out of step with each other.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from lumina.models.audit import AuditEvent
from lumina.models.ledger import AppData, TransactionDraft, ValidationIssue


class LedgerStorageInterface(ABC):
    """
    Abstract interface for durable ledger state.

    Any storage implementation (JSON file, SQLite, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def load_state(self) -> Optional[AppData]:
        """
        Read the persisted ledger.

        Returns:
            The stored AppData, or None when nothing has been saved yet

        Raises:
            FormatError: If the stored blob cannot be decoded
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def save_state(self, state: AppData) -> bool:
        """
        Persist the whole ledger, replacing what was stored.

        Args:
            state: The aggregate to save

        Returns:
            True if saved successfully

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def save_draft(self, draft: TransactionDraft) -> bool:
        """
        Keep the entry form's unsaved draft, replacing any previous one.

        Raises:
            StorageError: If the draft cannot be written
        """
        pass

    @abstractmethod
    async def load_draft(self) -> Optional[TransactionDraft]:
        """
        Read back the unsaved draft.

        Returns:
            The draft, or None when there is none or it cannot be read

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def clear_draft(self) -> bool:
        """
        Forget the unsaved draft. Clearing when there is none is fine.

        Raises:
            StorageError: If the draft cannot be removed
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Args:
            event: The audit event to log

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one commit and its save).

        Args:
            correlation_id: The correlation identifier

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Args:
            entity_type: Type of entity (e.g., 'transaction', 'ledger')
            entity_id: The entity's ID

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Args:
            limit: Maximum number of events to return

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class FormatError(StorageError):
    """
    A document is not a readable ledger.

    Raised for undecodable bytes, malformed JSON, and documents that fail
    the AppData schema. `issues` lists every schema problem found.
    """

    def __init__(self, message: str, issues: Optional[list[ValidationIssue]] = None):
        super().__init__(message)
        self.issues = list(issues or [])

    def issue_dicts(self) -> list[dict]:
        return [issue.model_dump() for issue in self.issues]
