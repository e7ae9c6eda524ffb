"""
In-Memory Storage

Used by tests and by `create_app_components(use_storage=False)`.
The ledger is kept as serialized bytes, so a save/load cycle goes through
the same codec as the file backend.
"""

from typing import Optional
from uuid import UUID

from lumina.models.audit import AuditEvent
from lumina.models.ledger import AppData, TransactionDraft
from lumina.services.storage.interface import (
    AuditStorageInterface,
    FormatError,
    LedgerStorageInterface,
    StorageError,
)
from lumina.services.storage.serializer import (
    deserialize,
    deserialize_draft,
    serialize,
    serialize_draft,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Ledger storage backed by a bytes buffer."""

    def __init__(self, raw: Optional[bytes] = None):
        self.raw = raw
        self.save_count = 0
        self.fail_saves = False
        self.draft_raw: Optional[bytes] = None

    async def load_state(self) -> Optional[AppData]:
        if self.raw is None:
            return None
        return deserialize(self.raw)

    async def save_state(self, state: AppData) -> bool:
        if self.fail_saves:
            raise StorageError("In-memory storage is configured to fail")
        self.raw = serialize(state)
        self.save_count += 1
        return True

    async def save_draft(self, draft: TransactionDraft) -> bool:
        if self.fail_saves:
            raise StorageError("In-memory storage is configured to fail")
        self.draft_raw = serialize_draft(draft)
        return True

    async def load_draft(self) -> Optional[TransactionDraft]:
        if self.draft_raw is None:
            return None
        try:
            return deserialize_draft(self.draft_raw)
        except FormatError:
            return None

    async def clear_draft(self) -> bool:
        if self.fail_saves:
            raise StorageError("In-memory storage is configured to fail")
        self.draft_raw = None
        return True


class InMemoryAuditStorage(AuditStorageInterface):
    """Audit storage backed by a list."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return sorted(
            (e for e in self.events if e.correlation_id == correlation_id),
            key=lambda e: e.timestamp,
        )

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        return sorted(
            (
                e for e in self.events
                if e.entity_type == entity_type and e.entity_id == entity_id
            ),
            key=lambda e: e.timestamp,
        )

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return sorted(self.events, key=lambda e: e.timestamp, reverse=True)[:limit]
