"""
JSON File Storage Implementation

DESIGN DECISION: The ledger lives in a single JSON file because:
1. Users can open and read their data without any tooling
2. No database setup required
3. The same bytes double as a backup file

TRADEOFFS:
- Every save rewrites the whole file (fine for a personal ledger)
- One writer at a time (the LedgerFlow lock guarantees this)

Writes go to a temp file in the same directory and are moved into place
with os.replace, so a crash mid-write leaves the previous file intact.
File IO runs in a worker thread to keep the event loop responsive.
"""

import asyncio
import os
import tempfile
from pathlib import Path
from typing import Optional
from uuid import UUID

import structlog
from pydantic import ValidationError as PydanticValidationError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from lumina.config import get_settings
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


logger = structlog.get_logger(__name__)


def _atomic_write(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


def _read_if_exists(path: Path) -> Optional[bytes]:
    try:
        return path.read_bytes()
    except FileNotFoundError:
        return None


class JsonFileLedgerStorage(LedgerStorageInterface):
    """
    Ledger stored as one JSON document at <data_dir>/<state_key>.json.

    The entry form's unsaved draft sits next to it in
    <draft_key>.json and is removed once the draft is committed.
    """

    def __init__(self, path: Optional[Path] = None, draft_path: Optional[Path] = None):
        storage = get_settings().storage
        self._path = Path(path) if path is not None else storage.state_path
        if draft_path is not None:
            self._draft_path = Path(draft_path)
        else:
            self._draft_path = self._path.with_name(f"{storage.draft_key}.json")

    @property
    def path(self) -> Path:
        return self._path

    @property
    def draft_path(self) -> Path:
        return self._draft_path

    def _read(self) -> Optional[bytes]:
        return _read_if_exists(self._path)

    @retry(
        retry=retry_if_exception_type(OSError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _read_with_retry(self) -> Optional[bytes]:
        return await asyncio.to_thread(self._read)

    @retry(
        retry=retry_if_exception_type(OSError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _write_with_retry(self, data: bytes) -> None:
        await asyncio.to_thread(_atomic_write, self._path, data)

    async def load_state(self) -> Optional[AppData]:
        """Load the ledger file, or None if it does not exist yet."""
        try:
            raw = await self._read_with_retry()
        except OSError as e:
            raise StorageError(f"Failed to read ledger file {self._path}: {e}")

        if raw is None:
            logger.info("ledger_file_missing", path=str(self._path))
            return None

        # FormatError propagates: a corrupt file must not be silently replaced
        state = deserialize(raw)
        logger.info("ledger_file_loaded", path=str(self._path), version=state.version)
        return state

    async def save_state(self, state: AppData) -> bool:
        """Atomically replace the ledger file with the given state."""
        data = serialize(state)
        try:
            await self._write_with_retry(data)
        except OSError as e:
            raise StorageError(f"Failed to save ledger file {self._path}: {e}")
        logger.debug(
            "ledger_file_saved",
            path=str(self._path),
            version=state.version,
            size_bytes=len(data),
        )
        return True

    # Entry-form draft. Written on every edit, without retries.

    async def save_draft(self, draft: TransactionDraft) -> bool:
        """Atomically replace the draft file."""
        try:
            await asyncio.to_thread(_atomic_write, self._draft_path, serialize_draft(draft))
        except OSError as e:
            raise StorageError(f"Failed to save draft file {self._draft_path}: {e}")
        return True

    async def load_draft(self) -> Optional[TransactionDraft]:
        """Load the draft file, or None if there is no usable draft."""
        try:
            raw = await asyncio.to_thread(_read_if_exists, self._draft_path)
        except OSError as e:
            raise StorageError(f"Failed to read draft file {self._draft_path}: {e}")

        if raw is None:
            return None
        try:
            return deserialize_draft(raw)
        except FormatError as e:
            # A stale draft is not worth blocking the entry form over
            logger.warning("draft_file_unreadable", path=str(self._draft_path), error=str(e))
            return None

    async def clear_draft(self) -> bool:
        """Delete the draft file if there is one."""
        try:
            await asyncio.to_thread(self._draft_path.unlink, missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to remove draft file {self._draft_path}: {e}")
        return True


class JsonFileAuditStorage(AuditStorageInterface):
    """
    JSON-lines implementation of audit log storage.

    Audit events are append-only: one event per line, never rewritten.
    """

    def __init__(self, path: Optional[Path] = None):
        self._path = Path(path) if path is not None else get_settings().storage.audit_log_path

    @property
    def path(self) -> Path:
        return self._path

    def _append(self, line: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")

    def _read_all(self) -> list[AuditEvent]:
        try:
            lines = self._path.read_text(encoding="utf-8").splitlines()
        except FileNotFoundError:
            return []

        events = []
        for number, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                events.append(AuditEvent.from_json_line(line))
            except PydanticValidationError as e:
                logger.warning(
                    "audit_line_unreadable",
                    path=str(self._path),
                    line=number,
                    error=str(e),
                )
        return events

    async def _load(self) -> list[AuditEvent]:
        try:
            return await asyncio.to_thread(self._read_all)
        except OSError as e:
            raise StorageError(f"Failed to read audit log {self._path}: {e}")

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            await asyncio.to_thread(self._append, event.to_json_line())
            return True
        except OSError as e:
            # Audit logging must not break the main flow
            logger.warning(
                "audit_write_failed",
                event_type=event.event_type.value,
                error=str(e),
            )
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        events = [e for e in await self._load() if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Get events by entity."""
        events = [
            e for e in await self._load()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events, newest first."""
        events = await self._load()
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
