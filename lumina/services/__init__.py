"""Services package."""

from lumina.services.storage import (
    AuditStorageInterface,
    FormatError,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    JsonFileAuditStorage,
    JsonFileLedgerStorage,
    LedgerStorageInterface,
    StorageError,
)

__all__ = [
    "AuditStorageInterface",
    "FormatError",
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    "JsonFileAuditStorage",
    "JsonFileLedgerStorage",
    "LedgerStorageInterface",
    "StorageError",
]
