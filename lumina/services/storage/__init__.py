"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Currently implements a JSON file as the backend, but designed to be swappable.
"""

from lumina.services.storage.interface import (
    AuditStorageInterface,
    FormatError,
    LedgerStorageInterface,
    StorageError,
)
from lumina.services.storage.serializer import (
    backup_filename,
    deserialize,
    deserialize_draft,
    export_transactions_csv,
    serialize,
    serialize_draft,
)
from lumina.services.storage.json_file import (
    JsonFileAuditStorage,
    JsonFileLedgerStorage,
)
from lumina.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStorageInterface",
    # Exceptions
    "FormatError",
    "StorageError",
    # Codec
    "backup_filename",
    "deserialize",
    "deserialize_draft",
    "export_transactions_csv",
    "serialize",
    "serialize_draft",
    # JSON file implementation
    "JsonFileAuditStorage",
    "JsonFileLedgerStorage",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
]
