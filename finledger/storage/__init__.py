"""
Storage Package

Provides the abstract ledger store contract and an in-memory
implementation. Production deployments plug in their own backend.
"""

from finledger.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStore,
    NotFoundError,
    StorageError,
    StoreUnavailableError,
)
from finledger.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStore",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    "StoreUnavailableError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLedgerStore",
]
