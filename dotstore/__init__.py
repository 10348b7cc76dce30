"""dotstore.

Embedded key-value store addressed by dot-separated paths, backed by a JSON
file, a YAML file, a local key-value storage or a Mongo collection.
"""

from __future__ import annotations

from .config import StoreConfig
from .errors import (
    DotStoreError,
    StorageError,
    StoreConnectionError,
    UnsupportedOperationError,
    ValidationError,
)
from .events import StoreEvent
from .query import FindOptions
from .store import DotStore
from .transactions import Session, TransactionState
from .version import __version__

__all__ = [
    "DotStore",
    "StoreConfig",
    "FindOptions",
    "Session",
    "TransactionState",
    "StoreEvent",
    "DotStoreError",
    "ValidationError",
    "StorageError",
    "StoreConnectionError",
    "UnsupportedOperationError",
    "__version__",
]
