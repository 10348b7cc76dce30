"""Public error types for dotstore."""

from __future__ import annotations


class DotStoreError(Exception):
    """Base class for all dotstore errors."""


class ValidationError(DotStoreError, ValueError):
    """Raised when inputs fail validation (keys, amounts, indexes, queries)."""


class StorageError(DotStoreError):
    """Raised when the backing medium cannot be read or written."""


class UnsupportedOperationError(DotStoreError, NotImplementedError):
    """Raised when the active adapter lacks a capability (e.g. transactions)."""


class StoreConnectionError(StorageError, ConnectionError):
    """Raised when the document store connection could not be established."""
