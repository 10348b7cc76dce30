"""Web-storage style adapter: the whole document as one JSON string value.

Any ``MutableMapping[str, str]``-like object can serve as the storage area.
Without one, a ``dbm`` database under the configured folder is used, which
persists across processes the way browser local storage persists across
page loads. Access is synchronous.
"""

from __future__ import annotations

import dbm
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, MutableMapping, Optional

from ..errors import StorageError
from .base import StorageAdapter

if TYPE_CHECKING:
    from ..config import StoreConfig
    from ..transactions import Session

logger = logging.getLogger(__name__)

PROBE_KEY = "__dotstore_test__"
_STORAGE_ERRORS = (OSError, KeyError, TypeError, ValueError, *dbm.error)


def open_dbm(path: Path) -> Optional[MutableMapping[Any, Any]]:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        return dbm.open(str(path), "c")
    except _STORAGE_ERRORS:
        logger.exception("Could not open local storage at %s", path)
        return None


class LocalStorageAdapter(StorageAdapter):
    name = "localstorage"

    def __init__(
        self,
        storage: Optional[MutableMapping[Any, Any]] = None,
        *,
        storage_key: str = "dotstore",
        path: Optional[Path] = None,
        no_blank_data: bool = False,
        cache_ttl: Optional[float] = None,
        lock_writes: bool = True,
    ) -> None:
        super().__init__(no_blank_data=no_blank_data, cache_ttl=cache_ttl, lock_writes=lock_writes)
        self.storage_key = storage_key
        self._owned: Optional[MutableMapping[Any, Any]] = None
        if storage is None and path is not None:
            storage = self._owned = open_dbm(Path(path))
        self._storage = storage
        self.available = self._probe()
        if not self.available:
            logger.error("Local storage adapter initialized but storage is unavailable.")

    @classmethod
    def from_config(cls, config: "StoreConfig") -> "LocalStorageAdapter":
        return cls(
            storage_key=config.file_name,
            path=Path(config.folder) / "localstorage",
            no_blank_data=config.no_blank_data,
            cache_ttl=config.cache_ttl,
            lock_writes=config.lock_writes,
        )

    def _probe(self) -> bool:
        if self._storage is None:
            return False
        try:
            self._storage[PROBE_KEY] = PROBE_KEY
            del self._storage[PROBE_KEY]
        except Exception:
            logger.warning("Local storage is not available or accessible.", exc_info=True)
            return False
        return True

    async def close(self) -> None:
        await super().close()
        if self._owned is not None:
            self._owned.close()
            self._owned = None
            self._storage = None
            self.available = False

    def _reset(self) -> None:
        try:
            self._storage[self.storage_key] = "{}"
        except _STORAGE_ERRORS:
            logger.exception("Failed to reset corrupted data for key %r", self.storage_key)

    async def _load(self) -> Dict[str, Any]:
        if not self.available:
            return {}
        try:
            raw = self._storage.get(self.storage_key)
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8")
            document = json.loads(raw or "{}")
        except _STORAGE_ERRORS:
            logger.exception("Error reading data for key %r; resetting it", self.storage_key)
            self._reset()
            return {}
        if not isinstance(document, dict):
            logger.error("Data for key %r is not a mapping; resetting it", self.storage_key)
            self._reset()
            return {}
        return document

    async def _store(self, document: Dict[str, Any]) -> None:
        if not self.available:
            raise StorageError("Local storage is not available.")
        try:
            self._storage[self.storage_key] = json.dumps(document, separators=(",", ":"))
        except _STORAGE_ERRORS as exc:
            logger.error("Error writing data for key %r: %s", self.storage_key, exc)
            raise StorageError(f"Could not write local storage key {self.storage_key!r}") from exc

    async def delete_all(self, *, session: Optional["Session"] = None) -> bool:
        if not self.available:
            return False
        return await super().delete_all(session=session)
