"""Adapter contract shared by every backing store.

Subclasses provide whole-document ``_load``/``_store``; every keyed
operation below is derived from those two plus the dot-path helpers. An
adapter that can do better natively (see :mod:`dotstore.adapters.mongo`)
overrides the operations it needs.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, AsyncIterator, Dict, List, Mapping, Optional

from ..errors import UnsupportedOperationError
from ..locale import message
from ..paths import MISSING, get_path, remove_path, set_path, split_path
from ..prune import prune_empty
from ..query import OptionsLike, run_query, values_equal
from .cache import DocumentCache

if TYPE_CHECKING:
    from ..config import StoreConfig
    from ..transactions import Session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdapterCapabilities:
    name: str
    transactions: bool
    sessions: bool


def is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not (isinstance(value, float) and math.isnan(value))


class StorageAdapter(ABC):
    """Base class for all adapters.

    Mutating operations are read-modify-write cycles over the whole
    document. With ``lock_writes`` enabled they are serialized per adapter
    instance; nothing coordinates writers in other processes.
    """

    name = "base"
    supports_transactions = False
    supports_sessions = False

    def __init__(
        self,
        *,
        no_blank_data: bool = False,
        cache_ttl: Optional[float] = None,
        lock_writes: bool = True,
    ) -> None:
        self.no_blank_data = no_blank_data
        self._cache = DocumentCache(cache_ttl)
        self._lock: Optional[asyncio.Lock] = asyncio.Lock() if lock_writes else None

    @classmethod
    @abstractmethod
    def from_config(cls, config: "StoreConfig") -> "StorageAdapter":
        ...

    @classmethod
    def capabilities(cls) -> AdapterCapabilities:
        return AdapterCapabilities(
            name=cls.name,
            transactions=cls.supports_transactions,
            sessions=cls.supports_sessions,
        )

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def wait_ready(self) -> None:
        return None

    async def close(self) -> None:
        self._cache.invalidate()

    # ------------------------------------------------------------------ #
    # Whole-document primitives
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def _load(self) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def _store(self, document: Dict[str, Any]) -> None:
        ...

    async def read_all(self, *, session: Optional["Session"] = None) -> Dict[str, Any]:
        cached = self._cache.get()
        if cached is not None:
            return cached
        document = await self._load()
        if not isinstance(document, dict):
            logger.error("%s adapter loaded a non-mapping document; using {}", self.name)
            document = {}
        self._cache.put(document)
        return document

    async def write_all(
        self,
        document: Dict[str, Any],
        *,
        session: Optional["Session"] = None,
    ) -> None:
        if self.no_blank_data:
            prune_empty(document)
        self._cache.invalidate()
        await self._store(document)

    async def delete_all(self, *, session: Optional["Session"] = None) -> bool:
        async with self._guard():
            await self.write_all({})
        return True

    @contextlib.asynccontextmanager
    async def _guard(self) -> AsyncIterator[None]:
        if self._lock is None:
            yield
        else:
            async with self._lock:
                yield

    # ------------------------------------------------------------------ #
    # Keyed operations
    # ------------------------------------------------------------------ #

    async def get(self, key: str, default: Any = None, *, session: Optional["Session"] = None) -> Any:
        document = await self.read_all()
        return get_path(document, *split_path(key), default=default)

    async def has(self, key: str, *, session: Optional["Session"] = None) -> bool:
        return await self.get(key, MISSING) is not MISSING

    async def all(self, *, session: Optional["Session"] = None) -> Dict[str, Any]:
        return await self.read_all()

    async def set(self, key: str, value: Any, *, session: Optional["Session"] = None) -> Any:
        async with self._guard():
            document = await self.read_all()
            set_path(key, value, document)
            await self.write_all(document)
        return value

    async def delete(self, key: str, *, session: Optional["Session"] = None) -> bool:
        async with self._guard():
            document = await self.read_all()
            deleted = remove_path(document, key)
            if deleted:
                await self.write_all(document)
        return deleted

    async def add(self, key: str, amount: float, *, session: Optional["Session"] = None) -> float:
        async with self._guard():
            document = await self.read_all()
            current = get_path(document, *split_path(key), default=MISSING)
            new_value = current + amount if is_number(current) else amount
            set_path(key, new_value, document)
            await self.write_all(document)
        return new_value

    async def subtract(self, key: str, amount: float, *, session: Optional["Session"] = None) -> float:
        return await self.add(key, -amount, session=session)

    async def push(self, key: str, element: Any, *, session: Optional["Session"] = None) -> List[Any]:
        async with self._guard():
            document = await self.read_all()
            current = get_path(document, *split_path(key))
            items = current if isinstance(current, list) else []
            items.append(element)
            set_path(key, items, document)
            await self.write_all(document)
        return items

    async def unpush(self, key: str, element: Any, *, session: Optional["Session"] = None) -> Any:
        async with self._guard():
            document = await self.read_all()
            current = get_path(document, *split_path(key))
            if not isinstance(current, list):
                return current
            remaining = [item for item in current if not values_equal(item, element)]
            set_path(key, remaining, document)
            await self.write_all(document)
        return remaining

    async def del_by_priority(
        self,
        key: str,
        index: int,
        *,
        session: Optional["Session"] = None,
    ) -> Any:
        async with self._guard():
            document = await self.read_all()
            current = get_path(document, *split_path(key))
            if not isinstance(current, list) or len(current) < index:
                return False
            updated = current[: index - 1] + current[index:]
            set_path(key, updated, document)
            await self.write_all(document)
        return updated

    async def set_by_priority(
        self,
        key: str,
        value: Any,
        index: int,
        *,
        session: Optional["Session"] = None,
    ) -> Any:
        async with self._guard():
            document = await self.read_all()
            current = get_path(document, *split_path(key))
            if not isinstance(current, list) or len(current) < index:
                return False
            updated = list(current)
            updated[index - 1] = value
            set_path(key, updated, document)
            await self.write_all(document)
        return updated

    async def find(
        self,
        query: Mapping[str, Any],
        options: OptionsLike = None,
        *,
        key: Optional[str] = None,
        session: Optional["Session"] = None,
    ) -> List[Any]:
        document = await self.read_all()
        source = document if key is None else get_path(document, *split_path(key))
        return run_query(source, query, options)

    # ------------------------------------------------------------------ #
    # Transactions
    # ------------------------------------------------------------------ #

    def _unsupported(self, operation: str) -> UnsupportedOperationError:
        return UnsupportedOperationError(
            message({}, "unsupported", adapter=self.name, operation=operation)
        )

    async def start_transaction(self) -> "Session":
        raise self._unsupported("transactions")

    async def commit_transaction(self, session: "Session") -> None:
        raise self._unsupported("transactions")

    async def abort_transaction(self, session: "Session") -> None:
        raise self._unsupported("transactions")
