"""The public key-value facade."""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
import math
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Mapping, Optional, TypeVar

from pydantic import ValidationError as PydanticValidationError

from .adapters import StorageAdapter, build_adapter
from .config import StoreConfig
from .errors import DotStoreError, StorageError, StoreConnectionError, UnsupportedOperationError, ValidationError
from .events import EventEmitter, Listener, StoreEvent
from .locale import load_messages, message
from .query import OptionsLike, coerce_options, validate_query
from .transactions import Session
from .version import check_latest_version

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Changing only these keeps the current adapter instance.
_ADAPTER_NEUTRAL_FIELDS = frozenset({"language", "check_version"})


def _make_config(base: Optional[StoreConfig], changes: Mapping[str, Any]) -> StoreConfig:
    try:
        if base is None:
            return StoreConfig(**changes)
        if not changes:
            return base
        return StoreConfig(**{**base.model_dump(), **changes})
    except PydanticValidationError as exc:
        raise ValidationError(str(exc)) from exc


class DotStore:
    """Dot-path key-value store over a configurable backing adapter.

    ::

        store = DotStore(adapter="yamldb", folder="data", readable=True)
        await store.set("user.stats.wins", 3)
        await store.add("user.stats.wins", 1)       # 4
        await store.get("user.stats")               # {"wins": 4}

    Arguments are validated before any I/O. Reads that hit a medium error
    log it and return an empty result; writes raise
    :class:`~dotstore.errors.StorageError`.
    """

    def __init__(
        self,
        config: Optional[StoreConfig] = None,
        *,
        backend: Optional[StorageAdapter] = None,
        **overrides: Any,
    ) -> None:
        self.config = _make_config(config, overrides)
        self.messages = load_messages(self.config.language)
        self.adapter = backend if backend is not None else build_adapter(self.config)
        self.capabilities = self.adapter.capabilities()
        self.events = EventEmitter()
        self._version_task: Optional["asyncio.Task[Optional[str]]"] = None
        self._version_checked = False

    async def __aenter__(self) -> "DotStore":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------ #
    # Configuration
    # ------------------------------------------------------------------ #

    async def configure(self, **changes: Any) -> StoreConfig:
        """Apply ``changes`` and, unless only the language changed, swap adapters."""
        config = _make_config(self.config, changes)
        changed = {field for field in changes if getattr(config, field) != getattr(self.config, field)}
        if changed - _ADAPTER_NEUTRAL_FIELDS:
            adapter = build_adapter(config)
            await self.adapter.close()
            self.adapter = adapter
            self.capabilities = adapter.capabilities()
        self.config = config
        self.messages = load_messages(config.language)
        return config

    async def close(self) -> None:
        if self._version_task is not None and not self._version_task.done():
            self._version_task.cancel()
        await self.adapter.close()

    def on(self, name: str, listener: Listener) -> Listener:
        return self.events.on(name, listener)

    def off(self, name: str, listener: Listener) -> None:
        self.events.off(name, listener)

    # ------------------------------------------------------------------ #
    # Validation and plumbing
    # ------------------------------------------------------------------ #

    def _msg(self, key: str, **fmt: Any) -> str:
        return message(self.messages, key, **fmt)

    def _require_key(self, key: Any) -> None:
        if not isinstance(key, str) or not key:
            raise ValidationError(self._msg("blankName"))

    def _require_amount(self, amount: Any) -> None:
        if isinstance(amount, bool) or not isinstance(amount, (int, float)) or not math.isfinite(amount):
            raise ValidationError(self._msg("blankNumber"))

    def _require_index(self, index: Any) -> None:
        if isinstance(index, bool) or not isinstance(index, int) or index < 1:
            raise ValidationError(self._msg("blankNumber"))

    def _require_session(self, session: Any, required: bool = False) -> None:
        if session is None and not required:
            return
        if not isinstance(session, Session):
            raise ValidationError(self._msg("blankSession"))

    def _require_transactions(self) -> None:
        if not self.capabilities.transactions:
            raise UnsupportedOperationError(
                self._msg("unsupported", adapter=self.capabilities.name, operation="transactions")
            )

    async def _prepare(self) -> None:
        if self.config.check_version and not self._version_checked:
            self._version_checked = True
            self._version_task = asyncio.ensure_future(check_latest_version(messages=self.messages))
        try:
            await self.adapter.wait_ready()
        except StoreConnectionError as exc:
            raise StoreConnectionError(f"{self._msg('notReady')} {exc}") from exc

    def _emit(self, name: str, key: Optional[str], value: Any, session: Optional[Session]) -> None:
        self.events.emit(StoreEvent(name, key, value, session.id if session is not None else None))

    async def _read(self, operation: str, call: Awaitable[T], fallback: T) -> T:
        try:
            return await call
        except StoreConnectionError:
            raise
        except StorageError as exc:
            logger.warning("%s failed on %s adapter, returning %r: %s", operation, self.capabilities.name, fallback, exc)
            return fallback

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    async def get(self, key: str, default: Any = None, *, session: Optional[Session] = None) -> Any:
        self._require_key(key)
        self._require_session(session)
        await self._prepare()
        return await self._read("get", self.adapter.get(key, default, session=session), default)

    fetch = get

    async def has(self, key: str, *, session: Optional[Session] = None) -> bool:
        self._require_key(key)
        self._require_session(session)
        await self._prepare()
        return await self._read("has", self.adapter.has(key, session=session), False)

    async def all(self, *, session: Optional[Session] = None) -> Dict[str, Any]:
        self._require_session(session)
        await self._prepare()
        return await self._read("all", self.adapter.all(session=session), {})

    async def find(
        self,
        query: Mapping[str, Any],
        options: OptionsLike = None,
        *,
        key: Optional[str] = None,
        session: Optional[Session] = None,
    ) -> List[Any]:
        """Return the values matching ``query``.

        Candidates are the top-level values of the store, or the elements
        (list) / values (mapping) found at ``key`` when one is given.
        """
        if not isinstance(query, Mapping):
            raise ValidationError(self._msg("blankQuery"))
        if key is not None:
            self._require_key(key)
        self._require_session(session)
        opts = coerce_options(options)
        validate_query(query)
        await self._prepare()
        return await self._read("find", self.adapter.find(query, opts, key=key, session=session), [])

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    async def set(self, key: str, value: Any, *, session: Optional[Session] = None) -> Any:
        self._require_key(key)
        self._require_session(session)
        await self._prepare()
        result = await self.adapter.set(key, value, session=session)
        self._emit("set", key, result, session)
        return result

    async def delete(self, key: str, *, session: Optional[Session] = None) -> bool:
        self._require_key(key)
        self._require_session(session)
        await self._prepare()
        deleted = await self.adapter.delete(key, session=session)
        if deleted:
            self._emit("delete", key, None, session)
        return deleted

    async def add(self, key: str, amount: float, *, session: Optional[Session] = None) -> float:
        self._require_key(key)
        self._require_amount(amount)
        self._require_session(session)
        await self._prepare()
        result = await self.adapter.add(key, amount, session=session)
        self._emit("add", key, result, session)
        return result

    async def subtract(self, key: str, amount: float, *, session: Optional[Session] = None) -> float:
        self._require_key(key)
        self._require_amount(amount)
        self._require_session(session)
        await self._prepare()
        result = await self.adapter.subtract(key, amount, session=session)
        self._emit("subtract", key, result, session)
        return result

    async def push(self, key: str, element: Any, *, session: Optional[Session] = None) -> List[Any]:
        self._require_key(key)
        self._require_session(session)
        await self._prepare()
        result = await self.adapter.push(key, element, session=session)
        self._emit("push", key, result, session)
        return result

    async def unpush(self, key: str, element: Any, *, session: Optional[Session] = None) -> Any:
        self._require_key(key)
        self._require_session(session)
        await self._prepare()
        result = await self.adapter.unpush(key, element, session=session)
        if isinstance(result, list):
            self._emit("unpush", key, result, session)
        return result

    async def del_by_priority(self, key: str, index: int, *, session: Optional[Session] = None) -> Any:
        """Remove the ``index``-th element (1-based); ``False`` when out of range."""
        self._require_key(key)
        self._require_index(index)
        self._require_session(session)
        await self._prepare()
        result = await self.adapter.del_by_priority(key, index, session=session)
        if result is not False:
            self._emit("del_by_priority", key, result, session)
        return result

    async def set_by_priority(
        self,
        key: str,
        value: Any,
        index: int,
        *,
        session: Optional[Session] = None,
    ) -> Any:
        """Replace the ``index``-th element (1-based); ``False`` when out of range."""
        self._require_key(key)
        self._require_index(index)
        self._require_session(session)
        await self._prepare()
        result = await self.adapter.set_by_priority(key, value, index, session=session)
        if result is not False:
            self._emit("set_by_priority", key, result, session)
        return result

    async def delete_all(self, *, session: Optional[Session] = None) -> bool:
        self._require_session(session)
        await self._prepare()
        deleted = await self.adapter.delete_all(session=session)
        if deleted:
            self._emit("delete_all", None, {}, session)
        return deleted

    # ------------------------------------------------------------------ #
    # Transactions
    # ------------------------------------------------------------------ #

    async def start_transaction(self) -> Session:
        self._require_transactions()
        await self._prepare()
        return await self.adapter.start_transaction()

    async def commit_transaction(self, session: Session) -> None:
        self._require_transactions()
        self._require_session(session, required=True)
        await self.adapter.commit_transaction(session)

    async def abort_transaction(self, session: Session) -> None:
        self._require_transactions()
        self._require_session(session, required=True)
        await self.adapter.abort_transaction(session)

    async def _abort_after_error(self, session: Session) -> None:
        try:
            await self.abort_transaction(session)
        except DotStoreError:
            logger.exception("Failed to abort transaction %s", session.id)

    @contextlib.asynccontextmanager
    async def transaction(self) -> AsyncIterator[Session]:
        """``async with store.transaction() as session:`` commits on exit.

        Any exception aborts the session and is re-raised unchanged.
        """
        session = await self.start_transaction()
        try:
            yield session
        except BaseException:
            if session.active:
                await self._abort_after_error(session)
            raise
        if session.active:
            await self.commit_transaction(session)

    async def with_transaction(self, callback: Callable[[Session], Awaitable[T]]) -> T:
        async with self.transaction() as session:
            return await callback(session)

    # ------------------------------------------------------------------ #
    # Import
    # ------------------------------------------------------------------ #

    async def import_from(self, source: Any) -> bool:
        """Copy ``source.fetch_all()`` items (``{"ID": str, "data": ...}``) into the store.

        Returns ``True`` only if every item was imported.
        """
        fetch_all = getattr(source, "fetch_all", None)
        if not callable(fetch_all):
            logger.error("Invalid import source %r: a fetch_all() method is required.", source)
            return False

        logger.info("Importing: started importing data...")
        try:
            items = fetch_all()
            if inspect.isawaitable(items):
                items = await items
        except Exception:
            logger.exception("Import source %r failed to fetch data", source)
            return False
        if not isinstance(items, list):
            logger.error("Import source fetch_all() returned %s, expected a list.", type(items).__name__)
            return False

        imported = failed = 0
        for item in items:
            item_id = item.get("ID") if isinstance(item, Mapping) else None
            if not isinstance(item_id, str) or not item_id:
                logger.warning("Skipping invalid item during import: %r", item)
                failed += 1
                continue
            try:
                await self.set(item_id, item.get("data"))
            except StorageError:
                logger.exception("Failed to import item %r", item_id)
                failed += 1
                continue
            imported += 1

        logger.info("Importing: finished importing %d items (%d failed).", imported, failed)
        return failed == 0
