"""MongoDB adapter: one ``{key, value}`` record per top-level key.

A dotted key ``"a.b.c"`` addresses the record whose ``key`` is ``"a"`` and
the field ``value.b.c`` inside it, so nested updates are single native
update commands. The driver is synchronous; every call runs in a worker
thread.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional, Tuple

from pymongo import MongoClient, ReturnDocument
from pymongo.errors import PyMongoError

from ..errors import StorageError, StoreConnectionError, ValidationError
from ..paths import MISSING, get_path, split_path
from ..query import OptionsLike, run_query, to_mongo
from ..transactions import Session, TransactionState, native
from .base import StorageAdapter

if TYPE_CHECKING:
    from ..config import StoreConfig

logger = logging.getLogger(__name__)

DEFAULT_DATABASE = "dotstore"
DEFAULT_CONNECTION_PARAMS: Dict[str, Any] = {"serverSelectionTimeoutMS": 5000}


class ConnectionState(str, enum.Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    READY = "ready"
    FAILED = "failed"


class MongoAdapter(StorageAdapter):
    name = "mongo"
    supports_transactions = True
    supports_sessions = True

    def __init__(
        self,
        url: Optional[str] = None,
        *,
        collection_name: str = DEFAULT_DATABASE,
        connection_params: Optional[Mapping[str, Any]] = None,
        collection: Any = None,
    ) -> None:
        # Every update is a single server-side command; no local lock needed.
        super().__init__(lock_writes=False)
        self._owns_client = collection is None
        if collection is None:
            if not isinstance(url, str) or not url.startswith("mongodb"):
                raise ValidationError("A valid MongoDB connection URL must be provided.")
            params = {**DEFAULT_CONNECTION_PARAMS, **(connection_params or {})}
            client: Any = MongoClient(url, **params)
            collection = client.get_default_database(DEFAULT_DATABASE)[collection_name]
        self._collection = collection
        self._client = collection.database.client
        self.state = ConnectionState.IDLE
        self._error: Optional[BaseException] = None
        self._connect_task: Optional["asyncio.Future[None]"] = None

    @classmethod
    def from_config(cls, config: "StoreConfig") -> "MongoAdapter":
        return cls(
            config.mongo_url,
            collection_name=config.collection,
            connection_params=config.connection_params,
        )

    # ------------------------------------------------------------------ #
    # Connection lifecycle
    # ------------------------------------------------------------------ #

    def _connect_sync(self) -> None:
        self._collection.database.command("ping")
        self._collection.create_index("key", unique=True)

    async def _connect(self) -> None:
        self.state = ConnectionState.CONNECTING
        try:
            await asyncio.to_thread(self._connect_sync)
        except PyMongoError as exc:
            self.state = ConnectionState.FAILED
            self._error = exc
            logger.error("MongoDB initial connection failed: %s", exc)
            return
        self.state = ConnectionState.READY
        logger.info("Connected to MongoDB collection %s", self._collection.name)

    async def wait_ready(self) -> None:
        if self.state is ConnectionState.READY:
            return
        if self.state is not ConnectionState.FAILED:
            if self._connect_task is None:
                self._connect_task = asyncio.ensure_future(self._connect())
            await asyncio.shield(self._connect_task)
        if self.state is ConnectionState.FAILED:
            raise StoreConnectionError(f"Could not connect to MongoDB: {self._error}") from self._error

    async def close(self) -> None:
        await super().close()
        if self._owns_client:
            await asyncio.to_thread(self._client.close)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def _locate(key: str) -> Tuple[str, str]:
        record_key, *rest = split_path(key)
        return record_key, ".".join(["value", *rest])

    async def _call(self, operation: str, key: Optional[str], fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except PyMongoError as exc:
            logger.error("MongoDB error during %s for key %r: %s", operation, key, exc)
            raise StorageError(f"MongoDB {operation} failed: {exc}") from exc

    async def _update_returning(
        self,
        operation: str,
        key: str,
        query_filter: Dict[str, Any],
        update: Dict[str, Any],
        session: Optional[Session],
        upsert: bool = False,
    ) -> Optional[Dict[str, Any]]:
        return await self._call(
            operation,
            key,
            self._collection.find_one_and_update,
            query_filter,
            update,
            projection={"_id": 0},
            upsert=upsert,
            return_document=ReturnDocument.AFTER,
            session=native(session),
        )

    # ------------------------------------------------------------------ #
    # Whole-collection operations
    # ------------------------------------------------------------------ #

    async def read_all(self, *, session: Optional[Session] = None) -> Dict[str, Any]:
        records = await self._call(
            "all",
            None,
            lambda: list(self._collection.find({}, {"_id": 0}, session=native(session))),
        )
        return {record["key"]: record.get("value") for record in records}

    async def write_all(self, document: Dict[str, Any], *, session: Optional[Session] = None) -> None:
        records = [{"key": key, "value": value} for key, value in document.items()]

        def _replace() -> None:
            self._collection.delete_many({}, session=native(session))
            if records:
                self._collection.insert_many(records, session=native(session))

        await self._call("write_all", None, _replace)

    async def _load(self) -> Dict[str, Any]:
        return await self.read_all()

    async def _store(self, document: Dict[str, Any]) -> None:
        await self.write_all(document)

    async def delete_all(self, *, session: Optional[Session] = None) -> bool:
        await self._call("delete_all", None, self._collection.delete_many, {}, session=native(session))
        return True

    # ------------------------------------------------------------------ #
    # Keyed operations
    # ------------------------------------------------------------------ #

    async def get(self, key: str, default: Any = None, *, session: Optional[Session] = None) -> Any:
        record_key, field = self._locate(key)
        record = await self._call(
            "get", key, self._collection.find_one, {"key": record_key}, session=native(session)
        )
        if record is None:
            return default
        return get_path(record, *split_path(field), default=default)

    async def set(self, key: str, value: Any, *, session: Optional[Session] = None) -> Any:
        record_key, field = self._locate(key)
        await self._call(
            "set",
            key,
            self._collection.update_one,
            {"key": record_key},
            {"$set": {field: value}},
            upsert=True,
            session=native(session),
        )
        return value

    async def delete(self, key: str, *, session: Optional[Session] = None) -> bool:
        record_key, field = self._locate(key)
        if field == "value":
            result = await self._call(
                "delete", key, self._collection.delete_one, {"key": record_key}, session=native(session)
            )
            return result.deleted_count > 0
        result = await self._call(
            "delete",
            key,
            self._collection.update_one,
            {"key": record_key, field: {"$exists": True}},
            {"$unset": {field: ""}},
            session=native(session),
        )
        return result.modified_count > 0

    async def add(self, key: str, amount: float, *, session: Optional[Session] = None) -> float:
        record_key, field = self._locate(key)
        record = await self._update_returning(
            "add", key, {"key": record_key, field: {"$type": "number"}}, {"$inc": {field: amount}}, session
        )
        if record is None:
            # Absent or non-numeric: the amount becomes the new value.
            record = await self._update_returning(
                "add", key, {"key": record_key}, {"$set": {field: amount}}, session, upsert=True
            )
        return get_path(record, *split_path(field))

    async def push(self, key: str, element: Any, *, session: Optional[Session] = None) -> List[Any]:
        record_key, field = self._locate(key)
        record = await self._update_returning(
            "push", key, {"key": record_key, field: {"$type": "array"}}, {"$push": {field: element}}, session
        )
        if record is None:
            record = await self._update_returning(
                "push", key, {"key": record_key}, {"$set": {field: [element]}}, session, upsert=True
            )
        return get_path(record, *split_path(field))

    async def unpush(self, key: str, element: Any, *, session: Optional[Session] = None) -> Any:
        record_key, field = self._locate(key)
        record = await self._update_returning(
            "unpush", key, {"key": record_key, field: {"$type": "array"}}, {"$pull": {field: element}}, session
        )
        if record is None:
            return await self.get(key, session=session)
        return get_path(record, *split_path(field))

    async def _replace_list(
        self,
        operation: str,
        key: str,
        index: int,
        change: Callable[[List[Any]], List[Any]],
        session: Optional[Session],
    ) -> Any:
        record_key, field = self._locate(key)
        current = await self.get(key, MISSING, session=session)
        if not isinstance(current, list) or len(current) < index:
            return False
        updated = change(current)
        await self._call(
            operation,
            key,
            self._collection.update_one,
            {"key": record_key},
            {"$set": {field: updated}},
            session=native(session),
        )
        return updated

    async def del_by_priority(self, key: str, index: int, *, session: Optional[Session] = None) -> Any:
        return await self._replace_list(
            "del_by_priority", key, index, lambda items: items[: index - 1] + items[index:], session
        )

    async def set_by_priority(
        self,
        key: str,
        value: Any,
        index: int,
        *,
        session: Optional[Session] = None,
    ) -> Any:
        def _replace(items: List[Any]) -> List[Any]:
            updated = list(items)
            updated[index - 1] = value
            return updated

        return await self._replace_list("set_by_priority", key, index, _replace, session)

    async def find(
        self,
        query: Mapping[str, Any],
        options: OptionsLike = None,
        *,
        key: Optional[str] = None,
        session: Optional[Session] = None,
    ) -> List[Any]:
        if key is not None:
            return run_query(await self.get(key, session=session), query, options)

        spec = to_mongo(query, options)
        if spec.limit == 0:
            return []

        def _find() -> List[Any]:
            cursor = self._collection.find(spec.filter, spec.projection, session=native(session))
            if spec.sort:
                cursor = cursor.sort(spec.sort)
            if spec.skip:
                cursor = cursor.skip(spec.skip)
            if spec.limit:
                cursor = cursor.limit(spec.limit)
            return [record.get("value", {}) for record in cursor]

        return await self._call("find", None, _find)

    # ------------------------------------------------------------------ #
    # Transactions
    # ------------------------------------------------------------------ #

    async def start_transaction(self) -> Session:
        def _start() -> Any:
            handle = self._client.start_session()
            handle.start_transaction()
            return handle

        return Session(handle=await self._call("start_transaction", None, _start))

    async def _finish(self, session: Session, operation: str, outcome: TransactionState) -> None:
        session.ensure_active()
        try:
            await self._call(operation, None, getattr(session.handle, operation))
        except StorageError:
            session.mark(TransactionState.ABORTED)
            raise
        else:
            session.mark(outcome)
        finally:
            try:
                await asyncio.to_thread(session.handle.end_session)
            except PyMongoError:
                logger.warning("Failed to end MongoDB session %s", session.id, exc_info=True)

    async def commit_transaction(self, session: Session) -> None:
        await self._finish(session, "commit_transaction", TransactionState.COMMITTED)

    async def abort_transaction(self, session: Session) -> None:
        await self._finish(session, "abort_transaction", TransactionState.ABORTED)
