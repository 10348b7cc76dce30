"""Single-file adapters: one JSON or YAML document on disk."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional

import yaml

from ..errors import StorageError
from .base import StorageAdapter

if TYPE_CHECKING:
    from ..config import StoreConfig

logger = logging.getLogger(__name__)

EMPTY_DOCUMENT = "{}"


def initialize_file(path: Path, default_content: str = EMPTY_DOCUMENT) -> None:
    """Create ``path`` (and its folder) holding an empty document if missing."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        if not path.exists():
            path.write_text(default_content, encoding="utf-8")
    except OSError:
        logger.exception("Failed to initialize database file %s", path)


def atomic_write_text(path: Path, text: str) -> None:
    """Replace ``path`` with ``text`` via a temporary sibling file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(text, encoding="utf-8")
    tmp_path.replace(path)


class FileAdapter(StorageAdapter):
    """Whole-document adapter over one text file.

    Subclasses choose the extension and the (de)serializer. A file that
    cannot be decoded is logged and reset to ``{}``.
    """

    extension = ""

    def __init__(
        self,
        path: Path,
        *,
        readable: bool = False,
        no_blank_data: bool = False,
        cache_ttl: Optional[float] = None,
        lock_writes: bool = True,
    ) -> None:
        super().__init__(no_blank_data=no_blank_data, cache_ttl=cache_ttl, lock_writes=lock_writes)
        self.path = Path(path)
        self.readable = readable
        initialize_file(self.path)

    @classmethod
    def from_config(cls, config: "StoreConfig") -> "FileAdapter":
        return cls(
            Path(config.folder) / f"{config.file_name}.{cls.extension}",
            readable=config.readable,
            no_blank_data=config.no_blank_data,
            cache_ttl=config.cache_ttl,
            lock_writes=config.lock_writes,
        )

    def _decode(self, text: str) -> Any:
        raise NotImplementedError

    def _encode(self, document: Dict[str, Any]) -> str:
        raise NotImplementedError

    def _reset(self) -> None:
        try:
            atomic_write_text(self.path, EMPTY_DOCUMENT)
        except OSError:
            logger.exception("Failed to reset corrupted file %s", self.path)

    def _load_sync(self) -> Dict[str, Any]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except UnicodeDecodeError:
            logger.exception("File %s is not valid UTF-8; resetting it to {}", self.path)
            self._reset()
            return {}
        except OSError:
            logger.exception("Error reading file %s", self.path)
            return {}

        if not text.strip():
            return {}
        try:
            document = self._decode(text)
        except ValueError:
            logger.exception("Error decoding file %s; resetting it to {}", self.path)
            self._reset()
            return {}

        if document is None:
            return {}
        if not isinstance(document, dict):
            logger.error(
                "File %s holds a %s instead of a mapping; resetting it to {}",
                self.path,
                type(document).__name__,
            )
            self._reset()
            return {}
        return document

    def _store_sync(self, document: Dict[str, Any]) -> None:
        try:
            atomic_write_text(self.path, self._encode(document))
        except (OSError, TypeError, ValueError) as exc:
            logger.error("Error writing file %s: %s", self.path, exc)
            raise StorageError(f"Could not write {self.path}: {exc}") from exc

    async def _load(self) -> Dict[str, Any]:
        return await asyncio.to_thread(self._load_sync)

    async def _store(self, document: Dict[str, Any]) -> None:
        await asyncio.to_thread(self._store_sync, document)


class JsonFileAdapter(FileAdapter):
    name = "jsondb"
    extension = "json"

    def _decode(self, text: str) -> Any:
        return json.loads(text)

    def _encode(self, document: Dict[str, Any]) -> str:
        if self.readable:
            return json.dumps(document, indent=2, ensure_ascii=False)
        return json.dumps(document, separators=(",", ":"), ensure_ascii=False)


class YamlFileAdapter(FileAdapter):
    name = "yamldb"
    extension = "yaml"

    def _decode(self, text: str) -> Any:
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ValueError(str(exc)) from exc

    def _encode(self, document: Dict[str, Any]) -> str:
        try:
            return yaml.safe_dump(
                document,
                allow_unicode=True,
                default_flow_style=False,
                sort_keys=False,
            )
        except yaml.YAMLError as exc:
            raise ValueError(str(exc)) from exc
