"""Store configuration."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .locale import DEFAULT_LANGUAGE, LANGUAGES

logger = logging.getLogger(__name__)

ADAPTERS = ("jsondb", "yamldb", "localstorage", "mongo")
DEFAULT_ADAPTER = "jsondb"
DEFAULT_NAME = "dotstore"
DEFAULT_FOLDER = "dotstore_data"

AdapterName = Literal["jsondb", "yamldb", "localstorage", "mongo"]
Language = Literal["en", "tr"]


def _env_bool(environ: Mapping[str, str], name: str, default: bool) -> bool:
    raw = environ.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off", ""):
        return False
    logger.warning("Invalid boolean in %s=%r, keeping %r", name, raw, default)
    return default


def _env_float(environ: Mapping[str, str], name: str) -> Optional[float]:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return None
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid number in %s=%r, ignoring", name, raw)
        return None


class StoreConfig(BaseModel):
    """Immutable settings for one :class:`~dotstore.store.DotStore`.

    Reconfiguring a store builds a new ``StoreConfig`` and a new adapter;
    instances are never mutated in place.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    adapter: AdapterName = DEFAULT_ADAPTER
    folder: Path = Path(DEFAULT_FOLDER)
    file_name: str = DEFAULT_NAME
    readable: bool = False
    no_blank_data: bool = False
    language: Language = DEFAULT_LANGUAGE

    mongo_url: Optional[str] = None
    collection: str = DEFAULT_NAME
    connection_params: Dict[str, Any] = Field(default_factory=dict)

    cache_ttl: Optional[float] = Field(default=None, ge=0)
    lock_writes: bool = True
    check_version: bool = False

    @field_validator("adapter", mode="before")
    @classmethod
    def _known_adapter(cls, value: Any) -> str:
        name = str(value or DEFAULT_ADAPTER).lower()
        if name not in ADAPTERS:
            logger.warning("Unsupported adapter %r. Defaulting to %r.", value, DEFAULT_ADAPTER)
            return DEFAULT_ADAPTER
        return name

    @field_validator("language", mode="before")
    @classmethod
    def _known_language(cls, value: Any) -> str:
        code = str(value or DEFAULT_LANGUAGE).lower()
        if code not in LANGUAGES:
            logger.warning("Unsupported language %r. Defaulting to %r.", value, DEFAULT_LANGUAGE)
            return DEFAULT_LANGUAGE
        return code

    @field_validator("folder", mode="before")
    @classmethod
    def _default_folder(cls, value: Any) -> Any:
        return value or DEFAULT_FOLDER

    @field_validator("file_name", "collection", mode="before")
    @classmethod
    def _default_name(cls, value: Any) -> Any:
        return value or DEFAULT_NAME

    @model_validator(mode="after")
    def _mongo_needs_url(self) -> "StoreConfig":
        if self.adapter == "mongo" and not self.mongo_url:
            raise ValueError("mongo_url is required for the 'mongo' adapter")
        return self

    @classmethod
    def from_env(
        cls,
        prefix: str = "DOTSTORE_",
        environ: Optional[Mapping[str, str]] = None,
    ) -> "StoreConfig":
        """Build a config from ``<prefix>*`` environment variables."""
        env = os.environ if environ is None else environ
        values: Dict[str, Any] = {
            "readable": _env_bool(env, prefix + "READABLE", False),
            "no_blank_data": _env_bool(env, prefix + "NO_BLANK_DATA", False),
            "lock_writes": _env_bool(env, prefix + "LOCK_WRITES", True),
            "check_version": _env_bool(env, prefix + "CHECK_VERSION", False),
            "cache_ttl": _env_float(env, prefix + "CACHE_TTL"),
        }
        for field, name in (
            ("adapter", "ADAPTER"),
            ("folder", "FOLDER"),
            ("file_name", "FILE_NAME"),
            ("language", "LANGUAGE"),
            ("mongo_url", "MONGO_URL"),
            ("collection", "COLLECTION"),
        ):
            raw = env.get(prefix + name)
            if raw:
                values[field] = raw
        return cls(**values)
