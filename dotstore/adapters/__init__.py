"""Backing-store adapters, resolved by name at configuration time."""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Type

from .base import AdapterCapabilities, StorageAdapter
from .files import JsonFileAdapter, YamlFileAdapter
from .localstorage import LocalStorageAdapter
from .mongo import MongoAdapter

if TYPE_CHECKING:
    from ..config import StoreConfig

__all__ = [
    "ADAPTER_CLASSES",
    "AdapterCapabilities",
    "StorageAdapter",
    "JsonFileAdapter",
    "YamlFileAdapter",
    "LocalStorageAdapter",
    "MongoAdapter",
    "build_adapter",
]

ADAPTER_CLASSES: Dict[str, Type[StorageAdapter]] = {
    cls.name: cls
    for cls in (JsonFileAdapter, YamlFileAdapter, LocalStorageAdapter, MongoAdapter)
}


def build_adapter(config: "StoreConfig") -> StorageAdapter:
    return ADAPTER_CLASSES[config.adapter].from_config(config)
