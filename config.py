"""Settings for the HTTP front-end, read from the environment at import."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotstore import StoreConfig


@dataclass(frozen=True)
class AppConfig:
    """Store settings plus the host and port uvicorn binds to."""

    store: StoreConfig = field(default_factory=StoreConfig.from_env)
    title: str = "dotstore API"
    host: str = os.environ.get("DOTSTORE_HOST", "127.0.0.1")
    port: int = int(os.environ.get("DOTSTORE_PORT", "8000"))


config = AppConfig()

# Store settings the API process serves.
STORE_CONFIG: StoreConfig = config.store
