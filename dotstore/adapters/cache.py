"""Short-lived read cache for whole-document adapters."""

from __future__ import annotations

import copy
import time
from typing import Any, Dict, Optional


class DocumentCache:
    """Deep copy of the last document seen, valid for ``ttl`` seconds.

    Only this process's writes invalidate it; changes made to the medium by
    other processes stay invisible until the entry expires.
    """

    def __init__(self, ttl: Optional[float] = None) -> None:
        self.ttl = ttl or 0
        self._document: Optional[Dict[str, Any]] = None
        self._expires_at = 0.0

    @property
    def enabled(self) -> bool:
        return self.ttl > 0

    def get(self) -> Optional[Dict[str, Any]]:
        if self._document is None:
            return None
        if time.monotonic() >= self._expires_at:
            self.invalidate()
            return None
        return copy.deepcopy(self._document)

    def put(self, document: Dict[str, Any]) -> None:
        if not self.enabled:
            return
        self._document = copy.deepcopy(document)
        self._expires_at = time.monotonic() + self.ttl

    def invalidate(self) -> None:
        self._document = None
        self._expires_at = 0.0
