"""Mutation events emitted by the store for integration hooks."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, DefaultDict, List, Optional

from .errors import ValidationError

logger = logging.getLogger(__name__)

EVENTS = (
    "set",
    "delete",
    "add",
    "subtract",
    "push",
    "unpush",
    "del_by_priority",
    "set_by_priority",
    "delete_all",
)


@dataclass(frozen=True)
class StoreEvent:
    name: str
    key: Optional[str]
    value: Any
    session_id: Optional[str] = None


Listener = Callable[[StoreEvent], Any]


class EventEmitter:
    """Synchronous listener registry.

    Listeners observe; they cannot veto or alter an operation, and an error
    raised by one is logged without reaching the caller.
    """

    def __init__(self) -> None:
        self._listeners: DefaultDict[str, List[Listener]] = defaultdict(list)

    def on(self, name: str, listener: Listener) -> Listener:
        if name not in EVENTS:
            raise ValidationError(f"Unknown event: {name!r}")
        self._listeners[name].append(listener)
        return listener

    def off(self, name: str, listener: Listener) -> None:
        try:
            self._listeners[name].remove(listener)
        except ValueError:
            pass

    def emit(self, event: StoreEvent) -> None:
        for listener in list(self._listeners.get(event.name, ())):
            try:
                listener(event)
            except Exception:
                logger.exception("Listener for %r event failed", event.name)
