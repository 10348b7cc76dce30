"""Transaction session handles."""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from typing import Any

from .errors import ValidationError


class TransactionState(str, enum.Enum):
    ACTIVE = "active"
    COMMITTED = "committed"
    ABORTED = "aborted"


@dataclass
class Session:
    """One transactional unit of work.

    ``handle`` is the adapter's native session object; callers only pass the
    ``Session`` back into store operations.
    """

    handle: Any
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: TransactionState = TransactionState.ACTIVE

    @property
    def active(self) -> bool:
        return self.state is TransactionState.ACTIVE

    def ensure_active(self) -> None:
        if not self.active:
            raise ValidationError(f"Session {self.id} is already {self.state.value}")

    def mark(self, state: TransactionState) -> None:
        self.ensure_active()
        self.state = state


def native(session: Any) -> Any:
    """Return the driver-level session for ``session`` (or ``None``)."""
    if isinstance(session, Session):
        return session.handle
    return session
