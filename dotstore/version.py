"""Best-effort check for a newer release on PyPI."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from .locale import message

logger = logging.getLogger(__name__)

__version__ = "1.0.0"

PYPI_URL = "https://pypi.org/pypi/dotstore/json"
DEFAULT_TIMEOUT = 3.0


async def check_latest_version(
    current: str = __version__,
    *,
    messages: Optional[Dict[str, Any]] = None,
    timeout: float = DEFAULT_TIMEOUT,
    client: Optional[httpx.AsyncClient] = None,
) -> Optional[str]:
    """Return the latest published version, warning when ``current`` is older.

    Network and decoding failures are logged and yield ``None``; they never
    propagate.
    """
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=timeout) as owned:
                response = await owned.get(PYPI_URL)
        else:
            response = await client.get(PYPI_URL, timeout=timeout)
        response.raise_for_status()
        latest = response.json()["info"]["version"]
    except (httpx.HTTPError, KeyError, TypeError, ValueError) as exc:
        logger.warning("Could not check for the latest version: %s", exc)
        return None

    if latest != current:
        logger.warning("%s", message(messages or {}, "oldVersion", current=current, latest=latest))
    return latest
