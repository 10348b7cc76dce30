"""Dot-path navigation over nested dictionaries.

A path such as ``"user.stats.wins"`` addresses ``doc["user"]["stats"]["wins"]``.
Only ``dict`` levels are walked; lists and scalars terminate a lookup.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


class _Missing:
    """Sentinel type for "no value at this path"."""

    _instance: Optional["_Missing"] = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


def split_path(path: str) -> List[str]:
    return path.split(".")


def get_path(document: Any, *segments: str, default: Any = None) -> Any:
    """Return the value at ``segments`` inside ``document``.

    Returns ``default`` as soon as a level is missing or is not a mapping.
    Never raises.
    """
    node = document
    for segment in segments:
        if isinstance(node, dict) and segment in node:
            node = node[segment]
        else:
            return default
    return node


def set_path(path: str, value: Any, document: Dict[str, Any]) -> bool:
    """Assign ``value`` at ``path``, creating intermediate mappings.

    Any intermediate that is ``None`` or not a mapping is replaced by ``{}``.
    The previous value is lost.
    """
    if not isinstance(path, str) or path == "":
        logger.error("Invalid path provided for set operation: %r", path)
        return False

    segments = split_path(path)
    node: Dict[str, Any] = document
    for segment in segments[:-1]:
        child = node.get(segment)
        if not isinstance(child, dict):
            child = {}
            node[segment] = child
        node = child

    node[segments[-1]] = value
    return True


def _find_parent(document: Any, path: str) -> Optional[Tuple[Dict[str, Any], str]]:
    if not isinstance(document, dict) or not isinstance(path, str) or path == "":
        return None

    *parents, leaf = split_path(path)
    parent = get_path(document, *parents, default=MISSING)
    if not isinstance(parent, dict):
        return None
    return parent, leaf


def remove_path(document: Any, path: str) -> bool:
    """Delete the value at ``path``.

    Returns ``True`` only when the parent mapping resolved and the final key
    was present; the document is left untouched otherwise.
    """
    target = _find_parent(document, path)
    if target is None:
        return False

    parent, leaf = target
    if leaf not in parent:
        return False
    del parent[leaf]
    return True
