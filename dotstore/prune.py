"""Removal of blank values from a document (the ``no_blank_data`` option)."""

from __future__ import annotations

from typing import Any, Dict, List


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    return isinstance(value, (dict, list)) and not value


def _prune_items(items: List[Any]) -> None:
    # Elements keep their positions; only mappings inside are cleaned.
    for item in items:
        if isinstance(item, dict):
            _prune(item)
        elif isinstance(item, list):
            _prune_items(item)


def _prune(node: Dict[str, Any]) -> None:
    for key in list(node):
        value = node[key]
        if isinstance(value, dict):
            _prune(value)
        elif isinstance(value, list):
            _prune_items(value)
        if _is_blank(value):
            del node[key]


def prune_empty(document: Dict[str, Any]) -> Dict[str, Any]:
    """Strip ``None``, ``""``, ``[]`` and ``{}`` values in place.

    Children are cleaned before their parent is inspected, so a mapping that
    only held blank values disappears along with them. Mappings stored inside
    lists are cleaned too, but list elements are never removed or shifted.
    Running it twice gives the same result as running it once.
    """
    if isinstance(document, dict):
        _prune(document)
    return document
