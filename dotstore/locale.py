"""Localized error messages."""

from __future__ import annotations

import json
import logging
from importlib import resources
from typing import Any, Dict

logger = logging.getLogger(__name__)

LANGUAGES = ("en", "tr")
DEFAULT_LANGUAGE = "en"

DEFAULT_MESSAGES: Dict[str, str] = {
    "blankName": "Key is required.",
    "blankNumber": "Amount must be a number.",
    "blankQuery": "Query must be a mapping.",
    "blankSession": "A transaction session is required.",
    "unsupported": "The '{adapter}' adapter does not support {operation}.",
    "notReady": "The database connection is not ready.",
    "oldVersion": "You are using an outdated version ({current}). Latest is {latest}.",
}


def _read_bundle(language: str) -> Dict[str, Any]:
    source = resources.files("dotstore").joinpath("locales").joinpath(f"{language}.json")
    return json.loads(source.read_text(encoding="utf-8"))


def load_messages(language: str = DEFAULT_LANGUAGE) -> Dict[str, Any]:
    """Load the bundle for ``language``, falling back to English."""
    try:
        return _read_bundle(language.lower())
    except (OSError, ValueError):
        logger.warning(
            "Language file for %r not found. Falling back to %r.",
            language,
            DEFAULT_LANGUAGE,
        )
    try:
        return _read_bundle(DEFAULT_LANGUAGE)
    except (OSError, ValueError):
        logger.error("Default language file %r is missing.", f"{DEFAULT_LANGUAGE}.json")
        return {"errors": {}}


def message(bundle: Dict[str, Any], key: str, **fmt: Any) -> str:
    errors = bundle.get("errors") if isinstance(bundle, dict) else None
    text = errors.get(key) if isinstance(errors, dict) else None
    if not isinstance(text, str) or not text:
        text = DEFAULT_MESSAGES.get(key, key)
    return text.format(**fmt) if fmt else text
