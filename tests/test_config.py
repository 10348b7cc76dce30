from __future__ import annotations

from pathlib import Path

import pydantic
import pytest

from dotstore.config import StoreConfig


def test_defaults():
    config = StoreConfig()
    assert config.adapter == "jsondb"
    assert config.folder == Path("dotstore_data")
    assert config.file_name == "dotstore"
    assert config.language == "en"
    assert config.readable is False
    assert config.no_blank_data is False
    assert config.lock_writes is True
    assert config.cache_ttl is None


def test_unknown_adapter_and_language_fall_back(caplog):
    config = StoreConfig(adapter="sqlite", language="de")
    assert config.adapter == "jsondb"
    assert config.language == "en"
    assert "Unsupported adapter" in caplog.text
    assert "Unsupported language" in caplog.text


def test_names_are_case_insensitive():
    config = StoreConfig(adapter="YAMLDB", language="TR")
    assert (config.adapter, config.language) == ("yamldb", "tr")


def test_empty_names_use_defaults():
    config = StoreConfig(folder="", file_name="", collection="")
    assert config.folder == Path("dotstore_data")
    assert config.file_name == "dotstore"
    assert config.collection == "dotstore"


def test_config_is_frozen():
    config = StoreConfig()
    with pytest.raises(pydantic.ValidationError):
        config.readable = True  # type: ignore[misc]


def test_mongo_requires_url():
    with pytest.raises(pydantic.ValidationError):
        StoreConfig(adapter="mongo")
    assert StoreConfig(adapter="mongo", mongo_url="mongodb://localhost").collection == "dotstore"


def test_from_env_reads_prefixed_variables():
    env = {
        "DOTSTORE_ADAPTER": "yamldb",
        "DOTSTORE_FOLDER": "/tmp/data",
        "DOTSTORE_FILE_NAME": "app",
        "DOTSTORE_READABLE": "yes",
        "DOTSTORE_NO_BLANK_DATA": "1",
        "DOTSTORE_LOCK_WRITES": "off",
        "DOTSTORE_CACHE_TTL": "2.5",
        "DOTSTORE_LANGUAGE": "tr",
    }
    config = StoreConfig.from_env(environ=env)
    assert config.adapter == "yamldb"
    assert config.folder == Path("/tmp/data")
    assert config.file_name == "app"
    assert config.readable is True
    assert config.no_blank_data is True
    assert config.lock_writes is False
    assert config.cache_ttl == 2.5
    assert config.language == "tr"


def test_from_env_keeps_defaults_for_invalid_values(caplog):
    config = StoreConfig.from_env(
        prefix="APP_",
        environ={"APP_READABLE": "maybe", "APP_CACHE_TTL": "soon"},
    )
    assert config.readable is False
    assert config.cache_ttl is None
    assert "APP_READABLE" in caplog.text
    assert "APP_CACHE_TTL" in caplog.text
