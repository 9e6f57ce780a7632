"""Tests for the persistent token cache."""

import json
import os
import stat
from datetime import datetime, timezone

import pytest

from carina.cache.token_cache import EPOCH, TokenCache
from carina.core.exceptions import CacheError


def test_missing_file_yields_empty_cache(tmp_path):
    cache = TokenCache.load(tmp_path / "cache.json")

    assert cache.lookup("alice") is None
    assert cache.last_check() == EPOCH


def test_empty_file_yields_empty_cache(tmp_path):
    path = tmp_path / "cache.json"
    path.write_text("")

    assert TokenCache.load(path).lookup("alice") is None


def test_store_flush_and_reload(tmp_path):
    path = tmp_path / "nested" / "cache.json"
    checked = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)

    cache = TokenCache.load(path)
    cache.store("alice", "token-1")
    cache.store("bob", "token-2")
    cache.record_check(checked)
    cache.flush()

    reloaded = TokenCache.load(path)
    assert reloaded.lookup("alice") == "token-1"
    assert reloaded.lookup("bob") == "token-2"
    assert reloaded.last_check() == checked


def test_file_format(tmp_path):
    path = tmp_path / "cache.json"
    cache = TokenCache(path)
    cache.store("alice", "token-1")
    cache.flush()

    data = json.loads(path.read_text())
    assert data["tokens"] == {"alice": "token-1"}
    assert "last-check" in data


def test_flush_is_owner_only(tmp_path):
    path = tmp_path / "cache.json"
    TokenCache(path).flush()

    assert stat.S_IMODE(os.stat(path).st_mode) == 0o600


def test_store_overwrites_existing_token(tmp_path):
    cache = TokenCache(tmp_path / "cache.json")
    cache.store("alice", "old")
    cache.store("alice", "new")

    assert cache.lookup("alice") == "new"


def test_context_manager_flushes_on_error(tmp_path):
    path = tmp_path / "cache.json"

    with pytest.raises(RuntimeError):
        with TokenCache.load(path) as cache:
            cache.store("alice", "token-1")
            raise RuntimeError("boom")

    assert TokenCache.load(path).lookup("alice") == "token-1"


def test_invalid_json_raises_cache_error(tmp_path):
    path = tmp_path / "cache.json"
    path.write_text("{not json")

    with pytest.raises(CacheError):
        TokenCache.load(path)


def test_invalid_shape_raises_cache_error(tmp_path):
    path = tmp_path / "cache.json"
    path.write_text(json.dumps({"tokens": ["not", "a", "mapping"]}))

    with pytest.raises(CacheError):
        TokenCache.load(path)


def test_naive_timestamp_is_read_as_utc(tmp_path):
    path = tmp_path / "cache.json"
    path.write_text(json.dumps({"tokens": {}, "last-check": "2024-01-01T00:00:00"}))

    assert TokenCache.load(path).last_check() == datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_flush_to_unwritable_location_raises_cache_error(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("file, not a directory")

    with pytest.raises(CacheError):
        TokenCache(blocker / "cache.json").flush()
