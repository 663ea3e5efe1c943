from __future__ import annotations

import json
from pathlib import Path

import pytest

from feedsync.cache import UNTHREADED_DIR, ContentCache
from feedsync.errors import CacheIOError
from feedsync.models import FeedItem


def _item(item_id="100", thread="500", text="hello") -> FeedItem:
    return FeedItem(
        id=item_id,
        user_id="7",
        username="alice",
        name="Alice",
        text=text,
        conversation_id=thread,
        timestamp=1700000000,
        hashtags=[{"text": "ai"}],
        photos=[{"id": "p1", "url": "https://img/1.jpg"}],
    )


def test_put_then_get_from_memory(tmp_path: Path):
    cache = ContentCache(tmp_path)
    item = _item()
    cache.put(item)
    assert cache.get("100") == item


def test_put_writes_thread_grouped_file(tmp_path: Path):
    cache = ContentCache(tmp_path)
    cache.put(_item())

    path = tmp_path / "500" / "100.json"
    assert path.exists()
    assert json.loads(path.read_text())["conversationId"] == "500"


def test_get_survives_restart(tmp_path: Path):
    item = _item()
    ContentCache(tmp_path).put(item)

    restarted = ContentCache(tmp_path)
    assert restarted.get("100") == item


def test_clear_memory_falls_back_to_durable_tier(tmp_path: Path):
    cache = ContentCache(tmp_path)
    item = _item()
    cache.put(item)
    cache.clear_memory()
    assert cache.get("100") == item


def test_lookup_with_unknown_thread_uses_wildcard_scan(tmp_path: Path):
    # Written by another process under some thread dir we never saw.
    thread_dir = tmp_path / "thread-xyz"
    thread_dir.mkdir()
    (thread_dir / "abc.json").write_text(json.dumps(_item("abc", "thread-xyz").to_dict()))

    cache = ContentCache(tmp_path)
    found = cache.get("abc")

    assert found is not None
    assert found.conversation_id == "thread-xyz"
    assert "abc" in cache


def test_durable_hit_is_promoted_to_memory(tmp_path: Path):
    ContentCache(tmp_path).put(_item())
    cache = ContentCache(tmp_path)
    cache.get("100")

    (tmp_path / "500" / "100.json").unlink()
    assert cache.get("100") is not None


def test_missing_item_returns_none(tmp_path: Path):
    assert ContentCache(tmp_path / "does-not-exist").get("nope") is None


def test_put_is_write_once_unless_refreshed(tmp_path: Path):
    cache = ContentCache(tmp_path)
    cache.put(_item(text="full text"))

    kept = cache.put(_item(text="truncated"))
    assert kept.text == "full text"
    cache.clear_memory()
    assert cache.get("100").text == "full text"

    cache.put(_item(text="edited"), refresh=True)
    cache.clear_memory()
    assert cache.get("100").text == "edited"


def test_write_once_holds_across_restart(tmp_path: Path):
    ContentCache(tmp_path).put(_item(text="full text"))

    ContentCache(tmp_path).put(_item(text="truncated"))

    assert ContentCache(tmp_path).get("100").text == "full text"


def test_put_replaces_unreadable_entry(tmp_path: Path):
    (tmp_path / "500").mkdir()
    (tmp_path / "500" / "100.json").write_text("{not json")

    ContentCache(tmp_path).put(_item(text="fresh"))

    assert ContentCache(tmp_path).get("100").text == "fresh"


def test_item_without_thread_goes_to_unthreaded_dir(tmp_path: Path):
    cache = ContentCache(tmp_path)
    cache.put(_item(thread=None))
    assert (tmp_path / UNTHREADED_DIR / "100.json").exists()


def test_put_io_error_propagates(tmp_path: Path):
    blocker = tmp_path / "root"
    blocker.write_text("not a directory")
    cache = ContentCache(blocker)

    with pytest.raises(CacheIOError):
        cache.put(_item())
    assert cache.get("100") is None


def test_corrupt_file_raises_cache_io_error(tmp_path: Path):
    (tmp_path / "500").mkdir()
    (tmp_path / "500" / "100.json").write_text("{not json")

    with pytest.raises(CacheIOError):
        ContentCache(tmp_path).get("100")
