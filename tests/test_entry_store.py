from datetime import datetime

import pytest

from app import cache
from cache.entry_store import INDEX_KEY, CacheEntry, EntryStore


def _entry(key, files=("a.js",)):
    return CacheEntry(
        version=f"{key}-100",
        etag=key,
        last_modified=100,
        files=tuple(files),
        path="app/",
        extension="js",
    )


@pytest.fixture
def store(app):
    with app.app_context():
        yield EntryStore(cache)


def test_put_then_get_round_trips_the_entry(store) -> None:
    entry = _entry("abc")

    assert store.put("abc", entry) is True
    assert store.get("abc") == entry
    assert store.get("abc").kind == "script"


def test_first_writer_wins(store) -> None:
    first = _entry("abc", files=("a.js",))
    second = _entry("abc", files=("b.js",))

    assert store.put("abc", first) is True
    assert store.put("abc", second) is False

    assert store.get("abc").files == ("a.js",)
    assert store.keys() == ["combiner.abc"]


def test_missing_entry_is_none(store) -> None:
    assert store.get("nothing") is None
    assert store.stats.misses == 1


def test_unreadable_entries_are_cache_misses(store) -> None:
    cache.set("combiner.garbled", "not json at all", timeout=0)
    cache.set("combiner.partial", '{"version": "x"}', timeout=0)

    assert store.get("garbled") is None
    assert store.get("partial") is None


def test_reset_removes_every_indexed_entry(store) -> None:
    store.put("one", _entry("one"))
    store.put("two", _entry("two"))

    assert store.reset_all() == 2

    assert store.get("one") is None
    assert store.get("two") is None
    assert store.keys() == []
    assert cache.get(INDEX_KEY) is None


def test_reset_on_empty_index_is_a_noop(store) -> None:
    assert store.reset_all() == 0
    assert store.reset_all() == 0
    assert store.keys() == []


def test_reset_timestamp_is_timezone_aware(store) -> None:
    store.reset_all()

    reset_at = datetime.fromisoformat(store.stats.last_reset)
    assert reset_at.tzinfo is not None
    assert reset_at.utcoffset().total_seconds() == 0
