import json

import pytest

from conftest import make_candidate
from matching.exceptions import CacheError
from orchestrator.cache import ResultCache, cache_key


LOCALE = "us-en-US"


def _cache(tmp_path, clock, **kwargs):
    return ResultCache(str(tmp_path / "cache.json"), ttl_minutes=60, clock=clock, **kwargs)


def test_put_then_get_within_ttl(tmp_path, clock):
    cache = _cache(tmp_path, clock)
    candidates = [make_candidate(0, "Hound Dog", "Elvis Presley", link="https://x/1")]
    cache.put("Hound Dog Elvis Presley", LOCALE, candidates)

    clock.advance(59)
    assert cache.get("Hound Dog Elvis Presley", LOCALE) == candidates


def test_entry_expires_after_ttl(tmp_path, clock):
    cache = _cache(tmp_path, clock)
    cache.put("term", LOCALE, [make_candidate(0, "A")])

    clock.advance(61)
    assert cache.get("term", LOCALE) is None
    assert cache.stats()["expired"] == 1


def test_expired_entry_is_overwritten(tmp_path, clock):
    cache = _cache(tmp_path, clock)
    cache.put("term", LOCALE, [make_candidate(0, "Old")])
    clock.advance(120)
    cache.put("term", LOCALE, [make_candidate(0, "New")])
    assert cache.get("term", LOCALE)[0].title == "New"


def test_empty_results_are_not_cached(tmp_path, clock):
    cache = _cache(tmp_path, clock)
    cache.put("nothing", LOCALE, [])
    assert cache.get("nothing", LOCALE) is None
    assert not (tmp_path / "cache.json").exists()


def test_key_uses_raw_term_and_locale():
    assert cache_key("Hound Dog", LOCALE) != cache_key("hound dog", LOCALE)
    assert cache_key("Hound Dog", LOCALE) != cache_key("Hound Dog", "gb-en-GB")


def test_entries_persist_across_instances(tmp_path, clock):
    with _cache(tmp_path, clock) as cache:
        cache.put("term", LOCALE, [make_candidate(0, "A", "B")])

    reloaded = _cache(tmp_path, clock)
    assert reloaded.get("term", LOCALE)[0].artist == "B"


def test_corrupt_file_degrades_to_miss(tmp_path, clock, capsys):
    (tmp_path / "cache.json").write_text("{not json", encoding="utf-8")
    cache = _cache(tmp_path, clock)

    assert cache.get("term", LOCALE) is None
    assert "Could not read cache" in capsys.readouterr().out

    cache.put("term", LOCALE, [make_candidate(0, "A")])
    cache.flush()
    data = json.loads((tmp_path / "cache.json").read_text(encoding="utf-8"))
    assert len(data) == 1


def test_unwritable_cache_does_not_raise(tmp_path, clock, capsys):
    blocker = tmp_path / "blocker"
    blocker.write_text("file, not a folder", encoding="utf-8")
    cache = ResultCache(str(blocker / "cache.json"), clock=clock)

    cache.put("term", LOCALE, [make_candidate(0, "A")])
    cache.close()
    assert "Could not write cache" in capsys.readouterr().out


def test_disabled_cache_never_hits(tmp_path, clock):
    cache = _cache(tmp_path, clock, enabled=False)
    cache.put("term", LOCALE, [make_candidate(0, "A")])
    assert cache.get("term", LOCALE) is None


def test_genres_are_cached_separately(tmp_path, clock):
    cache = _cache(tmp_path, clock)
    cache.put_genres("https://x/album", LOCALE, ["Rock"])
    assert cache.get_genres("https://x/album", LOCALE) == ["Rock"]
    assert cache.get("https://x/album", LOCALE) is None


def test_purge_and_clear(tmp_path, clock):
    cache = _cache(tmp_path, clock)
    cache.put("old", LOCALE, [make_candidate(0, "A")])
    clock.advance(90)
    cache.put("new", LOCALE, [make_candidate(0, "B")])

    assert cache.purge_expired() == 1
    assert cache.stats()["entries"] == 1

    cache.clear()
    assert cache.stats()["entries"] == 0
    assert not (tmp_path / "cache.json").exists()


def test_puts_are_written_on_close_only(tmp_path, clock):
    path = tmp_path / "cache.json"
    with _cache(tmp_path, clock) as cache:
        cache.put("one", LOCALE, [make_candidate(0, "A")])
        cache.put_genres("https://x/album", LOCALE, ["Rock"])
        assert not path.exists()

    assert len(json.loads(path.read_text(encoding="utf-8"))) == 2


def test_read_and_write_failures_raise_cache_error_internally(tmp_path, clock):
    (tmp_path / "cache.json").write_text("[1, 2]", encoding="utf-8")
    cache = _cache(tmp_path, clock)
    with pytest.raises(CacheError):
        cache._read_file()

    blocker = tmp_path / "blocker"
    blocker.write_text("file, not a folder", encoding="utf-8")
    with pytest.raises(CacheError):
        ResultCache(str(blocker / "cache.json"), clock=clock)._write_file({})
