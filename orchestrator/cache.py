#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
File-backed cache of storefront lookups.

One JSON file holds every entry for the batch run:

    {
      "<sha1(locale|term)>": {"timestamp": 1700000000.0, "term": "...",
                              "locale": "us-en-US", "candidates": [...]},
      "genres:<sha1(locale|link)>": {"timestamp": ..., "genres": [...]}
    }

The key hashes the raw search term, so "Hound Dog" and "hound dog" are
separate entries. Empty results are never stored. Read and write errors
degrade to a miss / a skipped write.
"""

import hashlib
import json
import os
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from matching.exceptions import CacheError
from matching.models import Candidate

GENRE_PREFIX = "genres:"


def cache_key(term: str, locale: str) -> str:
    """Stable key for a raw search term in a locale"""
    return hashlib.sha1(f"{locale}|{term}".encode('utf-8')).hexdigest()


class ResultCache:
    """
    Per-query candidate cache with a TTL.

    Use as a context manager so pending writes are flushed on every exit
    path:

        with ResultCache("state/cache.json", ttl_minutes=60) as cache:
            candidates = cache.get(term, locale)
    """

    def __init__(self, cache_path: str = "state/storefront-cache.json",
                 ttl_minutes: float = 60, enabled: bool = True,
                 clock: Callable[[], float] = time.time):
        self.cache_path = Path(cache_path)
        self.ttl_seconds = float(ttl_minutes) * 60
        self.enabled = enabled
        self._clock = clock
        self._entries: Optional[Dict[str, Dict[str, Any]]] = None
        self._dirty = False
        self.hits = 0
        self.misses = 0

    def __enter__(self) -> "ResultCache":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ==================== Candidates ====================

    def get(self, term: str, locale: str) -> Optional[List[Candidate]]:
        """
        Cached candidates for a term.

        Returns:
            Candidate list, or None on miss or expiry
        """
        entry = self._get_entry(cache_key(term, locale))
        if entry is None:
            return None
        try:
            return [Candidate.from_dict(c) for c in entry.get("candidates", [])]
        except (TypeError, ValueError, AttributeError):
            self._log(f"Corrupt entry for '{term}', ignoring")
            return None

    def put(self, term: str, locale: str, candidates: List[Candidate]) -> None:
        """Store candidates; empty lists are not stored"""
        if not candidates:
            return
        self._put_entry(cache_key(term, locale), {
            "term": term,
            "locale": locale,
            "candidates": [c.to_dict() for c in candidates]
        })

    # ==================== Genres ====================

    def get_genres(self, link: str, locale: str) -> Optional[List[str]]:
        entry = self._get_entry(GENRE_PREFIX + cache_key(link, locale))
        if entry is None:
            return None
        genres = entry.get("genres")
        return list(genres) if isinstance(genres, list) else None

    def put_genres(self, link: str, locale: str, genres: List[str]) -> None:
        if not genres:
            return
        self._put_entry(GENRE_PREFIX + cache_key(link, locale), {
            "link": link,
            "locale": locale,
            "genres": list(genres)
        })

    # ==================== Maintenance ====================

    def purge_expired(self) -> int:
        """Drop expired entries, returns number removed"""
        entries = self._load()
        expired = [k for k, v in entries.items() if not self._is_fresh(v)]
        for key in expired:
            del entries[key]
        if expired:
            self._dirty = True
            self.flush()
        return len(expired)

    def clear(self) -> None:
        """Remove every entry and the cache file"""
        self._entries = {}
        self._dirty = False
        try:
            if self.cache_path.exists():
                self.cache_path.unlink()
        except OSError as e:
            self._log(f"Could not delete {self.cache_path}: {e}")

    def stats(self) -> Dict[str, Any]:
        entries = self._load()
        fresh = sum(1 for v in entries.values() if self._is_fresh(v))
        return {
            "path": str(self.cache_path),
            "entries": len(entries),
            "fresh": fresh,
            "expired": len(entries) - fresh,
            "hits": self.hits,
            "misses": self.misses
        }

    def flush(self) -> None:
        """Write pending changes; failures are logged and skipped"""
        if not self._dirty or self._entries is None:
            return
        try:
            self._write_file(self._entries)
            self._dirty = False
        except CacheError as e:
            self._log(str(e))

    def close(self) -> None:
        self.flush()

    # ==================== Internals ====================

    def _is_fresh(self, entry: Dict[str, Any]) -> bool:
        try:
            timestamp = float(entry.get("timestamp", 0))
        except (TypeError, ValueError, AttributeError):
            return False
        return self._clock() - timestamp <= self.ttl_seconds

    def _get_entry(self, key: str) -> Optional[Dict[str, Any]]:
        if not self.enabled:
            return None
        entry = self._load().get(key)
        if entry is None or not isinstance(entry, dict) or not self._is_fresh(entry):
            self.misses += 1
            return None
        self.hits += 1
        return entry

    def _put_entry(self, key: str, value: Dict[str, Any]) -> None:
        if not self.enabled:
            return
        value["timestamp"] = self._clock()
        self._load()[key] = value
        self._dirty = True

    def _load(self) -> Dict[str, Dict[str, Any]]:
        if self._entries is not None:
            return self._entries

        self._entries = {}
        if not self.cache_path.exists():
            return self._entries

        try:
            self._entries = self._read_file()
        except CacheError as e:
            self._log(f"{e}, starting empty")

        return self._entries

    def _read_file(self) -> Dict[str, Dict[str, Any]]:
        try:
            with open(self.cache_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise CacheError(f"Could not read cache {self.cache_path}: {e}") from e
        if not isinstance(data, dict):
            raise CacheError(f"Cache file {self.cache_path} has unexpected shape")
        return data

    def _write_file(self, entries: Dict[str, Dict[str, Any]]) -> None:
        tmp_path = self.cache_path.with_name(self.cache_path.name + ".tmp")
        try:
            self.cache_path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(entries, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.cache_path)
        except OSError as e:
            try:
                if tmp_path.exists():
                    tmp_path.unlink()
            except OSError:
                pass
            raise CacheError(f"Could not write cache {self.cache_path}: {e}") from e

    def _log(self, message: str) -> None:
        print(f"[Cache] Warning: {message}")

    def __repr__(self) -> str:
        return f"ResultCache(path={self.cache_path}, ttl={self.ttl_seconds / 60:.0f}min)"
