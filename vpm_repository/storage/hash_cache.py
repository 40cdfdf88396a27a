"""
Persistent cache of archive content hashes, keyed by download URL.

The cache is advisory: a missing or corrupted cache file only means hashes
are recomputed, it never aborts a build.
"""
from __future__ import annotations

import json
import logging
import threading
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class HashCache:
    """Thread-safe mapping of archive URL -> lowercase hex SHA-256 digest."""

    def __init__(self, entries: Optional[Dict[str, str]] = None):
        self._entries: Dict[str, str] = dict(entries or {})
        self._lock = threading.Lock()

    @classmethod
    def load(cls, data: Optional[bytes]) -> "HashCache":
        """
        Build a cache from the raw contents of a cache file.

        ``None`` or empty input (no previous run) yields an empty cache.
        Entries whose key or value is not a string are skipped.
        """
        if not data or not data.strip():
            return cls()

        try:
            raw = json.loads(data.decode("utf-8-sig"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable hash cache: {e}")
            return cls()

        if not isinstance(raw, dict):
            logger.warning(f"Ignoring hash cache with a {type(raw).__name__} root, expected an object")
            return cls()

        entries: Dict[str, str] = {}
        for url, digest in raw.items():
            if isinstance(digest, str) and digest:
                entries[url] = digest
            else:
                logger.warning(f"Dropping invalid hash cache entry for {url}")
        return cls(entries)

    def get(self, url: str) -> Optional[str]:
        with self._lock:
            return self._entries.get(url)

    def put(self, url: str, digest: str) -> None:
        with self._lock:
            self._entries[url] = digest

    def snapshot(self) -> Dict[str, str]:
        """Return a copy of the entries in ascending key order."""
        with self._lock:
            return {url: self._entries[url] for url in sorted(self._entries)}

    def serialize(self, indent: Optional[int] = None) -> bytes:
        entries = self.snapshot()
        if indent is None:
            text = json.dumps(entries, separators=(",", ":"), ensure_ascii=False)
        else:
            text = json.dumps(entries, indent=indent, ensure_ascii=False)
        return text.encode("utf-8")

    def __contains__(self, url: object) -> bool:
        with self._lock:
            return url in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
