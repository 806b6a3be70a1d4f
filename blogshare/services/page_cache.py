# blogshare/services/page_cache.py
from __future__ import annotations
import logging
from typing import Any, Callable, Hashable, Optional

from flask import Flask
from flask_caching import Cache

from blogshare.services.token_codec import token_hint

log = logging.getLogger(__name__)

# Schlüssel-Präfixe
PAGE_PREFIX = "page:"
INDEX_PREFIX = "idx:"


def _subkey(key: Hashable) -> str:
    if isinstance(key, tuple):
        return ":".join(str(k) for k in key)
    return str(key)


class PageCache:
    """
    Gerenderte Payloads pro Token auf Flask-Caching (SimpleCache, kurze TTL).

    Nur lesen, NACHDEM der Evaluator den Token freigegeben hat.
    Pro Token wird ein Index der Seiten-Schlüssel gehalten, damit
    invalidate_token() alle Seiten eines Tokens mit delete_many verwirft.
    ttl_seconds <= 0 schaltet den Cache ab (NullCache).
    """

    def __init__(self, app: Flask, ttl_seconds: float = 10, threshold: int = 500):
        self.ttl_seconds = ttl_seconds
        # SimpleCache liest 0 als "nie ablaufen"
        self.timeout = max(1, int(ttl_seconds)) if ttl_seconds > 0 else 0
        self.cache = Cache(app, config={
            "CACHE_TYPE": "SimpleCache" if self.enabled else "NullCache",
            "CACHE_DEFAULT_TIMEOUT": self.timeout,
            "CACHE_THRESHOLD": threshold,
            "CACHE_KEY_PREFIX": "share:",
        })

    @property
    def enabled(self) -> bool:
        return self.ttl_seconds > 0

    @staticmethod
    def _page_key(token: str, key: Hashable) -> str:
        return f"{PAGE_PREFIX}{token}:{_subkey(key)}"

    def get(self, token: str, key: Hashable) -> Optional[Any]:
        return self.cache.get(self._page_key(token, key))

    def put(self, token: str, key: Hashable, payload: Any) -> None:
        if not self.enabled:
            return
        page_key = self._page_key(token, key)
        index_key = INDEX_PREFIX + token
        keys = self.cache.get(index_key) or []
        if page_key not in keys:
            keys.append(page_key)
        self.cache.set(page_key, payload)
        # Index lebt etwas länger als die Seiten, sonst bleiben Seiten unauffindbar
        self.cache.set(index_key, keys, timeout=self.timeout * 2 + 1)

    def get_or_build(self, token: str, key: Hashable, build: Callable[[], Any]) -> Any:
        cached = self.get(token, key)
        if cached is not None:
            return cached
        payload = build()
        if payload is not None:
            self.put(token, key, payload)
        return payload

    def invalidate_token(self, token: str) -> None:
        index_key = INDEX_PREFIX + token
        keys = self.cache.get(index_key) or []
        self.cache.delete_many(*keys, index_key)
        if keys:
            log.info("Cache für Token %s verworfen (%d Einträge)", token_hint(token), len(keys))

    def clear(self) -> None:
        self.cache.clear()
        log.info("Seiten-Cache geleert")
