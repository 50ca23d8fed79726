"""
Query cache for the BundleHub client.
"""

import functools
import threading
import time

from .query_keys import is_prefix


class QueryCache:
    """
    Key -> value store with optional time-to-live.

    get_or_fetch() only calls the fetcher on a miss or a stale entry;
    invalidate(prefix) drops every key under the prefix.
    """

    def __init__(self, ttl=None, clock=time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries = {}
        self._lock = threading.RLock()

    def __contains__(self, key):
        with self._lock:
            return self._fresh(tuple(key)) is not None

    def __len__(self):
        return len(self._entries)

    def _fresh(self, key):
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self.ttl is not None and self._clock() - entry[1] > self.ttl:
            del self._entries[key]
            return None
        return entry

    def get(self, key, default=None):
        with self._lock:
            entry = self._fresh(tuple(key))
            return entry[0] if entry else default

    def set(self, key, value):
        with self._lock:
            self._entries[tuple(key)] = (value, self._clock())

    def get_or_fetch(self, key, fetch):
        key = tuple(key)
        with self._lock:
            entry = self._fresh(key)
            if entry is not None:
                return entry[0]
        value = fetch()
        self.set(key, value)
        return value

    def invalidate(self, *prefixes):
        """Drop every key starting with any of the prefixes. Returns the count."""
        with self._lock:
            stale = [key for key in self._entries if any(is_prefix(p, key) for p in prefixes)]
            for key in stale:
                del self._entries[key]
            return len(stale)

    def clear(self):
        with self._lock:
            self._entries.clear()

    def mutation(self, *prefixes):
        """
        Decorator for write calls: after the call succeeds, invalidate the
        given key prefixes. A failing call leaves the cache untouched.
        """
        def decorator(func):
            @functools.wraps(func)
            def wrapper(*args, **kwargs):
                result = func(*args, **kwargs)
                self.invalidate(*prefixes)
                return result
            return wrapper
        return decorator
