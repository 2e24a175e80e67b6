"""
In-memory caching for CMS responses.

Content reads are cached for a short revalidation window so landing pages do
not hit the CDN on every request.
"""

import time
import json
import hashlib
import inspect
from typing import Any, Optional, Dict, Callable
from collections import OrderedDict
from functools import wraps
import logging

logger = logging.getLogger(__name__)


class LRUCache:
    """LRU (Least Recently Used) cache with a per-entry time to live"""

    def __init__(self, max_size: int = 128, ttl: int = 60):
        """
        Initialize LRU cache.

        Args:
            max_size: Maximum number of items in cache
            ttl: Time to live in seconds
        """
        self.max_size = max_size
        self.ttl = ttl
        self.cache: OrderedDict = OrderedDict()
        self.timestamps: Dict[str, float] = {}

    def _is_expired(self, key: str) -> bool:
        if key not in self.timestamps:
            return True
        return time.monotonic() - self.timestamps[key] > self.ttl

    def get(self, key: str) -> Optional[Any]:
        if key not in self.cache:
            return None

        if self._is_expired(key):
            self.delete(key)
            return None

        self.cache.move_to_end(key)
        return self.cache[key]

    def set(self, key: str, value: Any) -> None:
        if len(self.cache) >= self.max_size and key not in self.cache:
            oldest_key = next(iter(self.cache))
            self.delete(oldest_key)

        self.cache[key] = value
        self.cache.move_to_end(key)
        self.timestamps[key] = time.monotonic()

    def delete(self, key: str) -> None:
        self.cache.pop(key, None)
        self.timestamps.pop(key, None)

    def clear(self) -> None:
        self.cache.clear()
        self.timestamps.clear()

    def size(self) -> int:
        return len(self.cache)

    def stats(self) -> Dict[str, Any]:
        return {
            "size": self.size(),
            "max_size": self.max_size,
            "ttl": self.ttl,
        }


def cache_key_generator(*args, **kwargs) -> str:
    """Generate cache key from function arguments"""
    key_data = {
        "args": args,
        "kwargs": kwargs
    }
    key_str = json.dumps(key_data, sort_keys=True, default=str)
    return hashlib.md5(key_str.encode()).hexdigest()


def cached(cache_attr: str, key_prefix: str = ""):
    """
    Cache the result of an async method on an instance-owned cache.

    Args:
        cache_attr: Name of the LRUCache attribute on ``self``
        key_prefix: Optional prefix for cache keys

    ``None`` results are not cached, so a failed fetch is retried on the
    next request instead of pinning empty content for the whole window.
    """
    def decorator(func: Callable):
        if not inspect.iscoroutinefunction(func):
            raise TypeError("cached() only wraps coroutine functions")

        @wraps(func)
        async def wrapper(self, *args, **kwargs):
            cache_instance: LRUCache = getattr(self, cache_attr)
            cache_key = f"{key_prefix}:{cache_key_generator(*args, **kwargs)}"

            cached_value = cache_instance.get(cache_key)
            if cached_value is not None:
                logger.debug(f"Cache hit for {func.__name__} with key {cache_key}")
                return cached_value

            result = await func(self, *args, **kwargs)
            if result is not None:
                cache_instance.set(cache_key, result)
                logger.debug(f"Cache miss for {func.__name__}, cached with key {cache_key}")
            return result

        return wrapper

    return decorator
