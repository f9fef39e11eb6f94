"""
In-memory cache for rendered pages.

Entries are keyed on the raw target URL string and bounded two ways: a uniform
TTL measured on a monotonic clock, and a maximum item count enforced with
least-recently-used eviction. The two are independent: a fresh entry can still
be evicted for capacity, and a recently read entry still expires.

The cache is only touched from the event loop thread, so it takes no locks.
"""
import time
from collections import OrderedDict
from typing import Callable, Optional, Tuple, TYPE_CHECKING

from prerender_gateway.core.exceptions import ConfigurationError
from prerender_gateway.core.logger import get_logger

if TYPE_CHECKING:
    from prerender_gateway.core.config import ConfigurationManager

logger = get_logger(__name__)


class RenderCache:
    """
    TTL + capacity bounded LRU store mapping target URLs to rendered HTML.

    Attributes:
        max_items (int): Maximum number of entries kept.
        ttl_seconds (float): Lifetime of every entry.
    """
    DEFAULT_MAX_ITEMS = 500
    DEFAULT_TTL_MS = 300000

    def __init__(self, max_items: int = DEFAULT_MAX_ITEMS, ttl_seconds: float = DEFAULT_TTL_MS / 1000,
                 clock: Callable[[], float] = time.monotonic):
        if max_items < 1:
            raise ConfigurationError(f"Render cache needs room for at least one item, got max_items={max_items}.")
        if ttl_seconds <= 0:
            raise ConfigurationError(f"Render cache TTL must be positive, got {ttl_seconds}s.")
        self.max_items = max_items
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        # key -> (html, expires_at); order is least to most recently used.
        self._entries: "OrderedDict[str, Tuple[str, float]]" = OrderedDict()

    @classmethod
    def from_config(cls, config: Optional['ConfigurationManager']) -> 'RenderCache':
        if config is None:
            return cls()
        return cls(
            max_items=int(config.get("cache.max_items", cls.DEFAULT_MAX_ITEMS)),
            ttl_seconds=int(config.get("cache.ttl_ms", cls.DEFAULT_TTL_MS)) / 1000,
        )

    def get(self, key: str) -> Optional[str]:
        """
        Returns the cached HTML for `key`, or None on a miss.

        A hit marks the entry as most recently used. An expired entry is removed
        and reported as a miss.
        """
        entry = self._entries.get(key)
        if entry is None:
            return None
        html, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            logger.debug(f"Cache entry expired for {key}")
            return None
        self._entries.move_to_end(key)
        return html

    def set(self, key: str, html: str) -> None:
        """Stores `html` under `key`, restarting its TTL and evicting LRU entries on overflow."""
        self._entries[key] = (html, self._clock() + self.ttl_seconds)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_items:
            evicted_key, _ = self._entries.popitem(last=False)
            logger.debug(f"Cache capacity {self.max_items} reached; evicted {evicted_key}")

    def purge_expired(self) -> int:
        """Drops every expired entry. Returns how many were removed."""
        now = self._clock()
        expired = [key for key, (_, expires_at) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: object) -> bool:
        # Membership does not count as an access.
        entry = self._entries.get(key)  # type: ignore[arg-type]
        return entry is not None and self._clock() < entry[1]

    def __len__(self) -> int:
        return len(self._entries)
