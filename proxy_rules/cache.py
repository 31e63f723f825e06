"""Time-bounded cache of URL test results."""

import time
from typing import Callable

from proxy_rules.models import RuleTestResult


DEFAULT_MAX_ENTRIES = 1000


class ResultCache:
    """URL-keyed cache with lazy TTL expiry and FIFO eviction.

    Eviction drops the oldest-inserted entry once the cache grows past
    ``max_entries``. This is not an LRU.
    """

    def __init__(
        self,
        ttl_ms: int,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        timer: Callable[[], float] = time.monotonic,
    ):
        self.ttl_ms = ttl_ms
        self.max_entries = max_entries
        self._timer = timer
        self._results: dict[str, RuleTestResult] = {}
        self._timestamps: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._results)

    def __contains__(self, url: str) -> bool:
        return url in self._results

    def get(self, url: str) -> RuleTestResult | None:
        result = self._results.get(url)
        if result is None:
            return None

        age_ms = (self._timer() - self._timestamps[url]) * 1000
        if age_ms > self.ttl_ms:
            del self._results[url]
            del self._timestamps[url]
            return None
        return result

    def put(self, url: str, result: RuleTestResult) -> None:
        # Re-inserting moves the key to the back of the eviction order
        self._results.pop(url, None)
        self._results[url] = result
        self._timestamps[url] = self._timer()

        if len(self._results) > self.max_entries:
            oldest = next(iter(self._results))
            del self._results[oldest]
            del self._timestamps[oldest]

    def clear(self) -> None:
        self._results.clear()
        self._timestamps.clear()
