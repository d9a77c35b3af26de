import threading
import time
from collections.abc import Callable


class RecentRequestCache:
    """In-process record of recently forwarded requests.

    Only catches duplicates that hit the same process; the durable record in
    translation_deliveries is what actually prevents double delivery.
    """

    def __init__(
        self,
        window_seconds: float = 120,
        evict_after_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._window = window_seconds
        self._evict_after = evict_after_seconds
        self._clock = clock
        self._seen: dict[str, float] = {}
        self._lock = threading.Lock()

    def seen_recently(self, key: str) -> bool:
        with self._lock:
            seen_at = self._seen.get(key)
            return seen_at is not None and self._clock() - seen_at < self._window

    def mark(self, key: str) -> None:
        with self._lock:
            now = self._clock()
            self._seen[key] = now
            stale = [k for k, seen_at in self._seen.items() if now - seen_at > self._evict_after]
            for k in stale:
                del self._seen[k]

    def __len__(self) -> int:
        return len(self._seen)
