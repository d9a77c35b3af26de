import time
from collections.abc import Callable

from reconciler.logging.logger import Log
from reconciler.storage.base import BaseObjectStore
from reconciler.storage.exceptions import StorageTransientError


class RetryingUploader:
    """Stores a file, retrying transient storage faults with linear backoff.

    Attempt N waits ``backoff_seconds * N`` before attempt N+1. Any other
    storage error is raised straight away.
    """

    def __init__(
        self,
        store: BaseObjectStore,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._store = store
        self._max_attempts = max(1, max_attempts)
        self._backoff_seconds = backoff_seconds
        self._sleep = sleep

    @property
    def store(self) -> BaseObjectStore:
        return self._store

    def upload(self, key: str, content: bytes, content_type: str) -> str:
        """Store ``content`` under ``key`` and return its reference.

        Raises:
            StorageTransientError: if every attempt hit a transient fault.
            StorageError: on the first non-transient fault.
        """
        attempt = 1
        while True:
            try:
                reference = self._store.put(key, content, content_type)
            except StorageTransientError as exc:
                Log.warning(f"Upload attempt {attempt}/{self._max_attempts} failed: {exc}", key=key)
                if attempt >= self._max_attempts:
                    raise
                self._sleep(self._backoff_seconds * attempt)
                attempt += 1
                continue
            Log.info(f"Uploaded file on attempt {attempt}", key=key, size=len(content))
            return reference
