from abc import ABC, abstractmethod


class BaseObjectStore(ABC):
    """Contract for object storage adapters.

    Implementations raise ``StorageTransientError`` for faults worth retrying
    and ``StorageError`` for everything else.
    """

    @abstractmethod
    def put(self, key: str, content: bytes, content_type: str) -> str:
        """Store ``content`` under ``key`` and return the reference to persist."""

    @abstractmethod
    def exists(self, key: str) -> bool:
        """True if an object is stored under ``key``."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove the object under ``key``. Missing objects are not an error."""

    @abstractmethod
    def signed_url(self, key: str, expires_in: int) -> str:
        """Time-limited GET URL for ``key``."""
