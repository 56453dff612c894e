# ==============================================================================
# Cache Abstract Base Class
# ==============================================================================
"""
Abstract interface for the visitor-scoped key-value store.

Holds frequency-capping state, the snooze deadline and countdown deadlines.
Survives across page loads for one visitor. No transactions: concurrent tabs
share it with last-writer-wins semantics.

Implementations: Valkey/Redis (fakeredis in tests).
"""

from abc import ABC, abstractmethod


class Cache(ABC):
    """
    Generic key-value interface with optional TTL.

    All values are stored as dicts (JSON-serializable). Implementations
    handle serialization/deserialization internally.
    """

    @abstractmethod
    def get(self, key: str) -> dict | None:
        """
        Get a stored value.

        Args:
            key: Storage key

        Returns:
            Stored value as dict, or None if not found
        """
        ...

    @abstractmethod
    def set(self, key: str, value: dict, ttl_seconds: int | None = None) -> None:
        """
        Set a value with optional TTL.

        Args:
            key: Storage key
            value: Value to store (must be JSON-serializable dict)
            ttl_seconds: Optional time-to-live in seconds
        """
        ...

    @abstractmethod
    def delete(self, key: str) -> bool:
        """
        Delete a key.

        Args:
            key: Storage key to delete

        Returns:
            True if key was deleted, False if not found
        """
        ...
