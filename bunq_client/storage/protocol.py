"""
Storage backend protocol.

Key pairs and session state are persisted through this interface so callers
can plug in any async key/value store (browser-style local storage, a
keyring, a database table). Values must be JSON-compatible.
"""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class StorageInterface(Protocol):
    """Async string-keyed value store."""

    async def get(self, key: str) -> Any | None:
        """
        Read a value.

        Returns:
            The stored value, or None if the key is absent.
        """
        ...

    async def set(self, key: str, value: Any) -> None:
        """Write a value, replacing any previous one."""
        ...

    async def remove(self, key: str) -> None:
        """Delete a key. Removing an absent key is not an error."""
        ...
