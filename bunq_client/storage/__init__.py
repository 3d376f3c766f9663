"""
Persistence for key pairs and session state.
"""

from bunq_client.storage.memory import JsonFileStorage, MemoryStorage
from bunq_client.storage.protocol import StorageInterface
from bunq_client.storage.session_store import SessionStore

__all__ = ["JsonFileStorage", "MemoryStorage", "SessionStore", "StorageInterface"]
