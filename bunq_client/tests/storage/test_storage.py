from pathlib import Path

import pytest

from bunq_client.storage.memory import JsonFileStorage, MemoryStorage
from bunq_client.storage.protocol import StorageInterface


@pytest.mark.asyncio
async def test_memory_storage_get_set_remove() -> None:
    storage = MemoryStorage()

    assert await storage.get("missing") is None

    await storage.set("key", {"a": [1, 2]})
    assert await storage.get("key") == {"a": [1, 2]}

    await storage.remove("key")
    await storage.remove("key")
    assert await storage.get("key") is None


@pytest.mark.asyncio
async def test_memory_storage_returns_copies() -> None:
    storage = MemoryStorage()
    value = {"nested": {"x": 1}}
    await storage.set("key", value)

    value["nested"]["x"] = 2
    (await storage.get("key"))["nested"]["x"] = 3

    assert await storage.get("key") == {"nested": {"x": 1}}


@pytest.mark.asyncio
async def test_json_file_storage_persists_across_instances(tmp_path: Path) -> None:
    path = tmp_path / "state" / "bunq.json"
    await JsonFileStorage(path).set("session", {"token": "abc"})

    reopened = JsonFileStorage(path)

    assert await reopened.get("session") == {"token": "abc"}
    assert await reopened.get("other") is None


@pytest.mark.asyncio
async def test_json_file_storage_remove(tmp_path: Path) -> None:
    storage = JsonFileStorage(tmp_path / "bunq.json")
    await storage.set("a", 1)
    await storage.set("b", 2)

    await storage.remove("a")
    await storage.remove("never-set")

    assert await storage.get("a") is None
    assert await storage.get("b") == 2


def test_backends_satisfy_protocol(tmp_path: Path) -> None:
    assert isinstance(MemoryStorage(), StorageInterface)
    assert isinstance(JsonFileStorage(tmp_path / "x.json"), StorageInterface)
